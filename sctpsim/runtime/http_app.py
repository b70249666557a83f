"""HTTP front end for a live simulation.

This module exposes the engine via FastAPI:
- GET /state, GET /packets: read-only snapshots for dashboards.
- POST /connect, /disconnect, /abort, /listen, /reset, /data: user actions.
- POST /packets/{packet_id}/drop: lose a packet in transit.

The engine runs on the server's asyncio loop with `LoopScheduler`, so route
handlers and delivery timers never interleave. Rejected actions answer
``{"ok": false}`` rather than an HTTP error.
"""

from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from sctpsim.annotation import make_annotator
from sctpsim.config import SimConfig
from sctpsim.engine import ProtocolEngine
from sctpsim.observer import LoggerSink
from sctpsim.packet import Endpoint
from sctpsim.protocols import Annotator
from sctpsim.scheduler import LoopScheduler


class DataRequest(BaseModel):
    payload: Optional[str] = None


def _result(engine: ProtocolEngine, packet) -> Dict[str, Any]:
    if packet is None:
        return {
            "ok": False,
            "reason": f"client is {engine.client.connection_state.value}",
        }
    return {"ok": True, "packet": packet.brief()}


def create_app(
    config: Optional[SimConfig] = None, annotator: Optional[Annotator] = None
) -> FastAPI:
    """Build the app and the engine it serves (available as ``app.state.engine``)."""
    config = config or SimConfig.from_env()
    engine = ProtocolEngine(
        LoopScheduler(),
        config=config,
        sinks=[LoggerSink()],
        annotator=annotator or make_annotator(config),
    )
    app = FastAPI(title="SCTP simulator")
    app.state.engine = engine

    @app.get("/state")
    async def state():
        return engine.brief_state()

    @app.get("/packets")
    async def packets():
        return [p.brief() for p in engine.in_flight()]

    @app.get("/logs/{role}")
    async def logs(role: str):
        try:
            node = engine.node(Endpoint(role.upper()))
        except ValueError:
            raise HTTPException(status_code=404, detail=f"unknown role {role!r}")
        return [
            {
                "id": e.id,
                "timestamp": e.timestamp,
                "message": e.message,
                "category": e.category.value,
            }
            for e in node.log
        ]

    @app.post("/connect")
    async def connect():
        return _result(engine, engine.connect())

    @app.post("/disconnect")
    async def disconnect():
        return _result(engine, engine.disconnect())

    @app.post("/abort")
    async def abort():
        return _result(engine, engine.abort())

    @app.post("/data")
    async def data(req: Optional[DataRequest] = None):
        if req is not None and req.payload is not None:
            return _result(engine, engine.send_data(req.payload))
        return _result(engine, await engine.send_generated_data())

    @app.post("/listen")
    async def listen():
        ok = engine.listen()
        if not ok:
            return {"ok": False, "reason": f"server is {engine.server.connection_state.value}"}
        return {"ok": True}

    @app.post("/reset")
    async def reset():
        engine.reset()
        return {"ok": True}

    @app.post("/packets/{packet_id}/drop")
    async def drop(packet_id: str):
        return {"ok": engine.drop_packet(packet_id)}

    return app
