"""Entry point for serving a live simulation over HTTP.

Environment variables:
- HOST / PORT: bind address (default 0.0.0.0:8000)
- SCTPSIM_* and API_KEY: see `sctpsim.config`
"""

import logging
import os

import uvicorn

from sctpsim.config import SimConfig
from sctpsim.runtime.http_app import create_app


def main():
    """Read settings, build the app and run the HTTP server."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = SimConfig.from_env()
    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8000"))
    app = create_app(config)
    uvicorn.run(app, host=host, port=port, log_level="warning")


if __name__ == "__main__":
    main()
