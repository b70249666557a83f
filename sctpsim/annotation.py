"""Packet annotators: optional natural-language commentary on traffic.

The protocol never depends on what these return. `GeminiAnnotator` talks to
the Gemini REST API with aiohttp; every failure (no credential, network
error, timeout, unexpected response) is turned into a fixed fallback string.
`StubAnnotator` returns fixed strings without any I/O.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from sctpsim.config import SimConfig
from sctpsim.packet import ConnectionState, Packet

logger = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta"

NOT_CONFIGURED = "API Key not configured. Cannot analyze packet."
ANALYSIS_FAILED = "Analysis failed due to network error."
NO_ANALYSIS = "No analysis available."
MOCK_PAYLOAD = "Mock Secure Data Payload"
PAYLOAD_FAILED = "0xCAFEBABE"
EMPTY_PAYLOAD = "0xDEADBEEF"

PAYLOAD_PROMPT = (
    "Generate a short, hex-encoded string representing a secure encrypted "
    "payload (e.g. '0x4A...'). Max 20 chars."
)


def analysis_prompt(packet: Packet, state: ConnectionState) -> str:
    return (
        "You are a network security expert analyzing a custom UDP transport protocol.\n"
        f'Analyze this packet in the context of the connection state: "{state.value}".\n\n'
        "Packet Details:\n"
        f"- Flag: {packet.flag.value}\n"
        f"- Sequence: {packet.seq}\n"
        f"- Ack: {packet.ack}\n"
        f'- Payload: "{packet.payload}"\n'
        f"- SessionID: {packet.session_id or 'None'}\n\n"
        "Explain briefly (max 2 sentences) what this packet does in the handshake "
        "or data transfer process and if it looks valid."
    )


class StubAnnotator:
    """Annotator returning fixed strings."""

    def __init__(self, analysis: str = NO_ANALYSIS, payload: str = MOCK_PAYLOAD) -> None:
        self.analysis = analysis
        self.payload = payload

    async def analyze(self, packet: Packet, state: ConnectionState) -> str:
        return self.analysis

    async def generate_payload(self) -> str:
        return self.payload


class GeminiAnnotator:
    """
    Annotator backed by the Gemini ``generateContent`` endpoint.

    Parameters:
    - api_key: credential; without it every call returns a fallback at once.
    - model: model name placed in the request URL.
    - timeout_s: total timeout of one request.
    - base_url: API root, overridable for tests and proxies.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-3-flash-preview",
        timeout_s: float = 10.0,
        base_url: str = GEMINI_URL,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout_s = timeout_s
        self.base_url = base_url.rstrip("/")

    async def analyze(self, packet: Packet, state: ConnectionState) -> str:
        if not self.api_key:
            return NOT_CONFIGURED
        try:
            text = await self._generate(analysis_prompt(packet, state))
        except (aiohttp.ClientError, asyncio.TimeoutError, AttributeError, KeyError, IndexError, TypeError, ValueError) as e:
            logger.warning("packet analysis failed: %r", e)
            return ANALYSIS_FAILED
        return text or NO_ANALYSIS

    async def generate_payload(self) -> str:
        if not self.api_key:
            return MOCK_PAYLOAD
        try:
            text = await self._generate(PAYLOAD_PROMPT)
        except (aiohttp.ClientError, asyncio.TimeoutError, AttributeError, KeyError, IndexError, TypeError, ValueError) as e:
            logger.warning("payload generation failed: %r", e)
            return PAYLOAD_FAILED
        return text.strip() or EMPTY_PAYLOAD

    async def _generate(self, prompt: str) -> str:
        """POST one prompt and return the first candidate's text."""
        url = f"{self.base_url}/models/{self.model}:generateContent"
        body = {"contents": [{"parts": [{"text": prompt}]}]}
        timeout = aiohttp.ClientTimeout(total=self.timeout_s)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(
                url, json=body, headers={"x-goog-api-key": self.api_key}
            ) as resp:
                resp.raise_for_status()
                data: Dict[str, Any] = await resp.json()
        parts = data["candidates"][0]["content"]["parts"]
        return "".join(part.get("text", "") for part in parts if isinstance(part, dict))


def make_annotator(config: SimConfig):
    """Live annotator when a credential is configured, stub otherwise."""
    if config.api_key:
        return GeminiAnnotator(
            config.api_key, model=config.model, timeout_s=config.annotation_timeout_s
        )
    return StubAnnotator(analysis=NOT_CONFIGURED)
