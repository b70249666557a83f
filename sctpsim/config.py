"""Simulation settings with environment overrides.

Environment variables:
- SCTPSIM_LATENCY_MS: one-way transit latency (default 3000)
- SCTPSIM_CLIENT_SEQ / SCTPSIM_SERVER_SEQ: initial sequence numbers
- SCTPSIM_STRICT: log protocol violations as errors and record them
- API_KEY or GEMINI_API_KEY: credential for the packet annotator
- SCTPSIM_MODEL: annotator model name
- SCTPSIM_ANNOTATION_TIMEOUT: annotator request timeout in seconds
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class SimConfig:
    latency_ms: int = 3000
    client_initial_seq: int = 100
    server_initial_seq: int = 5000
    strict: bool = False
    api_key: Optional[str] = None
    model: str = "gemini-3-flash-preview"
    annotation_timeout_s: float = 10.0

    def __post_init__(self) -> None:
        if self.latency_ms < 0:
            raise ValueError(f"latency_ms must be non-negative, got {self.latency_ms}")
        if self.annotation_timeout_s <= 0:
            raise ValueError("annotation_timeout_s must be positive")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "SimConfig":
        """Build a config from `env` (defaults to `os.environ`).

        Unset variables keep their defaults; malformed numbers raise
        `ValueError`.
        """
        env = os.environ if env is None else env
        defaults = cls()
        return cls(
            latency_ms=int(env.get("SCTPSIM_LATENCY_MS", defaults.latency_ms)),
            client_initial_seq=int(
                env.get("SCTPSIM_CLIENT_SEQ", defaults.client_initial_seq)
            ),
            server_initial_seq=int(
                env.get("SCTPSIM_SERVER_SEQ", defaults.server_initial_seq)
            ),
            strict=env.get("SCTPSIM_STRICT", "").strip().lower() in _TRUTHY,
            api_key=env.get("API_KEY") or env.get("GEMINI_API_KEY") or None,
            model=env.get("SCTPSIM_MODEL", defaults.model),
            annotation_timeout_s=float(
                env.get("SCTPSIM_ANNOTATION_TIMEOUT", defaults.annotation_timeout_s)
            ),
        )
