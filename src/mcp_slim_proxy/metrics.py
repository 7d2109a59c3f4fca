"""Traffic counters for MCP Slim Proxy."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger("mcp_slim_proxy.metrics")


class TokenCounter:
    """Best-effort token estimator with optional tiktoken backend."""

    def __init__(self, encoding_name: str = "cl100k_base"):
        self._enc = None
        self.backend = "heuristic"
        try:
            import tiktoken  # type: ignore
        except ImportError:
            return
        try:
            self._enc = tiktoken.get_encoding(encoding_name)
            self.backend = f"tiktoken:{encoding_name}"
        except Exception as exc:
            # Encoding files are fetched on first use and may be unavailable offline.
            logger.debug("tiktoken encoding %s unavailable, using heuristic: %s", encoding_name, exc)

    def count(self, text: str) -> int:
        if not text:
            return 0
        if self._enc is not None:
            try:
                return len(self._enc.encode(text, disallowed_special=()))
            except ValueError:
                pass
        # Deterministic fallback approximation.
        return max(1, len(text) // 4)


@dataclass
class SlimMetrics:
    lines_in: int = 0
    blank_lines: int = 0
    responses_seen: int = 0
    responses_rewritten: int = 0
    passthrough_lines: int = 0
    bytes_in: int = 0
    bytes_out: int = 0
    tokens_in: int = 0
    tokens_out: int = 0

    @property
    def saved_bytes(self) -> int:
        return max(0, self.bytes_in - self.bytes_out)

    @property
    def saved_tokens(self) -> int:
        return max(0, self.tokens_in - self.tokens_out)

    def summary(self, token_backend: Optional[str] = None) -> str:
        text = (
            f"MCP Slim Proxy stats | lines={self.lines_in} blank={self.blank_lines} "
            f"passthrough={self.passthrough_lines} | responses={self.responses_seen} "
            f"rewritten={self.responses_rewritten} | saved={self.saved_bytes}B/{self.saved_tokens}tok "
            f"(in={self.bytes_in}B/{self.tokens_in}tok out={self.bytes_out}B/{self.tokens_out}tok)"
        )
        if token_backend:
            text += f" tokens={token_backend}"
        return text
