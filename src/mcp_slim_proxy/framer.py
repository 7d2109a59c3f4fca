"""Newline framing for the upstream stdout byte stream."""

from __future__ import annotations

from typing import Optional, Union

from .metrics import SlimMetrics
from .rewriter import MessageRewriter

Chunk = Union[bytes, str]


def _decode(raw: bytes) -> str:
    # surrogateescape keeps undecodable bytes intact for passthrough lines.
    return raw.decode("utf-8", errors="surrogateescape")


class LineFramer:
    """Reassemble newline-delimited lines from arbitrarily split chunks.

    Lines are returned trimmed of surrounding whitespace and without their
    newline. A partial tail is held until a later chunk completes it.
    """

    def __init__(self):
        self._buffer = b""

    @property
    def pending(self) -> bytes:
        return self._buffer

    def feed(self, chunk: Chunk) -> list[str]:
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8", errors="surrogateescape")
        if not chunk:
            return []
        self._buffer += chunk
        if b"\n" not in chunk:
            return []
        *complete, self._buffer = self._buffer.split(b"\n")
        return [_decode(raw).strip() for raw in complete]

    def flush(self) -> list[str]:
        """Return the unterminated tail once the stream has closed."""
        tail, self._buffer = self._buffer, b""
        if not tail.strip():
            return []
        return [_decode(tail).strip()]


def render_lines(
    lines: list[str],
    rewriter: MessageRewriter,
    metrics: Optional[SlimMetrics] = None,
) -> bytes:
    """Rewrite framed lines and join them into one newline-terminated payload."""
    out: list[str] = []
    for line in lines:
        if not line:
            # Blank lines are forwarded as-is and never reach the rewriter.
            out.append("\n")
            if metrics is not None:
                metrics.blank_lines += 1
            continue
        out.append(rewriter.rewrite(line) + "\n")
    return "".join(out).encode("utf-8", errors="surrogateescape")
