"""Per-line JSON-RPC response rewriting."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from .config import SlimConfig
from .debug_sink import DebugSink
from .metrics import SlimMetrics, TokenCounter
from .policy import PolicyResolver, SlimPolicy
from .slim import slim_json

logger = logging.getLogger("mcp_slim_proxy.rewriter")


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-standard JSON constant: {name}")


def _loads(text: str) -> Any:
    return json.loads(text, parse_constant=_reject_constant)


def _dumps(value: Any) -> str:
    """Compact JSON; raises ``ValueError`` when ``value`` has no faithful wire form."""
    # Overflowing literals such as 1e400 parse to inf, which JSON cannot carry.
    text = json.dumps(value, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    # Lone surrogates stand for undecodable upstream bytes (UnicodeEncodeError).
    text.encode("utf-8")
    return text


def effective_method(msg: dict) -> Optional[Any]:
    """Method name used for policy lookup: ``result._meta.method`` wins over ``method``."""
    result = msg.get("result")
    if isinstance(result, dict):
        meta = result.get("_meta")
        if isinstance(meta, dict) and meta.get("method") is not None:
            return meta["method"]
    return msg.get("method")


def _slim_text_items(content: list[Any], policy: SlimPolicy) -> None:
    """Slim JSON documents carried as strings inside ``{"type": "text"}`` items."""
    for item in content:
        if not isinstance(item, dict) or item.get("type") != "text":
            continue
        text = item.get("text")
        if not isinstance(text, str):
            continue
        try:
            item["text"] = _dumps(slim_json(_loads(text), policy))
        except ValueError:
            continue


class MessageRewriter:
    """Rewrite one line of upstream output; anything unexpected passes through unchanged."""

    def __init__(
        self,
        config: Optional[SlimConfig] = None,
        resolver: Optional[PolicyResolver] = None,
        debug_sink: Optional[DebugSink] = None,
        metrics: Optional[SlimMetrics] = None,
        token_counter: Optional[TokenCounter] = None,
    ):
        cfg = config or SlimConfig()
        self.disabled = cfg.disabled
        self.resolver = resolver or PolicyResolver.from_config(cfg)
        self.debug_sink = debug_sink
        self.metrics = metrics
        self.token_counter = token_counter

    def rewrite(self, line: str) -> str:
        if self.disabled:
            return line
        try:
            out = self._rewrite(line)
        except Exception as exc:
            logger.debug("response slimming failed (fail-open): %s", exc)
            out = line
        if self.metrics is not None:
            self._record_metrics(line, out)
        return out

    def _rewrite(self, line: str) -> str:
        try:
            msg = _loads(line)
        except ValueError:
            return line
        if not isinstance(msg, dict) or "result" not in msg:
            return line

        if self.metrics is not None:
            self.metrics.responses_seen += 1
        if self.debug_sink is not None:
            self.debug_sink.record_raw(msg)

        result = msg["result"]
        policy = self.resolver.resolve(effective_method(msg))
        if isinstance(result, dict) and isinstance(result.get("content"), list):
            _slim_text_items(result["content"], policy)
        msg["result"] = slim_json(result, policy)
        try:
            out = _dumps(msg)
        except ValueError as exc:
            logger.debug("response not re-serializable, forwarding unchanged: %s", exc)
            return line

        if self.debug_sink is not None:
            self.debug_sink.record_filtered(msg)
        return out

    def _record_metrics(self, line: str, out: str) -> None:
        metrics = self.metrics
        metrics.lines_in += 1
        if out is line:
            metrics.passthrough_lines += 1
        else:
            metrics.responses_rewritten += 1
        metrics.bytes_in += len(line.encode("utf-8", errors="replace"))
        metrics.bytes_out += len(out.encode("utf-8", errors="replace"))
        if self.token_counter is not None:
            metrics.tokens_in += self.token_counter.count(line)
            metrics.tokens_out += self.token_counter.count(out)
