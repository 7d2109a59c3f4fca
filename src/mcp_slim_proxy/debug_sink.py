"""Append-only JSONL capture of tool responses before and after slimming."""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Union

logger = logging.getLogger("mcp_slim_proxy.debug_sink")

RAW_LOG_NAME = "mcp-raw-responses.jsonl"
FILTERED_LOG_NAME = "mcp-filtered-responses.jsonl"


def is_tool_response(msg: Any) -> bool:
    """Tool invocation responses carry ``result.content`` as a list."""
    if not isinstance(msg, dict):
        return False
    result = msg.get("result")
    return isinstance(result, dict) and isinstance(result.get("content"), list)


def unpack_text_content(msg: dict) -> dict:
    """Return a copy of ``msg`` with JSON text items parsed into ``parsedText``."""
    unpacked = copy.deepcopy(msg)
    for item in unpacked["result"]["content"]:
        if not isinstance(item, dict) or item.get("type") != "text":
            continue
        text = item.get("text")
        if not isinstance(text, str):
            continue
        try:
            item["parsedText"] = json.loads(text)
        except ValueError:
            continue
    return unpacked


class DebugSink:
    """Writes raw and filtered tool responses to two JSONL files for policy tuning."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.raw_path = self.directory / RAW_LOG_NAME
        self.filtered_path = self.directory / FILTERED_LOG_NAME

    def reset(self) -> None:
        try:
            for path in (self.raw_path, self.filtered_path):
                path.unlink(missing_ok=True)
            logger.info("Debug logs cleared")
        except OSError as exc:
            logger.warning("Failed to clear debug logs: %s", exc)

    def record_raw(self, msg: Any) -> None:
        self._append(self.raw_path, msg, "Raw")

    def record_filtered(self, msg: Any) -> None:
        self._append(self.filtered_path, msg, "Filtered")

    def _append(self, path: Path, msg: Any, label: str) -> None:
        if not is_tool_response(msg):
            return
        try:
            line = json.dumps(unpack_text_content(msg), ensure_ascii=False, default=str)
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8", errors="surrogateescape") as fh:
                fh.write(line + "\n")
            logger.debug("%s response appended to %s", label, path)
        except (OSError, TypeError, ValueError, RecursionError) as exc:
            logger.warning("Failed to write %s debug file %s: %s", label.lower(), path, exc)
