"""Recursive field filtering over parsed JSON values."""

from __future__ import annotations

import json
from typing import Any

from .policy import CARRIER_KEYS, STRUCTURAL_KEYS, SlimPolicy


def _coerce_leaf(value: Any) -> Any:
    """Round-trip a non-JSON value through JSON, falling back to its string form."""
    try:
        return json.loads(json.dumps(value))
    except (TypeError, ValueError, OverflowError, RecursionError):
        return str(value)


def _allowed(key: Any, policy: SlimPolicy) -> bool:
    if not policy.allow_keys:
        return True
    return key in STRUCTURAL_KEYS or key in policy.allow_keys or key in CARRIER_KEYS


def slim_json(value: Any, policy: SlimPolicy) -> Any:
    """Return a copy of ``value`` with the policy's fields removed at every depth.

    When an allow-list would leave a non-empty object with no keys at all, that
    object is rebuilt using the drop-list alone.
    """
    if value is None or isinstance(value, (str, bool, int, float)):
        return value

    if isinstance(value, list):
        return [slim_json(item, policy) for item in value]

    if isinstance(value, dict):
        out: dict[Any, Any] = {}
        for key, item in value.items():
            if key in policy.drop_keys:
                continue
            if not _allowed(key, policy):
                continue
            out[key] = slim_json(item, policy)

        if not out and value and policy.allow_keys:
            for key, item in value.items():
                if key in policy.drop_keys:
                    continue
                out[key] = slim_json(item, policy)
        return out

    return _coerce_leaf(value)
