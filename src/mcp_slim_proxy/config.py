"""Runtime configuration for MCP Slim Proxy."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

DEFAULT_REMOTE_URL = "https://mcp.atlassian.com/v1/mcp"
DEFAULT_REMOTE_PACKAGE = "mcp-remote@0.1.13"
DEFAULT_DEBUG_DIR = "~/.local/state/opencode"

# Exact string values accepted by the environment switches.
DISABLE_VALUES = frozenset({"1", "true"})
DEBUG_VALUES = frozenset({"true"})


def _parse_bool(value: Any, default: Optional[bool] = None) -> Optional[bool]:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    return default


def parse_key_list(value: Any) -> tuple[str, ...]:
    """Normalize a comma-separated string or a list into a tuple of field names."""
    if value is None:
        return ()
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = [str(item) for item in value]
    else:
        raise ValueError(f"Expected a comma-separated string or list of keys, got {type(value).__name__}")
    out: list[str] = []
    for item in items:
        key = item.strip()
        if key and key not in out:
            out.append(key)
    return tuple(out)


def _read_config_file(path: str) -> dict[str, Any]:
    data = Path(path).read_text(encoding="utf-8")
    suffix = Path(path).suffix.lower()
    if suffix in {".yml", ".yaml"}:
        try:
            import yaml  # type: ignore
        except ImportError as exc:
            raise ValueError(
                "YAML config requested but PyYAML is not installed. "
                "Install `pyyaml` or use JSON config."
            ) from exc
        parsed = yaml.safe_load(data) or {}
    else:
        parsed = json.loads(data)
    if not isinstance(parsed, dict):
        raise ValueError("Slim proxy config must be a mapping object")
    return parsed


@dataclass
class SlimConfig:
    """Resolved proxy runtime config after file/env/CLI merge."""

    disabled: bool = False
    debug: bool = False
    verbose: bool = False
    stats: bool = False

    extra_drop_keys: tuple[str, ...] = ()
    allow_keys: tuple[str, ...] = ()

    remote_url: str = DEFAULT_REMOTE_URL
    remote_package: str = DEFAULT_REMOTE_PACKAGE
    debug_dir: str = DEFAULT_DEBUG_DIR

    source_path: Optional[str] = None

    def upstream_command(self) -> list[str]:
        """Default wrapped server: mcp-remote bridging to the remote endpoint."""
        return ["npx", "-y", self.remote_package, self.remote_url]

    def resolved_debug_dir(self) -> Path:
        return Path(os.path.expanduser(self.debug_dir))

    def as_dict(self) -> dict[str, Any]:
        return {
            "disabled": self.disabled,
            "debug": self.debug,
            "verbose": self.verbose,
            "stats": self.stats,
            "extra_drop_keys": list(self.extra_drop_keys),
            "allow_keys": list(self.allow_keys),
            "remote_url": self.remote_url,
            "remote_package": self.remote_package,
            "debug_dir": self.debug_dir,
            "source_path": self.source_path,
        }


def _apply_file_config(cfg: SlimConfig, config_data: dict) -> SlimConfig:
    proxy = config_data.get("proxy", {})
    if isinstance(proxy, dict):
        if _parse_bool(proxy.get("disable")) is not None:
            cfg.disabled = bool(_parse_bool(proxy.get("disable")))
        if _parse_bool(proxy.get("debug")) is not None:
            cfg.debug = bool(_parse_bool(proxy.get("debug")))
        if _parse_bool(proxy.get("verbose")) is not None:
            cfg.verbose = bool(_parse_bool(proxy.get("verbose")))
        if _parse_bool(proxy.get("stats")) is not None:
            cfg.stats = bool(_parse_bool(proxy.get("stats")))
        if isinstance(proxy.get("remote_url"), str) and proxy["remote_url"]:
            cfg.remote_url = proxy["remote_url"]
        if isinstance(proxy.get("remote_package"), str) and proxy["remote_package"]:
            cfg.remote_package = proxy["remote_package"]
        if isinstance(proxy.get("debug_dir"), str) and proxy["debug_dir"]:
            cfg.debug_dir = proxy["debug_dir"]

    filtering = config_data.get("filtering", {})
    if isinstance(filtering, dict):
        if "drop_keys" in filtering:
            cfg.extra_drop_keys = parse_key_list(filtering["drop_keys"])
        if "allow_keys" in filtering:
            cfg.allow_keys = parse_key_list(filtering["allow_keys"])
    return cfg


def _apply_env(cfg: SlimConfig, env: Mapping[str, str]) -> SlimConfig:
    if env.get("MCP_SLIM_DISABLE") is not None:
        cfg.disabled = env["MCP_SLIM_DISABLE"] in DISABLE_VALUES
    if env.get("MCP_SLIM_DEBUG") is not None:
        cfg.debug = env["MCP_SLIM_DEBUG"] in DEBUG_VALUES
    if _parse_bool(env.get("MCP_SLIM_VERBOSE")) is not None:
        cfg.verbose = bool(_parse_bool(env.get("MCP_SLIM_VERBOSE")))
    if _parse_bool(env.get("MCP_SLIM_STATS")) is not None:
        cfg.stats = bool(_parse_bool(env.get("MCP_SLIM_STATS")))

    if env.get("MCP_SLIM_DROP_KEYS"):
        cfg.extra_drop_keys = parse_key_list(env["MCP_SLIM_DROP_KEYS"])
    if env.get("MCP_SLIM_ALLOW_KEYS"):
        cfg.allow_keys = parse_key_list(env["MCP_SLIM_ALLOW_KEYS"])

    if env.get("ATLASSIAN_MCP_URL"):
        cfg.remote_url = env["ATLASSIAN_MCP_URL"]
    if env.get("MCP_SLIM_DEBUG_DIR"):
        cfg.debug_dir = env["MCP_SLIM_DEBUG_DIR"]
    return cfg


def _apply_cli_overrides(cfg: SlimConfig, cli: Mapping[str, Any]) -> SlimConfig:
    def _set_bool(name: str, target_attr: str):
        value = cli.get(name)
        if value is not None:
            setattr(cfg, target_attr, bool(value))

    _set_bool("disable", "disabled")
    _set_bool("debug", "debug")
    _set_bool("verbose", "verbose")
    _set_bool("stats", "stats")

    if cli.get("drop_keys") is not None:
        cfg.extra_drop_keys = parse_key_list(cli["drop_keys"])
    if cli.get("allow_keys") is not None:
        cfg.allow_keys = parse_key_list(cli["allow_keys"])
    if cli.get("remote_url"):
        cfg.remote_url = str(cli["remote_url"])
    if cli.get("debug_dir"):
        cfg.debug_dir = str(cli["debug_dir"])
    return cfg


def load_slim_config(
    config_path: Optional[str] = None,
    cli_overrides: Optional[Mapping[str, Any]] = None,
    env: Optional[Mapping[str, str]] = None,
) -> SlimConfig:
    """Resolve slim proxy config from defaults + file + env + CLI."""
    env_map = os.environ if env is None else env
    cli = dict(cli_overrides or {})
    cfg = SlimConfig()

    resolved_path = config_path or cli.get("config_path") or env_map.get("MCP_SLIM_CONFIG")
    if resolved_path:
        config_data = _read_config_file(resolved_path)
        cfg = _apply_file_config(cfg, config_data)
        cfg.source_path = resolved_path

    cfg = _apply_env(cfg, env_map)
    cfg = _apply_cli_overrides(cfg, cli)

    if not cfg.remote_url.strip():
        raise ValueError("Remote MCP URL must not be empty")
    return cfg
