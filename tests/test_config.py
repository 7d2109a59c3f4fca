"""Tests for slim proxy config resolution."""

import json

import pytest

from mcp_slim_proxy.config import (
    DEFAULT_REMOTE_URL,
    SlimConfig,
    load_slim_config,
    parse_key_list,
)


def test_defaults_without_env():
    cfg = load_slim_config(env={})
    assert cfg.disabled is False
    assert cfg.debug is False
    assert cfg.extra_drop_keys == ()
    assert cfg.allow_keys == ()
    assert cfg.remote_url == DEFAULT_REMOTE_URL
    assert cfg.upstream_command() == ["npx", "-y", "mcp-remote@0.1.13", DEFAULT_REMOTE_URL]


@pytest.mark.parametrize("value,expected", [("1", True), ("true", True), ("yes", False), ("TRUE", False), ("0", False)])
def test_disable_switch_accepts_exact_values(value, expected):
    assert load_slim_config(env={"MCP_SLIM_DISABLE": value}).disabled is expected


@pytest.mark.parametrize("value,expected", [("true", True), ("1", False), ("True", False)])
def test_debug_switch_accepts_only_true(value, expected):
    assert load_slim_config(env={"MCP_SLIM_DEBUG": value}).debug is expected


def test_env_key_lists_and_remote_url():
    cfg = load_slim_config(
        env={
            "MCP_SLIM_DROP_KEYS": " customfield_1, ,customfield_2,customfield_1",
            "MCP_SLIM_ALLOW_KEYS": "key,summary",
            "ATLASSIAN_MCP_URL": "https://example.invalid/mcp",
            "MCP_SLIM_DEBUG_DIR": "/tmp/slim-debug",
        }
    )
    assert cfg.extra_drop_keys == ("customfield_1", "customfield_2")
    assert cfg.allow_keys == ("key", "summary")
    assert cfg.remote_url == "https://example.invalid/mcp"
    assert cfg.upstream_command()[-1] == "https://example.invalid/mcp"
    assert str(cfg.resolved_debug_dir()) == "/tmp/slim-debug"


def test_file_then_env_then_cli_precedence(tmp_path):
    config_path = tmp_path / "mcp-slim-proxy.config.json"
    config_path.write_text(
        json.dumps(
            {
                "proxy": {"verbose": True, "stats": "on", "remote_url": "https://file.invalid/mcp"},
                "filtering": {"drop_keys": ["a", "b"], "allow_keys": "key"},
            }
        ),
        encoding="utf-8",
    )

    cfg = load_slim_config(config_path=str(config_path), env={})
    assert cfg.verbose is True
    assert cfg.stats is True
    assert cfg.extra_drop_keys == ("a", "b")
    assert cfg.allow_keys == ("key",)
    assert cfg.remote_url == "https://file.invalid/mcp"
    assert cfg.source_path == str(config_path)

    cfg = load_slim_config(
        config_path=str(config_path),
        env={"MCP_SLIM_DROP_KEYS": "c"},
        cli_overrides={"allow_keys": "summary,key", "verbose": False},
    )
    assert cfg.extra_drop_keys == ("c",)
    assert cfg.allow_keys == ("summary", "key")
    assert cfg.verbose is False


def test_config_path_from_env(tmp_path):
    config_path = tmp_path / "slim.json"
    config_path.write_text(json.dumps({"proxy": {"disable": True}}), encoding="utf-8")
    cfg = load_slim_config(env={"MCP_SLIM_CONFIG": str(config_path)})
    assert cfg.disabled is True


def test_yaml_config(tmp_path):
    pytest.importorskip("yaml")
    config_path = tmp_path / "slim.yaml"
    config_path.write_text("filtering:\n  drop_keys: [x, y]\nproxy:\n  debug: true\n", encoding="utf-8")
    cfg = load_slim_config(config_path=str(config_path), env={})
    assert cfg.extra_drop_keys == ("x", "y")
    assert cfg.debug is True


def test_non_mapping_config_is_rejected(tmp_path):
    config_path = tmp_path / "slim.json"
    config_path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_slim_config(config_path=str(config_path), env={})


def test_parse_key_list_rejects_other_types():
    assert parse_key_list(None) == ()
    assert parse_key_list(["a", " b "]) == ("a", "b")
    with pytest.raises(ValueError):
        parse_key_list(5)


def test_as_dict_roundtrips_key_fields():
    cfg = SlimConfig(extra_drop_keys=("a",), allow_keys=("b",), disabled=True)
    data = cfg.as_dict()
    assert data["extra_drop_keys"] == ["a"]
    assert data["allow_keys"] == ["b"]
    assert data["disabled"] is True
