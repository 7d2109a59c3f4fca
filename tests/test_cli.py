"""Tests for the command-line entry point."""

from __future__ import annotations

import io
import json

import pytest

import mcp_slim_proxy.cli as cli
from mcp_slim_proxy.config import SlimConfig


def test_slim_stream_replays_captured_traffic():
    source = io.BytesIO(
        b'{"jsonrpc":"2.0","id":1,"method":"confluence.search","result":{"results":[{"title":"T","body":"b"}]}}\n'
        b"\n"
        b"not json\n"
        b'{"id":2,"result":{"self":"x"}}'
    )
    sink = io.BytesIO()
    cli.slim_stream(source, sink, SlimConfig())
    lines = sink.getvalue().decode("utf-8").split("\n")
    assert json.loads(lines[0])["result"] == {"results": [{"title": "T"}]}
    assert lines[1:] == ["", "not json", '{"id":2,"result":{}}', ""]


def test_parser_accepts_upstream_after_double_dash():
    args = cli.build_parser().parse_args(["proxy", "--stats", "--", "python", "server.py", "--flag"])
    assert args.stats is True
    assert args.upstream[-3:] == ["python", "server.py", "--flag"]


def test_proxy_command_runs_supervisor(monkeypatch):
    seen = {}

    async def fake_run_proxy(command, config=None):
        seen["command"] = command
        seen["config"] = config
        return 4

    import mcp_slim_proxy.proxy as proxy_mod

    monkeypatch.setattr(proxy_mod, "run_proxy", fake_run_proxy)
    monkeypatch.setattr(cli, "_configure_logging", lambda verbose: None)
    for name in ("MCP_SLIM_DISABLE", "MCP_SLIM_DROP_KEYS", "MCP_SLIM_ALLOW_KEYS", "MCP_SLIM_CONFIG"):
        monkeypatch.delenv(name, raising=False)

    with pytest.raises(SystemExit) as exc_info:
        cli.main(["proxy", "--drop-keys", "a,b", "--", "python", "server.py"])
    assert exc_info.value.code == 4
    assert seen["command"] == ["python", "server.py"]
    assert seen["config"].extra_drop_keys == ("a", "b")


def test_proxy_without_upstream_uses_default(monkeypatch):
    seen = {}

    async def fake_run_proxy(command, config=None):
        seen["command"] = command
        return 0

    import mcp_slim_proxy.proxy as proxy_mod

    monkeypatch.setattr(proxy_mod, "run_proxy", fake_run_proxy)
    monkeypatch.setattr(cli, "_configure_logging", lambda verbose: None)
    monkeypatch.delenv("MCP_SLIM_CONFIG", raising=False)

    with pytest.raises(SystemExit):
        cli.main(["proxy"])
    assert seen["command"] is None


def test_bad_config_exits_with_error(tmp_path, capsys):
    missing = tmp_path / "missing.json"
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["slim", "--config", str(missing)])
    assert exc_info.value.code == 1
    assert "Error:" in capsys.readouterr().err


def test_beads_context_outside_repo_prints_nothing(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "_configure_logging", lambda verbose: None)
    cli.main(["beads-context", "--session-id", "abc"])
    assert capsys.readouterr().out == ""


def test_no_command_prints_help():
    with pytest.raises(SystemExit) as exc_info:
        cli.main([])
    assert exc_info.value.code == 1


def test_slim_stream_reads_in_proxy_sized_chunks():
    import mcp_slim_proxy.proxy as proxy_mod

    sizes = []

    class Source(io.BytesIO):
        def read(self, size=-1):
            sizes.append(size)
            return super().read(size)

    cli.slim_stream(Source(b'{"id":1,"result":{}}\n'), io.BytesIO(), SlimConfig())
    assert set(sizes) == {proxy_mod.CHUNK_SIZE}
