"""Tests for newline framing of the upstream stdout stream."""

from __future__ import annotations

from mcp_slim_proxy.framer import LineFramer, render_lines
from mcp_slim_proxy.metrics import SlimMetrics
from mcp_slim_proxy.rewriter import MessageRewriter


class RecordingRewriter(MessageRewriter):
    def __init__(self):
        super().__init__()
        self.seen: list[str] = []

    def rewrite(self, line: str) -> str:
        self.seen.append(line)
        return super().rewrite(line)


def test_line_split_across_chunks_is_reassembled():
    framer = LineFramer()
    assert framer.feed(b'{"resul') == []
    assert framer.pending == b'{"resul'
    assert framer.feed(b't":{}}\n') == ['{"result":{}}']
    assert framer.pending == b""


def test_chunk_with_many_lines_and_partial_tail():
    framer = LineFramer()
    assert framer.feed(b"a\nb\n\nc") == ["a", "b", ""]
    assert framer.feed(b"") == []
    assert framer.feed(b"d\n") == ["cd"]


def test_lines_are_trimmed():
    framer = LineFramer()
    assert framer.feed(b"  {\"id\":1}\r\n\t\n") == ['{"id":1}', ""]


def test_str_chunks_are_accepted():
    framer = LineFramer()
    assert framer.feed("hé") == []
    assert framer.feed("llo\n") == ["héllo"]


def test_multibyte_character_split_across_chunks():
    encoded = "été\n".encode("utf-8")
    framer = LineFramer()
    assert framer.feed(encoded[:1]) == []
    assert framer.feed(encoded[1:]) == ["été"]


def test_flush_returns_unterminated_tail():
    framer = LineFramer()
    framer.feed(b'x\n{"id":1,"result":{}}')
    assert framer.flush() == ['{"id":1,"result":{}}']
    assert framer.flush() == []


def test_flush_ignores_whitespace_tail():
    framer = LineFramer()
    framer.feed(b"x\n  ")
    assert framer.flush() == []


def test_blank_lines_bypass_rewriter():
    rewriter = RecordingRewriter()
    metrics = SlimMetrics()
    payload = render_lines(['{"id":1,"result":{"self":"x","a":1}}', "", "plain"], rewriter, metrics)
    assert payload == b'{"id":1,"result":{"a":1}}\n\nplain\n'
    assert rewriter.seen == ['{"id":1,"result":{"self":"x","a":1}}', "plain"]
    assert metrics.blank_lines == 1


def test_invalid_utf8_passthrough_is_byte_exact():
    raw = b"\xff\xfe not json\n"
    framer = LineFramer()
    lines = framer.feed(raw)
    assert render_lines(lines, MessageRewriter()) == raw


def test_end_to_end_framing_preserves_order():
    chunks = [b'{"id":1,"res', b'ult":{"self":1}}\n\n{"id":2,"method":"x"}\n', b'{"id":3,', b'"result":{}}\n']
    framer = LineFramer()
    rewriter = MessageRewriter()
    out = b"".join(render_lines(framer.feed(chunk), rewriter) for chunk in chunks)
    assert out == b'{"id":1,"result":{}}\n\n{"id":2,"method":"x"}\n{"id":3,"result":{}}\n'
