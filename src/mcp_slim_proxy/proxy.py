"""MCP Slim Proxy: supervise the wrapped server and slim its responses."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import shutil
import signal
import sys
import threading
from typing import BinaryIO, Optional, Sequence

from .config import SlimConfig
from .debug_sink import DebugSink
from .framer import LineFramer, render_lines
from .metrics import SlimMetrics, TokenCounter
from .rewriter import MessageRewriter

logger = logging.getLogger("mcp_slim_proxy.proxy")

CHUNK_SIZE = 64 * 1024
LAUNCH_FAILURE_EXIT_CODE = 1
FALLBACK_EXIT_CODE = 1


def _resolve_upstream_command(command: list[str]) -> list[str]:
    if not command:
        return command
    first = command[0]
    resolved = shutil.which(first)
    if not resolved and os.name == "nt" and not first.lower().endswith(".cmd"):
        resolved = shutil.which(f"{first}.cmd")
    if resolved:
        return [resolved, *command[1:]]
    return command


def _exit_code(returncode: Optional[int]) -> int:
    # Signal-terminated children report a negative code.
    if returncode is None or returncode < 0:
        return FALLBACK_EXIT_CODE
    return returncode


def _write(stream: BinaryIO, data: bytes) -> None:
    stream.write(data)
    stream.flush()


def _terminate_child(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            proc.terminate()


def _start_stdin_pump(
    loop: asyncio.AbstractEventLoop,
    source: BinaryIO,
    reader: asyncio.StreamReader,
) -> threading.Thread:
    """Feed ``source`` into ``reader`` from a daemon thread.

    A daemon thread never holds up interpreter exit while blocked on a read,
    so the proxy can exit as soon as the wrapped server does.
    """
    read = getattr(source, "read1", None) or source.read

    def pump():
        try:
            while True:
                chunk = read(CHUNK_SIZE)
                if not chunk:
                    break
                loop.call_soon_threadsafe(reader.feed_data, chunk)
        except (OSError, ValueError, RuntimeError) as exc:
            logger.debug("stdin pump stopped: %s", exc)
        finally:
            with contextlib.suppress(RuntimeError):
                loop.call_soon_threadsafe(reader.feed_eof)

    thread = threading.Thread(target=pump, name="mcp-slim-stdin", daemon=True)
    thread.start()
    return thread


def _install_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    proc: asyncio.subprocess.Process,
) -> list[int]:
    installed = []
    for name in ("SIGTERM", "SIGHUP"):
        sig = getattr(signal, name, None)
        if sig is None:
            continue
        try:
            loop.add_signal_handler(sig, _terminate_child, proc)
        except (NotImplementedError, RuntimeError, ValueError):
            continue
        installed.append(sig)
    return installed


async def run_proxy(
    command: Optional[Sequence[str]] = None,
    config: Optional[SlimConfig] = None,
    *,
    stdin: Optional[BinaryIO] = None,
    stdout: Optional[BinaryIO] = None,
    stderr: Optional[BinaryIO] = None,
) -> int:
    """Run the wrapped server, slimming its stdout; return the exit code to use."""
    cfg = config or SlimConfig()
    client_in = stdin if stdin is not None else sys.stdin.buffer
    client_out = stdout if stdout is not None else sys.stdout.buffer
    client_err = stderr if stderr is not None else sys.stderr.buffer

    command = _resolve_upstream_command(list(command or cfg.upstream_command()))
    if not command:
        raise ValueError("No upstream server command provided")

    metrics = SlimMetrics()
    token_counter = TokenCounter() if cfg.stats else None
    debug_sink = None
    if cfg.debug:
        debug_sink = DebugSink(cfg.resolved_debug_dir())
        debug_sink.reset()
    rewriter = MessageRewriter(cfg, debug_sink=debug_sink, metrics=metrics, token_counter=token_counter)

    if cfg.disabled:
        logger.info("Slimming disabled, forwarding responses unchanged")
    logger.info("Starting upstream server: %s", command)

    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        await asyncio.to_thread(_write, client_err, f"Failed to spawn {command[0]}: {exc}\n".encode("utf-8"))
        return LAUNCH_FAILURE_EXIT_CODE

    loop = asyncio.get_running_loop()
    client_reader = asyncio.StreamReader()
    _start_stdin_pump(loop, client_in, client_reader)

    async def client_to_upstream():
        try:
            while True:
                chunk = await client_reader.read(CHUNK_SIZE)
                if not chunk:
                    logger.info("Client EOF, closing upstream stdin")
                    return
                proc.stdin.write(chunk)
                await proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            logger.debug("upstream stdin closed: %s", exc)
        finally:
            proc.stdin.close()

    async def upstream_to_client():
        framer = LineFramer()
        client_gone = False

        async def emit(lines: list[str]):
            nonlocal client_gone
            if client_gone:
                return
            payload = render_lines(lines, rewriter, metrics)
            try:
                await asyncio.to_thread(_write, client_out, payload)
            except OSError as exc:
                logger.error("client stdout write failed, stopping upstream: %s", exc)
                client_gone = True
                _terminate_child(proc)

        while True:
            chunk = await proc.stdout.read(CHUNK_SIZE)
            if not chunk:
                break
            lines = framer.feed(chunk)
            if lines:
                await emit(lines)
        tail = framer.flush()
        if tail:
            await emit(tail)
        logger.info("Upstream EOF")

    async def stderr_forwarder():
        while True:
            chunk = await proc.stderr.read(CHUNK_SIZE)
            if not chunk:
                return
            try:
                await asyncio.to_thread(_write, client_err, chunk)
            except OSError as exc:
                logger.debug("stderr forward failed: %s", exc)

    signals = _install_signal_handlers(loop, proc)
    stdin_task = asyncio.create_task(client_to_upstream())
    returncode: Optional[int] = None
    try:
        await asyncio.gather(upstream_to_client(), stderr_forwarder())
        returncode = await proc.wait()
    finally:
        for sig in signals:
            loop.remove_signal_handler(sig)
        stdin_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await stdin_task

        if proc.returncode is None:
            _terminate_child(proc)
            try:
                await asyncio.wait_for(proc.wait(), timeout=5.0)
            except asyncio.TimeoutError:
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
                await proc.wait()

        if cfg.stats:
            logger.info("%s", metrics.summary(token_counter.backend if token_counter else None))

    logger.info("Upstream exited with code %s", returncode)
    return _exit_code(returncode)
