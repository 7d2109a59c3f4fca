"""Session lifecycle hooks that inject beads workflow context.

When the working directory holds a ``.beads`` directory, ``bd prime`` output is
injected into a session when it is created and again after compaction, and
``bd sync`` runs when the session ends. Every failure is logged and swallowed:
the hooks never break the session they are attached to.
"""

from __future__ import annotations

import functools
import json
import logging
import subprocess
import sys
from pathlib import Path
from typing import Callable, Optional, Protocol, TextIO

logger = logging.getLogger("mcp_slim_proxy.session_hooks")

BEADS_DIR_NAME = ".beads"
COMMAND_TIMEOUT_S = 60

CommandRunner = Callable[[list[str]], tuple[int, str]]


class SessionClient(Protocol):
    def inject_context(self, session_id: str, text: str) -> None: ...

    def log(self, level: str, message: str) -> None: ...


def run_command(args: list[str], cwd: Optional[str] = None) -> tuple[int, str]:
    """Run a command with stderr folded into stdout; return ``(exit_code, output)``."""
    result = subprocess.run(
        args,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        encoding="utf-8",
        errors="replace",
        timeout=COMMAND_TIMEOUT_S,
        cwd=cwd,
    )
    return result.returncode, result.stdout or ""


def _assigned_work_notice(entries: list[dict]) -> str:
    bead_list = "\n".join(f"  - {item.get('id')}: {item.get('title')}" for item in entries)
    return (
        "\n\n🚨 ASSIGNED WORK DETECTED 🚨\n"
        f"You have {len(entries)} bead(s) assigned with status=hooked.\n"
        "BEGIN WORK IMMEDIATELY without asking permission.\n\n"
        f"{bead_list}"
    )


class BeadsHooks:
    def __init__(
        self,
        client: SessionClient,
        *,
        cwd: Optional[str] = None,
        run: Optional[CommandRunner] = None,
    ):
        self.client = client
        self.cwd = Path(cwd) if cwd else Path.cwd()
        self._run = run or functools.partial(run_command, cwd=str(self.cwd))

    def is_beads_repo(self) -> bool:
        try:
            return (self.cwd / BEADS_DIR_NAME).is_dir()
        except OSError:
            return False

    def build_context(self) -> Optional[str]:
        """Return the wrapped ``bd prime`` context, or None when there is none."""
        if not self.is_beads_repo():
            return None
        try:
            code, context = self._run(["bd", "prime"])
            if code != 0:
                return None

            code, listing = self._run(["bd", "list", "--status=hooked", "--json"])
            if code == 0 and listing.strip():
                try:
                    assigned = json.loads(listing)
                except ValueError:
                    assigned = None
                if not isinstance(assigned, list):
                    assigned = []
                entries = [item for item in assigned if isinstance(item, dict)]
                if entries:
                    context += _assigned_work_notice(entries)
        except (OSError, subprocess.SubprocessError) as exc:
            logger.warning("Failed to get beads context: %s", exc)
            return None
        return f"<beads-context>\n{context}\n</beads-context>"

    def inject_context(self, session_id: str) -> bool:
        context = self.build_context()
        if not context:
            return False
        try:
            self.client.inject_context(session_id, context)
            self.client.log("info", "Injected beads context")
        except Exception as exc:
            self.client.log("error", f"Failed to inject beads context: {exc}")
            return False
        return True

    def sync(self) -> bool:
        if not self.is_beads_repo():
            return False
        try:
            code, _ = self._run(["bd", "sync"])
        except (OSError, subprocess.SubprocessError) as exc:
            self.client.log("error", f"Failed to sync beads: {exc}")
            return False
        if code != 0:
            return False
        self.client.log("info", "Synced beads on session end")
        return True

    def on_session_created(self, session_id: str) -> None:
        self.inject_context(session_id)

    def on_session_compacted(self, session_id: str) -> None:
        self.inject_context(session_id)

    def on_session_ended(self, session_id: str) -> None:
        self.sync()

    def handlers(self) -> dict[str, Callable[[str], None]]:
        return {
            "session.created": self.on_session_created,
            "session.compacted": self.on_session_compacted,
            "session.ended": self.on_session_ended,
        }

    def dispatch(self, event: str, session_id: str) -> None:
        handler = self.handlers().get(event)
        if handler is None:
            logger.debug("Ignoring unknown session event: %s", event)
            return
        handler(session_id)


class StreamSessionClient:
    """Session client for hook hosts that read injected context from stdout."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout

    def inject_context(self, session_id: str, text: str) -> None:
        self.stream.write(text + "\n")
        self.stream.flush()

    def log(self, level: str, message: str) -> None:
        numeric = logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            numeric = logging.INFO
        logger.log(numeric, message)
