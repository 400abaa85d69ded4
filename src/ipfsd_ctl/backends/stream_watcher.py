"""Line-oriented watcher for a native daemon's output streams.

One reader thread per pipe parses output as it arrives. Readiness is
event-driven: the stdout reader sets an Event when the node prints its
"Daemon is ready" line, or when stdout reaches EOF (the process exited or
closed its output before becoming ready). Readers keep draining after
readiness so the child never blocks on a full pipe.
"""

from __future__ import annotations

__all__ = [
    "StreamWatcher",
    "WatchOutcome",
]

import logging
import subprocess
import threading
from typing import IO, Literal

from ipfsd_ctl.constants import (
    API_LISTENING_MARKER,
    DAEMON_READY_MARKER,
    GATEWAY_LISTENING_MARKER,
)
from ipfsd_ctl.models import DaemonSystemEvent
from ipfsd_ctl.utils.logging.log_config import log_event

WatchOutcome = Literal["ready", "exited", "timeout"]

# How long to wait for the stderr reader to drain after stdout closed
_STDERR_DRAIN_SECONDS = 2.0


class StreamWatcher:
    """Watches stdout/stderr of a spawned daemon process.

    Attributes:
        api_addr: Multiaddr from the "API server listening on" line.
        gateway_addr: Multiaddr from the gateway listening line.
    """

    def __init__(self, process: subprocess.Popen, repo_path: str | None = None) -> None:
        self.process = process
        self.repo_path = repo_path
        self.api_addr: str | None = None
        self.gateway_addr: str | None = None

        self._ready = False
        self._settled = threading.Event()
        self._stderr_lines: list[str] = []
        self._lock = threading.Lock()
        self._threads = [
            threading.Thread(
                target=self._read_stdout,
                args=(process.stdout,),
                name=f"ipfsd-stdout-{process.pid}",
                daemon=True,
            ),
            threading.Thread(
                target=self._read_stderr,
                args=(process.stderr,),
                name=f"ipfsd-stderr-{process.pid}",
                daemon=True,
            ),
        ]
        for thread in self._threads:
            thread.start()

    # -------------------------------------------------------------------------
    # Readers
    # -------------------------------------------------------------------------

    def _read_stdout(self, stream: IO[str] | None) -> None:
        try:
            if stream is None:
                return
            for raw in stream:
                line = raw.rstrip("\r\n")
                self._log_line("stdout", line)
                self._match(line)
        finally:
            self._settled.set()

    def _read_stderr(self, stream: IO[str] | None) -> None:
        if stream is None:
            return
        for raw in stream:
            line = raw.rstrip("\r\n")
            self._log_line("stderr", line)
            with self._lock:
                self._stderr_lines.append(line)

    def _match(self, line: str) -> None:
        if API_LISTENING_MARKER in line:
            self.api_addr = line.split(API_LISTENING_MARKER, 1)[1].strip()
        elif GATEWAY_LISTENING_MARKER in line:
            self.gateway_addr = line.split(GATEWAY_LISTENING_MARKER, 1)[1].strip()
        elif DAEMON_READY_MARKER in line:
            self._ready = True
            self._settled.set()

    def _log_line(self, stream: str, line: str) -> None:
        log_event(
            logging.DEBUG,
            DaemonSystemEvent(
                event="daemon_output",
                message=line,
                backend="native",
                repo_path=self.repo_path,
                pid=self.process.pid,
                details={"stream": stream},
            ),
        )

    # -------------------------------------------------------------------------
    # Public
    # -------------------------------------------------------------------------

    def wait(self, timeout: float) -> WatchOutcome:
        """Block until the daemon is ready, has exited, or timeout elapses.

        Args:
            timeout: Upper bound in seconds.

        Returns:
            "ready", "exited" or "timeout".
        """
        if not self._settled.wait(timeout):
            return "timeout"
        return "ready" if self._ready else "exited"

    @property
    def stderr_text(self) -> str:
        """Everything the process wrote to stderr so far.

        After an exit, waits briefly for the stderr reader to drain first.
        """
        if self._settled.is_set() and not self._ready:
            self._threads[1].join(_STDERR_DRAIN_SECONDS)
        with self._lock:
            return "\n".join(self._stderr_lines)

    def join(self, timeout: float | None = None) -> None:
        """Wait for both reader threads to finish (after the process exited)."""
        for thread in self._threads:
            thread.join(timeout)
