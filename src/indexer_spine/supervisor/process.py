"""
Indexer process supervisor.

Owns the single handle to the external indexer process. Nothing outside
this class sees the ``asyncio.subprocess.Process``; callers use
:meth:`ProcessSupervisor.start`, :meth:`~ProcessSupervisor.restart` and
:meth:`~ProcessSupervisor.shutdown`.

Lifecycle:

    .. code-block:: text

        STOPPED ──start()──► STARTING ──spawned──► RUNNING
           ▲                                         │
           │            unexpected exit (watcher)    │ restart()/shutdown()
           ├─────────────────────────────────────────┤
           │                                         ▼
           └────────────── exited ◄──────────── STOPPING
                                                 SIGTERM, wait ≤ timeout,
                                                 SIGKILL, wait for exit

Restart ordering guarantees the old process has fully exited before the
settle delay starts, and the new one is spawned only after the delay, so two
indexers never hold the same ports or files at once. Restarts are
serialized by an ``asyncio.Lock``: a restart requested while another is in
flight waits for it and then performs its own full cycle.

Example:
    >>> supervisor = ProcessSupervisor(["/app/rindexer", "start", "all"], cwd=Path("/workspace"))
    >>> await supervisor.start()
    >>> await supervisor.restart()    # after rindexer.yaml changed
    >>> supervisor.status()["state"]
    'running'
    >>> await supervisor.shutdown()

Tags:
    supervisor, subprocess, asyncio, sigterm, sigkill, indexer-spine
"""

from __future__ import annotations

import asyncio
from enum import Enum
from pathlib import Path
from typing import Any

from indexer_spine.core.errors import ProcessSpawnError
from indexer_spine.core.logging import get_logger

log = get_logger(__name__)

DEFAULT_TERMINATION_TIMEOUT = 5.0
DEFAULT_SETTLE_DELAY = 1.0


class ProcessState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class ProcessSupervisor:
    """Start / graceful-then-forced stop / restart of one external process."""

    def __init__(
        self,
        command: list[str],
        *,
        cwd: Path | None = None,
        env: dict[str, str] | None = None,
        termination_timeout: float = DEFAULT_TERMINATION_TIMEOUT,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
    ) -> None:
        """Initialize the supervisor.

        Args:
            command: Executable and arguments.
            cwd: Working directory (the directory holding rindexer.yaml).
            env: Environment for the child; ``None`` inherits ours.
            termination_timeout: Seconds to wait after SIGTERM before SIGKILL.
            settle_delay: Seconds between the old process exiting and the
                new one being spawned.
        """
        self._command = list(command)
        self._cwd = cwd
        self._env = env
        self._termination_timeout = termination_timeout
        self._settle_delay = settle_delay

        self._process: asyncio.subprocess.Process | None = None
        self._watcher: asyncio.Task[None] | None = None
        self._state = ProcessState.STOPPED
        self._lock = asyncio.Lock()

        self.restart_count = 0
        self.forced_kills = 0
        self.unexpected_exits = 0
        self.last_exit_code: int | None = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> ProcessState:
        return self._state

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def is_running(self) -> bool:
        return (
            self._state is ProcessState.RUNNING
            and self._process is not None
            and self._process.returncode is None
        )

    def status(self) -> dict[str, Any]:
        return {
            "state": self._state.value,
            "pid": self.pid,
            "command": self._command,
            "restart_count": self.restart_count,
            "forced_kills": self.forced_kills,
            "unexpected_exits": self.unexpected_exits,
            "last_exit_code": self.last_exit_code,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Spawn the process if none is held.

        Raises:
            ProcessSpawnError: the executable could not be started
        """
        async with self._lock:
            await self._start_locked()

    async def restart(self) -> None:
        """Stop the held process (if any), wait the settle delay, start again."""
        async with self._lock:
            log.info("indexer_restarting", pid=self.pid)
            await self._stop_locked()
            await asyncio.sleep(self._settle_delay)
            await self._start_locked()
            self.restart_count += 1
            log.info("indexer_restarted", pid=self.pid, restart_count=self.restart_count)

    async def stop(self) -> bool:
        """Stop the held process. Returns True if it had to be killed."""
        async with self._lock:
            return await self._stop_locked()

    async def shutdown(self) -> None:
        """Stop the held process without starting a new one."""
        log.info("indexer_shutdown", pid=self.pid)
        await self.stop()

    # ------------------------------------------------------------------
    # Internal helpers (caller holds self._lock)
    # ------------------------------------------------------------------

    async def _start_locked(self) -> None:
        if self._process is not None and self._process.returncode is None:
            log.warning("indexer_already_running", pid=self._process.pid)
            return

        self._state = ProcessState.STARTING
        log.info("indexer_starting", command=self._command, cwd=str(self._cwd) if self._cwd else None)
        try:
            process = await asyncio.create_subprocess_exec(
                *self._command,
                cwd=str(self._cwd) if self._cwd else None,
                env=self._env,
            )
        except (OSError, ValueError) as exc:
            self._state = ProcessState.STOPPED
            log.error("indexer_spawn_failed", command=self._command, error=str(exc))
            raise ProcessSpawnError(self._command, cause=exc) from exc

        self._process = process
        self._state = ProcessState.RUNNING
        self._watcher = asyncio.create_task(
            self._watch(process), name=f"indexer-watch-{process.pid}"
        )
        log.info("indexer_started", pid=process.pid)

    async def _stop_locked(self) -> bool:
        """Graceful-then-forced termination. Returns True if SIGKILL was needed."""
        process = self._process
        if process is None:
            return False

        self._state = ProcessState.STOPPING
        forced = False
        if process.returncode is None:
            log.info("indexer_terminating", pid=process.pid, timeout_s=self._termination_timeout)
            try:
                process.terminate()
                try:
                    await asyncio.wait_for(process.wait(), timeout=self._termination_timeout)
                except TimeoutError:
                    log.warning(
                        "indexer_force_killing",
                        pid=process.pid,
                        timeout_s=self._termination_timeout,
                    )
                    forced = True
                    self.forced_kills += 1
                    process.kill()
                    await process.wait()
            except ProcessLookupError:
                pass  # exited between the returncode check and the signal

        self.last_exit_code = process.returncode
        self._process = None
        self._state = ProcessState.STOPPED

        if self._watcher is not None:
            await self._watcher
            self._watcher = None

        log.info("indexer_stopped", pid=process.pid, returncode=process.returncode, forced=forced)
        return forced

    async def _watch(self, process: asyncio.subprocess.Process) -> None:
        """Observe exit; an exit nobody asked for clears the handle."""
        returncode = await process.wait()
        if self._process is not process or self._state is ProcessState.STOPPING:
            return

        self.unexpected_exits += 1
        self.last_exit_code = returncode
        self._process = None
        self._watcher = None
        self._state = ProcessState.STOPPED
        log.warning("indexer_exited_unexpectedly", pid=process.pid, returncode=returncode)
