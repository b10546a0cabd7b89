"""Lifecycle and recovery for the exclusive bot connection.

Only one process may hold the bot session at a time. Transient transport
errors are recovered with a jittered, capped exponential backoff; an identity
conflict (a rival process holding the same session) is a deployment error and
is never auto-restarted, otherwise both holders would knock each other over
forever.
"""

from __future__ import annotations

import asyncio
import logging
import random
from enum import Enum
from typing import Awaitable, Callable, Optional

from core.config import SupervisorConfig
from core.ports import ConnectionPort

LOGGER = logging.getLogger(__name__)


class SupervisorState(Enum):
    STOPPED = "stopped"
    POLLING = "polling"
    RESTARTING = "restarting"


class ConnectionSupervisor:
    """State machine owning start, stop, and backoff-restart of a connection."""

    def __init__(
        self,
        connection: ConnectionPort,
        config: SupervisorConfig,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        jitter: Optional[Callable[[], float]] = None,
    ) -> None:
        self._connection = connection
        self._config = config
        self._sleep = sleep
        self._jitter = jitter or (lambda: random.uniform(0, config.jitter_seconds))
        self._backoff = config.backoff_floor_seconds
        self._state = SupervisorState.STOPPED
        self._restart_task: Optional[asyncio.Task] = None
        self._conflicted = False

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def backoff(self) -> float:
        return self._backoff

    @property
    def conflicted(self) -> bool:
        return self._conflicted

    async def start(self) -> None:
        """Clear conflicting delivery configuration, then start polling."""

        await self._best_effort(self._connection.clear_conflicting_config, "clear conflicting config")
        await self._connection.start()
        self._state = SupervisorState.POLLING
        LOGGER.info("Bot connection started")

    async def stop(self) -> None:
        """Cancel any pending restart and stop the connection."""

        task = self._restart_task
        self._restart_task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._best_effort(self._connection.stop, "stop connection")
        self._state = SupervisorState.STOPPED

    async def join(self) -> None:
        """Wait until no restart is scheduled or in flight."""

        while self._restart_task is not None:
            task = self._restart_task
            await task
            if self._restart_task is task:
                break

    def report_error(self, error: BaseException, reason: str = "transport_error") -> Optional[float]:
        """Handle a transport error signal.

        Returns the scheduled restart delay, or ``None`` when no restart was
        scheduled (identity conflict, or a restart is already pending).
        """

        if self._connection.is_conflict(error):
            self._conflicted = True
            LOGGER.critical(
                "Connection conflict: another instance is using the same bot session. "
                "Stop the other instance; no restart will be attempted. (%s)",
                error,
            )
            return None

        if self._restart_task is not None:
            LOGGER.debug("Restart already pending, ignoring %s: %s", reason, error)
            return None

        return self._schedule_restart(reason, error)

    def _schedule_restart(self, reason: str, error: BaseException) -> float:
        cap = self._config.backoff_cap_seconds
        delay = min(cap, self._backoff) + self._jitter()
        self._backoff = min(cap, self._backoff * 2)
        self._state = SupervisorState.RESTARTING
        LOGGER.error("Connection error (%s): %s. Restarting in %.2fs", reason, error, delay)
        self._restart_task = asyncio.get_running_loop().create_task(self._restart_after(delay))
        return delay

    async def _restart_after(self, delay: float) -> None:
        await self._sleep(delay)

        await self._best_effort(self._connection.stop, "stop connection")
        await self._best_effort(self._connection.clear_conflicting_config, "clear conflicting config")

        try:
            await self._connection.start()
        except Exception as exc:
            self._backoff = min(self._config.backoff_cap_seconds, self._backoff * 2)
            self._restart_task = None
            if self.report_error(exc, reason="restart_failed") is None:
                self._state = SupervisorState.RESTARTING
            return

        self._backoff = self._config.backoff_floor_seconds
        self._state = SupervisorState.POLLING
        self._restart_task = None
        LOGGER.info("Bot connection restarted")

    async def _best_effort(self, step: Callable[[], Awaitable[None]], label: str) -> None:
        try:
            await step()
        except Exception:
            LOGGER.warning("Failed to %s", label, exc_info=True)
