"""
Connectivity Signal

Emits "became reachable" / "became unreachable" transitions to
subscribers. Only real transitions are emitted: reporting the state the
monitor is already in is a no-op, so a flapping probe cannot trigger
repeated drains.
"""

import asyncio
import inspect
from typing import Awaitable, Callable, Optional, Union

import structlog


logger = structlog.get_logger(__name__)

Listener = Callable[[bool], Union[None, Awaitable[None]]]


class ConnectivityMonitor:
    """Tracks whether the remote store is reachable and fans out changes."""

    def __init__(self, online: bool = True):
        self._online = online
        self._listeners: list[Listener] = []

    @property
    def online(self) -> bool:
        return self._online

    def subscribe(self, listener: Listener) -> None:
        """Register a callback taking the new online flag (sync or async)."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    async def set_online(self, online: bool) -> None:
        """Report the current reachability; listeners run on transitions only."""
        if online == self._online:
            return
        self._online = online
        logger.info("connectivity_changed", online=online)
        for listener in list(self._listeners):
            result = listener(online)
            if inspect.isawaitable(result):
                await result

    async def became_reachable(self) -> None:
        await self.set_online(True)

    async def became_unreachable(self) -> None:
        await self.set_online(False)

    async def probe(
        self,
        check: Callable[[], Awaitable[object]],
        timeout: Optional[float] = None,
    ) -> bool:
        """
        Run a reachability check and report its outcome.

        Any exception or timeout counts as unreachable.
        """
        try:
            await asyncio.wait_for(check(), timeout=timeout)
            reachable = True
        except Exception as e:
            logger.warning("connectivity_probe_failed", error=str(e) or type(e).__name__)
            reachable = False
        await self.set_online(reachable)
        return reachable
