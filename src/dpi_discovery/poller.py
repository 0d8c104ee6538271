"""
Status Poller for a single discovery session.

The poller fetches the session snapshot on a fixed interval and hands each
result to the owner through async callbacks. It never runs two fetches at
once: a tick that arrives while the previous fetch is still outstanding is
skipped, not queued.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from .exceptions import DiscoveryError
from .models import DiscoverySession

SessionCallback = Callable[[DiscoverySession], Awaitable[None]]
ErrorCallback = Callable[[DiscoveryError], Awaitable[None]]
FetchFn = Callable[[str], Awaitable[DiscoverySession]]


def is_terminal_session(session: DiscoverySession) -> bool:
    return session.is_terminal


class StatusPoller:
    """
    Interval poller for one session id.

    Lifecycle:
        start() schedules the ticker, the first tick fires immediately.
        stop() may be called from anywhere, including from inside the
        on_session / on_error callbacks. aclose() stops and waits for the
        ticker to exit.
    """

    def __init__(
        self,
        fetch: FetchFn,
        session_id: str,
        on_session: SessionCallback,
        on_error: ErrorCallback,
        interval: float = 1.5,
        is_terminal: Callable[[DiscoverySession], bool] = is_terminal_session,
    ) -> None:
        """
        Initialize the poller.

        Args:
            fetch: Async status call, usually DiscoveryClient.status
            session_id: Session to poll
            on_session: Called with every successfully fetched snapshot
            on_error: Called with every DiscoveryError raised by fetch
            interval: Seconds between ticks
            is_terminal: Predicate that stops polling once it holds
        """
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")

        self._fetch = fetch
        self._session_id = session_id
        self._on_session = on_session
        self._on_error = on_error
        self._interval = interval
        self._is_terminal = is_terminal

        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._in_flight: Optional[asyncio.Task] = None
        self._ticks = 0
        self._skipped_ticks = 0

    async def __aenter__(self) -> "StatusPoller":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def ticks(self) -> int:
        """Number of ticks that started a fetch."""
        return self._ticks

    @property
    def skipped_ticks(self) -> int:
        """Number of ticks dropped because a fetch was outstanding."""
        return self._skipped_ticks

    def start(self) -> None:
        """Begin polling. Calling start() on a running poller is a no-op."""
        if self.is_running or self._stop_event.is_set():
            return
        self._task = asyncio.create_task(self._run())

    def stop(self) -> None:
        """
        Request the poller to stop.

        The outstanding fetch, if any, is cancelled unless stop() is being
        called from within that fetch's own callbacks.
        """
        self._stop_event.set()

        in_flight = self._in_flight
        if in_flight is not None and not in_flight.done():
            if in_flight is not asyncio.current_task():
                in_flight.cancel()

    async def aclose(self) -> None:
        """Stop polling and wait for the ticker to finish."""
        self.stop()
        task = self._task
        current = asyncio.current_task()
        # From inside a callback the ticker winds down on its own.
        if task is None or current is task or current is self._in_flight:
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    async def _run(self) -> None:
        try:
            while not self._stop_event.is_set():
                if self._in_flight is None or self._in_flight.done():
                    self._ticks += 1
                    self._in_flight = asyncio.create_task(self._poll_once())
                else:
                    self._skipped_ticks += 1

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            in_flight = self._in_flight
            if in_flight is not None and not in_flight.done():
                in_flight.cancel()
                try:
                    await in_flight
                except asyncio.CancelledError:
                    pass

    async def _poll_once(self) -> None:
        try:
            session = await self._fetch(self._session_id)
        except DiscoveryError as e:
            if not self._stop_event.is_set():
                await self._on_error(e)
            return

        if self._stop_event.is_set():
            return

        await self._on_session(session)
        if self._is_terminal(session):
            self.stop()
