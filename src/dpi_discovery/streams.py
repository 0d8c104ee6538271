"""
WebSocket channels of the Discovery Service.

- SessionFeed: push variant of the status poller. The service sends a full
  DiscoverySession JSON frame whenever the session changes; the feed has
  the same callbacks and lifecycle as StatusPoller so the coordinator can
  use either.
- DiscoveryLogStream: the service's plain-text discovery log, kept as a
  bounded buffer of the most recent lines.

Both reconnect after a fixed delay when the connection drops, until they
are stopped.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Callable, Optional
from urllib.parse import quote

import websockets
from websockets.exceptions import WebSocketException

from .config import ServiceConfig
from .enums import ClientErrorCode
from .event_logger import EventLogger
from .exceptions import DiscoveryError, NetworkError, ProtocolError
from .models import DiscoverySession
from .poller import ErrorCallback, SessionCallback, is_terminal_session
from .session_parser import parse_session

# websockets.connect(uri, additional_headers=...) or a test double
ConnectFn = Callable[..., Any]


def _ws_path(config: ServiceConfig, *parts: str) -> str:
    prefix = config.api_prefix.strip("/")
    segments = [prefix] if prefix else []
    segments.extend(parts)
    return config.ws_base_url.rstrip("/") + "/" + "/".join(segments)


def status_feed_url(config: ServiceConfig, session_id: str) -> str:
    """URL of the per-session status push channel."""
    return _ws_path(config, "ws", "discovery", "status") + f"?id={quote(session_id, safe='')}"


def log_stream_url(config: ServiceConfig) -> str:
    """URL of the discovery log channel."""
    return _ws_path(config, "ws", "discovery")


def auth_headers(config: ServiceConfig) -> dict[str, str]:
    if config.api_token:
        return {"Authorization": f"Bearer {config.api_token}"}
    return {}


class _ReconnectingChannel(ABC):
    """Shared connect / read / reconnect loop."""

    COMPONENT = "Stream"

    def __init__(
        self,
        url: str,
        reconnect_delay: float,
        headers: Optional[dict[str, str]] = None,
        connect: Optional[ConnectFn] = None,
        logger: Optional[EventLogger] = None,
    ) -> None:
        self._url = url
        self._reconnect_delay = reconnect_delay
        self._headers = headers or {}
        self._connect = connect or websockets.connect
        self._logger = logger

        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._connected = False
        self._connections = 0

    async def __aenter__(self):
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    @property
    def url(self) -> str:
        return self._url

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def connections(self) -> int:
        """Number of connections opened so far."""
        return self._connections

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running or self._stop_event.is_set():
            return
        self._task = asyncio.create_task(self._run())

    def stop(self) -> None:
        self._stop_event.set()
        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def aclose(self) -> None:
        self.stop()
        task = self._task
        if task is None or task is asyncio.current_task():
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                async with self._connect(self._url, additional_headers=self._headers) as ws:
                    self._connected = True
                    self._connections += 1
                    self._log_info("Connected", {"url": self._url})
                    async for message in ws:
                        await self._handle_message(message)
                        if self._stop_event.is_set():
                            break
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                await self._handle_connection_error(e)
            finally:
                self._connected = False

            if self._stop_event.is_set():
                break

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._reconnect_delay)
            except asyncio.TimeoutError:
                pass

    @abstractmethod
    async def _handle_message(self, message) -> None:
        """Process one frame received from the service."""
        ...

    async def _handle_connection_error(self, error: Exception) -> None:
        self._log_warn("Connection lost, reconnecting", {
            "url": self._url,
            "error": str(error),
            "reconnect_delay_seconds": self._reconnect_delay,
        })

    def _log_info(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.info(self.COMPONENT, message, data)

    def _log_warn(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.warn(self.COMPONENT, message, data)


class SessionFeed(_ReconnectingChannel):
    """
    Push-based session tracker.

    Every text frame must be a DiscoverySession JSON object. Frames that
    cannot be decoded and dropped connections are reported through
    on_error; the feed keeps going until it is stopped or a terminal
    session has been delivered.
    """

    COMPONENT = "SessionFeed"

    def __init__(
        self,
        url: str,
        session_id: str,
        on_session: SessionCallback,
        on_error: ErrorCallback,
        reconnect_delay: float = 3.0,
        is_terminal: Callable[[DiscoverySession], bool] = is_terminal_session,
        headers: Optional[dict[str, str]] = None,
        connect: Optional[ConnectFn] = None,
        logger: Optional[EventLogger] = None,
    ) -> None:
        super().__init__(url, reconnect_delay, headers=headers, connect=connect, logger=logger)
        self._session_id = session_id
        self._on_session = on_session
        self._on_error = on_error
        self._is_terminal = is_terminal

    @classmethod
    def for_session(
        cls,
        config: ServiceConfig,
        session_id: str,
        on_session: SessionCallback,
        on_error: ErrorCallback,
        reconnect_delay: float = 3.0,
        connect: Optional[ConnectFn] = None,
        logger: Optional[EventLogger] = None,
    ) -> "SessionFeed":
        return cls(
            status_feed_url(config, session_id),
            session_id,
            on_session,
            on_error,
            reconnect_delay=reconnect_delay,
            headers=auth_headers(config),
            connect=connect,
            logger=logger,
        )

    @property
    def session_id(self) -> str:
        return self._session_id

    async def _handle_message(self, message) -> None:
        try:
            session = parse_session(json.loads(message))
        except ValueError as e:
            await self._on_error(ProtocolError(
                code=ClientErrorCode.PARSE_ERROR.value,
                message=f"Failed to decode status frame: {e}",
            ))
            return
        except DiscoveryError as e:
            await self._on_error(e)
            return

        await self._on_session(session)
        if self._is_terminal(session):
            self.stop()

    async def _handle_connection_error(self, error: Exception) -> None:
        await super()._handle_connection_error(error)
        if not self._stop_event.is_set():
            await self._on_error(NetworkError(
                code=ClientErrorCode.NETWORK_ERROR.value,
                message=f"Status feed connection failed: {error}",
                details={"url": self._url},
            ))


class DiscoveryLogStream(_ReconnectingChannel):
    """
    Bounded buffer over the discovery log channel.

    Only the most recent max_lines lines are kept. An optional on_line
    callback sees every line as it arrives.
    """

    COMPONENT = "DiscoveryLogStream"

    def __init__(
        self,
        url: str,
        max_lines: int = 500,
        reconnect_delay: float = 3.0,
        on_line: Optional[Callable[[str], None]] = None,
        headers: Optional[dict[str, str]] = None,
        connect: Optional[ConnectFn] = None,
        logger: Optional[EventLogger] = None,
    ) -> None:
        if max_lines < 1:
            raise ValueError(f"max_lines must be at least 1, got {max_lines}")
        super().__init__(url, reconnect_delay, headers=headers, connect=connect, logger=logger)
        self._lines: deque[str] = deque(maxlen=max_lines)
        self._on_line = on_line

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    @property
    def max_lines(self) -> int:
        return self._lines.maxlen

    def clear(self) -> None:
        self._lines.clear()

    def add_line(self, line: str) -> None:
        self._lines.append(line)
        if self._on_line:
            self._on_line(line)

    async def _handle_message(self, message) -> None:
        if isinstance(message, bytes):
            message = message.decode("utf-8", errors="replace")
        for line in message.splitlines():
            if line.strip():
                self.add_line(line)
