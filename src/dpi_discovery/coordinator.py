"""
Session Coordinator for discovery sessions.

This module owns the client-side lifecycle of one discovery session:

    IDLE -> STARTING -> RUNNING -> COMPLETE | FAILED | CANCELED
    terminal --reset()--> IDLE

It wires together:
- Target validation before anything is sent to the service
- The session store, so a restarted console resumes instead of restarting
- A status feed (interval poller or WebSocket push)
- The result aggregator, producing a read-only view model per transition

Errors from the service never escape the coordinator; they end up in the
view model as `error` (terminal or local) or `warning` (transient). The
only exception raised to callers is InvalidTransitionError, for commands
issued in a state that does not accept them.
"""

import asyncio
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, Protocol

from . import aggregator
from .config import PollConfig, RetryConfig
from .enums import CoordinatorState, DiscoveryPhase, LogLevel, SessionStatus
from .event_logger import EventLogger
from .exceptions import DiscoveryError, InvalidTransitionError, PersistenceError, ServiceError
from .models import ConfigTrial, DiscoveryOptions, DiscoverySession, DomainSummary
from .poller import ErrorCallback, SessionCallback, StatusPoller
from .retry_manager import RetryManager
from .streams import SessionFeed
from .target_validator import TargetValidator


class SessionTracker(Protocol):
    """Anything that delivers session snapshots: StatusPoller or SessionFeed."""

    def start(self) -> None: ...

    def stop(self) -> None: ...

    async def aclose(self) -> None: ...


FeedFactory = Callable[[str, SessionCallback, ErrorCallback], SessionTracker]


@dataclass(frozen=True)
class ViewModel:
    """
    Read-only snapshot of everything the presentation layer shows.

    Mappings are MappingProxyType and sequences are tuples, so subscribers
    sharing one view cannot change it for each other.
    """

    state: CoordinatorState
    session_id: Optional[str] = None
    session: Optional[DiscoverySession] = None
    progress: float = 0.0
    indeterminate: bool = False
    ranked_domains: tuple[str, ...] = ()
    grouped_results: Mapping[str, Mapping[DiscoveryPhase, tuple[ConfigTrial, ...]]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    summaries: Mapping[str, DomainSummary] = field(default_factory=lambda: MappingProxyType({}))
    error: Optional[str] = None
    warning: Optional[str] = None
    resuming: bool = False


_TERMINAL_STATES = {
    SessionStatus.COMPLETE: CoordinatorState.COMPLETE,
    SessionStatus.FAILED: CoordinatorState.FAILED,
    SessionStatus.CANCELED: CoordinatorState.CANCELED,
}


class SessionCoordinator:
    """
    State machine for one tracked discovery session.

    The coordinator reads the session store on construction: if an id is
    stored, it goes straight to RUNNING (resuming) and begins polling on
    resume(), which is also what `async with` does. No start request is
    ever sent for a resumed session.
    """

    COMPONENT = "SessionCoordinator"

    def __init__(
        self,
        client,
        store,
        poll_config: Optional[PollConfig] = None,
        retry_config: Optional[RetryConfig] = None,
        logger: Optional[EventLogger] = None,
        feed_factory: Optional[FeedFactory] = None,
        validator: Optional[TargetValidator] = None,
    ) -> None:
        """
        Initialize the coordinator.

        Args:
            client: DiscoveryClient (or anything with start/status/cancel)
            store: SessionStore or MemorySessionStore
            poll_config: Poll interval, resume failure bound, push mode
            retry_config: Retry behaviour for the remote cancel
            logger: Optional event logger
            feed_factory: Builds the status feed for a session id;
                defaults to a StatusPoller (or SessionFeed in push mode)
            validator: Target validator
        """
        self._client = client
        self._store = store
        self._poll_config = poll_config or PollConfig()
        self._retry_manager = RetryManager(retry_config or RetryConfig())
        self._logger = logger
        self._feed_factory = feed_factory or self._default_feed
        self._validator = validator or TargetValidator()

        self._state = CoordinatorState.IDLE
        self._session_id: Optional[str] = None
        self._session: Optional[DiscoverySession] = None
        self._derived: dict[str, Any] = {}
        self._error: Optional[str] = None
        self._warning: Optional[str] = None
        self._resuming = False
        self._confirmed = False
        self._consecutive_failures = 0
        self._start_pending = False
        self._cancel_pending = False
        self._feed: Optional[SessionTracker] = None
        self._subscribers: list[Callable[[ViewModel], None]] = []
        self._terminal_event = asyncio.Event()

        self._restore_from_store()
        self._view = self._build_view()

    async def __aenter__(self) -> "SessionCoordinator":
        await self.resume()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    # -- read side -------------------------------------------------------------

    @property
    def state(self) -> CoordinatorState:
        return self._state

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def view(self) -> ViewModel:
        """The most recently published view model."""
        return self._view

    def subscribe(self, callback: Callable[[ViewModel], None]) -> Callable[[], None]:
        """
        Register a callback for every published view model.

        Returns:
            A function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def wait_finished(self, timeout: Optional[float] = None) -> ViewModel:
        """
        Wait until the session reaches a terminal state.

        Raises:
            asyncio.TimeoutError: If timeout elapses first
        """
        if not self._state.is_terminal:
            await asyncio.wait_for(self._terminal_event.wait(), timeout=timeout)
        return self._view

    # -- commands --------------------------------------------------------------

    async def start(
        self,
        raw_target: str,
        options: Optional[DiscoveryOptions] = None,
    ) -> ViewModel:
        """
        Start a discovery for a domain or URL.

        Invalid input and service rejections leave the coordinator IDLE
        with the reason in view.error. On acceptance the session id is
        stored and polling begins.

        Raises:
            InvalidTransitionError: If not IDLE or a start is already pending
        """
        if self._state != CoordinatorState.IDLE or self._start_pending:
            raise InvalidTransitionError(
                code="invalid_transition",
                message=f"Cannot start a discovery while {self._state.value}",
                details={"state": self._state.value},
            )

        validation = self._validator.validate(raw_target)
        if not validation.valid:
            self._error = validation.error.message
            self._warning = None
            self._publish()
            return self._view

        target = validation.target
        self._error = None
        self._warning = None
        self._start_pending = True
        try:
            response = await self._client.start(target, options)
        except DiscoveryError as e:
            self._log_error("Start request failed", {
                "domain": target.domain,
                "error_code": e.code,
                "error_message": e.message,
            })
            self._error = e.message
            self._publish()
            return self._view
        finally:
            self._start_pending = False

        self._log_info("Discovery started", {
            "session_id": response.id,
            "domain": target.domain,
            "check_url": target.check_url,
            "estimated_tests": response.estimated_tests,
        })

        self._session_id = response.id
        self._session = None
        self._derived = {}
        self._confirmed = False
        self._resuming = False
        self._consecutive_failures = 0
        self._terminal_event.clear()
        self._save_id(response.id)
        self._state = CoordinatorState.STARTING
        self._publish()
        self._begin_tracking()
        return self._view

    async def resume(self) -> ViewModel:
        """Begin polling a session restored from the store, if any."""
        if self._state.is_active and self._feed is None and self._session_id:
            self._log_info("Resuming stored session", {"session_id": self._session_id})
            self._begin_tracking()
        return self._view

    async def cancel(self) -> ViewModel:
        """
        Stop tracking the session and ask the service to cancel it.

        Local polling stops before the remote request is sent. The remote
        cancel is retried on transient errors; if it still fails the
        session is CANCELED locally anyway and view.warning says so.

        Raises:
            InvalidTransitionError: If no session is STARTING or RUNNING,
                or a cancel is already in progress
        """
        if not self._state.is_active or self._cancel_pending:
            raise InvalidTransitionError(
                code="invalid_transition",
                message=(
                    "A cancel is already in progress" if self._cancel_pending
                    else f"Cannot cancel a discovery while {self._state.value}"
                ),
                details={"state": self._state.value},
            )

        session_id = self._session_id
        self._cancel_pending = True
        try:
            await self._close_feed()
            result = await self._retry_manager.execute_with_retry(
                lambda: self._client.cancel(session_id)
            )
        finally:
            self._cancel_pending = False

        if result.success:
            self._log_info("Discovery canceled", {
                "session_id": session_id,
                "attempts": result.attempts,
            })
            self._warning = None
        else:
            error = result.last_error
            message = getattr(error, "message", str(error))
            self._log_error("Remote cancel failed", {
                "session_id": session_id,
                "attempts": result.attempts,
                "error_message": message,
            })
            self._warning = f"The service may still be running this discovery: {message}"

        self._finish(CoordinatorState.CANCELED)
        return self._view

    def reset(self) -> ViewModel:
        """
        Forget a finished session and return to IDLE. No network call.

        Raises:
            InvalidTransitionError: If the current state is not terminal
        """
        if not self._state.is_terminal:
            raise InvalidTransitionError(
                code="invalid_transition",
                message=f"Cannot reset while {self._state.value}",
                details={"state": self._state.value},
            )

        self._feed = None
        self._session_id = None
        self._session = None
        self._derived = {}
        self._error = None
        self._warning = None
        self._resuming = False
        self._confirmed = False
        self._consecutive_failures = 0
        self._clear_store()
        self._terminal_event.clear()
        self._state = CoordinatorState.IDLE
        self._publish()
        return self._view

    async def aclose(self) -> None:
        """Stop tracking without touching the store, so the next run resumes."""
        await self._close_feed()

    # -- feed callbacks --------------------------------------------------------

    async def apply_session(self, session: DiscoverySession) -> None:
        """
        Take in a session snapshot delivered by the feed.

        Snapshots for another id, snapshots arriving when no session is
        active, and non-terminal snapshots that report fewer completed
        checks than the one already held are dropped.
        """
        if not self._state.is_active or self._cancel_pending or session.id != self._session_id:
            self._log_debug("Ignoring snapshot", {
                "session_id": session.id,
                "tracked_id": self._session_id,
                "state": self._state.value,
            })
            return

        held = self._session
        if (
            held is not None
            and not session.is_terminal
            and session.completed_checks < held.completed_checks
        ):
            self._log_debug("Discarding stale snapshot", {
                "session_id": session.id,
                "completed_checks": session.completed_checks,
                "held_completed_checks": held.completed_checks,
            })
            return

        previous_progress = self._derived.get("progress", 0.0)
        self._session = session
        self._derived = self._aggregate(session)
        # total_checks grows as phases begin; shown progress never moves back
        self._derived["progress"] = max(previous_progress, self._derived["progress"])
        self._confirmed = True
        self._resuming = False
        self._consecutive_failures = 0
        self._warning = None

        terminal_state = _TERMINAL_STATES.get(session.status)
        if terminal_state is not None:
            self._log_info("Discovery finished", {
                "session_id": session.id,
                "status": session.status.value,
                "completed_checks": session.completed_checks,
                "total_checks": session.total_checks,
            })
            self._stop_feed()
            self._finish(terminal_state)
            return

        self._state = CoordinatorState.RUNNING
        self._publish()

    async def report_poll_error(self, error: DiscoveryError) -> None:
        """
        Take in a failed fetch reported by the feed.

        Once the session has been seen alive, errors only produce a
        warning. Before that, a 404 or too many consecutive failures mean
        the session is gone and it is FAILED.
        """
        if not self._state.is_active or self._cancel_pending:
            return

        self._consecutive_failures += 1
        self._log_error("Status fetch failed", {
            "session_id": self._session_id,
            "error_code": error.code,
            "error_message": error.message,
            "consecutive_failures": self._consecutive_failures,
            "confirmed": self._confirmed,
        })

        if not self._confirmed:
            if isinstance(error, ServiceError) and error.is_not_found:
                self._fail("Session is no longer recognized by the service")
                return
            if self._consecutive_failures >= self._poll_config.resume_failure_limit:
                self._fail(
                    f"Could not reach the session after {self._consecutive_failures} "
                    f"attempts: {error.message}"
                )
                return

        self._warning = error.message
        self._publish()

    # -- internals ---------------------------------------------------------------

    def _restore_from_store(self) -> None:
        try:
            session_id = self._store.load()
        except PersistenceError as e:
            self._log_error("Stored session could not be read", {
                "error_code": e.code,
                "error_message": e.message,
            })
            self._warning = f"Ignoring stored session: {e.message}"
            self._clear_store()
            return

        if session_id:
            self._session_id = session_id
            self._state = CoordinatorState.RUNNING
            self._resuming = True

    def _default_feed(
        self,
        session_id: str,
        on_session: SessionCallback,
        on_error: ErrorCallback,
    ) -> SessionTracker:
        if self._poll_config.use_push:
            return SessionFeed.for_session(
                self._client.config,
                session_id,
                on_session,
                on_error,
                reconnect_delay=self._poll_config.reconnect_delay_seconds,
                logger=self._logger,
            )
        return StatusPoller(
            self._client.status,
            session_id,
            on_session,
            on_error,
            interval=self._poll_config.interval_seconds,
        )

    def _begin_tracking(self) -> None:
        self._feed = self._feed_factory(
            self._session_id, self.apply_session, self.report_poll_error
        )
        self._feed.start()

    def _stop_feed(self) -> None:
        if self._feed is not None:
            self._feed.stop()

    async def _close_feed(self) -> None:
        feed = self._feed
        if feed is not None:
            await feed.aclose()

    def _fail(self, message: str) -> None:
        self._log_error("Discovery failed", {
            "session_id": self._session_id,
            "reason": message,
        })
        self._error = message
        self._stop_feed()
        self._finish(CoordinatorState.FAILED)

    def _finish(self, state: CoordinatorState) -> None:
        self._state = state
        self._resuming = False
        self._clear_store()
        self._terminal_event.set()
        self._publish()

    def _aggregate(self, session: DiscoverySession) -> dict[str, Any]:
        return {
            "progress": aggregator.progress(session),
            "indeterminate": aggregator.is_indeterminate(session),
            "ranked_domains": tuple(aggregator.rank_domains(session)),
            "grouped_results": MappingProxyType({
                domain: MappingProxyType({phase: tuple(trials) for phase, trials in phases.items()})
                for domain, phases in aggregator.group_session_by_phase(session).items()
            }),
            "summaries": MappingProxyType(aggregator.summarize(session)),
        }

    def _build_view(self) -> ViewModel:
        return ViewModel(
            state=self._state,
            session_id=self._session_id,
            session=self._session,
            error=self._error,
            warning=self._warning,
            resuming=self._resuming,
            **self._derived,
        )

    def _publish(self) -> None:
        self._view = self._build_view()
        for callback in list(self._subscribers):
            callback(self._view)

    def _save_id(self, session_id: str) -> None:
        try:
            self._store.save(session_id)
        except PersistenceError as e:
            self._log_error("Failed to store session id", {
                "session_id": session_id,
                "error_message": e.message,
            })
            self._warning = f"Session will not survive a restart: {e.message}"

    def _clear_store(self) -> None:
        try:
            self._store.clear()
        except PersistenceError as e:
            self._log_error("Failed to clear stored session id", {
                "error_message": e.message,
            })

    def _log_debug(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(LogLevel.DEBUG, self.COMPONENT, message, data)

    def _log_info(self, message: str, data: dict) -> None:
        """Log an info message if logger is available."""
        if self._logger:
            self._logger.log(LogLevel.INFO, self.COMPONENT, message, data)

    def _log_error(self, message: str, data: dict) -> None:
        """Log an error message if logger is available."""
        if self._logger:
            self._logger.log(LogLevel.ERROR, self.COMPONENT, message, data)
