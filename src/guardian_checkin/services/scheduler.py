"""Due-session poller that starts check-in calls."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import UUID

from guardian_checkin.domain.events import EventType, count_events, last_event
from guardian_checkin.domain.sessions import Session, SessionStatus
from guardian_checkin.services.notifications import NotificationProvider, ProviderError
from guardian_checkin.services.sessions import SessionNotFoundError, SessionService

_logger = logging.getLogger(__name__)


class SessionNotPendingError(ValueError):
    """Raised when a call is requested for a session that is not pending."""


@dataclass
class TickReport:
    """Summary of one scheduler pass."""

    due: int = 0
    started: list[UUID] = field(default_factory=list)
    failed: list[UUID] = field(default_factory=list)
    deferred: list[UUID] = field(default_factory=list)
    abandoned: list[UUID] = field(default_factory=list)
    timed_out: list[UUID] = field(default_factory=list)
    skipped: list[UUID] = field(default_factory=list)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class DueSessionScheduler:
    """Moves due pending sessions into an active call, one tick at a time.

    A tick that starts while the previous one is still running is dropped,
    not queued. Failed initiations go back to pending for the next tick;
    ``max_initiation_attempts`` and ``initiation_backoff_seconds`` bound that
    retry when set. ``active_timeout_seconds`` enables a sweep that cancels
    active sessions whose callback never arrived.
    """

    sessions: SessionService
    provider: NotificationProvider
    interval_seconds: float = 60.0
    max_initiation_attempts: int | None = None
    initiation_backoff_seconds: float = 0.0
    active_timeout_seconds: float | None = None
    clock: Callable[[], datetime] = _utcnow
    _running: bool = field(default=False, init=False)
    _tasks: set[asyncio.Task] = field(default_factory=set, init=False)

    @property
    def running(self) -> bool:
        return self._running

    async def tick(self) -> TickReport | None:
        """Process every due session. Returns None when the tick was dropped."""
        if self._running:
            _logger.info("Scheduler tick skipped: previous tick still running")
            return None
        self._running = True
        try:
            return await self._process()
        finally:
            self._running = False

    async def run_forever(self) -> None:
        """Fire a tick immediately and then every interval until cancelled."""
        _logger.info("Scheduler started: interval=%ss", self.interval_seconds)
        try:
            while True:
                task = asyncio.create_task(self._safe_tick())
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
                await asyncio.sleep(self.interval_seconds)
        finally:
            for task in list(self._tasks):
                task.cancel()

    async def call_now(self, session_id: UUID) -> str | None:
        """Start the check-in call for one pending session right away."""
        return await self._initiate(session_id, trigger="call_now")

    async def _safe_tick(self) -> None:
        try:
            report = await self.tick()
        except Exception:
            _logger.exception("Scheduler tick failed")
            return
        if report and (report.due or report.timed_out):
            _logger.info(
                "Scheduler tick: due=%s started=%s failed=%s deferred=%s timed_out=%s",
                report.due,
                len(report.started),
                len(report.failed),
                len(report.deferred),
                len(report.timed_out),
            )

    async def _process(self) -> TickReport:
        now = self.clock()
        report = TickReport()
        due = [
            session
            for session in self.sessions.store.list_pending()
            if session.is_due(now)
        ]
        report.due = len(due)
        for session in due:
            try:
                await self._start_due(session, now, report)
            except Exception:
                _logger.exception("Failed to process due session %s", session.id)
                report.failed.append(session.id)
        if self.active_timeout_seconds is not None:
            report.timed_out = self._sweep_active(now)
        return report

    async def _start_due(
        self, session: Session, now: datetime, report: TickReport
    ) -> None:
        if self._in_backoff(session, now):
            report.deferred.append(session.id)
            return
        try:
            interaction_id = await self._initiate(
                session.id, trigger="scheduled_time_reached"
            )
        except (SessionNotFoundError, SessionNotPendingError) as exc:
            # Moved by another request while earlier sessions were dialing.
            _logger.info("Skipping session %s: %s", session.id, exc)
            report.skipped.append(session.id)
            return
        if interaction_id is not None:
            report.started.append(session.id)
            return
        current = self.sessions.store.get_session(session.id)
        if current is not None and current.status is SessionStatus.CANCELLED:
            report.abandoned.append(session.id)
        else:
            report.failed.append(session.id)

    async def _initiate(self, session_id: UUID, *, trigger: str) -> str | None:
        current = self.sessions.get(session_id)
        if current.status is not SessionStatus.PENDING:
            raise SessionNotPendingError(
                f"Session status is {current.status.value}; "
                "calls only start for pending sessions"
            )
        self.sessions.record(
            current.id,
            EventType.CALL_INITIATED,
            {"user_phone": current.user_phone, "trigger": trigger},
        )
        # Active before dialing: the next tick must not pick this session up.
        active = self.sessions.transition(current, SessionStatus.ACTIVE, trigger)
        try:
            interaction_id = await self.provider.start_interaction(
                active.user_phone, active.id
            )
        except Exception as exc:
            self._handle_failure(active, exc)
            return None
        self.sessions.record(
            active.id, EventType.CALL_PLACED, {"interaction_id": interaction_id}
        )
        _logger.info(
            "Check-in call placed: session_id=%s sid=%s", active.id, interaction_id
        )
        return interaction_id

    def _handle_failure(self, session: Session, exc: Exception) -> None:
        status_code = exc.status_code if isinstance(exc, ProviderError) else None
        _logger.warning(
            "Check-in call failed: session_id=%s status=%s error=%s",
            session.id,
            status_code,
            exc,
        )
        attempts = 1
        try:
            attempts += count_events(
                self.sessions.store.list_events(session.id), EventType.CALL_FAILED
            )
            self.sessions.record(
                session.id,
                EventType.CALL_FAILED,
                {"error": str(exc), "status_code": status_code},
            )
        finally:
            self._release(session, attempts)

    def _release(self, session: Session, attempts: int) -> None:
        """Take a session out of active after a failed initiation."""
        current = self.sessions.store.get_session(session.id)
        if current is None or current.status is not SessionStatus.ACTIVE:
            return
        limit = self.max_initiation_attempts
        if limit is not None and attempts >= limit:
            self.sessions.transition(
                current,
                SessionStatus.CANCELLED,
                "initiation_attempts_exhausted",
                attempts=attempts,
            )
            return
        self.sessions.transition(
            current, SessionStatus.PENDING, "initiation_failed", attempts=attempts
        )

    def _in_backoff(self, session: Session, now: datetime) -> bool:
        if self.initiation_backoff_seconds <= 0:
            return False
        events = self.sessions.store.list_events(session.id)
        failures = count_events(events, EventType.CALL_FAILED)
        latest = last_event(events, EventType.CALL_FAILED)
        if not failures or latest is None:
            return False
        wait = timedelta(seconds=self.initiation_backoff_seconds * 2 ** (failures - 1))
        if now - latest.created_at >= wait:
            return False
        _logger.info(
            "Deferring session %s after %s failures until %s",
            session.id,
            failures,
            (latest.created_at + wait).isoformat(),
        )
        return True

    def _sweep_active(self, now: datetime) -> list[UUID]:
        grace = timedelta(seconds=self.active_timeout_seconds or 0)
        timed_out: list[UUID] = []
        for session in self.sessions.store.list_active():
            started_at = session.updated_at or session.scheduled_at
            if now - started_at < grace:
                continue
            self.sessions.record(
                session.id,
                EventType.INTERACTION_TIMED_OUT,
                {
                    "active_since": started_at.isoformat(),
                    "grace_seconds": grace.total_seconds(),
                },
            )
            self.sessions.transition(
                session, SessionStatus.CANCELLED, "interaction_timeout"
            )
            timed_out.append(session.id)
        return timed_out
