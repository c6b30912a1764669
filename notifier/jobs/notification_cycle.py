"""
Notification cycle: select due users, fan out pushes, advance last-sent.

Run one cycle with: python -m notifier.jobs.notification_cycle
Options:
  --at TIMESTAMP   Evaluate as of this ISO timestamp (default: now)

Each cycle captures a single ``now`` and uses it for selection, payload
metadata and the last-sent update. Cycles never overlap; a user's
``last_notification_sent`` only moves when at least one of their devices
accepted the message.
"""

import argparse
import asyncio
import enum
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notifier.config import Settings, get_settings
from notifier.core.datetime_utils import parse_iso_utc, to_naive_utc, to_unix_millis, utc_now
from notifier.core.logging import get_logger, setup_logging
from notifier.models.preference import NotificationFrequency, NotificationPreference
from notifier.schemas.notification import PushPayload
from notifier.services.content_provider import BaseContentProvider, StaticQuoteProvider
from notifier.services.dispatcher import Dispatcher, UserSendOutcome
from notifier.services.preference_store import (
    get_users_due_for_notification,
    update_last_notification_sent,
)
from notifier.services.push_gateway import get_push_gateway, reset_push_gateway
from notifier.services.token_store import get_tokens_for_user, remove_tokens

logger = get_logger(__name__)

NOTIFICATION_TYPES: dict[NotificationFrequency, str] = {
    NotificationFrequency.FIVE_MINUTES: "5min_quote",
    NotificationFrequency.HOURLY: "hourly_quote",
    NotificationFrequency.TWICE_DAILY: "twice_daily_quote",
    NotificationFrequency.DAILY: "daily_quote",
}

MANUAL_NOTIFICATION_TYPE = "manual_quote"


class CyclePhase(str, enum.Enum):
    """Where the scheduler currently is within a cycle."""

    IDLE = "idle"
    SELECTING = "selecting"
    DISPATCHING = "dispatching"
    UPDATING = "updating"


class UserDispatchStatus(str, enum.Enum):
    SENT = "sent"
    NO_TOKENS = "no_tokens"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class UserDispatchResult:
    """What happened to one due user during dispatch."""

    user_id: str
    status: UserDispatchStatus
    outcome: UserSendOutcome | None = None


@dataclass
class CycleReport:
    """Summary of one notification cycle."""

    now: datetime
    due_count: int = 0
    dispatched_users: int = 0
    skipped_no_tokens: int = 0
    failed_users: int = 0
    updated_users: int = 0
    success_count: int = 0
    failure_count: int = 0
    pruned_tokens: int = 0
    aborted: bool = False
    cancelled: bool = False
    error: str | None = None


class NotificationScheduler:
    """Runs notification cycles against the preference and token tables.

    The timer lives outside this class (APScheduler or the CLI); it calls
    ``tick()`` on every interval. ``stop_event`` is honoured before a cycle
    starts and before each user's dispatch begins.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dispatcher: Dispatcher,
        content_provider: BaseContentProvider,
        store_timeout_seconds: float = 30.0,
        max_concurrent_users: int = 10,
        prune_invalid_tokens: bool = False,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.session_factory = session_factory
        self.dispatcher = dispatcher
        self.content_provider = content_provider
        self.store_timeout_seconds = store_timeout_seconds
        self.max_concurrent_users = max_concurrent_users
        self.prune_invalid_tokens = prune_invalid_tokens
        self.clock = clock

        self.stop_event = asyncio.Event()
        self.phase = CyclePhase.IDLE
        self.last_report: CycleReport | None = None
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def request_stop(self) -> None:
        """Ask the scheduler to stop at the next cycle or user boundary."""
        self.stop_event.set()

    async def tick(self) -> CycleReport | None:
        """Timer entry point: run a cycle unless stopped or one is in flight."""
        if self.stop_event.is_set():
            logger.debug("notification_tick_skipped_stopping")
            return None
        if self._lock.locked():
            logger.warning("notification_tick_skipped_cycle_in_progress")
            return None
        return await self.run_cycle()

    async def run_cycle(self, now: datetime | None = None) -> CycleReport:
        """Run one full cycle. Never raises; failures land in the report."""
        async with self._lock:
            return await self._run_cycle(to_naive_utc(now or self.clock()))

    async def _run_cycle(self, now: datetime) -> CycleReport:
        report = CycleReport(now=now)
        logger.bind(now=now.isoformat()).debug("notification_cycle_started")

        try:
            self.phase = CyclePhase.SELECTING
            try:
                due = await self._select_due(now)
            except Exception as e:
                report.aborted = True
                report.error = f"{type(e).__name__}: {e}"
                logger.bind(error=report.error).error("notification_cycle_selection_failed")
                return report

            report.due_count = len(due)
            if not due:
                return report

            self.phase = CyclePhase.DISPATCHING
            results = await self._dispatch_all(due, now)
            self._tally(results, report)

            self.phase = CyclePhase.UPDATING
            await self._apply_updates(results, now, report)

        except Exception as e:
            report.error = f"{type(e).__name__}: {e}"
            logger.bind(error=report.error).error("notification_cycle_failed")

        finally:
            self.phase = CyclePhase.IDLE
            self.last_report = report
            self._log_report(report)

        return report

    # --- Selecting ---

    async def _select_due(self, now: datetime) -> list[NotificationPreference]:
        async with self.session_factory() as db:
            async with asyncio.timeout(self.store_timeout_seconds):
                return await get_users_due_for_notification(db, now)

    # --- Dispatching ---

    async def _dispatch_all(
        self,
        due: list[NotificationPreference],
        now: datetime,
    ) -> list[UserDispatchResult]:
        semaphore = asyncio.Semaphore(self.max_concurrent_users)

        async def worker(preference: NotificationPreference) -> UserDispatchResult:
            async with semaphore:
                if self.stop_event.is_set():
                    return UserDispatchResult(preference.user_id, UserDispatchStatus.CANCELLED)
                return await self._dispatch_user(preference, now)

        return list(await asyncio.gather(*(worker(p) for p in due)))

    async def _dispatch_user(
        self,
        preference: NotificationPreference,
        now: datetime,
    ) -> UserDispatchResult:
        user_id = preference.user_id

        try:
            async with self.session_factory() as db:
                async with asyncio.timeout(self.store_timeout_seconds):
                    tokens = await get_tokens_for_user(db, user_id)
        except Exception as e:
            logger.bind(user_id=user_id, error=str(e)).error("user_token_lookup_failed")
            return UserDispatchResult(user_id, UserDispatchStatus.FAILED)

        if not tokens:
            logger.bind(user_id=user_id).warning("no_device_tokens_for_user")
            return UserDispatchResult(user_id, UserDispatchStatus.NO_TOKENS)

        try:
            async with asyncio.timeout(self.store_timeout_seconds):
                payload = await self._build_payload(preference, now)
        except Exception as e:
            logger.bind(user_id=user_id, error=str(e)).error("notification_content_failed")
            return UserDispatchResult(user_id, UserDispatchStatus.FAILED)

        try:
            outcome = await self.dispatcher.send(user_id, tokens, payload)
        except Exception as e:
            logger.bind(user_id=user_id, error=str(e)).error("user_dispatch_failed")
            return UserDispatchResult(user_id, UserDispatchStatus.FAILED)

        return UserDispatchResult(user_id, UserDispatchStatus.SENT, outcome)

    async def _build_payload(
        self,
        preference: NotificationPreference,
        now: datetime,
    ) -> PushPayload:
        payload = await self.content_provider.get_payload()
        metadata = {
            **payload.metadata,
            "type": NOTIFICATION_TYPES.get(preference.frequency, "daily_quote"),
            "timestamp": str(to_unix_millis(now)),
        }
        return payload.model_copy(update={"metadata": metadata})

    # --- Manual sends ---

    async def send_now(
        self,
        user_id: str,
        tokens: list[str],
        title: str | None = None,
        body: str | None = None,
    ) -> UserSendOutcome:
        """Send one message to a user's tokens outside the schedule.

        Uses the same content provider and dispatcher as scheduled cycles but
        does not take the cycle lock and never touches
        ``last_notification_sent``.

        Args:
            user_id: Recipient
            tokens: The user's device tokens
            title: Overrides the provider's title
            body: Overrides the provider's body

        Returns:
            Per-token results
        """
        async with asyncio.timeout(self.store_timeout_seconds):
            payload = await self.content_provider.get_payload()

        update: dict = {
            "metadata": {
                **payload.metadata,
                "type": MANUAL_NOTIFICATION_TYPE,
                "timestamp": str(to_unix_millis(to_naive_utc(self.clock()))),
            }
        }
        if title:
            update["title"] = title
        if body:
            update["body"] = body

        logger.bind(user_id=user_id, tokens=len(tokens)).info("manual_notification_requested")
        return await self.dispatcher.send(user_id, tokens, payload.model_copy(update=update))

    @staticmethod
    def _tally(results: list[UserDispatchResult], report: CycleReport) -> None:
        for result in results:
            if result.status == UserDispatchStatus.SENT and result.outcome:
                report.dispatched_users += 1
                report.success_count += result.outcome.success_count
                report.failure_count += result.outcome.failure_count
            elif result.status == UserDispatchStatus.NO_TOKENS:
                report.skipped_no_tokens += 1
            elif result.status == UserDispatchStatus.FAILED:
                report.failed_users += 1
            elif result.status == UserDispatchStatus.CANCELLED:
                report.cancelled = True

    # --- Updating ---

    async def _apply_updates(
        self,
        results: list[UserDispatchResult],
        now: datetime,
        report: CycleReport,
    ) -> None:
        served = [r.user_id for r in results if r.outcome and r.outcome.success_count > 0]

        for user_id in served:
            try:
                async with self.session_factory() as db:
                    async with asyncio.timeout(self.store_timeout_seconds):
                        updated = await update_last_notification_sent(db, user_id, now)
                        await db.commit()
                if updated:
                    report.updated_users += 1
            except Exception as e:
                logger.bind(user_id=user_id, error=str(e)).error("last_notification_update_failed")

        if not self.prune_invalid_tokens:
            return

        invalid = [token for r in results if r.outcome for token in r.outcome.permanent_failures]
        if not invalid:
            return
        try:
            async with self.session_factory() as db:
                async with asyncio.timeout(self.store_timeout_seconds):
                    report.pruned_tokens = await remove_tokens(db, invalid)
                    await db.commit()
        except Exception as e:
            logger.bind(error=str(e), tokens=len(invalid)).error("invalid_token_prune_failed")

    @staticmethod
    def _log_report(report: CycleReport) -> None:
        fields = asdict(report)
        fields["now"] = report.now.isoformat()
        if report.due_count or report.aborted or report.error:
            logger.bind(**fields).info("notification_cycle_completed")
        else:
            logger.bind(now=fields["now"]).debug("notification_cycle_no_users_due")


def build_notification_scheduler(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    settings: Settings | None = None,
) -> NotificationScheduler:
    """Wire a scheduler from settings, the scheduler DB pool and the push gateway."""
    settings = settings or get_settings()
    if session_factory is None:
        from notifier.core.database import SchedulerSessionLocal

        session_factory = SchedulerSessionLocal

    return NotificationScheduler(
        session_factory=session_factory,
        dispatcher=Dispatcher(
            get_push_gateway(),
            send_timeout_seconds=settings.notification_send_timeout_seconds,
        ),
        content_provider=StaticQuoteProvider(),
        store_timeout_seconds=settings.notification_store_timeout_seconds,
        max_concurrent_users=settings.notification_max_concurrent_users,
        prune_invalid_tokens=settings.notification_prune_invalid_tokens,
    )


async def main(at: datetime | None = None) -> CycleReport:
    """Run a single notification cycle and print the summary."""
    setup_logging()

    scheduler = build_notification_scheduler()
    report = await scheduler.run_cycle(now=at)

    print(f"\nNotification cycle at {report.now.isoformat()}")
    print("-" * 40)
    print(f"  Due users:          {report.due_count}")
    print(f"  Dispatched users:   {report.dispatched_users}")
    print(f"  Skipped (no token): {report.skipped_no_tokens}")
    print(f"  Failed users:       {report.failed_users}")
    print(f"  Updated users:      {report.updated_users}")
    print(f"  Sends ok/failed:    {report.success_count}/{report.failure_count}")
    if report.error:
        print(f"  Error: {report.error}")

    await scheduler.dispatcher.gateway.aclose()
    reset_push_gateway()
    return report


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run one notification cycle")
    parser.add_argument(
        "--at",
        type=parse_iso_utc,
        default=None,
        help="Evaluation time as ISO timestamp (UTC unless an offset is given). Default: now",
    )
    args = parser.parse_args()

    asyncio.run(main(at=args.at))
