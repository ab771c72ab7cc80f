"""
Per-watch check scheduler.

Every active watch has one APScheduler "date" job (id "watch:<id>") that fires when the
watch is next due. When it fires, one cycle runs: fetch a quote, classify it, hold or
persist, notify, then re-arm from the watch's new last_checked_at. A periodic
reconciliation job ("watch_sync") arms watches created outside this process and
disarms timers whose watches were deleted or paused.

Manual checks go through the same guard as timers: a trigger for a watch that already
has a cycle in flight is dropped, not queued.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from farewatch.config import settings
from farewatch.core.constants import WATCH_JOB_PREFIX, WATCH_SYNC_JOB_ID
from farewatch.core.errors import FetchError, FetchErrorKind, StorageError, StorageErrorKind
from farewatch.services.auto_hold_service import AutoHoldOrchestrator
from farewatch.services.notify_service import Notifier, watch_payload
from farewatch.services.price_policy import PriceChange, check_failed_notification, evaluate, notification_for
from farewatch.services.providers import registry
from farewatch.services.types import (
    HoldOutcome,
    NotificationKind,
    PriceQuote,
    PriceSample,
    ReservationAttempt,
    Trigger,
    Watch,
)
from farewatch.services.watch_store import WatchStore

logger = logging.getLogger(__name__)

_HOLD_NOTIFICATIONS = {
    HoldOutcome.HELD: NotificationKind.HOLD_SUCCEEDED,
    HoldOutcome.FAILED: NotificationKind.HOLD_FAILED,
    HoldOutcome.SKIPPED_ALREADY_ISSUED: NotificationKind.HOLD_SKIPPED_ALREADY_ISSUED,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WatchState(str, Enum):
    IDLE = "idle"
    CHECKING = "checking"
    HOLDING = "holding"
    RETIRED = "retired"


def job_id_for(watch_id: str) -> str:
    return f"{WATCH_JOB_PREFIX}{watch_id}"


def _elapsed_seconds(watch: Watch, now: datetime) -> float | None:
    if watch.last_checked_at is None:
        return None
    return (now - watch.last_checked_at).total_seconds()


def is_due(watch: Watch, now: datetime) -> bool:
    if not watch.is_active:
        return False
    elapsed = _elapsed_seconds(watch, now)
    return elapsed is None or elapsed >= watch.check_interval_seconds


def progress(watch: Watch, now: datetime) -> float:
    """Fraction of the interval elapsed since the last check, for progress bars. 0.0 when never checked."""
    elapsed = _elapsed_seconds(watch, now)
    if elapsed is None:
        return 0.0
    if watch.check_interval_seconds <= 0:
        return 1.0
    return max(0.0, min(elapsed / watch.check_interval_seconds, 1.0))


def next_check_at(watch: Watch, now: datetime) -> datetime:
    if watch.last_checked_at is None:
        return now
    return max(watch.last_checked_at + timedelta(seconds=watch.check_interval_seconds), now)


@dataclass
class CycleOutcome:
    """What one check cycle did. Returned to manual triggers; logged for automatic ones."""

    watch_id: str
    trigger: Trigger
    checked_at: datetime
    change: PriceChange | None = None
    price: int | None = None
    previous_price: int | None = None
    notification: NotificationKind | None = None
    error: str | None = None
    hold: ReservationAttempt | None = None

    @property
    def retired(self) -> bool:
        return self.hold is not None and self.hold.retired

    def to_dict(self) -> dict[str, Any]:
        return {
            "watch_id": self.watch_id,
            "trigger": self.trigger.value,
            "checked_at": self.checked_at.isoformat(),
            "change": self.change.value if self.change else None,
            "price": self.price,
            "previous_price": self.previous_price,
            "notification": self.notification.value if self.notification else None,
            "error": self.error,
            "hold": (
                {"outcome": self.hold.outcome.value, "code": self.hold.code, "reason": self.hold.reason}
                if self.hold
                else None
            ),
            "retired": self.retired,
        }


class WatchScheduler:
    def __init__(
        self,
        store: WatchStore,
        notifier: Notifier,
        orchestrator: AutoHoldOrchestrator,
        *,
        providers: Any = registry,
        scheduler: AsyncIOScheduler | None = None,
        clock: Callable[[], datetime] = _utcnow,
        sync_interval_seconds: int | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._orchestrator = orchestrator
        self._providers = providers
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self._clock = clock
        self._sync_interval = sync_interval_seconds or settings.watch_sync_interval_seconds
        # Watch ids with a cycle in flight. Check-and-add happens with no await in between.
        self._in_flight: set[str] = set()
        self._states: dict[str, WatchState] = {}

    @property
    def scheduler(self) -> AsyncIOScheduler:
        return self._scheduler

    # --- Lifecycle ---

    def start(self) -> None:
        self._scheduler.add_job(
            self.sync,
            "interval",
            seconds=self._sync_interval,
            id=WATCH_SYNC_JOB_ID,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        self._scheduler.start()
        logger.info("Watch scheduler started; reconciling every %ss", self._sync_interval)

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

    # --- Timer registry ---

    def arm(self, watch: Watch) -> datetime | None:
        """(Re)schedule the watch's timer at its next due time. Inactive watches are disarmed instead."""
        if not watch.is_active:
            self.disarm(watch.id)
            return None
        run_at = next_check_at(watch, self._clock())
        # Remove first: an unstarted scheduler keeps replace_existing duplicates as pending jobs.
        self.disarm(watch.id)
        self._scheduler.add_job(
            self._on_timer,
            "date",
            run_date=run_at,
            args=[watch.id],
            id=job_id_for(watch.id),
            replace_existing=True,
            misfire_grace_time=None,
        )
        return run_at

    def disarm(self, watch_id: str) -> None:
        try:
            self._scheduler.remove_job(job_id_for(watch_id))
        except JobLookupError:
            pass

    def is_armed(self, watch_id: str) -> bool:
        return self._scheduler.get_job(job_id_for(watch_id)) is not None

    def armed_watch_ids(self) -> set[str]:
        return {
            job.id[len(WATCH_JOB_PREFIX):] for job in self._scheduler.get_jobs() if job.id.startswith(WATCH_JOB_PREFIX)
        }

    def state(self, watch_id: str) -> WatchState:
        return self._states.get(watch_id, WatchState.IDLE)

    def in_flight(self, watch_id: str) -> bool:
        return watch_id in self._in_flight

    async def sync(self) -> dict[str, int]:
        """Arm every active watch that has no timer; disarm timers of watches no longer active."""
        try:
            watches = await self._store.list_active_watches()
        except StorageError as e:
            logger.warning("Watch sync skipped: %s", e)
            return {"armed": 0, "disarmed": 0}
        active_ids = {w.id for w in watches}
        armed = disarmed = 0
        for watch in watches:
            if watch.id in self._in_flight or self.is_armed(watch.id):
                continue
            self.arm(watch)
            armed += 1
        for watch_id in self.armed_watch_ids() - active_ids:
            if watch_id in self._in_flight:
                continue
            self.disarm(watch_id)
            disarmed += 1
        if armed or disarmed:
            logger.info("Watch sync: armed %s, disarmed %s (%s active)", armed, disarmed, len(active_ids))
        return {"armed": armed, "disarmed": disarmed}

    # --- Cycles ---

    async def _on_timer(self, watch_id: str) -> None:
        try:
            outcome = await self.trigger(watch_id, Trigger.AUTOMATIC)
        except StorageError as e:
            if e.kind is StorageErrorKind.NOT_FOUND:
                logger.info("Timer fired for deleted watch %s", watch_id)
            else:
                logger.warning("Check cycle for watch %s could not load it: %s", watch_id, e)
            return
        except Exception:
            logger.exception("Check cycle for watch %s failed", watch_id)
            return
        if outcome is not None:
            logger.info(
                "Checked watch %s: change=%s price=%s error=%s",
                watch_id,
                outcome.change.value if outcome.change else None,
                outcome.price,
                outcome.error,
            )

    async def trigger(self, watch_id: str, trigger: Trigger = Trigger.MANUAL) -> CycleOutcome | None:
        """
        Run one cycle for the watch unless one is already in flight (then None).

        Automatic triggers skip inactive or not-yet-due watches (None). Raises StorageError
        NOT_FOUND when the watch does not exist.
        """
        if watch_id in self._in_flight:
            logger.debug("Dropped %s trigger for watch %s: cycle in flight", trigger.value, watch_id)
            return None
        self._in_flight.add(watch_id)
        self._states[watch_id] = WatchState.CHECKING
        rearm_with: Watch | None = None
        try:
            try:
                watch = await self._store.get_watch(watch_id)
            except StorageError as e:
                if e.kind is StorageErrorKind.NOT_FOUND:
                    self._states[watch_id] = WatchState.RETIRED
                raise
            if trigger is Trigger.AUTOMATIC:
                if not watch.is_active:
                    return None
                if not is_due(watch, self._clock()):
                    rearm_with = watch
                    return None
            rearm_with = watch.with_updates(last_checked_at=self._clock())
            outcome, after = await self._run_cycle(watch, trigger)
            rearm_with = await self._reload(after) if after is not None else None
            return outcome
        finally:
            self._in_flight.discard(watch_id)
            if self._states.get(watch_id) is not WatchState.RETIRED:
                self._states[watch_id] = WatchState.IDLE
            if rearm_with is not None and rearm_with.is_active:
                self.arm(rearm_with)
            else:
                self.disarm(watch_id)

    async def _run_cycle(self, watch: Watch, trigger: Trigger) -> tuple[CycleOutcome, Watch | None]:
        """Returns the outcome and the watch as persisted afterwards (None when it no longer exists)."""
        now = self._clock()
        outcome = CycleOutcome(watch.id, trigger, now, previous_price=watch.current_price)
        try:
            provider = self._providers.get_provider(watch.provider)
        except KeyError as e:
            return await self._fail_cycle(watch, outcome, FetchError(FetchErrorKind.INVALID_ITINERARY, str(e)))
        try:
            quote = await provider.check_price(watch)
        except FetchError as e:
            return await self._fail_cycle(watch, outcome, e)

        decision = evaluate(
            watch,
            quote,
            authoritative=provider.authoritative_price,
            can_hold=self._providers.get_reservation_provider(watch.provider) is not None,
        )
        if decision.change is PriceChange.UNMATCHED:
            return await self._fail_cycle(
                watch, outcome, FetchError(FetchErrorKind.NO_TIME_MATCH, "No matching itinerary")
            )
        outcome.change = decision.change
        outcome.price = quote.price

        if decision.qualifies_for_hold:
            # A hold never writes current_price: a held watch is deleted, a failed one keeps its price.
            result = await self._hold(watch, quote, outcome)
            await self._append_sample(PriceSample(watch.id, now, quote.price, False))
            return result

        fields: dict[str, Any] = {"last_checked_at": now}
        if decision.persist_price:
            fields["current_price"] = quote.price
            if provider.authoritative_price:
                fields["booking_refs"] = list(quote.booking_refs)
        after, saved = await self._write(watch, **fields)
        await self._append_sample(PriceSample(watch.id, now, quote.price, saved and decision.persist_price))

        kind = notification_for(decision.change, trigger)
        if kind is not None:
            outcome.notification = kind
            await self._notifier.notify(
                kind,
                watch.id,
                watch_payload(watch, price=quote.price, previous_price=decision.previous_price, trigger=trigger.value),
            )
        return outcome, after

    async def _hold(
        self, watch: Watch, quote: PriceQuote, outcome: CycleOutcome
    ) -> tuple[CycleOutcome, Watch | None]:
        self._states[watch.id] = WatchState.HOLDING
        attempt = await self._orchestrator.hold(watch, quote)
        outcome.hold = attempt
        outcome.notification = _HOLD_NOTIFICATIONS[attempt.outcome]
        if attempt.retired:
            self._states[watch.id] = WatchState.RETIRED
            return outcome, None
        # Failed holds keep price and refs as they were so the next cycle sees the drop again.
        return outcome, await self._save(watch, last_checked_at=outcome.checked_at)

    async def _fail_cycle(
        self, watch: Watch, outcome: CycleOutcome, error: FetchError
    ) -> tuple[CycleOutcome, Watch | None]:
        logger.warning("Price check failed for watch %s (%s): %s", watch.id, error.kind.value, error.message)
        outcome.error = error.kind.value
        after = await self._save(watch, last_checked_at=outcome.checked_at)
        kind = check_failed_notification(outcome.trigger)
        if kind is not None:
            outcome.notification = kind
            await self._notifier.notify(
                kind,
                watch.id,
                watch_payload(watch, reason=error.message, error=error.kind.value, trigger=outcome.trigger.value),
            )
        return outcome, after

    async def _save(self, watch: Watch, **fields: Any) -> Watch | None:
        after, _ = await self._write(watch, **fields)
        return after

    async def _write(self, watch: Watch, **fields: Any) -> tuple[Watch | None, bool]:
        """The watch after the update (None when deleted) and whether the store accepted it."""
        try:
            return await self._store.update_watch(watch.id, **fields), True
        except StorageError as e:
            if e.kind is StorageErrorKind.NOT_FOUND:
                logger.info("Watch %s was deleted during its check; not re-arming", watch.id)
                self._states[watch.id] = WatchState.RETIRED
                return None, False
            logger.warning("Could not save check result for watch %s: %s", watch.id, e)
            return watch.with_updates(**fields), False

    async def _reload(self, watch: Watch) -> Watch | None:
        """Latest stored copy, so edits made while the cycle was awaiting decide the re-arm."""
        try:
            return await self._store.get_watch(watch.id)
        except StorageError as e:
            if e.kind is StorageErrorKind.NOT_FOUND:
                self._states[watch.id] = WatchState.RETIRED
                return None
            logger.warning("Could not reload watch %s after its check: %s", watch.id, e)
            return watch

    async def _append_sample(self, sample: PriceSample) -> None:
        try:
            await self._store.append_price_sample(sample)
        except StorageError as e:
            logger.warning("Could not record price sample for watch %s: %s", sample.watch_id, e)
