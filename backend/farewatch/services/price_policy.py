"""
Price comparator: pure decision logic for one check cycle.

Given the stored price, a new quote and the provider's persistence policy, decide
whether to store the price, how to classify the change, and whether the watch
qualifies for an automatic hold. No I/O here.
"""
from dataclasses import dataclass
from enum import Enum

from farewatch.services.types import NotificationKind, PriceQuote, Trigger, Watch


class PriceChange(str, Enum):
    FIRST_OBSERVATION = "first_observation"
    DECREASED = "decreased"
    INCREASED = "increased"
    UNCHANGED = "unchanged"
    UNMATCHED = "unmatched"  # quote came back without a matching itinerary: treated as a failed check


@dataclass(frozen=True)
class PriceDecision:
    change: PriceChange
    persist_price: bool
    qualifies_for_hold: bool
    previous_price: int | None
    new_price: int | None


def classify(previous: int | None, new: int) -> PriceChange:
    if previous is None:
        return PriceChange.FIRST_OBSERVATION
    if new < previous:
        return PriceChange.DECREASED
    if new > previous:
        return PriceChange.INCREASED
    return PriceChange.UNCHANGED


def should_persist(previous: int | None, *, authoritative: bool) -> bool:
    """Authoritative providers always write current_price; advisory ones only prime the baseline."""
    return authoritative or previous is None


def evaluate(
    watch: Watch,
    quote: PriceQuote,
    *,
    authoritative: bool,
    can_hold: bool,
) -> PriceDecision:
    """
    Classify quote against watch.current_price.

    A DECREASED quote qualifies for auto-hold only when the watch opted in, has at least
    one passenger, the quote carries a bookable reference for every leg, and the
    provider supports reservations (can_hold).
    """
    previous = watch.current_price
    if not quote.matched:
        return PriceDecision(PriceChange.UNMATCHED, False, False, previous, None)
    change = classify(previous, quote.price)
    qualifies = (
        change is PriceChange.DECREASED
        and can_hold
        and watch.auto_hold_enabled
        and bool(watch.passengers)
        and quote.has_usable_refs(len(watch.legs))
    )
    return PriceDecision(
        change=change,
        persist_price=should_persist(previous, authoritative=authoritative),
        qualifies_for_hold=qualifies,
        previous_price=previous,
        new_price=quote.price,
    )


# Which notification a non-hold cycle produces, and whether automatic triggers surface it.
_CHANGE_NOTIFICATIONS: dict[PriceChange, tuple[NotificationKind | None, bool]] = {
    PriceChange.FIRST_OBSERVATION: (None, False),
    PriceChange.DECREASED: (NotificationKind.PRICE_DECREASED, True),
    PriceChange.INCREASED: (NotificationKind.PRICE_INCREASED, False),
    PriceChange.UNCHANGED: (NotificationKind.PRICE_UNCHANGED, False),
    PriceChange.UNMATCHED: (NotificationKind.CHECK_FAILED, False),
}


def notification_for(change: PriceChange, trigger: Trigger) -> NotificationKind | None:
    """Notification kind for a cycle that did not attempt a hold; None when suppressed."""
    kind, surfaces_when_automatic = _CHANGE_NOTIFICATIONS[change]
    if kind is None:
        return None
    if trigger is Trigger.AUTOMATIC and not surfaces_when_automatic:
        return None
    return kind


def check_failed_notification(trigger: Trigger) -> NotificationKind | None:
    """Failed fetches are reported to manual triggers only; automatic ones log and wait a full interval."""
    return NotificationKind.CHECK_FAILED if trigger is Trigger.MANUAL else None
