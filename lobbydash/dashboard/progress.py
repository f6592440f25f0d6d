"""Derived presentation data: progress tiers, rankings and card urgency."""

from collections import Counter
from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, Optional

from ..store.models import GoalMetric, ProposalCard

# (minimum percentage, emoji), checked top-down
EMOJI_TIERS = [
    (100, "🥳🎉"),
    (90, "🤗"),
    (80, "😍"),
    (70, "🤩"),
    (60, "😆"),
    (50, "😁"),
    (40, "😃"),
    (30, "😊"),
    (20, "😏"),
    (10, "😐"),
]
EMOJI_FLOOR = "😵‍💫"

RANKING_SIZE = 5


def progress_emoji(percentage: Decimal) -> str:
    """Emoji shown next to the gauge for a given percentage."""
    for minimum, emoji in EMOJI_TIERS:
        if percentage >= minimum:
            return emoji
    return EMOJI_FLOOR


def progress_tone(percentage: Decimal) -> str:
    """
    Colour/message tone of the gauge.

    Returns:
        "success" (>= 100), "near" (>= 80) or "behind"
    """
    if percentage >= 100:
        return "success"
    if percentage >= 80:
        return "near"
    return "behind"


def remaining_amount(metric: GoalMetric) -> Decimal:
    """Amount still missing to reach the target (never negative)."""
    return max(metric.target_value - metric.achieved_value, Decimal(0))


def rank_by(
    cards: Iterable[ProposalCard],
    key: Callable[[ProposalCard], Optional[str]],
    limit: int = RANKING_SIZE,
) -> list[tuple[str, int]]:
    """
    Count cards per key and return the top entries.

    Example:
        rank_by(monthly_cards, lambda card: card.supervisor)
        -> [("Ana", 12), ("Bruno", 9), ...]
    """
    counts = Counter(key(card) for card in cards)
    counts.pop(None, None)
    return counts.most_common(limit)


def card_urgency(card: ProposalCard, today: date, view: str) -> Optional[str]:
    """
    Row escalation for a proposal table.

    Rows without a due date never escalate. Signature rows use the due
    date itself; pending rows use days_remaining.

    Returns:
        "overdue_critical", "overdue", "due_soon" or None
    """
    if card.due is None:
        return None

    if view == "signature":
        days = (card.due - today).days
        if days <= -10:
            return "overdue_critical"
        if days <= 0:
            return "overdue"
        if days <= 2:
            return "due_soon"
        return None

    if view == "pending" and card.days_remaining is not None:
        if card.days_remaining <= 0:
            return "overdue"
        if card.days_remaining <= 1:
            return "due_soon"

    return None
