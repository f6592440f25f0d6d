"""Data models for rows read from the backing store."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping, Optional


@dataclass(frozen=True)
class GoalMetric:
    """One period's progress toward a sales target.

    Covers both the company-wide goal (``team`` is None) and a single
    team/supervisor goal.
    """
    year: int
    month: int
    target_value: Decimal
    achieved_value: Decimal
    percentage_achieved: Decimal
    team: Optional[str] = None

    def __post_init__(self):
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be 1..12, got {self.month}")

    @property
    def period(self) -> tuple[int, int]:
        return (self.year, self.month)

    @property
    def key(self) -> tuple[int, int, Optional[str]]:
        """Identity of the metric: same key means same logical entity."""
        return (self.year, self.month, self.team)


@dataclass(frozen=True)
class ProposalCard:
    """A proposal card shown in the signature/new/pending tables."""
    name: str
    due: Optional[date] = None
    days_remaining: Optional[int] = None
    created_at: Optional[datetime] = None
    supervisor: Optional[str] = None
    broker: Optional[str] = None
    operator_logo: Optional[str] = None
    board_name: Optional[str] = None


@dataclass(frozen=True)
class FlipChartPage:
    """A page of the flip chart view."""
    page_number: int
    text: str = ""
    style: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
