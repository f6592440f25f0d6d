"""Topic fetchers: turn store views into immutable dashboard snapshots."""

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Optional

from ..errors import StoreError
from .client import StoreClient
from .models import FlipChartPage, GoalMetric, ProposalCard

logger = logging.getLogger(__name__)

# Store views backing each topic
SIGNATURE_VIEW = "view_trello_cards_aguarde_assinatura_2"
NEW_PROPOSALS_VIEW = "view_trello_cards_hoje"
PENDING_VIEW = "view_trello_cards_pendencias"
MONTHLY_PROPOSALS_VIEW = "view_trello_cards_mes"
SALES_GOAL_VIEW = "vw_metas_venda_geral"
TEAM_GOALS_VIEW = "vw_metas_vendas_supervisor"
FLIP_CHART_TABLE = "flip_chart_pages"

DEFAULT_PAGE_STYLE = {
    "fontWeight": "normal",
    "fontStyle": "normal",
    "fontSize": "24px",
    "textAlign": "left",
    "color": "#000000",
}


@dataclass(frozen=True)
class TopicSpec:
    """Wiring for one live topic: its fetcher and the table it watches."""
    name: str
    fetch: Callable[[], Awaitable[Any]]
    channel: str


class DashboardFeeds:
    """Builds the fetch functions for every dashboard topic."""

    def __init__(self, client: StoreClient, today_fn: Callable[[], date] = date.today):
        """
        Initialize with store client.

        Args:
            client: Connected StoreClient
            today_fn: Returns the current date (current goal period)
        """
        self.client = client
        self.today_fn = today_fn

    def topics(self) -> list[TopicSpec]:
        """All topics in the order they are registered."""
        return [
            TopicSpec("signature", self.fetch_signature, SIGNATURE_VIEW),
            TopicSpec("new_proposals", self.fetch_new_proposals, NEW_PROPOSALS_VIEW),
            TopicSpec("pending", self.fetch_pending, PENDING_VIEW),
            TopicSpec("monthly_proposals", self.fetch_monthly_proposals, MONTHLY_PROPOSALS_VIEW),
            TopicSpec("sales_goal", self.fetch_sales_goal, SALES_GOAL_VIEW),
            TopicSpec("previous_goal", self.fetch_previous_goal, SALES_GOAL_VIEW),
            TopicSpec("team_goals", self.fetch_team_goals, TEAM_GOALS_VIEW),
            TopicSpec("flip_chart", self.fetch_flip_chart, FLIP_CHART_TABLE),
        ]

    def _current_period(self) -> tuple[int, int]:
        today = self.today_fn()
        return today.year, today.month

    def _previous_period(self) -> tuple[int, int]:
        year, month = self._current_period()
        if month == 1:
            return year - 1, 12
        return year, month - 1

    async def fetch_signature(self) -> tuple[ProposalCard, ...]:
        """Cards waiting for signature, most urgent first."""
        rows = await self.client.select(SIGNATURE_VIEW, order="dias_restantes")
        return self._parse_cards(rows)

    async def fetch_new_proposals(self) -> tuple[ProposalCard, ...]:
        """Cards created today."""
        rows = await self.client.select(NEW_PROPOSALS_VIEW)
        return self._parse_cards(rows)

    async def fetch_pending(self) -> tuple[ProposalCard, ...]:
        """Cards with pending issues, most urgent first."""
        rows = await self.client.select(PENDING_VIEW, order="dias_restantes")
        return self._parse_cards(rows)

    async def fetch_monthly_proposals(self) -> tuple[ProposalCard, ...]:
        """Cards created this month, newest first (feeds the rankings)."""
        rows = await self.client.select(
            MONTHLY_PROPOSALS_VIEW, order="card_data_criado", ascending=False
        )
        return self._parse_cards(rows)

    async def fetch_sales_goal(self) -> Optional[GoalMetric]:
        """Company-wide goal for the current month, or None if not set up yet."""
        year, month = self._current_period()
        row = await self.client.select_one(
            SALES_GOAL_VIEW, filters={"ano": year, "mes": month}
        )
        if row is None:
            logger.warning(f"No sales goal configured for {year}-{month:02d}")
            return None
        return self._parse_goal(row)

    async def fetch_previous_goal(self) -> Optional[GoalMetric]:
        """Company-wide goal for the previous month (comparison only)."""
        year, month = self._previous_period()
        row = await self.client.select_one(
            SALES_GOAL_VIEW, filters={"ano": year, "mes": month}
        )
        if row is None:
            return None
        return self._parse_goal(row)

    async def fetch_team_goals(self) -> tuple[GoalMetric, ...]:
        """Per-team goals for the current month, best first."""
        year, month = self._current_period()
        rows = await self.client.select(
            TEAM_GOALS_VIEW,
            filters={"ano": year, "mes": month},
            order="percentual_atingido",
            ascending=False,
        )

        goals = []
        for row in rows:
            try:
                goals.append(self._parse_goal(row, team_field="supervisor"))
            except StoreError as e:
                logger.warning(f"Skipping team goal row: {e}")
        return tuple(goals)

    async def fetch_flip_chart(self) -> tuple[FlipChartPage, ...]:
        """Flip chart pages in page order."""
        rows = await self.client.select(FLIP_CHART_TABLE, order="page_number")
        return tuple(self._parse_page(row, index) for index, row in enumerate(rows))

    def _parse_goal(self, row: dict, team_field: Optional[str] = None) -> GoalMetric:
        """
        Parse a goal row.

        Args:
            row: Row with ano, mes, valor_meta, valor_realizado, percentual_atingido
            team_field: Column holding the team name, if any

        Returns:
            GoalMetric

        Raises:
            StoreError: If a required field is missing or not numeric
        """
        try:
            target = _to_decimal(row["valor_meta"])
            achieved = _to_decimal(row["valor_realizado"])
            percentage = row.get("percentual_atingido")
            if percentage is None:
                percentage = achieved / target * 100 if target else Decimal(0)
            else:
                percentage = _to_decimal(percentage)

            return GoalMetric(
                year=int(row["ano"]),
                month=int(row["mes"]),
                target_value=target,
                achieved_value=achieved,
                percentage_achieved=percentage,
                team=row.get(team_field) if team_field else None,
            )
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            raise StoreError(f"Invalid goal row {row!r}: {e}") from e

    def _parse_cards(self, rows: list[dict]) -> tuple[ProposalCard, ...]:
        return tuple(self._parse_card(row) for row in rows)

    def _parse_card(self, row: dict) -> ProposalCard:
        """Parse a proposal card row, tolerating missing optional fields."""
        days_remaining = row.get("dias_restantes")
        try:
            days_remaining = int(days_remaining) if days_remaining is not None else None
        except (TypeError, ValueError):
            logger.warning(f"Non-numeric dias_restantes: {days_remaining}")
            days_remaining = None

        return ProposalCard(
            name=row.get("name") or "",
            due=_parse_date(row.get("due")),
            days_remaining=days_remaining,
            created_at=_parse_datetime(row.get("card_data_criado")),
            supervisor=row.get("supervisor"),
            broker=row.get("corretor_nome"),
            operator_logo=row.get("logo_operadora"),
            board_name=row.get("board_name"),
        )

    def _parse_page(self, row: dict, index: int) -> FlipChartPage:
        """
        Parse a flip chart page.

        Content is JSON ``{"text": ..., "style": {...}}``; anything else is
        treated as plain text with the default style.
        """
        page_number = row.get("page_number", index)
        content = row.get("content") or ""
        style = dict(DEFAULT_PAGE_STYLE)

        try:
            parsed = json.loads(content)
        except (json.JSONDecodeError, TypeError):
            parsed = None

        if isinstance(parsed, dict):
            text = parsed.get("text") or ""
            for key, value in (parsed.get("style") or {}).items():
                if key in style and value:
                    style[key] = value
        else:
            text = content

        return FlipChartPage(
            page_number=int(page_number),
            text=text,
            style=MappingProxyType(style),
        )


def _to_decimal(value) -> Decimal:
    if value is None:
        raise ValueError("missing numeric value")
    return Decimal(str(value))


def _parse_date(value) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value)).date()
    except ValueError:
        logger.warning(f"Invalid date: {value}")
        return None


def _parse_datetime(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        logger.warning(f"Invalid timestamp: {value}")
        return None
