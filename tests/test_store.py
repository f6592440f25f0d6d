"""Tests for the REST store client and topic fetchers."""

import json
from datetime import date, datetime
from decimal import Decimal

import httpx
import pytest

from lobbydash.errors import StoreError
from lobbydash.store.client import StoreClient
from lobbydash.store.feeds import DEFAULT_PAGE_STYLE, DashboardFeeds


def make_client(routes: dict, requests: list = None) -> StoreClient:
    """StoreClient answering from ``routes``: table -> rows (or a Response)."""

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        table = request.url.path.rsplit("/", 1)[-1]
        answer = routes.get(table, [])
        if isinstance(answer, httpx.Response):
            return answer
        return httpx.Response(200, json=answer)

    return StoreClient(
        "https://store.example.co", "anon-key", transport=httpx.MockTransport(handler)
    )


GOAL_ROW = {
    "ano": 2026,
    "mes": 10,
    "valor_meta": 500000,
    "valor_realizado": 412500.5,
    "percentual_atingido": 82.5,
}


class TestStoreClient:
    @pytest.mark.asyncio
    async def test_select_builds_query(self) -> None:
        requests = []
        client = make_client({"vw_metas_venda_geral": [GOAL_ROW]}, requests)
        await client.connect()
        try:
            rows = await client.select(
                "vw_metas_venda_geral",
                filters={"ano": 2026, "mes": 10},
                order="percentual_atingido",
                ascending=False,
                limit=1,
            )
        finally:
            await client.disconnect()

        assert rows == [GOAL_ROW]
        request = requests[0]
        assert request.url.path == "/rest/v1/vw_metas_venda_geral"
        assert request.url.params["ano"] == "eq.2026"
        assert request.url.params["mes"] == "eq.10"
        assert request.url.params["order"] == "percentual_atingido.desc"
        assert request.url.params["limit"] == "1"
        assert request.headers["apikey"] == "anon-key"
        assert request.headers["authorization"] == "Bearer anon-key"

    @pytest.mark.asyncio
    async def test_http_error_raises_store_error(self) -> None:
        client = make_client({"broken": httpx.Response(500, json={"message": "oops"})})
        await client.connect()
        try:
            with pytest.raises(StoreError, match="HTTP 500"):
                await client.select("broken")
        finally:
            await client.disconnect()

    @pytest.mark.asyncio
    async def test_non_list_payload_raises(self) -> None:
        client = make_client({"odd": httpx.Response(200, json={"rows": []})})
        await client.connect()
        try:
            with pytest.raises(StoreError, match="Unexpected payload"):
                await client.select("odd")
        finally:
            await client.disconnect()

    @pytest.mark.asyncio
    async def test_select_requires_connection(self) -> None:
        client = StoreClient("https://store.example.co", "key")
        with pytest.raises(StoreError, match="Not connected"):
            await client.select("anything")

    @pytest.mark.asyncio
    async def test_select_one_returns_none_when_empty(self) -> None:
        client = make_client({"empty": []})
        await client.connect()
        try:
            assert await client.select_one("empty") is None
        finally:
            await client.disconnect()


class TestFeeds:
    @pytest.mark.asyncio
    async def test_sales_goal(self) -> None:
        requests = []
        client = make_client({"vw_metas_venda_geral": [GOAL_ROW]}, requests)
        feeds = DashboardFeeds(client, today_fn=lambda: date(2026, 10, 19))
        await client.connect()
        try:
            goal = await feeds.fetch_sales_goal()
        finally:
            await client.disconnect()

        assert goal.period == (2026, 10)
        assert goal.target_value == Decimal("500000")
        assert goal.achieved_value == Decimal("412500.5")
        assert goal.percentage_achieved == Decimal("82.5")
        assert goal.team is None
        assert requests[0].url.params["mes"] == "eq.10"

    @pytest.mark.asyncio
    async def test_previous_goal_wraps_year(self) -> None:
        requests = []
        client = make_client({"vw_metas_venda_geral": []}, requests)
        feeds = DashboardFeeds(client, today_fn=lambda: date(2027, 1, 5))
        await client.connect()
        try:
            assert await feeds.fetch_previous_goal() is None
        finally:
            await client.disconnect()

        assert requests[0].url.params["ano"] == "eq.2026"
        assert requests[0].url.params["mes"] == "eq.12"

    @pytest.mark.asyncio
    async def test_percentage_computed_when_missing(self) -> None:
        row = {"ano": 2026, "mes": 10, "valor_meta": 200, "valor_realizado": 50}
        client = make_client({"vw_metas_venda_geral": [row]})
        feeds = DashboardFeeds(client, today_fn=lambda: date(2026, 10, 1))
        await client.connect()
        try:
            goal = await feeds.fetch_sales_goal()
        finally:
            await client.disconnect()

        assert goal.percentage_achieved == Decimal("25")

    @pytest.mark.asyncio
    async def test_invalid_sales_goal_raises(self) -> None:
        row = {"ano": 2026, "mes": 10, "valor_meta": "n/a", "valor_realizado": 1}
        client = make_client({"vw_metas_venda_geral": [row]})
        feeds = DashboardFeeds(client, today_fn=lambda: date(2026, 10, 1))
        await client.connect()
        try:
            with pytest.raises(StoreError):
                await feeds.fetch_sales_goal()
        finally:
            await client.disconnect()

    @pytest.mark.asyncio
    async def test_team_goals_skip_bad_rows(self) -> None:
        rows = [
            {**GOAL_ROW, "supervisor": "Ana", "percentual_atingido": 120},
            {"ano": 2026, "mes": 10, "supervisor": "Broken"},
            {**GOAL_ROW, "supervisor": "Bruno"},
        ]
        client = make_client({"vw_metas_vendas_supervisor": rows})
        feeds = DashboardFeeds(client, today_fn=lambda: date(2026, 10, 1))
        await client.connect()
        try:
            goals = await feeds.fetch_team_goals()
        finally:
            await client.disconnect()

        assert isinstance(goals, tuple)
        assert [goal.team for goal in goals] == ["Ana", "Bruno"]

    @pytest.mark.asyncio
    async def test_cards_are_parsed(self) -> None:
        rows = [
            {
                "name": "Proposal 1",
                "due": "2026-10-21T00:00:00",
                "dias_restantes": "2",
                "card_data_criado": "2026-10-01T09:30:00",
                "supervisor": "Ana",
                "corretor_nome": "Carlos",
                "logo_operadora": "acme.png",
                "board_name": "Health",
            },
            {"name": "Proposal 2", "dias_restantes": "soon"},
        ]
        client = make_client({"view_trello_cards_aguarde_assinatura_2": rows})
        feeds = DashboardFeeds(client)
        await client.connect()
        try:
            cards = await feeds.fetch_signature()
        finally:
            await client.disconnect()

        first, second = cards
        assert first.due == date(2026, 10, 21)
        assert first.days_remaining == 2
        assert first.created_at == datetime(2026, 10, 1, 9, 30)
        assert first.broker == "Carlos"
        assert first.operator_logo == "acme.png"
        assert second.days_remaining is None
        assert second.due is None

    @pytest.mark.asyncio
    async def test_flip_chart_pages(self) -> None:
        rows = [
            {"page_number": 0, "content": json.dumps({"text": "Hello", "style": {"color": "#ff0000"}})},
            {"page_number": 1, "content": "plain text"},
        ]
        client = make_client({"flip_chart_pages": rows})
        feeds = DashboardFeeds(client)
        await client.connect()
        try:
            pages = await feeds.fetch_flip_chart()
        finally:
            await client.disconnect()

        assert pages[0].text == "Hello"
        assert pages[0].style["color"] == "#ff0000"
        assert pages[0].style["fontSize"] == DEFAULT_PAGE_STYLE["fontSize"]
        assert pages[1].text == "plain text"
        assert dict(pages[1].style) == DEFAULT_PAGE_STYLE

    def test_topics_cover_every_feed(self) -> None:
        feeds = DashboardFeeds(StoreClient("https://store.example.co", "key"))
        names = [topic.name for topic in feeds.topics()]

        assert names == [
            "signature",
            "new_proposals",
            "pending",
            "monthly_proposals",
            "sales_goal",
            "previous_goal",
            "team_goals",
            "flip_chart",
        ]
        assert len(set(names)) == len(names)
