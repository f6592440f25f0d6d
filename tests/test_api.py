"""Tests for the HTTP control surface."""

import pytest
from fastapi.testclient import TestClient

from conftest import FakeFeed, FakeScheduler, FakeTimer, GatedFetcher, make_goal
from lobbydash.dashboard.alerts import AlertEngine
from lobbydash.dashboard.rotation import RotationScheduler
from lobbydash.dashboard.session import DashboardSession
from lobbydash.dashboard.watchdog import ReloadWatchdog
from lobbydash.main import app, get_session
from lobbydash.sync.layer import SynchronizationLayer


@pytest.fixture
def session() -> DashboardSession:
    layer = SynchronizationLayer(FakeFeed())
    layer.register_topic("sales_goal", GatedFetcher(make_goal(50), open_gate=True))
    watchdog = ReloadWatchdog(reload_fn=lambda: None, timer_factory=FakeTimer)
    watchdog.configure(60_000, enabled=True)
    return DashboardSession(
        layer=layer,
        rotation=RotationScheduler(timer_factory=FakeTimer),
        watchdog=watchdog,
        alerts=AlertEngine(schedule=FakeScheduler()),
    )


@pytest.fixture
def client(session: DashboardSession):
    app.dependency_overrides[get_session] = lambda: session
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_root(client: TestClient) -> None:
    response = client.get("/")
    assert response.status_code == 200
    assert "state" in response.json()["endpoints"]


def test_status(client: TestClient) -> None:
    response = client.get("/status")
    body = response.json()

    assert response.status_code == 200
    assert body["status"] == "running"
    assert body["session_started"] is False
    assert "sales_goal" in body["topics"]


def test_editing_pauses_and_resumes(client: TestClient, session: DashboardSession) -> None:
    response = client.post("/api/editing", json={"editing": True})
    assert response.json() == {"active_view": "signature", "paused": True}
    assert session.rotation.paused is True

    response = client.post("/api/editing", json={"editing": False})
    assert response.json()["paused"] is False


def test_viewport_classifies(client: TestClient) -> None:
    tv = client.post("/api/viewport", json={"width": 1920, "height": 1080})
    desktop = client.post("/api/viewport", json={"width": 1366, "height": 768})

    assert tv.json()["mode"] == "tv"
    assert desktop.json()["mode"] == "desktop"


def test_viewport_rejects_negative_size(client: TestClient) -> None:
    response = client.post("/api/viewport", json={"width": -1, "height": 768})
    assert response.status_code == 422


def test_visibility(client: TestClient, session: DashboardSession) -> None:
    response = client.post("/api/visibility", json={"visible": False})

    assert response.status_code == 200
    assert session.watchdog.visible is False


def test_manual_view(client: TestClient) -> None:
    assert client.post("/api/view", json={"view": "sales"}).json()["active_view"] == "sales"
    assert client.post("/api/view", json={"view": "weather"}).status_code == 400


def test_state_is_json(client: TestClient) -> None:
    response = client.get("/api/state")
    body = response.json()

    assert response.status_code == 200
    assert body["active_view"] == "signature"
    assert body["watchdog"]["enabled"] is True
    assert body["sales_goal"] is None


def test_refresh(client: TestClient) -> None:
    response = client.post("/api/refresh")
    assert response.json()["status"] == "success"
