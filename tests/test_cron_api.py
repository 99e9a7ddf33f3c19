from __future__ import annotations

from fastapi.testclient import TestClient

from app.config import Settings
from app.domain import Condition
from app.main import create_app
from app.store import MemoryAlertStore
from tests.fakes import RecordingNotifier, StaticPrices


def _client(cron_secret: str | None = None, prices: dict[str, float] | None = None) -> tuple[TestClient, MemoryAlertStore, RecordingNotifier]:
    store = MemoryAlertStore()
    notifier = RecordingNotifier()
    app = create_app(
        settings=Settings(cron_secret=cron_secret),
        store=store,
        prices=StaticPrices(prices or {}),  # type: ignore[arg-type]
        notifier=notifier,
    )
    return TestClient(app), store, notifier


def test_check_alerts_runs_a_pass() -> None:
    client, store, notifier = _client(prices={"bitcoin": 50000.0})
    store.ensure_user("u1", "owner@example.com")
    alert = store.create_alert("u1", "bitcoin", 50000.0, Condition.ABOVE)

    resp = client.get("/cron/check-alerts")

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["triggered"] == 1
    assert store.find_alert_by_id(alert.id).is_triggered  # type: ignore[union-attr]
    assert len(notifier.sent) == 1


def test_check_alerts_with_nothing_to_do() -> None:
    client, _, _ = _client()
    resp = client.post("/cron/check-alerts")
    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert resp.json()["checked"] == 0


def test_check_alerts_requires_secret_when_configured() -> None:
    client, _, _ = _client(cron_secret="s3cret")
    assert client.get("/cron/check-alerts").status_code == 401
    assert client.get("/cron/check-alerts", headers={"Authorization": "Bearer nope"}).status_code == 401
    ok = client.get("/cron/check-alerts", headers={"Authorization": "Bearer s3cret"})
    assert ok.status_code == 200


def test_check_alerts_reports_failure() -> None:
    class _BrokenStore(MemoryAlertStore):
        def get_active_alerts(self):  # type: ignore[no-untyped-def]
            raise RuntimeError("store offline")

    app = create_app(
        settings=Settings(),
        store=_BrokenStore(),
        prices=StaticPrices({}),  # type: ignore[arg-type]
        notifier=RecordingNotifier(),
    )
    resp = TestClient(app).get("/cron/check-alerts")
    assert resp.status_code == 500
    assert resp.json()["success"] is False
