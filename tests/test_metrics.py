from fastapi.testclient import TestClient

from app.config import Settings
from app.main import create_app
from app.store import MemoryAlertStore


def _client(enabled: bool) -> TestClient:
    return TestClient(create_app(settings=Settings(metrics_endpoint=enabled), store=MemoryAlertStore()))


def test_metrics_endpoint_available_when_enabled() -> None:
    """The `/metrics` endpoint should be opt-in and emit Prometheus text."""
    with _client(True) as client:
        client.get("/health")
        response = client.get("/metrics")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "api_requests_total" in response.text
    assert 'path="/health"' in response.text


def test_metrics_endpoint_unavailable_when_disabled() -> None:
    """Without the flag `/metrics` is not routed at all."""
    with _client(False) as client:
        response = client.get("/metrics")
    assert response.status_code == 404


def test_alert_ids_do_not_become_metric_labels() -> None:
    with _client(True) as client:
        client.delete("/alerts/some-alert-id")
        text = client.get("/metrics").text
    assert 'path="/alerts/{alert_id}"' in text
    assert "some-alert-id" not in text
