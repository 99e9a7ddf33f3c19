from __future__ import annotations

from typing import Any

import requests
from fastapi.testclient import TestClient
from pytest import MonkeyPatch

from app.config import Settings
from app.main import create_app
from app.prices import DEFAULT_ASSETS, PriceSource
from app.store import MemoryAlertStore
from tests.fakes import RecordingNotifier, Resp


def _client(monkeypatch: MonkeyPatch, payload: Any, status_code: int = 200) -> tuple[TestClient, list[dict[str, Any]]]:
    calls: list[dict[str, Any]] = []

    def _fake_get(url: str, params: dict[str, str] | None = None, timeout: float = 10) -> Resp:
        calls.append({"url": url, "params": params or {}})
        return Resp(payload, status_code=status_code)

    monkeypatch.setattr(requests, "get", _fake_get)
    app = create_app(
        settings=Settings(),
        store=MemoryAlertStore(),
        prices=PriceSource(),
        notifier=RecordingNotifier(),
    )
    return TestClient(app), calls


def test_price_map_for_requested_assets(monkeypatch: MonkeyPatch) -> None:
    client, calls = _client(
        monkeypatch, {"bitcoin": {"usd": 50000.0, "usd_24h_change": 2.0}, "ethereum": {"usd": 3000.0}}
    )

    resp = client.get("/prices/", params={"assets": "Bitcoin, ethereum"})

    assert resp.status_code == 200
    prices = resp.json()["prices"]
    assert prices["bitcoin"] == {"price": 50000.0, "change_24h": 2.0}
    assert prices["ethereum"]["price"] == 3000.0
    assert calls[0]["params"]["ids"] == "bitcoin,ethereum"


def test_price_map_defaults_to_popular_assets(monkeypatch: MonkeyPatch) -> None:
    client, calls = _client(monkeypatch, {})
    resp = client.get("/prices/")
    assert resp.status_code == 200
    assert resp.json() == {"prices": {}}
    assert calls[0]["params"]["ids"] == ",".join(sorted(DEFAULT_ASSETS))


def test_single_asset_price(monkeypatch: MonkeyPatch) -> None:
    client, _ = _client(monkeypatch, {"solana": {"usd": 150.0, "usd_24h_change": -1.0}})
    resp = client.get("/prices/solana")
    assert resp.status_code == 200
    assert resp.json() == {"asset": "solana", "price": 150.0, "change_24h": -1.0}


def test_single_asset_without_data_reads_zero(monkeypatch: MonkeyPatch) -> None:
    client, _ = _client(monkeypatch, {}, status_code=503)
    resp = client.get("/prices/bitcoin")
    assert resp.status_code == 200
    assert resp.json() == {"asset": "bitcoin", "price": 0.0, "change_24h": 0.0}


def test_catalog_falls_back_when_upstream_fails(monkeypatch: MonkeyPatch) -> None:
    client, calls = _client(monkeypatch, {}, status_code=500)
    resp = client.get("/prices/catalog")
    assert resp.status_code == 200
    assets = resp.json()["assets"]
    assert len(assets) == 8
    assert assets[0] == {"id": "bitcoin", "name": "Bitcoin", "symbol": "BTC"}
    assert calls[0]["url"].endswith("/coins/markets")
