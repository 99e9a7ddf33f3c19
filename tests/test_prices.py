from __future__ import annotations

from typing import Any

import requests
from prometheus_client import generate_latest
from pytest import MonkeyPatch

from app.prices import FALLBACK_CATALOG, PriceSource
from tests.fakes import Resp


def _patch_get(monkeypatch: MonkeyPatch, responses: list[Any]) -> list[dict[str, Any]]:
    """Serve `responses` in order from requests.get and record each call."""
    calls: list[dict[str, Any]] = []

    def _fake_get(url: str, params: dict[str, str] | None = None, timeout: float = 10) -> Resp:
        calls.append({"url": url, "params": params or {}})
        item = responses[min(len(calls), len(responses)) - 1]
        if isinstance(item, Exception):
            raise item
        return item

    monkeypatch.setattr(requests, "get", _fake_get)
    return calls


def _no_sleep(monkeypatch: MonkeyPatch) -> list[float]:
    import time

    sleeps: list[float] = []
    monkeypatch.setattr(time, "sleep", lambda s: sleeps.append(s))
    return sleeps


def test_fetch_prices_batches_ids_into_one_request(monkeypatch: MonkeyPatch) -> None:
    calls = _patch_get(
        monkeypatch,
        [
            Resp(
                {
                    "bitcoin": {"usd": 50000, "usd_24h_change": 1.5},
                    "ethereum": {"usd": 2500.5, "usd_24h_change": -2.25},
                }
            )
        ],
    )

    quotes = PriceSource().fetch_prices({"ethereum", "bitcoin", "nope-coin"})

    assert len(calls) == 1
    assert calls[0]["url"].endswith("/simple/price")
    assert calls[0]["params"]["ids"] == "bitcoin,ethereum,nope-coin"
    assert calls[0]["params"]["include_24hr_change"] == "true"
    assert quotes["bitcoin"].price == 50000.0
    assert quotes["bitcoin"].change_24h == 1.5
    assert quotes["ethereum"].change_24h == -2.25
    # Unknown assets are simply absent.
    assert "nope-coin" not in quotes


def test_fetch_prices_empty_input_skips_upstream(monkeypatch: MonkeyPatch) -> None:
    calls = _patch_get(monkeypatch, [Resp({})])
    assert PriceSource().fetch_prices([]) == {}
    assert calls == []


def test_fetch_prices_skips_entries_without_usd(monkeypatch: MonkeyPatch) -> None:
    _patch_get(monkeypatch, [Resp({"bitcoin": {"eur": 1.0}, "solana": {"usd": "n/a"}, "xrp": {"usd": 0.5}})])
    quotes = PriceSource().fetch_prices(["bitcoin", "solana", "xrp"])
    assert list(quotes) == ["xrp"]
    assert quotes["xrp"].change_24h == 0.0


def test_rate_limit_retries_with_backoff_then_succeeds(monkeypatch: MonkeyPatch) -> None:
    calls = _patch_get(
        monkeypatch,
        [Resp({}, status_code=429), Resp({}, status_code=429), Resp({"bitcoin": {"usd": 1.0}})],
    )
    sleeps = _no_sleep(monkeypatch)

    quotes = PriceSource().fetch_prices(["bitcoin"])

    assert quotes["bitcoin"].price == 1.0
    assert len(calls) == 3
    assert sleeps == [1.0, 2.0]


def test_rate_limit_exhausted_returns_empty_mapping(monkeypatch: MonkeyPatch) -> None:
    calls = _patch_get(monkeypatch, [Resp({}, status_code=429)])
    sleeps = _no_sleep(monkeypatch)

    quotes = PriceSource().fetch_prices(["bitcoin"])

    assert quotes == {}
    assert len(calls) == 3
    assert sleeps == [1.0, 2.0]
    metrics_text = generate_latest().decode()
    assert 'price_fetch_failure_total{reason="rate_limited"}' in metrics_text


def test_server_error_is_not_retried(monkeypatch: MonkeyPatch) -> None:
    calls = _patch_get(monkeypatch, [Resp({}, status_code=500)])
    sleeps = _no_sleep(monkeypatch)

    assert PriceSource().fetch_prices(["bitcoin"]) == {}
    assert len(calls) == 1
    assert sleeps == []


def test_network_error_is_not_retried(monkeypatch: MonkeyPatch) -> None:
    calls = _patch_get(monkeypatch, [requests.ConnectionError("network down")])
    sleeps = _no_sleep(monkeypatch)

    assert PriceSource().fetch_prices(["bitcoin"]) == {}
    assert len(calls) == 1
    assert sleeps == []


def test_malformed_body_degrades_to_empty(monkeypatch: MonkeyPatch) -> None:
    _patch_get(monkeypatch, [Resp(ValueError("not json"))])
    assert PriceSource().fetch_prices(["bitcoin"]) == {}

    _patch_get(monkeypatch, [Resp(["not", "a", "mapping"])])
    assert PriceSource().fetch_prices(["bitcoin"]) == {}


def test_fetch_price_single_asset(monkeypatch: MonkeyPatch) -> None:
    _patch_get(monkeypatch, [Resp({"solana": {"usd": 150.0, "usd_24h_change": 3.0}})])
    source = PriceSource()
    quote = source.fetch_price("solana")
    assert quote is not None and quote.price == 150.0
    assert source.fetch_price("cardano") is None


def test_catalog_maps_markets_and_caches(monkeypatch: MonkeyPatch) -> None:
    calls = _patch_get(
        monkeypatch,
        [
            Resp(
                [
                    {"id": "bitcoin", "name": "Bitcoin", "symbol": "btc", "current_price": 1},
                    {"id": "ethereum", "name": "Ethereum", "symbol": "eth"},
                ]
            )
        ],
    )
    source = PriceSource()

    catalog = source.list_supported_assets()
    again = source.list_supported_assets()

    assert [(a.id, a.symbol) for a in catalog] == [("bitcoin", "BTC"), ("ethereum", "ETH")]
    assert again == catalog
    assert len(calls) == 1
    assert calls[0]["params"]["order"] == "market_cap_desc"
    assert calls[0]["params"]["per_page"] == "50"


def test_catalog_falls_back_on_failure(monkeypatch: MonkeyPatch) -> None:
    _patch_get(monkeypatch, [requests.Timeout("slow")])
    catalog = PriceSource().list_supported_assets()
    assert len(catalog) == 8
    assert catalog == list(FALLBACK_CATALOG)
    assert [a.symbol for a in catalog][:2] == ["BTC", "ETH"]


def test_catalog_falls_back_on_malformed_entries(monkeypatch: MonkeyPatch) -> None:
    _patch_get(monkeypatch, [Resp([{"id": "bitcoin"}])])
    assert PriceSource().list_supported_assets() == list(FALLBACK_CATALOG)
