from __future__ import annotations

import logging
import threading
import time
from typing import Any, Iterable, Mapping

import requests
from prometheus_client import Counter, Histogram

from app.config import Settings
from app.domain import AssetInfo, Quote

logger = logging.getLogger(__name__)

PRICE_FETCH_SUCCESS = Counter("price_fetch_success_total", "Successful upstream price fetches")
PRICE_FETCH_FAILURE = Counter(
    "price_fetch_failure_total", "Upstream price fetches that degraded", ["reason"]
)
PRICE_FETCH_DURATION = Histogram(
    "price_fetch_duration_seconds", "Duration of upstream price fetches"
)

# Popular assets shown when a caller asks for prices without naming any.
DEFAULT_ASSETS: tuple[str, ...] = ("bitcoin", "ethereum", "binancecoin", "solana", "ripple")

FALLBACK_CATALOG: tuple[AssetInfo, ...] = (
    AssetInfo(id="bitcoin", name="Bitcoin", symbol="BTC"),
    AssetInfo(id="ethereum", name="Ethereum", symbol="ETH"),
    AssetInfo(id="binancecoin", name="BNB", symbol="BNB"),
    AssetInfo(id="solana", name="Solana", symbol="SOL"),
    AssetInfo(id="ripple", name="XRP", symbol="XRP"),
    AssetInfo(id="cardano", name="Cardano", symbol="ADA"),
    AssetInfo(id="dogecoin", name="Dogecoin", symbol="DOGE"),
    AssetInfo(id="polkadot", name="Polkadot", symbol="DOT"),
)


class UpstreamError(Exception):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class PriceSource:
    """CoinGecko-backed quotes and asset catalog.

    Never raises to callers: quote lookups degrade to an empty mapping and the
    catalog degrades to ``FALLBACK_CATALOG``. Only rate-limit responses (HTTP
    429) are retried, with exponential backoff between attempts.
    """

    def __init__(
        self,
        base_url: str = "https://api.coingecko.com/api/v3",
        timeout: float = 10.0,
        max_attempts: int = 3,
        backoff_base: float = 1.0,
        catalog_ttl: float = 3600.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.backoff_base = backoff_base
        self.catalog_ttl = catalog_ttl
        self._catalog: list[AssetInfo] | None = None
        self._catalog_at = 0.0
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "PriceSource":
        return cls(base_url=settings.coingecko_url, timeout=settings.price_timeout)

    def _get_json(self, path: str, params: Mapping[str, str]) -> Any:
        url = f"{self.base_url}{path}"
        for attempt in range(self.max_attempts):
            try:
                resp = requests.get(url, params=params, timeout=self.timeout)
            except requests.RequestException as exc:
                logger.warning("price upstream unreachable: %s", exc)
                raise UpstreamError("network") from exc
            if resp.status_code == 429:
                if attempt + 1 >= self.max_attempts:
                    break
                delay = self.backoff_base * (2**attempt)
                logger.warning(
                    "price upstream rate limited (attempt %d/%d), retrying in %.1fs",
                    attempt + 1,
                    self.max_attempts,
                    delay,
                )
                time.sleep(delay)
                continue
            if resp.status_code >= 400:
                logger.warning("price upstream returned HTTP %s", resp.status_code)
                raise UpstreamError("http_error")
            try:
                return resp.json()
            except ValueError as exc:
                raise UpstreamError("malformed") from exc
        logger.warning("price upstream still rate limited after %d attempts", self.max_attempts)
        raise UpstreamError("rate_limited")

    def fetch_prices(self, asset_ids: Iterable[str]) -> dict[str, Quote]:
        ids = sorted({a.strip() for a in asset_ids if a and a.strip()})
        if not ids:
            return {}
        params = {
            "ids": ",".join(ids),
            "vs_currencies": "usd",
            "include_24hr_change": "true",
        }
        with PRICE_FETCH_DURATION.time():
            try:
                data = self._get_json("/simple/price", params)
            except UpstreamError as exc:
                PRICE_FETCH_FAILURE.labels(reason=exc.reason).inc()
                return {}
        if not isinstance(data, dict):
            PRICE_FETCH_FAILURE.labels(reason="malformed").inc()
            return {}
        quotes: dict[str, Quote] = {}
        for asset_id, entry in data.items():
            if not isinstance(entry, dict):
                continue
            price = entry.get("usd")
            if isinstance(price, bool) or not isinstance(price, (int, float)):
                continue
            change = entry.get("usd_24h_change")
            quotes[asset_id] = Quote(
                price=float(price),
                change_24h=float(change) if isinstance(change, (int, float)) else 0.0,
            )
        PRICE_FETCH_SUCCESS.inc()
        return quotes

    def fetch_price(self, asset_id: str) -> Quote | None:
        return self.fetch_prices([asset_id]).get(asset_id)

    def list_supported_assets(self) -> list[AssetInfo]:
        with self._lock:
            if self._catalog is not None and time.monotonic() - self._catalog_at < self.catalog_ttl:
                return list(self._catalog)
        params = {
            "vs_currency": "usd",
            "order": "market_cap_desc",
            "per_page": "50",
            "page": "1",
        }
        try:
            data = self._get_json("/coins/markets", params)
            catalog = [
                AssetInfo(id=c["id"], name=c["name"], symbol=str(c["symbol"]).upper())
                for c in data
            ]
        except UpstreamError as exc:
            PRICE_FETCH_FAILURE.labels(reason=exc.reason).inc()
            return list(FALLBACK_CATALOG)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("asset catalog response malformed: %s", exc)
            PRICE_FETCH_FAILURE.labels(reason="malformed").inc()
            return list(FALLBACK_CATALOG)
        if not catalog:
            return list(FALLBACK_CATALOG)
        with self._lock:
            self._catalog = catalog
            self._catalog_at = time.monotonic()
        return list(catalog)
