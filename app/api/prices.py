from __future__ import annotations

from typing import Dict, List

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel

from app.domain import AssetInfo, Quote
from app.prices import DEFAULT_ASSETS, PriceSource


class PriceMap(BaseModel):
    prices: Dict[str, Quote]


class AssetPrice(BaseModel):
    asset: str
    price: float
    change_24h: float


class Catalog(BaseModel):
    assets: List[AssetInfo]


router = APIRouter(prefix="/prices", tags=["prices"])


def get_prices(request: Request) -> PriceSource:
    return request.app.state.prices


def _parse_assets(raw: str | None) -> list[str]:
    if not raw:
        return list(DEFAULT_ASSETS)
    return [a.strip().lower() for a in raw.split(",") if a.strip()] or list(DEFAULT_ASSETS)


@router.get("/", response_model=PriceMap)
def get_price_map(
    assets: str | None = Query(None, description="Comma separated asset ids, e.g. bitcoin,ethereum"),
    prices: PriceSource = Depends(get_prices),
) -> PriceMap:
    return PriceMap(prices=prices.fetch_prices(_parse_assets(assets)))


@router.get("/catalog", response_model=Catalog)
def get_catalog(prices: PriceSource = Depends(get_prices)) -> Catalog:
    return Catalog(assets=prices.list_supported_assets())


@router.get("/{asset}", response_model=AssetPrice)
def get_asset_price(asset: str, prices: PriceSource = Depends(get_prices)) -> AssetPrice:
    asset_id = asset.strip().lower()
    quote = prices.fetch_price(asset_id)
    # No data reads as zero so price widgets keep rendering.
    if quote is None:
        return AssetPrice(asset=asset_id, price=0.0, change_24h=0.0)
    return AssetPrice(asset=asset_id, price=quote.price, change_24h=quote.change_24h)
