from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Condition(str, Enum):
    ABOVE = "above"
    BELOW = "below"

    def matches(self, price: float, target: float) -> bool:
        """Both directions are inclusive: a price equal to the target fires."""
        if self is Condition.ABOVE:
            return price >= target
        return price <= target


class User(BaseModel):
    id: str = Field(default_factory=new_id)
    email: str
    name: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(from_attributes=True)


class Alert(BaseModel):
    id: str = Field(default_factory=new_id)
    owner_id: str
    asset: str
    target_price: float = Field(gt=0)
    condition: Condition
    is_active: bool = True
    is_triggered: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(from_attributes=True)


class TriggeredAlert(BaseModel):
    id: str = Field(default_factory=new_id)
    alert_id: str
    triggered_price: float
    triggered_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(from_attributes=True)


class Quote(BaseModel):
    price: float
    change_24h: float = 0.0


class AssetInfo(BaseModel):
    id: str
    name: str
    symbol: str


class Notification(BaseModel):
    to_address: str
    asset: str
    target_price: float
    current_price: float
    condition: Condition


class Identity(BaseModel):
    user_id: str
    email: str | None = None
    name: str | None = None
