from __future__ import annotations

import logging
import math
from typing import Any

from app.domain import Alert, Condition, Identity, TriggeredAlert
from app.errors import NotFound, ValidationFailed
from app.logs import log_event
from app.store import AlertStore

logger = logging.getLogger(__name__)


class AlertView(Alert):
    """An alert together with its most recent trigger record, if any."""

    latest_trigger: TriggeredAlert | None = None


def _parse_target_price(value: Any) -> float:
    if isinstance(value, bool):
        raise ValidationFailed("Target price must be a number")
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            raise ValidationFailed("Target price must be a number") from None
    if not isinstance(value, (int, float)):
        raise ValidationFailed("Target price must be a number")
    price = float(value)
    if not math.isfinite(price) or price <= 0:
        raise ValidationFailed("Target price must be a positive number")
    return price


def _parse_condition(value: Any) -> Condition:
    try:
        return Condition(str(value).strip().lower())
    except ValueError:
        raise ValidationFailed('Condition must be either "above" or "below"') from None


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class AlertService:
    """Owner-scoped alert operations behind the HTTP layer."""

    def __init__(self, store: AlertStore) -> None:
        self.store = store

    def register_caller(self, identity: Identity) -> None:
        """Remember the caller's contact address so triggered alerts can be mailed."""
        if identity.email:
            self.store.ensure_user(identity.user_id, identity.email, identity.name)

    def list_alerts(self, owner_id: str, triggered: bool | None = None) -> list[AlertView]:
        alerts = self.store.get_alerts_by_owner(owner_id)
        if triggered is not None:
            alerts = [a for a in alerts if a.is_triggered is triggered]
        latest: dict[str, TriggeredAlert] = {}
        for record in self.store.get_triggered_alerts_by_owner(owner_id):
            current = latest.get(record.alert_id)
            if current is None or record.triggered_at >= current.triggered_at:
                latest[record.alert_id] = record
        views = [
            AlertView(**alert.model_dump(), latest_trigger=latest.get(alert.id))
            for alert in alerts
        ]
        views.sort(key=lambda v: v.created_at, reverse=True)
        return views

    def create_alert(
        self, owner_id: str, asset: Any, target_price: Any, condition: Any
    ) -> Alert:
        if _is_missing(asset) or _is_missing(target_price) or _is_missing(condition):
            raise ValidationFailed("Asset, target price, and condition are required")
        if not isinstance(asset, str):
            raise ValidationFailed("Asset must be a string identifier")
        price = _parse_target_price(target_price)
        cond = _parse_condition(condition)
        alert = self.store.create_alert(owner_id, asset.strip().lower(), price, cond)
        log_event(
            logger,
            "alert_created",
            alert_id=alert.id,
            owner_id=owner_id,
            asset=alert.asset,
            condition=cond.value,
            target_price=price,
        )
        return alert

    def delete_alert(self, owner_id: str, alert_id: str) -> None:
        # Another owner's alert is reported exactly like a missing one.
        alert = self.store.find_alert_by_id(alert_id)
        if alert is None or alert.owner_id != owner_id:
            raise NotFound("Alert not found")
        if not self.store.delete_alert(alert_id):
            raise NotFound("Alert not found")
        log_event(logger, "alert_deleted", alert_id=alert_id, owner_id=owner_id)
