from __future__ import annotations

from abc import abstractmethod
from contextlib import AbstractContextManager
from typing import Any, Iterable

from pydantic import ValidationError

from app.domain import Alert, Condition, TriggeredAlert, User, utcnow
from app.errors import StoreError

from .base import AlertStore, check_update_fields

SCHEMA_VERSION = 1


class Collections:
    """The three record collections plus the secondary indexes over them.

    Serialised form (schema version 1)::

        {"schema_version": 1,
         "users": {id: record}, "alerts": {id: record}, "triggered_alerts": {id: record}}
    """

    def __init__(
        self,
        users: Iterable[User] = (),
        alerts: Iterable[Alert] = (),
        triggered: Iterable[TriggeredAlert] = (),
    ) -> None:
        self.users: dict[str, User] = {}
        self.alerts: dict[str, Alert] = {}
        self.triggered: dict[str, TriggeredAlert] = {}
        self._by_owner: dict[str, list[str]] = {}
        self._history: dict[str, list[str]] = {}
        for user in users:
            self.users[user.id] = user
        for alert in alerts:
            self.put_alert(alert)
        for record in triggered:
            self.put_triggered(record)

    def put_alert(self, alert: Alert) -> None:
        if alert.id not in self.alerts:
            self._by_owner.setdefault(alert.owner_id, []).append(alert.id)
        self.alerts[alert.id] = alert

    def remove_alert(self, alert_id: str) -> bool:
        alert = self.alerts.pop(alert_id, None)
        if alert is None:
            return False
        owned = self._by_owner.get(alert.owner_id, [])
        if alert_id in owned:
            owned.remove(alert_id)
        for record_id in self._history.pop(alert_id, []):
            self.triggered.pop(record_id, None)
        return True

    def put_triggered(self, record: TriggeredAlert) -> None:
        if record.id not in self.triggered:
            self._history.setdefault(record.alert_id, []).append(record.id)
        self.triggered[record.id] = record

    def owned_alerts(self, owner_id: str) -> list[Alert]:
        return [self.alerts[i] for i in self._by_owner.get(owner_id, [])]

    def history(self, alert_id: str) -> list[TriggeredAlert]:
        return [self.triggered[i] for i in self._history.get(alert_id, [])]

    def copy(self) -> "Collections":
        """Independent collections holding copies of every record."""
        return Collections(
            users=[u.model_copy() for u in self.users.values()],
            alerts=[a.model_copy() for a in self.alerts.values()],
            triggered=[t.model_copy() for t in self.triggered.values()],
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "schema_version": SCHEMA_VERSION,
            "users": {k: v.model_dump(mode="json") for k, v in self.users.items()},
            "alerts": {k: v.model_dump(mode="json") for k, v in self.alerts.items()},
            "triggered_alerts": {
                k: v.model_dump(mode="json") for k, v in self.triggered.items()
            },
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any] | None) -> "Collections":
        if not doc:
            return cls()
        if not isinstance(doc, dict):
            raise StoreError("malformed store document: expected an object")
        version = doc.get("schema_version", 0)
        if not isinstance(version, int) or version > SCHEMA_VERSION:
            raise StoreError(f"unsupported schema version: {version!r}")
        try:
            if version == 0:
                return cls._from_legacy(doc)
            return cls(
                users=[User.model_validate(r) for r in doc.get("users", {}).values()],
                alerts=[Alert.model_validate(r) for r in doc.get("alerts", {}).values()],
                triggered=[
                    TriggeredAlert.model_validate(r)
                    for r in doc.get("triggered_alerts", {}).values()
                ],
            )
        except (ValidationError, KeyError, AttributeError, TypeError) as exc:
            raise StoreError(f"malformed store document: {exc}") from exc

    @classmethod
    def _from_legacy(cls, doc: dict[str, Any]) -> "Collections":
        # Unversioned documents keep lists of camelCase records.
        users = [
            User(
                id=r["id"],
                email=r["email"],
                name=r.get("name"),
                created_at=r["createdAt"],
                updated_at=r["updatedAt"],
            )
            for r in doc.get("users") or []
        ]
        alerts = [
            Alert(
                id=r["id"],
                owner_id=r["userId"],
                asset=r["cryptocurrency"],
                target_price=r["targetPrice"],
                condition=r["condition"],
                is_active=r["isActive"],
                is_triggered=r["isTriggered"],
                created_at=r["createdAt"],
                updated_at=r["updatedAt"],
            )
            for r in doc.get("alerts") or []
        ]
        triggered = [
            TriggeredAlert(
                id=r["id"],
                alert_id=r["alertId"],
                triggered_price=r["triggeredPrice"],
                triggered_at=r["triggeredAt"],
            )
            for r in doc.get("triggeredAlerts") or []
        ]
        return cls(users=users, alerts=alerts, triggered=triggered)


class DocumentAlertStore(AlertStore):
    """Alert store over a whole-document backend.

    Subclasses decide where the document lives; ``_read`` yields the current
    collections and ``_write`` yields them for mutation and persists them when
    the block exits cleanly.
    """

    @abstractmethod
    def _read(self) -> AbstractContextManager[Collections]: ...

    @abstractmethod
    def _write(self) -> AbstractContextManager[Collections]: ...

    def create_user(self, email: str, name: str | None = None) -> User:
        user = User(email=email, name=name)
        with self._write() as data:
            data.users[user.id] = user
        return user

    def ensure_user(self, user_id: str, email: str, name: str | None = None) -> User:
        with self._write() as data:
            existing = data.users.get(user_id)
            if existing is None:
                user = User(id=user_id, email=email, name=name)
            elif existing.email == email and existing.name == name:
                return existing
            else:
                user = existing.model_copy(
                    update={"email": email, "name": name, "updated_at": utcnow()}
                )
            data.users[user_id] = user
        return user

    def find_user_by_id(self, user_id: str) -> User | None:
        with self._read() as data:
            return data.users.get(user_id)

    def find_user_by_email(self, email: str) -> User | None:
        with self._read() as data:
            for user in data.users.values():
                if user.email == email:
                    return user
        return None

    def create_alert(
        self, owner_id: str, asset: str, target_price: float, condition: Condition
    ) -> Alert:
        alert = Alert(
            owner_id=owner_id,
            asset=asset,
            target_price=target_price,
            condition=Condition(condition),
        )
        with self._write() as data:
            data.put_alert(alert)
        return alert

    def get_alerts_by_owner(self, owner_id: str) -> list[Alert]:
        with self._read() as data:
            return data.owned_alerts(owner_id)

    def get_active_alerts(self) -> list[Alert]:
        with self._read() as data:
            return [a for a in data.alerts.values() if a.is_active and not a.is_triggered]

    def find_alert_by_id(self, alert_id: str) -> Alert | None:
        with self._read() as data:
            return data.alerts.get(alert_id)

    def update_alert(self, alert_id: str, **fields: Any) -> Alert | None:
        check_update_fields(fields)
        with self._write() as data:
            alert = data.alerts.get(alert_id)
            if alert is None:
                return None
            updated = Alert.model_validate(
                {**alert.model_dump(), **fields, "updated_at": utcnow()}
            )
            data.put_alert(updated)
        return updated

    def delete_alert(self, alert_id: str) -> bool:
        with self._write() as data:
            return data.remove_alert(alert_id)

    def trigger_alert(self, alert_id: str, triggered_price: float) -> TriggeredAlert | None:
        with self._write() as data:
            alert = data.alerts.get(alert_id)
            if alert is None or not alert.is_active or alert.is_triggered:
                return None
            data.put_alert(
                alert.model_copy(
                    update={"is_active": False, "is_triggered": True, "updated_at": utcnow()}
                )
            )
            record = TriggeredAlert(alert_id=alert_id, triggered_price=triggered_price)
            data.put_triggered(record)
        return record

    def create_triggered_alert(self, alert_id: str, triggered_price: float) -> TriggeredAlert:
        record = TriggeredAlert(alert_id=alert_id, triggered_price=triggered_price)
        with self._write() as data:
            data.put_triggered(record)
        return record

    def get_triggered_alerts_by_owner(self, owner_id: str) -> list[TriggeredAlert]:
        with self._read() as data:
            owned = {a.id for a in data.owned_alerts(owner_id)}
            return [t for t in data.triggered.values() if t.alert_id in owned]

    def get_triggered_alerts_for_alert(self, alert_id: str) -> list[TriggeredAlert]:
        with self._read() as data:
            return data.history(alert_id)
