from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from app.domain import Alert, Condition, TriggeredAlert, User

# Fields an update may touch; identity and ownership never change.
UPDATABLE_FIELDS = frozenset(
    {"asset", "target_price", "condition", "is_active", "is_triggered"}
)


def check_update_fields(fields: dict[str, Any]) -> None:
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"cannot update alert fields: {', '.join(sorted(unknown))}")


class AlertStore(ABC):
    """Persistence for users, alerts and triggered-alert history.

    Every backend offers the same operations and ordering: per-owner reads come
    back in creation order, and each mutation is atomic with respect to other
    operations on the same store. Backends raise ``StoreError`` when the
    underlying storage cannot be read or written.
    """

    # users

    @abstractmethod
    def create_user(self, email: str, name: str | None = None) -> User: ...

    @abstractmethod
    def ensure_user(self, user_id: str, email: str, name: str | None = None) -> User:
        """Insert the user or refresh its contact details."""

    @abstractmethod
    def find_user_by_id(self, user_id: str) -> User | None: ...

    @abstractmethod
    def find_user_by_email(self, email: str) -> User | None: ...

    # alerts

    @abstractmethod
    def create_alert(
        self, owner_id: str, asset: str, target_price: float, condition: Condition
    ) -> Alert: ...

    @abstractmethod
    def get_alerts_by_owner(self, owner_id: str) -> list[Alert]: ...

    @abstractmethod
    def get_active_alerts(self) -> list[Alert]: ...

    @abstractmethod
    def find_alert_by_id(self, alert_id: str) -> Alert | None: ...

    @abstractmethod
    def update_alert(self, alert_id: str, **fields: Any) -> Alert | None: ...

    @abstractmethod
    def delete_alert(self, alert_id: str) -> bool:
        """Remove the alert and its triggered history; False when absent."""

    @abstractmethod
    def trigger_alert(self, alert_id: str, triggered_price: float) -> TriggeredAlert | None:
        """Flip an active alert to triggered and append its history record.

        Both changes are stored together or not at all. Returns None when the
        alert is gone or was already triggered, so at most one caller wins the
        transition.
        """

    # history

    @abstractmethod
    def create_triggered_alert(self, alert_id: str, triggered_price: float) -> TriggeredAlert: ...

    @abstractmethod
    def get_triggered_alerts_by_owner(self, owner_id: str) -> list[TriggeredAlert]: ...

    @abstractmethod
    def get_triggered_alerts_for_alert(self, alert_id: str) -> list[TriggeredAlert]: ...

    def reload(self) -> None:
        """Re-read backing state. Stores that always read fresh do nothing."""
        return None

    def close(self) -> None:
        """Release connections held by the store."""
        return None
