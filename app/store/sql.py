from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import delete, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db import session_factory
from app.domain import Alert, Condition, TriggeredAlert, User, utcnow
from app.errors import StoreError
from app.models import AlertRow, TriggeredAlertRow, UserRow

from .base import AlertStore, check_update_fields

logger = logging.getLogger(__name__)


class SqlAlertStore(AlertStore):
    """Relational backend: one table per collection, indexed by owner and state."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._sessions = session_factory(engine)

    def close(self) -> None:
        self.engine.dispose()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._sessions()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("sql store operation failed: %s", exc)
            raise StoreError("database unavailable") from exc
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # users

    def create_user(self, email: str, name: str | None = None) -> User:
        user = User(email=email, name=name)
        with self._session() as db:
            db.add(UserRow(**user.model_dump()))
        return user

    def ensure_user(self, user_id: str, email: str, name: str | None = None) -> User:
        with self._session() as db:
            row = db.get(UserRow, user_id)
            if row is None:
                row = UserRow(**User(id=user_id, email=email, name=name).model_dump())
                db.add(row)
            elif row.email != email or row.name != name:
                row.email = email
                row.name = name
                row.updated_at = utcnow()
            db.flush()
            return User.model_validate(row)

    def find_user_by_id(self, user_id: str) -> User | None:
        with self._session() as db:
            row = db.get(UserRow, user_id)
            return User.model_validate(row) if row is not None else None

    def find_user_by_email(self, email: str) -> User | None:
        with self._session() as db:
            row = db.execute(
                select(UserRow).where(UserRow.email == email).limit(1)
            ).scalar_one_or_none()
            return User.model_validate(row) if row is not None else None

    # alerts

    def create_alert(
        self, owner_id: str, asset: str, target_price: float, condition: Condition
    ) -> Alert:
        alert = Alert(
            owner_id=owner_id,
            asset=asset,
            target_price=target_price,
            condition=Condition(condition),
        )
        with self._session() as db:
            db.add(AlertRow(**{**alert.model_dump(), "condition": alert.condition.value}))
        return alert

    def get_alerts_by_owner(self, owner_id: str) -> list[Alert]:
        with self._session() as db:
            rows = (
                db.execute(
                    select(AlertRow)
                    .where(AlertRow.owner_id == owner_id)
                    .order_by(AlertRow.created_at.asc())
                )
                .scalars()
                .all()
            )
            return [Alert.model_validate(r) for r in rows]

    def get_active_alerts(self) -> list[Alert]:
        with self._session() as db:
            rows = (
                db.execute(
                    select(AlertRow)
                    .where(AlertRow.is_active.is_(True), AlertRow.is_triggered.is_(False))
                    .order_by(AlertRow.created_at.asc())
                )
                .scalars()
                .all()
            )
            return [Alert.model_validate(r) for r in rows]

    def find_alert_by_id(self, alert_id: str) -> Alert | None:
        with self._session() as db:
            row = db.get(AlertRow, alert_id)
            return Alert.model_validate(row) if row is not None else None

    def update_alert(self, alert_id: str, **fields: Any) -> Alert | None:
        check_update_fields(fields)
        with self._session() as db:
            row = db.get(AlertRow, alert_id)
            if row is None:
                return None
            merged = Alert.model_validate(
                {**Alert.model_validate(row).model_dump(), **fields, "updated_at": utcnow()}
            )
            for name in (*fields, "updated_at"):
                value = getattr(merged, name)
                setattr(row, name, value.value if isinstance(value, Condition) else value)
            return merged

    def delete_alert(self, alert_id: str) -> bool:
        with self._session() as db:
            db.execute(delete(TriggeredAlertRow).where(TriggeredAlertRow.alert_id == alert_id))
            result = db.execute(delete(AlertRow).where(AlertRow.id == alert_id))
            return bool(result.rowcount)

    def trigger_alert(self, alert_id: str, triggered_price: float) -> TriggeredAlert | None:
        with self._session() as db:
            result = db.execute(
                update(AlertRow)
                .where(
                    AlertRow.id == alert_id,
                    AlertRow.is_active.is_(True),
                    AlertRow.is_triggered.is_(False),
                )
                .values(is_active=False, is_triggered=True, updated_at=utcnow())
            )
            if result.rowcount != 1:
                return None
            # Same transaction as the flag flip: both commit or neither does.
            record = TriggeredAlert(alert_id=alert_id, triggered_price=triggered_price)
            db.add(TriggeredAlertRow(**record.model_dump()))
            return record

    # history

    def create_triggered_alert(self, alert_id: str, triggered_price: float) -> TriggeredAlert:
        record = TriggeredAlert(alert_id=alert_id, triggered_price=triggered_price)
        with self._session() as db:
            db.add(TriggeredAlertRow(**record.model_dump()))
        return record

    def get_triggered_alerts_by_owner(self, owner_id: str) -> list[TriggeredAlert]:
        with self._session() as db:
            rows = (
                db.execute(
                    select(TriggeredAlertRow)
                    .join(AlertRow, TriggeredAlertRow.alert_id == AlertRow.id)
                    .where(AlertRow.owner_id == owner_id)
                    .order_by(TriggeredAlertRow.triggered_at.asc())
                )
                .scalars()
                .all()
            )
            return [TriggeredAlert.model_validate(r) for r in rows]

    def get_triggered_alerts_for_alert(self, alert_id: str) -> list[TriggeredAlert]:
        with self._session() as db:
            rows = (
                db.execute(
                    select(TriggeredAlertRow)
                    .where(TriggeredAlertRow.alert_id == alert_id)
                    .order_by(TriggeredAlertRow.triggered_at.asc())
                )
                .scalars()
                .all()
            )
            return [TriggeredAlert.model_validate(r) for r in rows]
