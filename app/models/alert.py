from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Float, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from .types import UTCDateTime


class AlertRow(Base):
    __tablename__ = "alerts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # No FK to users: an alert may be created for an owner we have no contact for.
    owner_id: Mapped[str] = mapped_column(String(64), index=True)
    asset: Mapped[str] = mapped_column(String(100), index=True)
    target_price: Mapped[float] = mapped_column(Float)
    condition: Mapped[str] = mapped_column(String(10))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    is_triggered: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), index=True)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime())

    history: Mapped[list["TriggeredAlertRow"]] = relationship(
        back_populates="alert",
        cascade="all, delete-orphan",
        order_by="TriggeredAlertRow.triggered_at",
    )


class TriggeredAlertRow(Base):
    __tablename__ = "triggered_alerts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    alert_id: Mapped[str] = mapped_column(
        ForeignKey("alerts.id", ondelete="CASCADE"), index=True
    )
    triggered_price: Mapped[float] = mapped_column(Float)
    triggered_at: Mapped[datetime] = mapped_column(UTCDateTime(), index=True)

    alert: Mapped[AlertRow] = relationship(back_populates="history")
