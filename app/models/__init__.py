from .alert import AlertRow, TriggeredAlertRow
from .base import Base
from .user import UserRow

__all__ = [
    "AlertRow",
    "TriggeredAlertRow",
    "UserRow",
    "Base",
]
