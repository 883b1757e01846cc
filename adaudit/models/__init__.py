"""Models package — import all models so create_all can discover them."""

from adaudit.models.user import User
from adaudit.models.connection import AccountConnection
from adaudit.models.audit import Audit, AuditStatus
from adaudit.models.session import UserSession

__all__ = [
    "User", "AccountConnection", "Audit", "AuditStatus", "UserSession",
]
