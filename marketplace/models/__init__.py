"""
Models package — import every model so SQLAlchemy's Base.metadata
knows about all tables (critical for Alembic autogenerate).
"""

from marketplace.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from marketplace.models.linked_device import LinkedDevice
from marketplace.models.user import User, UserRole

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "LinkedDevice",
    "User",
    "UserRole",
]
