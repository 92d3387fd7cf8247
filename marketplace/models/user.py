"""
User model — the account aggregate.

Design decisions:
- Role is a closed ENUM fixed at creation.  Signup only hands out
  VENDOR / BUYER; admins are provisioned out-of-band by script.
- Emails are stored lower-cased so lookups are case-insensitive.
- The user OWNS its device sessions (`linked_devices`).  Removing a
  session from the collection deletes its row on flush, so the
  session registry only ever mutates the list.
"""

import enum
from typing import TYPE_CHECKING

from sqlalchemy import Enum, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketplace.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from marketplace.models.linked_device import LinkedDevice


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    VENDOR = "vendor"
    BUYER = "buyer"


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(256), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    phone_number: Mapped[str] = mapped_column(String(32), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    # Digest of the last refresh token issued to the account; mirrors the
    # per-device value on the most recently active session.
    refresh_token_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # ── Relationships ────────────────────────────────────────────────
    linked_devices: Mapped[list["LinkedDevice"]] = relationship(  # noqa: F821
        back_populates="user",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="LinkedDevice.authenticated_at",
    )

    def __repr__(self) -> str:
        return f"<User {self.email} role={self.role.value}>"
