"""
Linked device model — one row per authenticated login.

`session_id` is the stable device handle across token rotations and is
embedded in every access / refresh token minted for that login.  Only
SHA-256 digests of the latest tokens are kept; the gate compares the
digest of the presented access token to detect replay of a rotated one.

`expires_at` drives passive TTL cleanup (see `session_service`).
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketplace.models.base import Base, utcnow

if TYPE_CHECKING:
    from marketplace.models.user import User


class LinkedDevice(Base):
    __tablename__ = "linked_devices"

    session_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    authenticated: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    authenticated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    access_token_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    refresh_token_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    user: Mapped["User"] = relationship(back_populates="linked_devices")  # noqa: F821

    __table_args__ = (
        Index("ix_linked_devices_user_authenticated", "user_id", "authenticated"),
    )

    def __repr__(self) -> str:
        return f"<LinkedDevice {self.session_id} user={self.user_id} authenticated={self.authenticated}>"
