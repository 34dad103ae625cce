from __future__ import annotations

import typing
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crowdup.db.base_class import Base

if typing.TYPE_CHECKING:  # pragma: no cover
    from crowdup.models.user import User


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RefreshToken(Base):
    """Revocation-list row: a refresh token is live only while its row exists and is unexpired."""
    __tablename__ = "refresh_tokens"

    jti: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="refresh_tokens")
