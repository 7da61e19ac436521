from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    Text,
    Boolean,
    ForeignKey,
    BigInteger,
    DateTime,
    JSON,
    UniqueConstraint,
    Index,
    func,
)
from database.engine import Base, BigIntId
from core.utils.datetime import now
from datetime import datetime
from typing import Any


class Notification(Base):
    """In-app notification addressed to one user."""

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(
        BigIntId, primary_key=True, nullable=False, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    header: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[str | None] = mapped_column(String(1000))
    has_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_notification_user_created", "user_id", "created_at"),
    )


class NotificationEndpoint(Base):
    """Push subscription registered by a browser."""

    __tablename__ = "notification_endpoints"

    id: Mapped[int] = mapped_column(
        BigIntId, primary_key=True, nullable=False, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    endpoint: Mapped[str] = mapped_column(String(1000), nullable=False)
    keys: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    __table_args__ = (
        UniqueConstraint("user_id", "endpoint", name="uq_endpoint_user_endpoint"),
    )
