"""Device push tokens, stored alongside preferences in the same database."""

import uuid

from sqlalchemy import String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from notifier.models.base import Base, TimestampMixin


class DeviceToken(Base, TimestampMixin):
    """A push-delivery handle for one device.

    Tokens are globally unique: registering a known token moves it to the
    new owner instead of creating a duplicate row.
    """

    __tablename__ = "device_tokens"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(255), index=True)
    token: Mapped[str] = mapped_column(String(500), unique=True, index=True)
    platform: Mapped[str | None] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:
        return f"<DeviceToken {self.platform}:{self.token[:12]}>"
