"""Per-user notification preferences used by the scheduler."""

import enum
from datetime import datetime, time

from sqlalchemy import Boolean, Enum, String, Time
from sqlalchemy.orm import Mapped, mapped_column

from notifier.models.base import Base, TimestampMixin


class NotificationFrequency(str, enum.Enum):
    """How often a user wants to be notified."""

    FIVE_MINUTES = "five_minutes"
    HOURLY = "hourly"
    TWICE_DAILY = "twice_daily"
    DAILY = "daily"


class NotificationPreference(Base, TimestampMixin):
    """Notification settings and last-sent marker for one user.

    ``last_notification_sent`` is NULL until the first successful send.
    Quiet hours may wrap past midnight (start > end).
    """

    __tablename__ = "user_notification_preferences"

    user_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    frequency: Mapped[NotificationFrequency] = mapped_column(
        Enum(
            NotificationFrequency,
            name="notification_frequency",
            values_callable=lambda e: [m.value for m in e],
        ),
        default=NotificationFrequency.DAILY,
    )
    quiet_hours_start: Mapped[time] = mapped_column(Time, default=time(22, 0))
    quiet_hours_end: Mapped[time] = mapped_column(Time, default=time(8, 0))
    last_notification_sent: Mapped[datetime | None] = mapped_column(default=None)

    def __repr__(self) -> str:
        return f"<NotificationPreference {self.user_id} {self.frequency.value}>"
