"""Due selection for scheduled push notifications.

A user is due when notifications are enabled, the evaluation time is outside
their quiet hours, and the minimum gap for their frequency has elapsed since
the last successful send. Everything here is pure: callers pass the cycle's
``now`` explicitly.
"""

from collections.abc import Iterable
from datetime import datetime, time, timedelta

from notifier.models.preference import NotificationFrequency, NotificationPreference

FREQUENCY_GAPS: dict[NotificationFrequency, timedelta] = {
    NotificationFrequency.FIVE_MINUTES: timedelta(minutes=5),
    NotificationFrequency.HOURLY: timedelta(hours=1),
    NotificationFrequency.TWICE_DAILY: timedelta(hours=12),
    NotificationFrequency.DAILY: timedelta(days=1),
}


def minimum_gap(frequency: NotificationFrequency) -> timedelta:
    """Minimum time between two notifications for a frequency."""
    return FREQUENCY_GAPS[NotificationFrequency(frequency)]


def is_in_quiet_hours(start: time, end: time, current: time) -> bool:
    """Check whether a time of day falls inside a quiet-hours window.

    Both boundaries are inclusive. A window whose start is after its end
    spans midnight. A window whose start equals its end covers the full day.

    Args:
        start: Window start (time of day)
        end: Window end (time of day)
        current: Time of day to test

    Returns:
        True if sends are suppressed at ``current``
    """
    if start == end:
        return True
    if start > end:
        return current >= start or current <= end
    return start <= current <= end


def gap_elapsed(
    last_sent: datetime | None,
    frequency: NotificationFrequency,
    now: datetime,
) -> bool:
    """Check whether enough time has passed since the last send."""
    if last_sent is None:
        return True
    return now - last_sent >= minimum_gap(frequency)


def is_due(preference: NotificationPreference, now: datetime) -> bool:
    """Decide whether a user should be notified at ``now``.

    Quiet hours are a hard veto regardless of how long ago the last
    notification went out.
    """
    if not preference.enabled:
        return False
    if is_in_quiet_hours(
        preference.quiet_hours_start,
        preference.quiet_hours_end,
        now.time(),
    ):
        return False
    return gap_elapsed(preference.last_notification_sent, preference.frequency, now)


def select_due(
    preferences: Iterable[NotificationPreference],
    now: datetime,
) -> list[NotificationPreference]:
    """Filter preferences down to the users due at ``now``."""
    return [p for p in preferences if is_due(p, now)]
