from notifier.models.base import Base
from notifier.models.device_token import DeviceToken
from notifier.models.job_run import JobRun
from notifier.models.preference import NotificationFrequency, NotificationPreference

__all__ = [
    "Base",
    "DeviceToken",
    "JobRun",
    "NotificationFrequency",
    "NotificationPreference",
]
