from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from notifier.config import Settings, get_settings
from notifier.core.database import get_db
from notifier.core.scheduler import get_notification_scheduler
from notifier.jobs.notification_cycle import NotificationScheduler

# Type aliases for dependency injection
DBSession = Annotated[AsyncSession, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_settings)]
Scheduler = Annotated[NotificationScheduler, Depends(get_notification_scheduler)]
