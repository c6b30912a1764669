"""Null gateway - logs instead of sending when push delivery is not configured."""

from notifier.core.logging import get_logger
from notifier.schemas.notification import PushPayload

from .base import BasePushGateway

logger = get_logger(__name__)


class NullPushGateway(BasePushGateway):
    """
    Gateway that accepts every message without sending it.

    Use when FCM credentials are absent (local development) or for testing.
    """

    provider_name = "null"

    async def send(self, token: str, payload: PushPayload) -> None:
        """Log the message and report success."""
        logger.bind(token_prefix=token[:12], title=payload.title).debug("push_send_skipped")
