"""Push delivery gateways with provider abstraction."""

from notifier.config import get_config, get_settings

from .base import BasePushGateway, PermanentTokenError, PushGatewayError, TransientSendError
from .fcm import FcmPushGateway
from .null import NullPushGateway

__all__ = [
    "BasePushGateway",
    "FcmPushGateway",
    "NullPushGateway",
    "PermanentTokenError",
    "PushGatewayError",
    "TransientSendError",
    "get_push_gateway",
    "reset_push_gateway",
]

_gateway_instance: BasePushGateway | None = None


def get_push_gateway() -> BasePushGateway:
    """
    Get the configured push gateway instance.

    Uses singleton pattern so the HTTP connection pool is shared.
    Falls back to NullPushGateway if FCM is not configured.
    """
    global _gateway_instance
    if _gateway_instance is not None:
        return _gateway_instance

    settings = get_settings()

    if not settings.fcm_project_id or not settings.fcm_access_token:
        _gateway_instance = NullPushGateway()
    else:
        _gateway_instance = FcmPushGateway(
            project_id=settings.fcm_project_id,
            access_token=settings.fcm_access_token,
            android_channel_id=get_config().content.android_channel_id,
            timeout_seconds=settings.notification_send_timeout_seconds,
        )

    return _gateway_instance


def reset_push_gateway() -> None:
    """Reset the gateway instance. Useful for testing."""
    global _gateway_instance
    _gateway_instance = None
