"""Abstract base class and error taxonomy for push gateways."""

from abc import ABC, abstractmethod

from notifier.schemas.notification import PushPayload


class PushGatewayError(Exception):
    """A single token send failed."""


class TransientSendError(PushGatewayError):
    """Network, timeout or gateway-unavailable failure; retry next cycle."""


class PermanentTokenError(PushGatewayError):
    """The token is revoked, unregistered or malformed; it will never work."""


class BasePushGateway(ABC):
    """Abstract base class for push delivery gateways."""

    provider_name: str = "unknown"

    @abstractmethod
    async def send(self, token: str, payload: PushPayload) -> None:
        """
        Deliver one message to one device token.

        Args:
            token: Device push token
            payload: Notification content

        Raises:
            TransientSendError: Delivery may succeed on a later attempt
            PermanentTokenError: The token should not be used again
        """
        pass

    async def aclose(self) -> None:
        """Release any held resources."""
        return None
