"""
Per-token push fan-out for a single user.

Each token is sent independently: one failing device never blocks the
others. Results are gathered first and aggregated once per user.
"""

import asyncio
import enum
from collections.abc import Sequence
from dataclasses import dataclass, field

from notifier.core.logging import get_logger
from notifier.schemas.notification import PushPayload
from notifier.services.push_gateway import (
    BasePushGateway,
    PermanentTokenError,
    TransientSendError,
)

logger = get_logger(__name__)


class SendErrorKind(str, enum.Enum):
    """Classification of a failed token send."""

    TRANSIENT = "transient"
    PERMANENT = "permanent"


@dataclass
class TokenSendResult:
    """Result of sending to a single device token."""

    token: str
    success: bool
    error_kind: SendErrorKind | None = None
    error: str | None = None


@dataclass
class UserSendOutcome:
    """Aggregated result of sending to all of one user's tokens."""

    user_id: str
    results: list[TokenSendResult] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def errors(self) -> list[TokenSendResult]:
        return [r for r in self.results if not r.success]

    @property
    def permanent_failures(self) -> list[str]:
        """Tokens the gateway reported as unusable."""
        return [r.token for r in self.results if r.error_kind == SendErrorKind.PERMANENT]


class Dispatcher:
    """Sends one payload to each of a user's tokens through a push gateway."""

    def __init__(self, gateway: BasePushGateway, send_timeout_seconds: float = 10.0) -> None:
        self.gateway = gateway
        self.send_timeout_seconds = send_timeout_seconds

    async def _send_one(self, token: str, payload: PushPayload) -> TokenSendResult:
        try:
            async with asyncio.timeout(self.send_timeout_seconds):
                await self.gateway.send(token, payload)
            return TokenSendResult(token=token, success=True)
        except PermanentTokenError as e:
            return TokenSendResult(
                token=token,
                success=False,
                error_kind=SendErrorKind.PERMANENT,
                error=str(e),
            )
        except TimeoutError:
            return TokenSendResult(
                token=token,
                success=False,
                error_kind=SendErrorKind.TRANSIENT,
                error=f"Send timed out after {self.send_timeout_seconds}s",
            )
        except TransientSendError as e:
            return TokenSendResult(
                token=token,
                success=False,
                error_kind=SendErrorKind.TRANSIENT,
                error=str(e),
            )
        except Exception as e:
            # Unclassified gateway failures are retried on the next cycle
            return TokenSendResult(
                token=token,
                success=False,
                error_kind=SendErrorKind.TRANSIENT,
                error=f"{type(e).__name__}: {e}",
            )

    async def send(
        self,
        user_id: str,
        tokens: Sequence[str],
        payload: PushPayload,
    ) -> UserSendOutcome:
        """
        Send ``payload`` to every token of ``user_id``.

        Args:
            user_id: Owner of the tokens (for logging/aggregation)
            tokens: Device tokens to address
            payload: Content shared by all of the user's devices

        Returns:
            UserSendOutcome with per-token results
        """
        results = await asyncio.gather(*(self._send_one(token, payload) for token in tokens))
        outcome = UserSendOutcome(user_id=user_id, results=list(results))

        for failed in outcome.errors:
            logger.bind(
                user_id=user_id,
                token_prefix=failed.token[:12],
                error_kind=failed.error_kind.value if failed.error_kind else None,
                error=failed.error,
            ).warning("push_token_send_failed")

        logger.bind(
            user_id=user_id,
            success_count=outcome.success_count,
            failure_count=outcome.failure_count,
        ).info("push_sent_to_user")

        return outcome
