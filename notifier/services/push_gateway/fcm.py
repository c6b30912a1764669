"""Firebase Cloud Messaging (HTTP v1) push gateway."""

import httpx

from notifier.core.logging import get_logger
from notifier.schemas.notification import PushPayload

from .base import BasePushGateway, PermanentTokenError, TransientSendError

logger = get_logger(__name__)

FCM_API_BASE = "https://fcm.googleapis.com/v1"

# FCM error codes meaning the registration token itself is unusable
PERMANENT_ERROR_CODES = {"UNREGISTERED", "SENDER_ID_MISMATCH"}

# INVALID_ARGUMENT is only about the token when a field violation names it
TOKEN_FIELD = "message.token"


def build_fcm_message(
    token: str,
    payload: PushPayload,
    android_channel_id: str = "daily-quotes",
) -> dict:
    """Build the FCM v1 ``message`` object for one device."""
    return {
        "token": token,
        "notification": {"title": payload.title, "body": payload.body},
        "data": dict(payload.metadata),
        "android": {
            "priority": "HIGH",
            "notification": {
                "sound": "default",
                "channel_id": android_channel_id,
            },
        },
        "apns": {
            "headers": {"apns-priority": "10", "apns-push-type": "alert"},
            "payload": {
                "aps": {
                    "alert": {"title": payload.title, "body": payload.body},
                    "sound": "default",
                    "badge": 1,
                    "content-available": 1,
                }
            },
        },
    }


def _error_body(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    error = body.get("error") if isinstance(body, dict) else None
    return error if isinstance(error, dict) else {}


def _error_code(response: httpx.Response) -> str | None:
    """Extract the FCM error code from an error response body."""
    error = _error_body(response)

    for detail in error.get("details", []) or []:
        code = detail.get("errorCode")
        if code:
            return str(code)
    status = error.get("status")
    return str(status) if status else None


def _rejects_token_field(response: httpx.Response) -> bool:
    """Check whether a BadRequest detail points at the message token."""
    for detail in _error_body(response).get("details", []) or []:
        for violation in detail.get("fieldViolations", []) or []:
            if violation.get("field") == TOKEN_FIELD:
                return True
    return False


def classify_response(response: httpx.Response) -> None:
    """Raise a classified error for a non-success FCM response."""
    if response.is_success:
        return

    code = _error_code(response)
    message = f"FCM {response.status_code} {code or ''}".strip()

    if response.status_code == 404 or code in PERMANENT_ERROR_CODES:
        raise PermanentTokenError(message)
    if code == "INVALID_ARGUMENT" and _rejects_token_field(response):
        raise PermanentTokenError(f"{message} (token)")
    # 429, 5xx, malformed messages, auth problems and anything unexpected:
    # try again next cycle
    raise TransientSendError(message)


class FcmPushGateway(BasePushGateway):
    """
    Sends one FCM v1 message per token using httpx.

    Uses a bearer access token from settings; refreshing that token is
    handled outside this process.
    """

    provider_name = "fcm"

    def __init__(
        self,
        project_id: str,
        access_token: str,
        android_channel_id: str = "daily-quotes",
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.project_id = project_id
        self.access_token = access_token
        self.android_channel_id = android_channel_id
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    @property
    def send_url(self) -> str:
        return f"{FCM_API_BASE}/projects/{self.project_id}/messages:send"

    async def send(self, token: str, payload: PushPayload) -> None:
        message = build_fcm_message(token, payload, self.android_channel_id)
        try:
            response = await self._client.post(
                self.send_url,
                headers={"Authorization": f"Bearer {self.access_token}"},
                json={"message": message},
            )
        except httpx.TimeoutException as e:
            raise TransientSendError(f"FCM timeout: {e}") from e
        except httpx.HTTPError as e:
            raise TransientSendError(f"FCM request failed: {e}") from e

        if not response.is_success:
            logger.bind(
                status=response.status_code,
                token_prefix=token[:12],
            ).warning("fcm_send_failed")
        classify_response(response)

    async def aclose(self) -> None:
        await self._client.aclose()
