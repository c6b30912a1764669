"""Tests for push gateways."""

import json
from unittest.mock import patch

import httpx
import pytest

from notifier.config import Settings
from notifier.schemas.notification import PushPayload
from notifier.services.push_gateway import (
    FcmPushGateway,
    NullPushGateway,
    PermanentTokenError,
    TransientSendError,
    get_push_gateway,
    reset_push_gateway,
)
from notifier.services.push_gateway.fcm import build_fcm_message, classify_response

PAYLOAD = PushPayload(
    title="🧘 Daily Wisdom",
    body='"Be here now." - Ram Dass',
    metadata={"type": "daily_quote", "timestamp": "1768212000000"},
)


def fcm_error(
    status_code: int,
    error_code: str | None = None,
    status: str = "",
    field: str | None = None,
) -> httpx.Response:
    details = [{"errorCode": error_code}] if error_code else []
    if field:
        details.append(
            {
                "@type": "type.googleapis.com/google.rpc.BadRequest",
                "fieldViolations": [{"field": field, "description": "Invalid value"}],
            }
        )
    return httpx.Response(
        status_code,
        json={"error": {"code": status_code, "status": status, "details": details}},
    )


class TestBuildFcmMessage:
    """Tests for build_fcm_message."""

    def test_message_shape(self):
        """Should address the token with notification, data and platform blocks."""
        message = build_fcm_message("tok-1", PAYLOAD, android_channel_id="daily-quotes")

        assert message["token"] == "tok-1"
        assert message["notification"] == {"title": PAYLOAD.title, "body": PAYLOAD.body}
        assert message["data"] == PAYLOAD.metadata
        assert message["android"]["notification"]["channel_id"] == "daily-quotes"
        assert message["apns"]["headers"]["apns-priority"] == "10"


class TestClassifyResponse:
    """Tests for classify_response."""

    def test_success_passes(self):
        """2xx responses do not raise."""
        classify_response(httpx.Response(200, json={"name": "projects/p/messages/1"}))

    def test_unregistered_is_permanent(self):
        """UNREGISTERED tokens are never retried."""
        with pytest.raises(PermanentTokenError):
            classify_response(fcm_error(404, "UNREGISTERED", "NOT_FOUND"))

    def test_invalid_token_is_permanent(self):
        """INVALID_ARGUMENT naming the token field is a permanent failure."""
        with pytest.raises(PermanentTokenError):
            classify_response(fcm_error(400, "INVALID_ARGUMENT", field="message.token"))

    def test_invalid_message_is_not_permanent(self):
        """A malformed message must not mark the addressed token as dead."""
        with pytest.raises(TransientSendError):
            classify_response(fcm_error(400, "INVALID_ARGUMENT", field="message.data"))
        with pytest.raises(TransientSendError):
            classify_response(fcm_error(400, status="INVALID_ARGUMENT"))

    def test_sender_id_mismatch_is_permanent(self):
        """Tokens bound to another sender are never retried."""
        with pytest.raises(PermanentTokenError):
            classify_response(fcm_error(403, "SENDER_ID_MISMATCH", "PERMISSION_DENIED"))

    def test_server_errors_are_transient(self):
        """5xx and quota errors are retried next cycle."""
        with pytest.raises(TransientSendError):
            classify_response(fcm_error(503, "UNAVAILABLE"))
        with pytest.raises(TransientSendError):
            classify_response(fcm_error(429, "QUOTA_EXCEEDED"))

    def test_non_json_error_is_transient(self):
        """Unparseable error bodies are treated as transient."""
        with pytest.raises(TransientSendError):
            classify_response(httpx.Response(502, text="Bad Gateway"))


class TestFcmPushGateway:
    """Tests for FcmPushGateway."""

    @pytest.mark.asyncio
    async def test_posts_message_with_bearer_token(self):
        """Should POST one message to the project's send endpoint."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"name": "projects/demo/messages/1"})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        gateway = FcmPushGateway("demo", "access-token", client=client)

        await gateway.send("tok-1", PAYLOAD)
        await gateway.aclose()

        assert len(requests) == 1
        request = requests[0]
        assert str(request.url) == "https://fcm.googleapis.com/v1/projects/demo/messages:send"
        assert request.headers["Authorization"] == "Bearer access-token"
        body = json.loads(request.content)
        assert body["message"]["token"] == "tok-1"

    @pytest.mark.asyncio
    async def test_unregistered_token_raises_permanent(self):
        """A 404 UNREGISTERED response is a permanent token error."""
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: fcm_error(404, "UNREGISTERED"))
        )
        gateway = FcmPushGateway("demo", "access-token", client=client)

        with pytest.raises(PermanentTokenError):
            await gateway.send("tok-gone", PAYLOAD)

    @pytest.mark.asyncio
    async def test_network_error_raises_transient(self):
        """Connection failures are transient."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        gateway = FcmPushGateway("demo", "access-token", client=client)

        with pytest.raises(TransientSendError):
            await gateway.send("tok-1", PAYLOAD)


class TestNullPushGateway:
    """Tests for NullPushGateway."""

    @pytest.mark.asyncio
    async def test_accepts_every_send(self):
        """Should report success without sending."""
        await NullPushGateway().send("tok-1", PAYLOAD)


class TestGetPushGateway:
    """Tests for the gateway factory."""

    def setup_method(self):
        reset_push_gateway()

    def teardown_method(self):
        reset_push_gateway()

    def test_null_gateway_when_unconfigured(self):
        """Missing FCM credentials fall back to the null gateway."""
        with patch(
            "notifier.services.push_gateway.get_settings",
            return_value=Settings(fcm_project_id="", fcm_access_token=""),
        ):
            gateway = get_push_gateway()

        assert isinstance(gateway, NullPushGateway)

    def test_fcm_gateway_when_configured(self):
        """FCM credentials select the FCM gateway."""
        settings = Settings(fcm_project_id="demo", fcm_access_token="secret")
        with patch("notifier.services.push_gateway.get_settings", return_value=settings):
            gateway = get_push_gateway()

        assert isinstance(gateway, FcmPushGateway)
        assert gateway.project_id == "demo"

    def test_singleton(self):
        """Repeated calls share one instance."""
        with patch(
            "notifier.services.push_gateway.get_settings",
            return_value=Settings(fcm_project_id="", fcm_access_token=""),
        ):
            assert get_push_gateway() is get_push_gateway()
