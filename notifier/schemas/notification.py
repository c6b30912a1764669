from datetime import datetime

from pydantic import BaseModel, Field


class PushPayload(BaseModel):
    """Content delivered to every device of a user in one cycle."""

    title: str
    body: str
    metadata: dict[str, str] = Field(default_factory=dict)


class TokenRegisterRequest(BaseModel):
    """Request to register or refresh a device push token."""

    token: str = Field(min_length=1, max_length=500)
    user_id: str = Field(min_length=1, max_length=255)
    platform: str | None = Field(default=None, max_length=50)


class TokenRegisterResponse(BaseModel):
    """Response after registering a device token."""

    success: bool
    message: str


class TokenStatsResponse(BaseModel):
    """Token registry statistics."""

    total_users: int
    total_tokens: int


class CycleReportResponse(BaseModel):
    """Summary of one notification cycle."""

    now: datetime
    due_count: int
    dispatched_users: int
    skipped_no_tokens: int
    failed_users: int
    updated_users: int
    success_count: int
    failure_count: int
    pruned_tokens: int
    aborted: bool
    cancelled: bool
    error: str | None = None


class ManualSendRequest(BaseModel):
    """Request to notify one user's devices immediately."""

    user_id: str = Field(min_length=1, max_length=255)
    title: str | None = Field(default=None, max_length=200)
    body: str | None = Field(default=None, max_length=2000)


class TokenErrorResponse(BaseModel):
    """A failed send to one device token."""

    token: str
    error_kind: str | None
    error: str | None


class ManualSendResponse(BaseModel):
    """Per-token results of a manual send."""

    user_id: str
    token_count: int
    success_count: int
    failure_count: int
    errors: list[TokenErrorResponse]


class GatewayStatusResponse(BaseModel):
    """Which push gateway is active and whether FCM is configured."""

    provider: str
    fcm_configured: bool
    total_tokens: int
