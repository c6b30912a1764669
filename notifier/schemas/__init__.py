from notifier.schemas.notification import (
    CycleReportResponse,
    GatewayStatusResponse,
    ManualSendRequest,
    ManualSendResponse,
    PushPayload,
    TokenErrorResponse,
    TokenRegisterRequest,
    TokenRegisterResponse,
    TokenStatsResponse,
)

__all__ = [
    "CycleReportResponse",
    "GatewayStatusResponse",
    "ManualSendRequest",
    "ManualSendResponse",
    "PushPayload",
    "TokenErrorResponse",
    "TokenRegisterRequest",
    "TokenRegisterResponse",
    "TokenStatsResponse",
]
