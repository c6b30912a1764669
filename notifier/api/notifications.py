"""Device token registration and manual send endpoints."""

from fastapi import APIRouter, HTTPException, status

from notifier.dependencies import AppSettings, DBSession, Scheduler
from notifier.schemas.notification import (
    GatewayStatusResponse,
    ManualSendRequest,
    ManualSendResponse,
    TokenErrorResponse,
    TokenRegisterRequest,
    TokenRegisterResponse,
    TokenStatsResponse,
)
from notifier.services.token_store import (
    get_token_statistics,
    get_tokens_for_user,
    register_token,
)

router = APIRouter()


@router.post("/notifications/tokens", response_model=TokenRegisterResponse)
async def register_device_token(
    request: TokenRegisterRequest,
    db: DBSession,
) -> TokenRegisterResponse:
    """
    Register or refresh a device push token.

    A token already known for another user is moved to the requesting user.
    """
    token = request.token.strip()
    if not token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Token is required",
        )

    await register_token(db, token=token, user_id=request.user_id, platform=request.platform)
    return TokenRegisterResponse(success=True, message="Token registered successfully")


@router.get("/notifications/tokens/stats", response_model=TokenStatsResponse)
async def token_stats(db: DBSession) -> TokenStatsResponse:
    """Count registered tokens and the users that own them."""
    total_users, total_tokens = await get_token_statistics(db)
    return TokenStatsResponse(total_users=total_users, total_tokens=total_tokens)


@router.post("/notifications/send", response_model=ManualSendResponse)
async def send_notification(
    request: ManualSendRequest,
    db: DBSession,
    scheduler: Scheduler,
) -> ManualSendResponse:
    """
    Send one notification to every device of a user right now.

    Does not count as a scheduled notification: the user's last-sent time
    is left unchanged.
    """
    tokens = await get_tokens_for_user(db, request.user_id)
    if not tokens:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No device tokens registered for user",
        )

    try:
        outcome = await scheduler.send_now(
            request.user_id,
            tokens,
            title=request.title,
            body=request.body,
        )
    except (TimeoutError, ValueError) as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Notification content unavailable: {e}",
        ) from e

    return ManualSendResponse(
        user_id=request.user_id,
        token_count=len(tokens),
        success_count=outcome.success_count,
        failure_count=outcome.failure_count,
        errors=[
            TokenErrorResponse(
                token=failed.token,
                error_kind=failed.error_kind.value if failed.error_kind else None,
                error=failed.error,
            )
            for failed in outcome.errors
        ],
    )


@router.get("/notifications/gateway-status", response_model=GatewayStatusResponse)
async def gateway_status(
    db: DBSession,
    settings: AppSettings,
    scheduler: Scheduler,
) -> GatewayStatusResponse:
    """Report the active push gateway and whether FCM credentials are set."""
    _, total_tokens = await get_token_statistics(db)
    return GatewayStatusResponse(
        provider=scheduler.dispatcher.gateway.provider_name,
        fcm_configured=bool(settings.fcm_project_id and settings.fcm_access_token),
        total_tokens=total_tokens,
    )
