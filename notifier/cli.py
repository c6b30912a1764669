"""
Notifier CLI - Command line interface for the push notification scheduler.

Usage:
    notifier --help                      Show all commands
    notifier cycle                       Run one notification cycle now
    notifier cycle --at 2026-01-12T10:00 Run one cycle as of a given time
    notifier due                         List users due right now (no sends)
    notifier run                         Run the scheduler until Ctrl-C
    notifier register-token TOKEN USER   Register a device token
"""

import asyncio
from datetime import datetime

import typer

app = typer.Typer(
    name="notifier",
    help="Notifier CLI - push notification scheduler",
    no_args_is_help=True,
)


def _parse_at(value: str | None) -> datetime | None:
    """Parse an optional ISO timestamp into naive UTC."""
    from notifier.core.datetime_utils import parse_iso_utc

    if value is None:
        return None
    try:
        return parse_iso_utc(value)
    except ValueError:
        typer.echo(f"❌ Invalid timestamp: {value}", err=True)
        raise typer.Exit(1)


@app.command()
def cycle(
    at: str | None = typer.Option(
        None, "--at", help="Evaluate as of this ISO timestamp (UTC unless an offset is given)"
    ),
):
    """Run one notification cycle (select, send, update)."""
    from notifier.jobs.notification_cycle import main

    report = asyncio.run(main(at=_parse_at(at)))
    if report.aborted:
        raise typer.Exit(1)


@app.command()
def due(
    at: str | None = typer.Option(
        None, "--at", help="Evaluate as of this ISO timestamp (UTC unless an offset is given)"
    ),
):
    """List users who would be notified, without sending anything."""
    from notifier.core.database import AsyncSessionLocal
    from notifier.core.datetime_utils import utc_now
    from notifier.core.logging import setup_logging
    from notifier.services.preference_store import get_users_due_for_notification

    setup_logging()
    now = _parse_at(at) or utc_now()

    async def run():
        async with AsyncSessionLocal() as db:
            return await get_users_due_for_notification(db, now)

    preferences = asyncio.run(run())

    typer.echo(f"\nUsers due at {now.isoformat()}: {len(preferences)}")
    for pref in preferences:
        last = pref.last_notification_sent.isoformat() if pref.last_notification_sent else "never"
        typer.echo(f"  {pref.user_id}  {pref.frequency.value:<12} last sent: {last}")


@app.command()
def run():
    """Run the notification scheduler in the foreground until interrupted."""
    from apscheduler import AsyncScheduler

    from notifier.config import get_settings
    from notifier.core.logging import get_logger, setup_logging
    from notifier.core.scheduler import add_notification_schedule, get_notification_scheduler

    setup_logging()
    logger = get_logger(__name__)
    settings = get_settings()

    async def serve():
        async with AsyncScheduler() as scheduler:
            await add_notification_schedule(
                scheduler, settings.notification_poll_interval_seconds
            )
            logger.bind(
                interval_seconds=settings.notification_poll_interval_seconds,
            ).info("headless_scheduler_started")
            try:
                await scheduler.run_until_stopped()
            finally:
                get_notification_scheduler().request_stop()

    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        typer.echo("\nScheduler stopped")


@app.command("register-token")
def register_token_command(
    token: str = typer.Argument(..., help="Device push token"),
    user_id: str = typer.Argument(..., help="Owning user ID"),
    platform: str | None = typer.Option(None, "--platform", "-p", help="android, ios, web"),
):
    """Register or reassign a device push token."""
    from notifier.core.database import AsyncSessionLocal
    from notifier.core.logging import setup_logging
    from notifier.services.token_store import register_token

    setup_logging()

    async def run():
        async with AsyncSessionLocal() as db:
            await register_token(db, token=token, user_id=user_id, platform=platform)
            await db.commit()

    asyncio.run(run())
    typer.echo(f"  ✅ Token registered for {user_id}")


if __name__ == "__main__":
    app()
