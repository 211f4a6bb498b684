#!/usr/bin/env python3
"""Event lifecycle jobs: status changes, registration, check-in and attendance credit."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated

import typer

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from courtside.cli import (
    DEFAULT_CONFIG_PATH,
    DEFAULT_DB_URL,
    ActorIdOption,
    ConfigOption,
    DbUrlOption,
    LogDirOption,
    RoleOption,
    authorize_for_event,
    authorize_for_user,
    build_actor,
    open_services,
    reported_errors,
)
from courtside.domain.common import EventStatus
from courtside.domain.credit import CreditEntry
from courtside.domain.policy import Action

EventIdOption = Annotated[int, typer.Option("--event-id", help="Event to operate on.")]
UserIdOption = Annotated[int, typer.Option("--user-id", help="Participant user id.")]

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Event lifecycle jobs.",
)


def _echo_entry(entry: CreditEntry | None) -> None:
    if entry is None:
        typer.echo("no credit change")
        return
    typer.echo(
        f"credit user_id={entry.user_id} {entry.change_type.value} "
        f"{entry.old_score}->{entry.new_score}"
    )


@app.command("transition")
def transition(
    event_id: EventIdOption,
    status: Annotated[
        str,
        typer.Option("--status", help=f"One of: {', '.join(item.value for item in EventStatus)}."),
    ],
    actor_id: ActorIdOption,
    role: RoleOption = None,
    db_url: DbUrlOption = DEFAULT_DB_URL,
    config: ConfigOption = DEFAULT_CONFIG_PATH,
    log_dir: LogDirOption = None,
) -> None:
    """Move an event to a new status."""
    actor = build_actor(actor_id, role)
    services = open_services(db_url, config, log_dir)
    with reported_errors():
        authorize_for_event(services, actor, Action.MANAGE_EVENT, event_id)
        result = services.lifecycle.transition(event_id, status)

    typer.echo(f"event_id={event_id} {result.old_status.value} -> {result.new_status.value}")
    if result.matchmaking is not None:
        typer.echo(
            f"matchmaking matches={len(result.matchmaking.matches)} "
            f"waiting={len(result.matchmaking.waiting)}"
        )
    for entry in result.credit_entries:
        _echo_entry(entry)


@app.command("join")
def join(
    event_id: EventIdOption,
    user_id: UserIdOption,
    actor_id: ActorIdOption,
    role: RoleOption = None,
    db_url: DbUrlOption = DEFAULT_DB_URL,
    config: ConfigOption = DEFAULT_CONFIG_PATH,
) -> None:
    """Register a user for an event."""
    actor = build_actor(actor_id, role)
    services = open_services(db_url, config)
    with reported_errors():
        authorize_for_user(actor, Action.PARTICIPATE, user_id)
        participation = services.lifecycle.join_event(event_id, user_id)
    typer.echo(f"user_id={user_id} event_id={event_id} status={participation.status.value}")


@app.command("check-in")
def check_in(
    event_id: EventIdOption,
    user_id: UserIdOption,
    actor_id: ActorIdOption,
    role: RoleOption = None,
    db_url: DbUrlOption = DEFAULT_DB_URL,
    config: ConfigOption = DEFAULT_CONFIG_PATH,
) -> None:
    """Mark a registered participant as present; the host may check anyone in."""
    actor = build_actor(actor_id, role)
    services = open_services(db_url, config)
    with reported_errors():
        if actor.user_id != user_id:
            authorize_for_event(services, actor, Action.MANAGE_EVENT, event_id)
        participation = services.lifecycle.check_in(event_id, user_id)
    typer.echo(f"user_id={user_id} event_id={event_id} status={participation.status.value}")


@app.command("cancel")
def cancel(
    event_id: EventIdOption,
    user_id: UserIdOption,
    actor_id: ActorIdOption,
    role: RoleOption = None,
    reason: Annotated[str | None, typer.Option("--reason")] = None,
    db_url: DbUrlOption = DEFAULT_DB_URL,
    config: ConfigOption = DEFAULT_CONFIG_PATH,
) -> None:
    """Withdraw a participant; the credit penalty depends on the notice given."""
    actor = build_actor(actor_id, role)
    services = open_services(db_url, config)
    with reported_errors():
        authorize_for_user(actor, Action.PARTICIPATE, user_id)
        entry = services.lifecycle.cancel_participation(event_id, user_id, reason=reason)
    _echo_entry(entry)


@app.command("cancel-preview")
def cancel_preview(
    event_id: EventIdOption,
    db_url: DbUrlOption = DEFAULT_DB_URL,
    config: ConfigOption = DEFAULT_CONFIG_PATH,
) -> None:
    """Show what cancelling now would cost."""
    services = open_services(db_url, config)
    with reported_errors():
        preview = services.lifecycle.cancellation_preview(event_id)

    typer.echo(
        f"event_id={preview.event_id} hours_remaining={preview.hours_remaining:.1f} "
        f"penalty={preview.penalty_amount} level={preview.penalty_level.value} free={preview.can_cancel_free}"
    )
    typer.echo(preview.warning_message)


@app.command("no-show")
def no_show(
    event_id: EventIdOption,
    user_id: UserIdOption,
    actor_id: ActorIdOption,
    role: RoleOption = None,
    reason: Annotated[str | None, typer.Option("--reason")] = None,
    db_url: DbUrlOption = DEFAULT_DB_URL,
    config: ConfigOption = DEFAULT_CONFIG_PATH,
) -> None:
    """Report a participant who did not turn up."""
    actor = build_actor(actor_id, role)
    services = open_services(db_url, config)
    with reported_errors():
        authorize_for_event(services, actor, Action.REPORT_NO_SHOW, event_id)
        entry = services.lifecycle.report_no_show(event_id, user_id, reported_by=actor.user_id, reason=reason)
    _echo_entry(entry)


@app.command("rate")
def rate(
    event_id: EventIdOption,
    user_id: UserIdOption,
    overall_rating: Annotated[float, typer.Option("--rating", help="Overall rating from 1 to 5.")],
    actor_id: ActorIdOption,
    role: RoleOption = None,
    db_url: DbUrlOption = DEFAULT_DB_URL,
    config: ConfigOption = DEFAULT_CONFIG_PATH,
) -> None:
    """Rate another participant; high ratings earn them a small credit bonus."""
    actor = build_actor(actor_id, role)
    services = open_services(db_url, config)
    with reported_errors():
        entry = services.lifecycle.record_good_rating(
            event_id,
            user_id,
            overall_rating=overall_rating,
            rated_by=actor.user_id,
        )
    _echo_entry(entry)


if __name__ == "__main__":
    app()
