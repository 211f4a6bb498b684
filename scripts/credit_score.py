#!/usr/bin/env python3
"""Credit-score ledger jobs: adjustments, history, restrictions and audits."""

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
    authorize_for_user,
    build_actor,
    open_services,
    reported_errors,
)
from courtside.domain.credit import ADMIN_CHANGE_TYPES, CreditChangeType
from courtside.domain.policy import Action

UserIdOption = Annotated[int, typer.Option("--user-id", help="User whose credit score is involved.")]

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Credit score jobs.",
)


@app.command("adjust")
def adjust(
    user_id: UserIdOption,
    change_type: Annotated[str, typer.Option("--type", help="penalty or bonus.")],
    amount: Annotated[int, typer.Option("--amount", help="Points to add (bonus) or remove (penalty).")],
    actor_id: ActorIdOption,
    role: RoleOption = None,
    description: Annotated[str | None, typer.Option("--description")] = None,
    db_url: DbUrlOption = DEFAULT_DB_URL,
    config: ConfigOption = DEFAULT_CONFIG_PATH,
    log_dir: LogDirOption = None,
) -> None:
    """Apply a manual admin penalty or bonus."""
    try:
        parsed = CreditChangeType(change_type.strip().lower())
    except ValueError as exc:
        raise typer.BadParameter("--type must be penalty or bonus") from exc
    if parsed not in ADMIN_CHANGE_TYPES:
        raise typer.BadParameter("--type must be penalty or bonus")
    if amount <= 0:
        raise typer.BadParameter("--amount must be greater than 0")

    actor = build_actor(actor_id, role)
    services = open_services(db_url, config, log_dir)
    raw_change = -amount if parsed is CreditChangeType.PENALTY else amount
    with reported_errors():
        authorize_for_user(actor, Action.ADJUST_CREDIT, user_id)
        entry = services.ledger.apply_adjustment(
            user_id,
            parsed,
            raw_change,
            metadata={"adjusted_by": actor.user_id},
            description=description,
        )
    typer.echo(
        f"user_id={user_id} {entry.change_type.value} {entry.old_score}->{entry.new_score} "
        f"(applied {entry.change_amount:+d})"
    )


@app.command("history")
def history(
    user_id: UserIdOption,
    actor_id: ActorIdOption,
    role: RoleOption = None,
    limit: Annotated[int, typer.Option("--limit")] = 20,
    db_url: DbUrlOption = DEFAULT_DB_URL,
    config: ConfigOption = DEFAULT_CONFIG_PATH,
) -> None:
    """List ledger entries, newest first."""
    if limit <= 0:
        raise typer.BadParameter("--limit must be greater than 0")

    actor = build_actor(actor_id, role)
    services = open_services(db_url, config)
    with reported_errors():
        authorize_for_user(actor, Action.VIEW_CREDIT_HISTORY, user_id)
        entries = services.ledger.history(user_id, limit=limit)
        stats = services.ledger.statistics(user_id)

    typer.echo(
        f"user_id={user_id} score={stats.current_score} earned={stats.total_earned} "
        f"lost={stats.total_lost} last_30_days={stats.last_30_days_change:+d}"
    )
    for entry in entries:
        typer.echo(
            f"#{entry.sequence} {entry.created_at.isoformat(timespec='minutes')} "
            f"{entry.change_type.value} {entry.old_score}->{entry.new_score} {entry.description}"
        )


@app.command("restrictions")
def restrictions(
    user_id: UserIdOption,
    actor_id: ActorIdOption,
    role: RoleOption = None,
    db_url: DbUrlOption = DEFAULT_DB_URL,
    config: ConfigOption = DEFAULT_CONFIG_PATH,
) -> None:
    """Show what the user's current score allows."""
    actor = build_actor(actor_id, role)
    services = open_services(db_url, config)
    with reported_errors():
        authorize_for_user(actor, Action.VIEW_RESTRICTIONS, user_id)
        result = services.ledger.get_restrictions(user_id)

    weekly = "unlimited" if result.max_events_per_week is None else str(result.max_events_per_week)
    typer.echo(
        f"user_id={user_id} score={result.score} tier={result.tier.value} "
        f"join={result.can_join_events} premium={result.can_join_premium_events} "
        f"create={result.can_create_events} host_approval={result.requires_host_approval} "
        f"weekly_limit={weekly}"
    )
    typer.echo(result.warning_message)
    if result.restrictions:
        typer.echo(f"restrictions={','.join(result.restrictions)}")


@app.command("verify")
def verify(
    user_ids: Annotated[list[int], typer.Option("--user-id", help="User to audit. Repeatable.")],
    actor_id: ActorIdOption,
    role: RoleOption = None,
    db_url: DbUrlOption = DEFAULT_DB_URL,
    config: ConfigOption = DEFAULT_CONFIG_PATH,
) -> None:
    """Audit that each user's ledger entries chain correctly."""
    actor = build_actor(actor_id, role)
    services = open_services(db_url, config)
    broken = 0
    with reported_errors():
        for user_id in user_ids:
            authorize_for_user(actor, Action.VIEW_CREDIT_HISTORY, user_id)
            valid = services.ledger.verify_chain(user_id)
            broken += 0 if valid else 1
            typer.echo(f"user_id={user_id} chain={'ok' if valid else 'BROKEN'}")
    if broken:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
