#!/usr/bin/env python3
"""Run and adjust matchmaking for one event, and move matches through play."""

from __future__ import annotations

import sys
from datetime import UTC, datetime
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
    build_actor,
    open_services,
    reported_errors,
)
from courtside.domain.common import ProposedMatch
from courtside.domain.policy import Action

EventIdOption = Annotated[int, typer.Option("--event-id", help="Event to operate on.")]
MatchIdOption = Annotated[int, typer.Option("--match-id", help="Proposed match id.")]
VersionOption = Annotated[
    int | None,
    typer.Option("--expected-version", help="Reject the change unless the match is at this version."),
]

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Matchmaking jobs.",
)


def _describe(match: ProposedMatch) -> str:
    court = "-" if match.court_number is None else str(match.court_number)
    start = "-" if match.scheduled_start is None else match.scheduled_start.isoformat(timespec="minutes")
    lock = " locked" if match.is_locked else ""
    return (
        f"match_id={match.id} players={match.player1_id}v{match.player2_id} "
        f"status={match.status.value}{lock} court={court} start={start} "
        f"gap={match.skill_difference} quality={match.match_quality:.1f} version={match.version}"
    )


@app.command("run")
def run_matchmaking(
    event_id: EventIdOption,
    actor_id: ActorIdOption,
    role: RoleOption = None,
    db_url: DbUrlOption = DEFAULT_DB_URL,
    config: ConfigOption = DEFAULT_CONFIG_PATH,
    log_dir: LogDirOption = None,
) -> None:
    """Pair checked-in participants by MMR, keeping locked matches."""
    actor = build_actor(actor_id, role)
    services = open_services(db_url, config, log_dir)
    with reported_errors():
        authorize_for_event(services, actor, Action.MANAGE_MATCHMAKING, event_id)
        run = services.matchmaking.create_fair_matches(event_id)

    for match in run.matches:
        typer.echo(_describe(match))
    for player in run.waiting:
        typer.echo(f"waiting user_id={player.user_id} mmr={player.mmr}")
    typer.echo(
        f"completed locked={run.locked_kept} reused={run.reused} "
        f"created={run.created} removed={run.removed} waiting={len(run.waiting)}"
    )


@app.command("status")
def show_status(
    event_id: EventIdOption,
    actor_id: ActorIdOption,
    role: RoleOption = None,
    db_url: DbUrlOption = DEFAULT_DB_URL,
    config: ConfigOption = DEFAULT_CONFIG_PATH,
) -> None:
    """Show active matches, waiting players and the court board."""
    actor = build_actor(actor_id, role)
    services = open_services(db_url, config)
    with reported_errors():
        authorize_for_event(services, actor, Action.MANAGE_MATCHMAKING, event_id)
        status = services.matchmaking.get_status(event_id)

    typer.echo(f"event_id={status.event_id} status={status.event_status.value}")
    for match in status.matches:
        typer.echo(_describe(match))
    for player in status.waiting:
        typer.echo(f"waiting user_id={player.user_id} mmr={player.mmr}")
    for slot in status.courts:
        occupant = "free" if slot.match is None else f"match_id={slot.match.id}"
        typer.echo(f"court {slot.court_number}: {occupant}")


@app.command("override")
def override_player(
    event_id: EventIdOption,
    match_id: MatchIdOption,
    old_player_id: Annotated[int, typer.Option("--old-player", help="Player to take out.")],
    new_player_id: Annotated[int, typer.Option("--new-player", help="Checked-in player to put in.")],
    actor_id: ActorIdOption,
    role: RoleOption = None,
    expected_version: VersionOption = None,
    db_url: DbUrlOption = DEFAULT_DB_URL,
    config: ConfigOption = DEFAULT_CONFIG_PATH,
) -> None:
    """Swap one player of an unlocked match."""
    actor = build_actor(actor_id, role)
    services = open_services(db_url, config)
    with reported_errors():
        authorize_for_event(services, actor, Action.MANAGE_MATCHMAKING, event_id)
        match = services.matchmaking.override_player(
            event_id,
            match_id,
            old_player_id,
            new_player_id,
            expected_version=expected_version,
        )
    typer.echo(_describe(match))


@app.command("lock")
def toggle_lock(
    event_id: EventIdOption,
    match_id: MatchIdOption,
    actor_id: ActorIdOption,
    role: RoleOption = None,
    expected_version: VersionOption = None,
    db_url: DbUrlOption = DEFAULT_DB_URL,
    config: ConfigOption = DEFAULT_CONFIG_PATH,
) -> None:
    """Lock an unlocked match or unlock a locked one."""
    actor = build_actor(actor_id, role)
    services = open_services(db_url, config)
    with reported_errors():
        authorize_for_event(services, actor, Action.MANAGE_MATCHMAKING, event_id)
        match = services.matchmaking.toggle_match_lock(event_id, match_id, expected_version=expected_version)
    typer.echo(_describe(match))


@app.command("court")
def assign_court(
    event_id: EventIdOption,
    match_id: MatchIdOption,
    court_number: Annotated[int, typer.Option("--court", help="Court number, 1-based.")],
    actor_id: ActorIdOption,
    role: RoleOption = None,
    starts_at: Annotated[
        str | None,
        typer.Option("--starts-at", help="ISO start time (UTC). Defaults to the match or event start."),
    ] = None,
    expected_version: VersionOption = None,
    db_url: DbUrlOption = DEFAULT_DB_URL,
    config: ConfigOption = DEFAULT_CONFIG_PATH,
) -> None:
    """Put a match on a court."""
    start: datetime | None = None
    if starts_at is not None:
        try:
            start = datetime.fromisoformat(starts_at)
        except ValueError as exc:
            raise typer.BadParameter("--starts-at must be an ISO datetime") from exc
        if start.tzinfo is not None:
            start = start.astimezone(UTC).replace(tzinfo=None)

    actor = build_actor(actor_id, role)
    services = open_services(db_url, config)
    with reported_errors():
        authorize_for_event(services, actor, Action.MANAGE_MATCHMAKING, event_id)
        match = services.matchmaking.assign_court(
            event_id,
            match_id,
            court_number,
            starts_at=start,
            expected_version=expected_version,
        )
    typer.echo(_describe(match))


@app.command("start")
def start_match(
    event_id: EventIdOption,
    match_id: MatchIdOption,
    actor_id: ActorIdOption,
    role: RoleOption = None,
    expected_version: VersionOption = None,
    db_url: DbUrlOption = DEFAULT_DB_URL,
    config: ConfigOption = DEFAULT_CONFIG_PATH,
) -> None:
    """Put a match on its court into play."""
    actor = build_actor(actor_id, role)
    services = open_services(db_url, config)
    with reported_errors():
        authorize_for_event(services, actor, Action.MANAGE_MATCHMAKING, event_id)
        match = services.matchmaking.start_match(event_id, match_id, expected_version=expected_version)
    typer.echo(_describe(match))


@app.command("end")
def end_match(
    event_id: EventIdOption,
    match_id: MatchIdOption,
    actor_id: ActorIdOption,
    role: RoleOption = None,
    expected_version: VersionOption = None,
    db_url: DbUrlOption = DEFAULT_DB_URL,
    config: ConfigOption = DEFAULT_CONFIG_PATH,
) -> None:
    """Take a match out of play and free its court."""
    actor = build_actor(actor_id, role)
    services = open_services(db_url, config)
    with reported_errors():
        authorize_for_event(services, actor, Action.MANAGE_MATCHMAKING, event_id)
        match = services.matchmaking.end_match(event_id, match_id, expected_version=expected_version)
    typer.echo(_describe(match))


@app.command("suggest")
def suggest_next_round(
    event_id: EventIdOption,
    actor_id: ActorIdOption,
    role: RoleOption = None,
    db_url: DbUrlOption = DEFAULT_DB_URL,
    config: ConfigOption = DEFAULT_CONFIG_PATH,
) -> None:
    """Suggest pairings of waiting players for the free courts."""
    actor = build_actor(actor_id, role)
    services = open_services(db_url, config)
    with reported_errors():
        authorize_for_event(services, actor, Action.MANAGE_MATCHMAKING, event_id)
        suggestions = services.matchmaking.suggest_next_round(event_id)

    for item in suggestions:
        typer.echo(
            f"court {item.court_number}: {item.player1.user_id}v{item.player2.user_id} "
            f"gap={item.skill_difference} quality={item.match_quality:.1f}"
        )
    typer.echo(f"suggestions={len(suggestions)}")


if __name__ == "__main__":
    app()
