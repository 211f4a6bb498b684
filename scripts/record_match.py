#!/usr/bin/env python3
"""Record head-to-head results and inspect player match statistics."""

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
    build_actor,
    open_services,
    reported_errors,
)
from courtside.domain.common import MatchResult, MatchScore, SetScore
from courtside.domain.policy import Action

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Match result jobs.",
)


def _parse_sets(values: list[str] | None) -> MatchScore:
    sets: list[SetScore] = []
    for value in values or []:
        left, separator, right = value.partition("-")
        if not separator:
            raise typer.BadParameter(f"--set {value!r} must look like 21-15")
        try:
            sets.append(SetScore(player1=int(left), player2=int(right)))
        except ValueError as exc:
            raise typer.BadParameter(f"--set {value!r} must look like 21-15") from exc
    return MatchScore(sets=tuple(sets))


@app.command("record")
def record_match(
    event_id: Annotated[int, typer.Option("--event-id")],
    sport_id: Annotated[int, typer.Option("--sport-id")],
    player1_id: Annotated[int, typer.Option("--player1")],
    player2_id: Annotated[int, typer.Option("--player2")],
    result: Annotated[
        str,
        typer.Option("--result", help=f"One of: {', '.join(item.value for item in MatchResult)}."),
    ],
    actor_id: ActorIdOption,
    role: RoleOption = None,
    sets: Annotated[
        list[str] | None,
        typer.Option("--set", help="Set score as player1-player2, for example 21-15. Repeatable."),
    ] = None,
    notes: Annotated[str | None, typer.Option("--notes")] = None,
    db_url: DbUrlOption = DEFAULT_DB_URL,
    config: ConfigOption = DEFAULT_CONFIG_PATH,
    log_dir: LogDirOption = None,
) -> None:
    """Record one result; both ratings and the history row commit together."""
    score = _parse_sets(sets)
    actor = build_actor(actor_id, role)
    services = open_services(db_url, config, log_dir)
    with reported_errors():
        resource = authorize_for_event(services, actor, Action.RECORD_MATCH, event_id)
        if actor.user_id != resource.host_id:
            # Admin entry on behalf of the host.
            notes = f"{notes}\n" if notes else ""
            notes += f"entered by admin user_id={actor.user_id}"
        record = services.recorder.record_match(
            event_id=event_id,
            player1_id=player1_id,
            player2_id=player2_id,
            sport_id=sport_id,
            result=result,
            score=score,
            recorded_by_host_id=resource.host_id,
            notes=notes,
        )

    typer.echo(
        f"recorded match_history_id={record.id} result={record.result.value} "
        f"player1={record.player1_id} {record.player1_mmr_before}->{record.player1_mmr_after} "
        f"player2={record.player2_id} {record.player2_mmr_before}->{record.player2_mmr_after}"
    )


@app.command("stats")
def show_stats(
    user_id: Annotated[int, typer.Option("--user-id")],
    sport_id: Annotated[int | None, typer.Option("--sport-id")] = None,
    recent: Annotated[int, typer.Option("--recent", help="Number of recent matches to list.")] = 5,
    db_url: DbUrlOption = DEFAULT_DB_URL,
    config: ConfigOption = DEFAULT_CONFIG_PATH,
) -> None:
    """Show win/loss/draw totals and the latest matches of one player."""
    if recent < 0:
        raise typer.BadParameter("--recent must be >= 0")

    services = open_services(db_url, config)
    with reported_errors():
        stats = services.recorder.get_stats(user_id, sport_id=sport_id, recent=recent)
        if sport_id is not None:
            rating = services.ratings.get_rating(user_id, sport_id)
            typer.echo(
                f"mmr={rating.mmr} level={rating.level} skill={rating.skill_label} "
                f"matches_played={rating.matches_played}"
            )

    typer.echo(
        f"user_id={stats.user_id} total={stats.total_matches} wins={stats.wins} "
        f"losses={stats.losses} draws={stats.draws} win_rate={stats.win_rate:.2f}"
    )
    for record in stats.recent_matches:
        typer.echo(
            f"{record.match_date.isoformat(timespec='minutes')} event_id={record.event_id} "
            f"{record.player1_id}v{record.player2_id} {record.result.value}"
        )


if __name__ == "__main__":
    app()
