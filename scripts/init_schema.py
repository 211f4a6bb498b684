#!/usr/bin/env python3
"""Create the engine schema and seed reference data."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated

import typer

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from sqlalchemy import select

from courtside.cli import DbUrlOption, LogDirOption
from courtside.db import DEFAULT_DB_URL, create_db_engine, create_session_factory
from courtside.logging_setup import setup_logging
from courtside.models import Sport
from courtside.repositories import ensure_schema

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Schema bootstrap jobs.",
)


@app.command("init")
def init_schema(
    db_url: DbUrlOption = DEFAULT_DB_URL,
    log_dir: LogDirOption = None,
) -> None:
    """Create all tables and indexes that do not exist yet."""
    setup_logging(log_dir)
    ensure_schema(create_db_engine(db_url))
    typer.echo("schema ready")


@app.command("add-sport")
def add_sport(
    code: Annotated[str, typer.Option("--code", help="Unique short code, for example: badminton.")],
    name: Annotated[str, typer.Option("--name", help="Display name.")],
    db_url: DbUrlOption = DEFAULT_DB_URL,
) -> None:
    """Insert a sport, or report the existing one with the same code."""
    code = code.strip().lower()
    if not code:
        raise typer.BadParameter("--code must not be empty")

    engine = create_db_engine(db_url)
    ensure_schema(engine)
    session_factory = create_session_factory(engine)
    with session_factory.begin() as session:
        sport = session.execute(select(Sport).where(Sport.code == code)).scalar_one_or_none()
        if sport is not None:
            typer.echo(f"exists sport_id={sport.id} code={sport.code}")
            return
        sport = Sport(code=code, name=name.strip() or code)
        session.add(sport)
        session.flush()
        typer.echo(f"created sport_id={sport.id} code={sport.code}")


if __name__ == "__main__":
    app()
