"""Shared plumbing for the command-line scripts."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated

import typer

from courtside.db import DEFAULT_DB_URL, create_db_engine, create_session_factory, session_scope
from courtside.domain.config import DEFAULT_CONFIG_PATH, load_engine_config
from courtside.domain.policy import Action, Actor, EventResource, Role, UserResource, authorize
from courtside.errors import CourtsideError
from courtside.logging_setup import setup_logging
from courtside.repositories import ensure_schema
from courtside.repositories import events as event_repo
from courtside.services import Services, build_services

DbUrlOption = Annotated[
    str,
    typer.Option("--db-url", help="Database URL. Defaults to the local courtside postgres instance."),
]
ConfigOption = Annotated[
    Path,
    typer.Option("--config", help="Engine TOML config file."),
]
ActorIdOption = Annotated[int, typer.Option("--actor-id", help="User id of the caller.")]
RoleOption = Annotated[
    list[str] | None,
    typer.Option("--role", help="Caller role (admin, host, player). Repeatable."),
]
LogDirOption = Annotated[
    Path | None,
    typer.Option("--log-dir", help="Also write logs to a timestamped file in this directory."),
]


def build_actor(actor_id: int, roles: list[str] | None) -> Actor:
    parsed: set[Role] = set()
    for value in roles or [Role.PLAYER.value]:
        try:
            parsed.add(Role(value.strip().lower()))
        except ValueError as exc:
            allowed = ", ".join(role.value for role in Role)
            raise typer.BadParameter(f"--role must be one of: {allowed}") from exc
    return Actor(user_id=actor_id, roles=frozenset(parsed))


def open_services(db_url: str, config_path: Path, log_dir: Path | None = None) -> Services:
    """Configure logging, load config, bootstrap the schema and wire the services."""
    setup_logging(log_dir)
    try:
        config = load_engine_config(config_path)
    except (OSError, ValueError) as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc

    engine = create_db_engine(db_url)
    ensure_schema(engine)
    return build_services(create_session_factory(engine), config)


def authorize_for_event(services: Services, actor: Actor, action: Action, event_id: int) -> EventResource:
    with session_scope(services.ratings.session_factory) as session:
        event = event_repo.require_event(session, event_id)
        resource = EventResource(event_id=event.id, host_id=event.host_id)
    authorize(actor, action, resource)
    return resource


def authorize_for_user(actor: Actor, action: Action, user_id: int) -> None:
    authorize(actor, action, UserResource(user_id=user_id))


@contextmanager
def reported_errors() -> Iterator[None]:
    """Turn engine errors into a one-line message and exit code 1."""
    try:
        yield
    except CourtsideError as exc:
        logging.getLogger("courtside.cli").debug("Command failed: %s", exc)
        typer.echo(f"error ({exc.status_code}): {exc.user_message}", err=True)
        raise typer.Exit(code=1) from exc


__all__ = [
    "ActorIdOption",
    "ConfigOption",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_DB_URL",
    "DbUrlOption",
    "LogDirOption",
    "RoleOption",
    "authorize_for_event",
    "authorize_for_user",
    "build_actor",
    "open_services",
    "reported_errors",
]
