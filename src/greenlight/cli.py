"""Command-line tools: schema migrations and permission grants."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import click

from greenlight.config import ConfigError, GreenlightConfig, load_config
from greenlight.core.logging import configure_logging
from greenlight.data.errors import StoreError
from greenlight.data.models import Models
from greenlight.migrations import run_migrations

logger = logging.getLogger(__name__)


def _load(config_dir: Path | None) -> GreenlightConfig:
    try:
        config = load_config(config_dir)
    except ConfigError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)
    configure_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_root=config.logging.log_root,
    )
    return config


@click.group()
@click.version_option(version="0.1.0")
@click.option(
    "--config",
    "config_dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Directory containing greenlight.toml (defaults to environment variables)",
)
@click.pass_context
def cli(ctx: click.Context, config_dir: Path | None) -> None:
    """Greenlight — movie catalogue data tools."""
    ctx.obj = _load(config_dir)


@cli.command()
@click.option("--revision", default="head", show_default=True, help="Target revision")
@click.pass_obj
def migrate(config: GreenlightConfig, revision: str) -> None:
    """Provision the database and upgrade its schema."""
    db = config.database.to_database()
    asyncio.run(db.provision())
    run_migrations(db.url(), revision=revision)
    click.echo(f"Database {db.db_name} migrated to {revision}")


@cli.group()
def permissions() -> None:
    """Inspect and grant user permissions."""


@permissions.command("list")
@click.argument("user_id", type=int)
@click.pass_obj
def list_permissions(config: GreenlightConfig, user_id: int) -> None:
    """List the permission codes held by USER_ID."""
    codes = asyncio.run(_list_permissions(config, user_id))
    if not codes:
        click.echo(f"User {user_id} has no permissions")
        return
    for code in codes:
        click.echo(code)


@permissions.command("grant")
@click.argument("user_id", type=int)
@click.argument("codes", nargs=-1, required=True)
@click.pass_obj
def grant_permissions(config: GreenlightConfig, user_id: int, codes: tuple[str, ...]) -> None:
    """Grant one or more permission CODES to USER_ID."""
    asyncio.run(_grant_permissions(config, user_id, codes))
    click.echo(f"Granted {', '.join(codes)} to user {user_id}")


async def _list_permissions(config: GreenlightConfig, user_id: int) -> list[str]:
    db = config.database.to_database()
    await db.connect()
    try:
        models = Models.from_pool(db, timeout=config.query.timeout_s)
        return list(await models.permissions.get_all_for_user(user_id))
    except StoreError as exc:
        raise click.ClickException(str(exc)) from exc
    finally:
        await db.close()


async def _grant_permissions(
    config: GreenlightConfig, user_id: int, codes: tuple[str, ...]
) -> None:
    db = config.database.to_database()
    await db.connect()
    try:
        models = Models.from_pool(db, timeout=config.query.timeout_s)
        await models.permissions.add_for_user(user_id, *codes)
    except StoreError as exc:
        raise click.ClickException(str(exc)) from exc
    finally:
        await db.close()
