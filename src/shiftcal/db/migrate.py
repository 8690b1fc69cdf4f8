"""
Forward-only SQL migration runner.

Migration units are ``NNN_name.sql`` files applied in lexicographic order.
Each pending unit runs inside one transaction together with its ledger
row, so a unit is either fully applied and recorded or not at all.
There are no down-migrations: an applied unit is never edited.

Run ``python -m shiftcal.db.migrate`` to apply pending units against the
configured database without starting the API.
"""

from __future__ import annotations

import asyncio
import re
import sqlite3
import sys
from pathlib import Path

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from shiftcal.database import create_engine

logger = structlog.get_logger()

MIGRATION_PATTERN = re.compile(r"^\d{3}_\w+\.sql$")
MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"
LEDGER_TABLE = "_migrations"


class MigrationError(RuntimeError):
    """Raised when migrations cannot be discovered or applied."""


def discover_migrations(directory: Path) -> list[Path]:
    """
    List migration units in apply order.

    Every file in the directory must match ``NNN_name.sql``; a single
    stray or misspelled file aborts discovery before anything is applied.
    Subdirectories such as ``__pycache__`` are not units and are ignored.

    Returns:
        Sorted list of migration file paths (empty if the directory is missing).

    Raises:
        MigrationError: If any entry has an invalid name.
    """
    if not directory.is_dir():
        return []

    entries = sorted(p.name for p in directory.iterdir() if not p.is_dir())
    invalid = [name for name in entries if not MIGRATION_PATTERN.match(name)]
    if invalid:
        msg = f"Invalid migration filenames (expected NNN_name.sql): {', '.join(invalid)}"
        raise MigrationError(msg)
    return [directory / name for name in entries]


def split_statements(script: str) -> list[str]:
    """Split a SQL script into single statements, keeping trigger bodies intact."""
    statements: list[str] = []
    buffer = ""
    for line in script.splitlines(keepends=True):
        buffer += line
        if sqlite3.complete_statement(buffer):
            statements.append(buffer.strip())
            buffer = ""

    # A final statement without a trailing semicolon still counts.
    leftover = [ln for ln in buffer.splitlines() if ln.strip() and not ln.strip().startswith("--")]
    if leftover:
        statements.append(buffer.strip())
    return statements


async def _ensure_ledger(conn: AsyncConnection) -> None:
    await conn.execute(
        text(
            f"CREATE TABLE IF NOT EXISTS {LEDGER_TABLE} ("
            "name TEXT PRIMARY KEY, "
            "applied_at TEXT DEFAULT CURRENT_TIMESTAMP)"
        )
    )


async def applied_migrations(conn: AsyncConnection) -> set[str]:
    """Names already recorded in the ledger."""
    result = await conn.execute(text(f"SELECT name FROM {LEDGER_TABLE}"))  # noqa: S608
    return {row[0] for row in result}


async def apply_migrations(engine: AsyncEngine, directory: Path | None = None) -> list[str]:
    """
    Apply every pending migration unit. Safe to call on every start.

    Args:
        engine: Target database engine. SQLite engines need ``transactional_ddl=True``
            (see ``migrate_database``) for a failing unit to roll back whole.
        directory: Directory holding the ``.sql`` units (defaults to the packaged ones).

    Returns:
        Names of the units applied by this call, in order.

    Raises:
        MigrationError: On an invalid filename or a failing statement.
    """
    directory = directory or MIGRATIONS_DIR

    async with engine.begin() as conn:
        await _ensure_ledger(conn)

    files = discover_migrations(directory)
    if not files:
        return []

    async with engine.connect() as conn:
        already_applied = await applied_migrations(conn)

    newly_applied: list[str] = []
    for path in files:
        if path.name in already_applied:
            continue

        statements = split_statements(path.read_text(encoding="utf-8"))
        try:
            async with engine.begin() as conn:
                for statement in statements:
                    await conn.exec_driver_sql(statement)
                await conn.execute(
                    text(f"INSERT INTO {LEDGER_TABLE} (name) VALUES (:name)"),  # noqa: S608
                    {"name": path.name},
                )
        except Exception as e:
            logger.error("migration_failed", migration=path.name, error=str(e))
            msg = f"Migration {path.name} failed: {e}"
            raise MigrationError(msg) from e

        logger.info("migration_applied", migration=path.name, statements=len(statements))
        newly_applied.append(path.name)

    return newly_applied


async def migrate_database(url: str, directory: Path | None = None) -> list[str]:
    """Apply pending units through a short-lived engine with transactional DDL."""
    engine = create_engine(url, transactional_ddl=True)
    try:
        return await apply_migrations(engine, directory)
    finally:
        await engine.dispose()


async def _main() -> int:
    from shiftcal.config import get_settings
    from shiftcal.middleware.logging import setup_logging

    settings = get_settings()
    setup_logging(settings)
    try:
        applied = await migrate_database(settings.database_url)
    except MigrationError:
        logger.exception("migrations_aborted")
        return 1
    logger.info("migrations_complete", applied=applied)
    return 0


def main() -> None:
    """Console entry point."""
    sys.exit(asyncio.run(_main()))


if __name__ == "__main__":
    main()
