"""Tests for the SQL migration runner."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from shiftcal.database import create_engine
from shiftcal.db.migrate import (
    MIGRATIONS_DIR,
    MigrationError,
    apply_migrations,
    discover_migrations,
    migrate_database,
    split_statements,
)


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    eng = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'migrate.db'}", transactional_ddl=True)
    yield eng
    await eng.dispose()


async def _schema(engine: AsyncEngine) -> list[tuple[str, str]]:
    async with engine.connect() as conn:
        result = await conn.execute(
            text("SELECT name, sql FROM sqlite_master WHERE sql IS NOT NULL ORDER BY name")
        )
        return [(row[0], row[1]) for row in result]


async def _ledger(engine: AsyncEngine) -> list[str]:
    async with engine.connect() as conn:
        result = await conn.execute(text("SELECT name FROM _migrations ORDER BY name"))
        return [row[0] for row in result]


async def _table_exists(engine: AsyncEngine, name: str) -> bool:
    async with engine.connect() as conn:
        result = await conn.execute(
            text("SELECT COUNT(*) FROM sqlite_master WHERE type = 'table' AND name = :name"), {"name": name}
        )
        return bool(result.scalar())


class TestDiscovery:
    def test_packaged_units_are_ordered(self):
        names = [p.name for p in discover_migrations(MIGRATIONS_DIR)]
        assert names == ["001_initial.sql", "002_google_calendar.sql", "003_shares.sql"]

    def test_missing_directory_is_empty(self, tmp_path: Path):
        assert discover_migrations(tmp_path / "nope") == []

    def test_lexicographic_order(self, tmp_path: Path):
        for name in ("010_c.sql", "002_b.sql", "001_a.sql"):
            (tmp_path / name).write_text("SELECT 1;")
        assert [p.name for p in discover_migrations(tmp_path)] == ["001_a.sql", "002_b.sql", "010_c.sql"]

    @pytest.mark.parametrize(
        "bad_name",
        ["1_short.sql", "001-dash.sql", "001_ok.txt", "README.md", "001_.sql.bak", "__002_x.sql", "__init__.py"],
    )
    def test_bad_name_rejected(self, tmp_path: Path, bad_name: str):
        (tmp_path / "001_ok.sql").write_text("SELECT 1;")
        (tmp_path / bad_name).write_text("SELECT 1;")
        with pytest.raises(MigrationError, match="Invalid migration filenames"):
            discover_migrations(tmp_path)

    def test_subdirectories_ignored(self, tmp_path: Path):
        (tmp_path / "001_a.sql").write_text("SELECT 1;")
        (tmp_path / "__pycache__").mkdir()
        (tmp_path / "__pycache__" / "stale.pyc").write_bytes(b"")
        assert [p.name for p in discover_migrations(tmp_path)] == ["001_a.sql"]


class TestSplitStatements:
    def test_splits_on_semicolons(self):
        script = "CREATE TABLE a (x INTEGER);\n\nCREATE TABLE b (y INTEGER);\n"
        assert split_statements(script) == ["CREATE TABLE a (x INTEGER);", "CREATE TABLE b (y INTEGER);"]

    def test_keeps_trigger_body_together(self):
        script = (
            "CREATE TABLE a (x INTEGER);\n"
            "CREATE TRIGGER t AFTER INSERT ON a\n"
            "BEGIN\n"
            "  UPDATE a SET x = x + 1;\n"
            "END;\n"
        )
        statements = split_statements(script)
        assert len(statements) == 2
        assert statements[1].startswith("CREATE TRIGGER")
        assert statements[1].endswith("END;")

    def test_trailing_statement_without_semicolon(self):
        assert split_statements("SELECT 1;\nSELECT 2") == ["SELECT 1;", "SELECT 2"]

    def test_trailing_comment_ignored(self):
        assert split_statements("SELECT 1;\n-- done\n") == ["SELECT 1;"]


class TestApplyMigrations:
    async def test_applies_packaged_units(self, engine: AsyncEngine):
        applied = await apply_migrations(engine)
        assert applied == ["001_initial.sql", "002_google_calendar.sql", "003_shares.sql"]
        for table in ("users", "labels", "calendars", "otc", "oauth_states", "google_tokens", "shares"):
            assert await _table_exists(engine, table)

    async def test_idempotent(self, engine: AsyncEngine):
        await apply_migrations(engine)
        schema_before = await _schema(engine)

        assert await apply_migrations(engine) == []

        assert await _schema(engine) == schema_before
        assert await _ledger(engine) == ["001_initial.sql", "002_google_calendar.sql", "003_shares.sql"]

    async def test_only_pending_units_run(self, engine: AsyncEngine, tmp_path: Path):
        units = tmp_path / "units"
        units.mkdir()
        (units / "001_a.sql").write_text("CREATE TABLE a (x INTEGER);")
        assert await apply_migrations(engine, units) == ["001_a.sql"]

        (units / "002_b.sql").write_text("CREATE TABLE b (y INTEGER);")
        assert await apply_migrations(engine, units) == ["002_b.sql"]
        assert await _ledger(engine) == ["001_a.sql", "002_b.sql"]

    async def test_bad_name_aborts_before_anything_runs(self, engine: AsyncEngine, tmp_path: Path):
        units = tmp_path / "units"
        units.mkdir()
        (units / "001_a.sql").write_text("CREATE TABLE a (x INTEGER);")
        (units / "2_typo.sql").write_text("CREATE TABLE b (y INTEGER);")

        with pytest.raises(MigrationError):
            await apply_migrations(engine, units)

        assert not await _table_exists(engine, "a")
        assert await _ledger(engine) == []

    async def test_failing_unit_leaves_no_trace(self, engine: AsyncEngine, tmp_path: Path):
        units = tmp_path / "units"
        units.mkdir()
        (units / "001_ok.sql").write_text("CREATE TABLE ok (x INTEGER);")
        (units / "002_broken.sql").write_text(
            "CREATE TABLE half (x INTEGER);\nINSERT INTO does_not_exist VALUES (1);\n"
        )

        with pytest.raises(MigrationError, match="002_broken.sql"):
            await apply_migrations(engine, units)

        assert await _table_exists(engine, "ok")
        assert not await _table_exists(engine, "half")
        assert await _ledger(engine) == ["001_ok.sql"]

    async def test_missing_directory_is_noop(self, engine: AsyncEngine, tmp_path: Path):
        assert await apply_migrations(engine, tmp_path / "missing") == []


class TestMigrateDatabase:
    async def test_applies_through_own_engine(self, tmp_path: Path):
        url = f"sqlite+aiosqlite:///{tmp_path / 'fresh.db'}"
        assert await migrate_database(url) == ["001_initial.sql", "002_google_calendar.sql", "003_shares.sql"]
        assert await migrate_database(url) == []

    async def test_failing_unit_rolls_back(self, tmp_path: Path):
        url = f"sqlite+aiosqlite:///{tmp_path / 'broken.db'}"
        units = tmp_path / "units"
        units.mkdir()
        (units / "001_broken.sql").write_text("CREATE TABLE half (x INTEGER);\nINSERT INTO nowhere VALUES (1);\n")

        with pytest.raises(MigrationError, match="001_broken.sql"):
            await migrate_database(url, units)

        check = create_engine(url)
        try:
            assert not await _table_exists(check, "half")
        finally:
            await check.dispose()
