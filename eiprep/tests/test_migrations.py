"""
Tests for the bundled alembic migrations.
"""

import pytest
from sqlalchemy import create_engine, inspect

from eiprep.database.base import metadata
from eiprep.database.session import run_migrations, sync_database_url


class TestMigrations:
    def test_upgrade_creates_schema(self, tmp_path):
        """Test upgrading an empty database creates every table of the ORM schema."""
        path = tmp_path / "migrated.db"

        run_migrations(f"sqlite+aiosqlite:///{path}")

        engine = create_engine(f"sqlite:///{path}")
        inspector = inspect(engine)
        tables = set(inspector.get_table_names())
        assert set(metadata.tables) <= tables
        assert "alembic_version" in tables
        indexes = {index["name"] for index in inspector.get_indexes("user_test_sessions")}
        assert "idx_user_test_sessions_user_status" in indexes
        columns = {column["name"] for column in inspector.get_columns("user_test_sessions")}
        assert {"earned_points", "possible_points", "reflection_score", "legacy_payload"} <= columns
        engine.dispose()

    def test_upgrade_is_idempotent(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'twice.db'}"

        run_migrations(url)
        run_migrations(url)

        engine = create_engine(url)
        with engine.connect() as conn:
            assert conn.exec_driver_sql("SELECT version_num FROM alembic_version").scalar() == "001"
        engine.dispose()


class TestSyncDatabaseUrl:
    @pytest.mark.parametrize("url, expected", [
        ("sqlite+aiosqlite:///./eiprep.db", "sqlite:///./eiprep.db"),
        ("postgresql+asyncpg://user:secret@db:5432/eiprep", "postgresql://user:secret@db:5432/eiprep"),
        ("sqlite:///plain.db", "sqlite:///plain.db"),
    ])
    def test_strips_async_driver(self, url, expected):
        assert sync_database_url(url) == expected
