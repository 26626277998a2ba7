"""
Tests for the Alembic migration environment
"""

from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from update_manager.core.config import get_settings

ROOT = Path(__file__).resolve().parents[1]


class TestMigrations:
    """Test that migrations run against the configured database"""

    def test_upgrade_uses_settings_url(self, tmp_path, monkeypatch):
        """alembic upgrade head builds the schema at DATABASE_URL"""
        url = f"sqlite:///{tmp_path / 'migrated.db'}"
        monkeypatch.setattr(get_settings(), "DATABASE_URL", url)
        config = Config(str(ROOT / "alembic.ini"))
        config.set_main_option("script_location", str(ROOT / "alembic"))

        command.upgrade(config, "head")

        tables = set(inspect(create_engine(url)).get_table_names())
        assert {"products", "versions", "deployments", "licenses", "license_allocations"} <= tables
