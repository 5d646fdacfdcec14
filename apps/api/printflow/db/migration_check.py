"""Startup guard comparing the database revision with the bundled alembic head."""

from __future__ import annotations

from pathlib import Path

from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy.engine import Engine, make_url

from printflow.config import settings
from printflow.db.base import Base

_DB_DIR = Path(__file__).resolve().parent
_ALEMBIC_INI = _DB_DIR.parents[1] / "alembic.ini"


def _alembic_config() -> Config:
    config = Config(str(_ALEMBIC_INI))
    # resolve scripts from the package so the check works from any working directory
    config.set_main_option("script_location", str(_DB_DIR / "migrations"))
    return config


def get_alembic_head_revision() -> str | None:
    return ScriptDirectory.from_config(_alembic_config()).get_current_head()


def get_current_db_revision(engine: Engine) -> str | None:
    with engine.connect() as connection:
        return MigrationContext.configure(connection).get_current_revision()


def assert_db_is_up_to_date(engine: Engine) -> None:
    current, head = get_current_db_revision(engine), get_alembic_head_revision()
    if current == head:
        return
    raise RuntimeError(
        f"Database schema at {current or 'empty'}, expected {head}. Run: alembic upgrade head"
    )


def maybe_create_schema(engine: Engine) -> None:
    """Create tables directly for SQLite and tests; everything else must be migrated."""
    if not settings.auto_create_schema:
        assert_db_is_up_to_date(engine)
        return

    backend = make_url(settings.database_url).get_backend_name()
    if backend != "sqlite" and not settings.testing:
        raise RuntimeError("PRINTFLOW_AUTO_CREATE_SCHEMA is only allowed for SQLite or tests")

    import printflow.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
