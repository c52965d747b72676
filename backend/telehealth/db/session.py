from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator

if TYPE_CHECKING:  # pragma: no cover - typing only
    from alembic.config import Config

from sqlmodel import SQLModel, Session, create_engine

from telehealth.core.config import settings

logger = logging.getLogger(__name__)

ALEMBIC_INSTALL_HINT = 'Alembic is required to run database migrations. Install it with `pip install -e ".[dev]"`.'


def _require_alembic() -> tuple[Any, Any, Any]:
    try:
        from alembic import command as alembic_command
        from alembic.config import Config as AlembicConfig
        from alembic.script import ScriptDirectory as AlembicScriptDirectory
    except ImportError as exc:  # pragma: no cover - exercised via unit test
        raise RuntimeError(ALEMBIC_INSTALL_HINT) from exc

    return alembic_command, AlembicConfig, AlembicScriptDirectory


connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
engine = create_engine(settings.database_url, echo=False, connect_args=connect_args)


def get_alembic_config() -> "Config":
    _, AlembicConfig, _ = _require_alembic()
    migrations_path = Path(__file__).resolve().parent / "migrations"
    config = AlembicConfig()
    config.set_main_option("script_location", str(migrations_path))
    config.set_main_option("sqlalchemy.url", settings.database_url)
    return config


def init_db() -> None:
    alembic_command, _, AlembicScriptDirectory = _require_alembic()
    config = get_alembic_config()
    alembic_command.upgrade(config, "head")
    SQLModel.metadata.create_all(engine)
    script = AlembicScriptDirectory.from_config(config)
    head_revision = script.get_current_head()
    logger.info("Database schema at revision %s", head_revision)


@contextmanager
def get_session() -> Iterator[Session]:
    with Session(engine) as session:
        yield session
