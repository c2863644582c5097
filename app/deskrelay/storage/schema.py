"""
Версионирование схемы хранилища.

Версия схемы — ревизия Alembic в таблице alembic_version. Все ожидающие
ревизии применяются в одной транзакции: либо коммитятся все, либо ни одна.
"""
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import Engine

from deskrelay.logging import logger

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


class MigrationError(RuntimeError):
    """Миграция не применилась; хранилище осталось на прежней версии."""


def alembic_config() -> Config:
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    return cfg


def head_revision() -> str | None:
    return ScriptDirectory.from_config(alembic_config()).get_current_head()


def current_revision(engine: Engine) -> str | None:
    """Текущая ревизия схемы; None — хранилище ещё не инициализировано."""
    with engine.connect() as conn:
        return MigrationContext.configure(conn).get_current_revision()


def run_migrations(engine: Engine) -> str | None:
    """Применить все pending-миграции. Возвращает итоговую ревизию."""
    target = head_revision()
    current = current_revision(engine)
    if current == target:
        logger.info("Database schema is up to date (revision %s)", current)
        return current

    logger.info("Migrating database schema: %s -> %s", current or "<empty>", target)
    cfg = alembic_config()
    try:
        with engine.begin() as connection:
            cfg.attributes["connection"] = connection
            command.upgrade(cfg, "head")
    except Exception as e:
        logger.critical("Database migration failed, schema left at %s: %s", current or "<empty>", e)
        raise MigrationError(f"migration from {current} to {target} failed: {e}") from e

    logger.info("Database migrations applied (revision %s)", target)
    return target
