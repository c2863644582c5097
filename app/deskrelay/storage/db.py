from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import sessionmaker, Session

from deskrelay.config import settings

# Фиксированные настройки SQLite: влияют только на скорость, не на корректность
SQLITE_PRAGMAS = (
    "PRAGMA journal_mode = WAL",
    "PRAGMA synchronous = NORMAL",
    "PRAGMA temp_store = MEMORY",
    "PRAGMA busy_timeout = 5000",
    "PRAGMA cache_size = -64000",
)


def _on_sqlite_connect(dbapi_connection, connection_record) -> None:
    # Отключаем неявные BEGIN драйвера pysqlite: иначе DDL миграций
    # выполняется вне транзакции и не откатывается.
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    try:
        for pragma in SQLITE_PRAGMAS:
            cursor.execute(pragma)
    finally:
        cursor.close()


def _on_sqlite_begin(conn) -> None:
    conn.exec_driver_sql("BEGIN")


def create_db_engine(url: str) -> Engine:
    """Создать engine; для SQLite навешивает PRAGMA и явные транзакции."""
    if url.startswith("sqlite"):
        # Webhook-обработчики работают в пуле потоков
        engine = create_engine(url, echo=False, connect_args={"check_same_thread": False})
        event.listen(engine, "connect", _on_sqlite_connect)
        event.listen(engine, "begin", _on_sqlite_begin)
        return engine
    return create_engine(url, echo=False, pool_pre_ping=True)


engine = create_db_engine(settings.database_url)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_session() -> Session:
    """Создать новую сессию БД."""
    return SessionLocal()
