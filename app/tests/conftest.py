import itertools
import os
from types import SimpleNamespace
from unittest.mock import Mock

import pytest

# Settings читаются при импорте модулей приложения, окружение задаём заранее
os.environ.setdefault("BOT_TOKEN", "123456:test-token")
os.environ.setdefault("WEBHOOK_DOMAIN", "relay.test")
os.environ.setdefault("WEBHOOK_SECRET_TOKEN", "test-secret")
os.environ.setdefault("ADMIN_ID", "1000")
os.environ.setdefault("FORUM_CHAT_ID", "")
os.environ.setdefault("CHATWOOT_BASE_URL", "https://chatwoot.test/")
os.environ.setdefault("CHATWOOT_ACCESS_TOKEN", "cw-token")
os.environ.setdefault("CHATWOOT_ACCOUNT_ID", "7")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("REDIS_DSN", "")

from sqlalchemy.orm import sessionmaker  # noqa: E402
from telebot.apihelper import ApiTelegramException  # noqa: E402

from deskrelay.services.mapping_store import MappingStore  # noqa: E402
from deskrelay.storage.db import create_db_engine  # noqa: E402
from deskrelay.storage.schema import run_migrations  # noqa: E402

ADMIN_ID = 1000
FORUM_CHAT_ID = -100500
CHATWOOT_URL = "https://chatwoot.test"


@pytest.fixture
def engine(tmp_path):
    """Файловая SQLite, прогнанная через настоящие миграции."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'mappings.db'}")
    run_migrations(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return MappingStore(sessionmaker(bind=engine, autocommit=False, autoflush=False))


def sent_message(message_id: int) -> SimpleNamespace:
    return SimpleNamespace(message_id=message_id)


@pytest.fixture
def bot():
    """Mock TeleBot: каждая отправка возвращает сообщение с новым message_id."""
    bot = Mock()
    counter = itertools.count(500)

    def _send(*args, **kwargs):
        return sent_message(next(counter))

    for method in ("send_message", "send_photo", "send_video", "send_audio", "send_document"):
        getattr(bot, method).side_effect = _send
    bot.create_forum_topic.return_value = SimpleNamespace(message_thread_id=77)
    return bot


def make_message(
    text: str = "hi",
    chat_id: int = ADMIN_ID,
    user_id: int = ADMIN_ID,
    message_id: int = 1,
    reply_to_message=None,
    message_thread_id: int | None = None,
    is_topic_message: bool = False,
) -> SimpleNamespace:
    """Минимальный Message с полями, которые читает релей."""
    return SimpleNamespace(
        message_id=message_id,
        text=text,
        chat=SimpleNamespace(id=chat_id, type="private" if chat_id > 0 else "supergroup"),
        from_user=SimpleNamespace(id=user_id),
        reply_to_message=reply_to_message,
        message_thread_id=message_thread_id,
        is_topic_message=is_topic_message,
    )


def telegram_error(description: str) -> ApiTelegramException:
    """Ошибка Bot API в том виде, в каком её поднимает telebot."""
    return ApiTelegramException(
        "test_method",
        None,
        {"ok": False, "error_code": 400, "description": description},
    )
