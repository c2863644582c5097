"""
Жизненный цикл топиков форум-группы.

Состояния диалога: нет топика -> открыт <-> закрыт. Закрытие не удаляет
маппинг; удаляет его только обнаруженное удаление топика в Telegram и
явная команда /forget. Без форум-группы все диалоги идут админу в ЛС.
"""
from dataclasses import dataclass

import telebot

from deskrelay.bot.keyboards import conversation_keyboard
from deskrelay.bot.messages import THREAD_NAME, WELCOME
from deskrelay.logging import logger
from deskrelay.services.mapping_store import MappingStore
from deskrelay.services.telegram_errors import is_not_modified, is_thread_deleted

# Ограничение Bot API на длину названия топика
MAX_THREAD_NAME_LENGTH = 128


@dataclass(frozen=True)
class Destination:
    chat_id: int
    thread_id: int | None = None

    @property
    def is_thread(self) -> bool:
        return self.thread_id is not None


class ThreadManager:
    def __init__(
        self,
        bot: telebot.TeleBot,
        store: MappingStore,
        admin_chat_id: int,
        forum_chat_id: int | None,
        chatwoot_base_url: str,
    ):
        self._bot = bot
        self._store = store
        self.admin_chat_id = admin_chat_id
        self.forum_chat_id = forum_chat_id
        self._chatwoot_base_url = chatwoot_base_url

    @property
    def enabled(self) -> bool:
        return self.forum_chat_id is not None

    def resolve_destination(self, conversation_id: int, account_id: int, sender_name: str) -> Destination:
        """Топик диалога (создаётся при первом событии) или ЛС админа."""
        thread_id = self.ensure_thread(conversation_id, account_id, sender_name)
        if thread_id is None:
            return Destination(chat_id=self.admin_chat_id)
        return Destination(chat_id=self.forum_chat_id, thread_id=thread_id)

    def ensure_thread(self, conversation_id: int, account_id: int, sender_name: str) -> int | None:
        if not self.enabled:
            return None

        existing = self._store.get_thread_by_conversation(conversation_id)
        if existing is not None:
            return existing.thread_id

        name = THREAD_NAME.format(name=sender_name, conversation_id=conversation_id)[:MAX_THREAD_NAME_LENGTH]
        try:
            topic = self._bot.create_forum_topic(self.forum_chat_id, name)
        except Exception as e:
            logger.error("Failed to create forum topic for conversation %d: %s", conversation_id, e)
            return None

        thread_id = topic.message_thread_id
        self._store.upsert_thread_mapping(conversation_id, account_id, thread_id, name)
        logger.info("Forum topic created: %s (thread %d)", name, thread_id)

        self._send_welcome(conversation_id, account_id, thread_id)
        return thread_id

    def _send_welcome(self, conversation_id: int, account_id: int, thread_id: int) -> None:
        try:
            self._bot.send_message(
                self.forum_chat_id,
                WELCOME,
                parse_mode="HTML",
                message_thread_id=thread_id,
                reply_markup=conversation_keyboard(
                    self._chatwoot_base_url, conversation_id, account_id, forum_mode=True
                ),
            )
        except Exception as e:
            logger.error("Failed to send welcome message to thread %d: %s", thread_id, e)

    def close(self, conversation_id: int) -> bool:
        """Закрыть топик диалога. Маппинг сохраняется."""
        return self._transition(conversation_id, self._bot.close_forum_topic, "closed")

    def reopen(self, conversation_id: int) -> bool:
        """Переоткрыть топик. Уже открытый топик считается успехом."""
        return self._transition(conversation_id, self._bot.reopen_forum_topic, "reopened")

    def _transition(self, conversation_id: int, call, label: str) -> bool:
        if not self.enabled:
            return False

        thread = self._store.get_thread_by_conversation(conversation_id)
        if thread is None:
            return False

        try:
            call(self.forum_chat_id, thread.thread_id)
        except Exception as e:
            if is_not_modified(e):
                logger.info("Thread %d of conversation %d already %s", thread.thread_id, conversation_id, label)
                return True
            if is_thread_deleted(e):
                logger.warning("Thread %d of conversation %d was deleted in Telegram", thread.thread_id, conversation_id)
                self.drop(conversation_id)
                return False
            logger.error("Failed to mark thread %d as %s: %s", thread.thread_id, label, e)
            return False

        logger.info("Thread %d of conversation %d %s", thread.thread_id, conversation_id, label)
        return True

    def drop(self, conversation_id: int) -> None:
        """Забыть топик (удалён в Telegram): следующее событие создаст новый."""
        if self._store.delete_thread_mapping(conversation_id):
            logger.info("Stale thread mapping removed for conversation %d", conversation_id)

    def forget(self, conversation_id: int) -> bool:
        """Закрыть топик и отвязать его от диалога."""
        thread = self._store.get_thread_by_conversation(conversation_id)
        if thread is None:
            return False
        self.close(conversation_id)
        self.drop(conversation_id)
        return True
