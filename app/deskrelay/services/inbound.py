"""Chatwoot -> Telegram."""
import html
from typing import Any

import telebot

from deskrelay.bot.keyboards import conversation_keyboard
from deskrelay.bot.messages import (
    INCOMING,
    OUTGOING,
    SENDER_EMAIL,
    ATTACHMENT_HINT,
    ATTACHMENT_ONLY,
    NO_CONTENT,
    UNKNOWN_SENDER,
)
from deskrelay.logging import logger
from deskrelay.services.attachments import AttachmentSender, RelayTarget
from deskrelay.services.dedup import EventDeduplicator
from deskrelay.services.events import (
    ConversationStatusChanged,
    MalformedEvent,
    MessageCreated,
    parse_event,
)
from deskrelay.services.mapping_store import MappingStore
from deskrelay.services.telegram_errors import is_thread_deleted
from deskrelay.services.threads import ThreadManager


def format_message(event: MessageCreated) -> str:
    """Текст пересылаемого сообщения (HTML)."""
    name = html.escape(event.sender_name or UNKNOWN_SENDER)
    if event.content:
        content = html.escape(event.content)
    else:
        content = ATTACHMENT_ONLY if event.attachments else NO_CONTENT
    hint = ATTACHMENT_HINT.format(count=len(event.attachments)) if event.attachments else ""

    if event.is_incoming:
        email = SENDER_EMAIL.format(email=html.escape(event.sender_email)) if event.sender_email else ""
        return INCOMING.format(name=name, email=email, content=content, hint=hint)
    return OUTGOING.format(name=name, content=content, hint=hint)


class InboundRelay:
    def __init__(
        self,
        bot: telebot.TeleBot,
        store: MappingStore,
        threads: ThreadManager,
        attachments: AttachmentSender,
        chatwoot_base_url: str,
        deduplicator: EventDeduplicator | None = None,
    ):
        self._bot = bot
        self._store = store
        self._threads = threads
        self._attachments = attachments
        self._chatwoot_base_url = chatwoot_base_url
        self._dedup = deduplicator

    def dispatch(self, payload: Any) -> None:
        """Обработать тело webhook. Ошибки только логируются: ответ Chatwoot уже отправлен."""
        try:
            event = parse_event(payload)
        except MalformedEvent as e:
            logger.warning("Dropping malformed Chatwoot event: %s", e)
            return

        if event is None:
            return

        try:
            if isinstance(event, MessageCreated):
                self.handle_message_created(event)
            elif isinstance(event, ConversationStatusChanged):
                self.handle_status_changed(event)
        except Exception as e:
            logger.error("Failed to process Chatwoot event %s: %s", type(event).__name__, e)

    def handle_message_created(self, event: MessageCreated) -> int | None:
        """Переслать сообщение и вложения. Возвращает id отправленного сообщения."""
        if (
            self._dedup is not None
            and event.message_id is not None
            and not self._dedup.first_seen(f"message:{event.message_id}")
        ):
            return None

        sender_name = event.sender_name or UNKNOWN_SENDER
        destination = self._threads.resolve_destination(event.conversation_id, event.account_id, sender_name)
        text = format_message(event)

        try:
            sent = self._bot.send_message(
                destination.chat_id,
                text,
                parse_mode="HTML",
                message_thread_id=destination.thread_id,
                reply_markup=self._keyboard(event, forum_mode=destination.is_thread),
            )
        except Exception as e:
            if destination.is_thread and is_thread_deleted(e):
                return self._resend_to_new_thread(event, sender_name, text)
            logger.error(
                "Failed to relay message of conversation %d to chat %d: %s",
                event.conversation_id,
                destination.chat_id,
                e,
            )
            return None

        self._store.upsert_message_mapping(
            sent.message_id, event.conversation_id, event.account_id, event.message_id
        )
        logger.info(
            "Relayed %s message of conversation %d to chat %d (message %d)",
            event.message_type,
            event.conversation_id,
            destination.chat_id,
            sent.message_id,
        )

        if event.attachments:
            self._attachments.send_all(
                list(event.attachments),
                RelayTarget(
                    chat_id=destination.chat_id,
                    thread_id=destination.thread_id,
                    conversation_id=event.conversation_id,
                    account_id=event.account_id,
                    chatwoot_message_id=event.message_id,
                ),
            )
        return sent.message_id

    def _resend_to_new_thread(self, event: MessageCreated, sender_name: str, text: str) -> int | None:
        """Топик удалён: одна попытка пересоздать его и переотправить текст (без вложений)."""
        conversation_id = event.conversation_id
        logger.warning("Thread of conversation %d was deleted, recreating it", conversation_id)
        self._threads.drop(conversation_id)

        thread_id = self._threads.ensure_thread(conversation_id, event.account_id, sender_name)
        if thread_id is None:
            logger.error("Could not recreate thread for conversation %d, message dropped", conversation_id)
            return None

        try:
            sent = self._bot.send_message(
                self._threads.forum_chat_id,
                text,
                parse_mode="HTML",
                message_thread_id=thread_id,
                reply_markup=self._keyboard(event, forum_mode=True),
            )
        except Exception as e:
            logger.error("Resend to new thread %d failed, giving up: %s", thread_id, e)
            return None

        self._store.upsert_message_mapping(sent.message_id, conversation_id, event.account_id, event.message_id)
        logger.info("Message of conversation %d resent to new thread %d", conversation_id, thread_id)
        return sent.message_id

    def handle_status_changed(self, event: ConversationStatusChanged) -> None:
        if not event.is_resolved:
            return
        if self._threads.close(event.conversation_id):
            logger.info("Conversation %d resolved in Chatwoot, thread closed", event.conversation_id)

    def _keyboard(self, event: MessageCreated, forum_mode: bool):
        return conversation_keyboard(
            self._chatwoot_base_url, event.conversation_id, event.account_id, forum_mode=forum_mode
        )
