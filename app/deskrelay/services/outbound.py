"""Telegram -> Chatwoot."""
import re
from dataclasses import dataclass

import telebot

from deskrelay.bot.actions import Intent, parse_token
from deskrelay.bot.keyboards import (
    conversation_keyboard,
    STATE_OPEN,
    STATE_RESOLVED,
    STATE_THREAD_CLOSED,
)
from deskrelay.bot.messages import (
    MUST_REPLY,
    MAPPING_NOT_FOUND,
    REPLY_FAIL,
    UNKNOWN_COMMAND,
    ACTION_RESOLVED,
    ACTION_REOPENED,
    ACTION_THREAD_CLOSED,
    ACTION_EXPIRED,
    ACTION_FAIL,
    FORGET_OK,
    FORGET_NOT_FOUND,
)
from deskrelay.logging import logger
from deskrelay.services.chatwoot import ChatwootClient
from deskrelay.services.mapping_store import MappingStore
from deskrelay.services.telegram_errors import EditResult, edit_controls
from deskrelay.services.threads import ThreadManager

# Команда бота: "/cmd" или "/cmd@bot", за ней пробел или конец строки
_COMMAND_RE = re.compile(r"^/[A-Za-z0-9_]+(@\w+)?(\s|$)")


@dataclass(frozen=True)
class ConversationRef:
    conversation_id: int
    account_id: int | None


class RouteNotFound(LookupError):
    """Не удалось определить диалог; user_message уходит отправителю."""

    def __init__(self, user_message: str):
        super().__init__(user_message)
        self.user_message = user_message


class OutboundRelay:
    def __init__(
        self,
        bot: telebot.TeleBot,
        store: MappingStore,
        threads: ThreadManager,
        chatwoot: ChatwootClient,
        chatwoot_base_url: str,
    ):
        self._bot = bot
        self._store = store
        self._threads = threads
        self._chatwoot = chatwoot
        self._chatwoot_base_url = chatwoot_base_url

    # ---------- ответы staff ----------

    def resolve_reply(self, message: telebot.types.Message) -> ConversationRef:
        """
        Диалог, которому адресован ответ.

        В режиме топиков сообщение внутри топика идёт в диалог топика без
        всякого reply; иначе нужен reply на пересланное ботом сообщение.
        """
        ref = self._ref_by_thread(message)
        if ref is not None:
            return ref

        reply = message.reply_to_message
        # Внутри топика Telegram подставляет в reply служебное сообщение о создании топика
        if reply is None or getattr(reply, "forum_topic_created", None) is not None:
            raise RouteNotFound(MUST_REPLY)

        mapping = self._store.get_message_mapping(reply.message_id)
        if mapping is None:
            raise RouteNotFound(MAPPING_NOT_FOUND)
        return ConversationRef(mapping.conversation_id, mapping.account_id)

    def _ref_by_thread(self, message: telebot.types.Message) -> ConversationRef | None:
        if not self._threads.enabled or message.chat.id != self._threads.forum_chat_id:
            return None
        thread_id = getattr(message, "message_thread_id", None)
        if not thread_id or not getattr(message, "is_topic_message", False):
            return None

        thread = self._store.get_thread_by_thread(thread_id)
        if thread is None:
            return None
        return ConversationRef(thread.conversation_id, thread.account_id)

    def handle_text(self, message: telebot.types.Message) -> bool:
        """Отправить текст staff в Chatwoot. True, если доставлено."""
        text = (message.text or "").strip()
        if not text:
            return False
        # Известные команды перехватывают свои хендлеры, сюда доходят только чужие
        if _COMMAND_RE.match(text):
            self._bot.reply_to(message, UNKNOWN_COMMAND)
            return False

        try:
            ref = self.resolve_reply(message)
        except RouteNotFound as e:
            self._bot.reply_to(message, e.user_message)
            return False
        except Exception as e:
            logger.error("Failed to resolve reply target for message %d: %s", message.message_id, e)
            self._bot.reply_to(message, REPLY_FAIL)
            return False

        try:
            self._chatwoot.create_message(ref.conversation_id, text, account_id=ref.account_id)
        except Exception as e:
            logger.error(
                "Failed to deliver staff reply to conversation %d: staff=%d err=%s",
                ref.conversation_id,
                message.from_user.id,
                e,
            )
            self._bot.reply_to(message, REPLY_FAIL)
            return False

        logger.info(
            "Staff reply delivered: staff=%d conversation=%d",
            message.from_user.id,
            ref.conversation_id,
        )
        return True

    # ---------- кнопки ----------

    def handle_callback(self, call: telebot.types.CallbackQuery) -> None:
        token = parse_token(call.data)
        if token is None:
            self._bot.answer_callback_query(call.id)
            return

        control_message = call.message
        if token.is_legacy:
            mapping = None
            if control_message is not None:
                mapping = self._store.get_message_mapping(control_message.message_id)
            if mapping is None:
                self._bot.answer_callback_query(call.id, ACTION_EXPIRED)
                return
            ref = ConversationRef(mapping.conversation_id, mapping.account_id)
        else:
            ref = ConversationRef(token.conversation_id, token.account_id)

        try:
            answer, state = self._apply(token.intent, ref)
        except Exception as e:
            logger.error("Action %s failed for conversation %d: %s", token.intent.value, ref.conversation_id, e)
            self._bot.answer_callback_query(call.id, ACTION_FAIL)
            return

        self._bot.answer_callback_query(call.id, answer)
        if control_message is not None:
            if token.is_legacy:
                # Старые сообщения: просто убираем кнопки
                edit_controls(self._bot, control_message.chat.id, control_message.message_id, None)
            else:
                self.update_controls(control_message, ref, state)

    def _apply(self, intent: Intent, ref: ConversationRef) -> tuple[str, str]:
        """Выполнить действие. Возвращает (текст ответа, новое состояние кнопок)."""
        conversation_id = ref.conversation_id
        if intent is Intent.RESOLVE:
            self._chatwoot.toggle_status(conversation_id, "resolved", account_id=ref.account_id)
            self._threads.close(conversation_id)
            return ACTION_RESOLVED.format(conversation_id=conversation_id), STATE_RESOLVED

        if intent is Intent.REOPEN:
            self._chatwoot.toggle_status(conversation_id, "open", account_id=ref.account_id)
            self._threads.reopen(conversation_id)
            return ACTION_REOPENED.format(conversation_id=conversation_id), STATE_OPEN

        if not self._threads.close(conversation_id):
            raise RuntimeError(f"thread of conversation {conversation_id} was not closed")
        return ACTION_THREAD_CLOSED.format(conversation_id=conversation_id), STATE_THREAD_CLOSED

    def update_controls(self, control_message: telebot.types.Message, ref: ConversationRef, state: str) -> EditResult:
        """Best-effort: показать на управляющем сообщении кнопки под новое состояние."""
        forum_mode = self._threads.enabled and control_message.chat.id == self._threads.forum_chat_id
        account_id = ref.account_id if ref.account_id is not None else self._chatwoot.account_id
        markup = conversation_keyboard(
            self._chatwoot_base_url, ref.conversation_id, account_id, forum_mode=forum_mode, state=state
        )
        return edit_controls(self._bot, control_message.chat.id, control_message.message_id, markup)

    # ---------- /forget ----------

    def forget_thread(self, message: telebot.types.Message) -> bool:
        """Закрыть топик, в котором вызвана команда, и отвязать его от диалога."""
        ref = self._ref_by_thread(message)
        if ref is None:
            self._bot.reply_to(message, FORGET_NOT_FOUND)
            return False

        # После /forget топик закрыт: ответ шлём до закрытия
        self._bot.reply_to(message, FORGET_OK.format(conversation_id=ref.conversation_id))
        self._threads.forget(ref.conversation_id)
        logger.info("Thread of conversation %d forgotten by staff %d", ref.conversation_id, message.from_user.id)
        return True
