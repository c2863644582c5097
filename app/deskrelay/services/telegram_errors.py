"""
Разбор ошибок Bot API, от которых зависит логика релея.

Telegram различает ситуации только текстом description, поэтому
классификация идёт по подстрокам.
"""
from dataclasses import dataclass
from enum import Enum

import telebot
from telebot.apihelper import ApiTelegramException

from deskrelay.logging import logger

_THREAD_DELETED_MARKERS = ("TOPIC_DELETED", "message thread not found", "TOPIC_ID_INVALID")
_NOT_MODIFIED_MARKERS = ("message is not modified", "TOPIC_NOT_MODIFIED")


def _description(exc: BaseException) -> str:
    if isinstance(exc, ApiTelegramException):
        return exc.description or ""
    return str(exc)


def is_thread_deleted(exc: BaseException) -> bool:
    """Топик удалён в Telegram (или никогда не существовал)."""
    description = _description(exc)
    return any(marker in description for marker in _THREAD_DELETED_MARKERS)


def is_not_modified(exc: BaseException) -> bool:
    """Запрошенное состояние уже достигнуто: текст тот же, топик уже открыт/закрыт."""
    description = _description(exc)
    return any(marker in description for marker in _NOT_MODIFIED_MARKERS)


class EditStatus(str, Enum):
    EDITED = "edited"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass(frozen=True)
class EditResult:
    status: EditStatus
    error: str | None = None

    @property
    def ok(self) -> bool:
        """UNCHANGED — не ошибка: на экране уже нужное состояние."""
        return self.status is not EditStatus.FAILED


def edit_controls(
    bot: telebot.TeleBot,
    chat_id: int,
    message_id: int,
    reply_markup: telebot.types.InlineKeyboardMarkup | None,
    text: str | None = None,
) -> EditResult:
    """Обновить кнопки (и, если передан, текст) ранее отправленного сообщения."""
    try:
        if text is not None:
            bot.edit_message_text(
                text,
                chat_id=chat_id,
                message_id=message_id,
                reply_markup=reply_markup,
                parse_mode="HTML",
            )
        else:
            bot.edit_message_reply_markup(chat_id=chat_id, message_id=message_id, reply_markup=reply_markup)
    except Exception as e:
        if is_not_modified(e):
            return EditResult(EditStatus.UNCHANGED)
        logger.warning("Failed to edit controls of message %d in chat %d: %s", message_id, chat_id, e)
        return EditResult(EditStatus.FAILED, error=str(e))
    return EditResult(EditStatus.EDITED)
