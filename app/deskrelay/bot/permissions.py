"""
Проверка прав отправителей.

Два уровня доступа:
  - admin     — администратор (в любом чате, включая ЛС с ботом)
  - forum     — любой участник форум-группы с топиками
Всё остальное молча игнорируется.
"""
import telebot

from deskrelay.config import settings


def is_admin(user_id: int) -> bool:
    """Только администратор."""
    return user_id == settings.admin_id


def is_forum_chat(chat_id: int) -> bool:
    return settings.forum_chat_id is not None and chat_id == settings.forum_chat_id


def is_authorized(message: telebot.types.Message) -> bool:
    """Админ или сообщение из форум-группы."""
    if message.from_user is None:
        return False
    return is_admin(message.from_user.id) or is_forum_chat(message.chat.id)


def is_authorized_callback(call: telebot.types.CallbackQuery) -> bool:
    if is_admin(call.from_user.id):
        return True
    return call.message is not None and is_forum_chat(call.message.chat.id)
