import telebot

from deskrelay.bot.messages import CHAT_INFO
from deskrelay.bot.permissions import is_admin, is_authorized, is_authorized_callback
from deskrelay.logging import logger
from deskrelay.services.outbound import OutboundRelay


def register_handlers(bot: telebot.TeleBot, relay: OutboundRelay) -> None:
    """Регистрирует все хендлеры бота."""

    @bot.message_handler(commands=["getid"])
    def handle_getid(message: telebot.types.Message) -> None:
        """Показать chat_id текущего чата (нужен для FORUM_CHAT_ID). Только админ."""
        user = message.from_user
        if user is None or not is_admin(user.id):
            return

        chat = message.chat
        title = chat.title or chat.username or chat.first_name or "—"
        bot.reply_to(
            message,
            CHAT_INFO.format(chat_id=chat.id, chat_type=chat.type, title=title),
            parse_mode="HTML",
        )
        logger.info("/getid by admin in chat %d (%s)", chat.id, chat.type)

    @bot.message_handler(commands=["forget"], func=is_authorized)
    def handle_forget(message: telebot.types.Message) -> None:
        """Закрыть текущий топик и отвязать его от диалога Chatwoot."""
        try:
            relay.forget_thread(message)
        except Exception as e:
            logger.error("/forget failed in chat %d: %s", message.chat.id, e)

    @bot.message_handler(content_types=["text"], func=is_authorized)
    def handle_staff_text(message: telebot.types.Message) -> None:
        """Ответ staff клиенту: reply на пересланное сообщение или текст в топике."""
        try:
            relay.handle_text(message)
        except Exception as e:
            logger.error("Staff text handling failed in chat %d: %s", message.chat.id, e)

    @bot.callback_query_handler(func=is_authorized_callback)
    def handle_action(call: telebot.types.CallbackQuery) -> None:
        """Кнопки управления диалогом."""
        try:
            relay.handle_callback(call)
        except Exception as e:
            logger.error("Callback %r failed: %s", call.data, e)
