from telebot.types import InlineKeyboardMarkup, InlineKeyboardButton

from deskrelay.bot.actions import Intent, build_token
from deskrelay.bot.messages import BTN_RESOLVE, BTN_REOPEN, BTN_CLOSE_THREAD, BTN_VIEW

# Состояние диалога, отражаемое кнопками управляющего сообщения
STATE_OPEN = "open"
STATE_RESOLVED = "resolved"
STATE_THREAD_CLOSED = "thread_closed"


def conversation_url(base_url: str, conversation_id: int, account_id: int) -> str:
    return f"{base_url}/app/accounts/{account_id}/conversations/{conversation_id}"


def conversation_keyboard(
    base_url: str,
    conversation_id: int,
    account_id: int,
    forum_mode: bool,
    state: str = STATE_OPEN,
) -> InlineKeyboardMarkup:
    """
    Кнопки управления диалогом.

    В ЛС админа — только "решено" и ссылка; в режиме топиков добавляются
    "переоткрыть" и "закрыть топик".
    """
    resolve = InlineKeyboardButton(
        BTN_RESOLVE, callback_data=build_token(Intent.RESOLVE, conversation_id, account_id)
    )
    reopen = InlineKeyboardButton(
        BTN_REOPEN, callback_data=build_token(Intent.REOPEN, conversation_id, account_id)
    )
    close_thread = InlineKeyboardButton(
        BTN_CLOSE_THREAD, callback_data=build_token(Intent.CLOSE_THREAD, conversation_id, account_id)
    )
    view = InlineKeyboardButton(BTN_VIEW, url=conversation_url(base_url, conversation_id, account_id))

    markup = InlineKeyboardMarkup()
    if state == STATE_RESOLVED:
        markup.row(reopen)
    elif state == STATE_THREAD_CLOSED:
        markup.row(resolve, reopen)
    elif forum_mode:
        markup.row(resolve, reopen)
        markup.row(close_thread)
    else:
        markup.row(resolve)
    markup.row(view)
    return markup
