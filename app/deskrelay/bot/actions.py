"""
Токены действий в callback_data inline-кнопок.

Формат: "<intent>:<conversation_id>:<account_id>". Голый "resolve" —
старый формат без аргументов: диалог берётся из маппинга сообщения с кнопкой.
"""
from dataclasses import dataclass
from enum import Enum


class Intent(str, Enum):
    RESOLVE = "resolve"
    REOPEN = "reopen"
    CLOSE_THREAD = "close"


@dataclass(frozen=True)
class ActionToken:
    intent: Intent
    conversation_id: int | None = None
    account_id: int | None = None

    @property
    def is_legacy(self) -> bool:
        return self.conversation_id is None

    def encode(self) -> str:
        if self.conversation_id is None:
            return self.intent.value
        parts = [self.intent.value, str(self.conversation_id)]
        if self.account_id is not None:
            parts.append(str(self.account_id))
        return ":".join(parts)


def build_token(intent: Intent, conversation_id: int, account_id: int | None) -> str:
    return ActionToken(intent, conversation_id, account_id).encode()


def parse_token(data: str | None) -> ActionToken | None:
    """Разобрать callback_data. None — не наш формат."""
    if not data:
        return None

    keyword, *args = data.strip().split(":")
    try:
        intent = Intent(keyword)
    except ValueError:
        return None

    if not args:
        # Без аргументов допустим только старый "resolve"
        return ActionToken(intent) if intent is Intent.RESOLVE else None

    if len(args) > 2 or not all(arg.isdigit() for arg in args):
        return None

    conversation_id = int(args[0])
    account_id = int(args[1]) if len(args) == 2 else None
    return ActionToken(intent, conversation_id, account_id)
