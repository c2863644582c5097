"""
Разбор webhook-событий Chatwoot.

Распознаются два вида: message_created и conversation_status_changed.
Всё остальное игнорируется; событие нужного вида без обязательных полей
отклоняется исключением MalformedEvent.
"""
from dataclasses import dataclass, field
from typing import Any

from deskrelay.services.attachments import Attachment
from deskrelay.services.payload import int_or_none, str_or_none

EVENT_MESSAGE_CREATED = "message_created"
EVENT_STATUS_CHANGED = "conversation_status_changed"

INCOMING = "incoming"
OUTGOING = "outgoing"
RELAYED_MESSAGE_TYPES = (INCOMING, OUTGOING)

STATUS_RESOLVED = "resolved"


class MalformedEvent(ValueError):
    """Событие распознано, но в нём нет обязательных полей."""


@dataclass(frozen=True)
class MessageCreated:
    conversation_id: int
    account_id: int
    message_type: str
    content: str | None = None
    sender_name: str | None = None
    sender_email: str | None = None
    message_id: int | None = None
    attachments: tuple[Attachment, ...] = field(default_factory=tuple)

    @property
    def is_incoming(self) -> bool:
        return self.message_type == INCOMING


@dataclass(frozen=True)
class ConversationStatusChanged:
    conversation_id: int
    status: str | None

    @property
    def is_resolved(self) -> bool:
        return self.status == STATUS_RESOLVED


ChatwootEvent = MessageCreated | ConversationStatusChanged


def _dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _extract_attachments(payload: dict[str, Any]) -> tuple[Attachment, ...]:
    raw = payload.get("attachments")
    if not isinstance(raw, list):
        raw = _dict(payload.get("message")).get("attachments")
    if not isinstance(raw, list):
        return ()
    return tuple(Attachment.from_payload(item) for item in raw if isinstance(item, dict))


def _parse_message_created(payload: dict[str, Any]) -> MessageCreated | None:
    message_type = payload.get("message_type")
    if message_type not in RELAYED_MESSAGE_TYPES:
        # activity, template и прочие служебные сообщения не пересылаем
        return None

    conversation_id = int_or_none(_dict(payload.get("conversation")).get("id"))
    account_id = int_or_none(_dict(payload.get("account")).get("id"))
    if not conversation_id or not account_id:
        raise MalformedEvent("message_created without conversation.id or account.id")

    sender = _dict(payload.get("sender"))
    return MessageCreated(
        conversation_id=conversation_id,
        account_id=account_id,
        message_type=message_type,
        content=str_or_none(payload.get("content")),
        sender_name=str_or_none(sender.get("name")),
        sender_email=str_or_none(sender.get("email")),
        message_id=int_or_none(payload.get("id")),
        attachments=_extract_attachments(payload),
    )


def _parse_status_changed(payload: dict[str, Any]) -> ConversationStatusChanged:
    conversation_id = int_or_none(payload.get("id"))
    if not conversation_id:
        conversation_id = int_or_none(_dict(payload.get("conversation")).get("id"))
    if not conversation_id:
        raise MalformedEvent("conversation_status_changed without conversation id")

    status = payload.get("status")
    return ConversationStatusChanged(
        conversation_id=conversation_id,
        status=status if isinstance(status, str) else None,
    )


def parse_event(payload: Any) -> ChatwootEvent | None:
    """JSON тело webhook -> событие. None — событие нам не интересно."""
    if not isinstance(payload, dict):
        raise MalformedEvent(f"payload is {type(payload).__name__}, expected object")

    event = payload.get("event")
    if event == EVENT_MESSAGE_CREATED:
        return _parse_message_created(payload)
    if event == EVENT_STATUS_CHANGED:
        return _parse_status_changed(payload)
    return None
