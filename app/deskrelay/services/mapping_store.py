from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from deskrelay.storage.db import get_session
from deskrelay.storage.repo import Repository


@dataclass(frozen=True)
class MessageRoute:
    telegram_message_id: int
    conversation_id: int
    account_id: int | None
    chatwoot_message_id: int | None


@dataclass(frozen=True)
class ThreadRoute:
    conversation_id: int
    account_id: int | None
    thread_id: int
    thread_name: str | None
    created_at: datetime | None


class MappingStore:
    """
    Маппинги сообщений и топиков на диалоги Chatwoot.

    Каждый вызов открывает свою сессию и сразу коммитит запись.
    Наружу отдаются неизменяемые копии строк, ORM-объекты не утекают.
    """

    def __init__(self, session_factory: Callable[[], Session] = get_session):
        self._session_factory = session_factory

    def upsert_message_mapping(
        self,
        telegram_message_id: int,
        conversation_id: int,
        account_id: int | None = None,
        chatwoot_message_id: int | None = None,
    ) -> None:
        session = self._session_factory()
        try:
            Repository(session).upsert_message_mapping(
                telegram_message_id, conversation_id, account_id, chatwoot_message_id
            )
        finally:
            session.close()

    def get_message_mapping(self, telegram_message_id: int) -> MessageRoute | None:
        session = self._session_factory()
        try:
            row = Repository(session).get_message_mapping(telegram_message_id)
            if row is None:
                return None
            return MessageRoute(
                telegram_message_id=row.telegram_message_id,
                conversation_id=row.conversation_id,
                account_id=row.account_id,
                chatwoot_message_id=row.chatwoot_message_id,
            )
        finally:
            session.close()

    def upsert_thread_mapping(
        self,
        conversation_id: int,
        account_id: int | None,
        thread_id: int,
        thread_name: str,
    ) -> None:
        session = self._session_factory()
        try:
            Repository(session).upsert_thread_mapping(conversation_id, account_id, thread_id, thread_name)
        finally:
            session.close()

    def get_thread_by_conversation(self, conversation_id: int) -> ThreadRoute | None:
        session = self._session_factory()
        try:
            return self._thread_route(Repository(session).get_thread_mapping(conversation_id))
        finally:
            session.close()

    def get_thread_by_thread(self, thread_id: int) -> ThreadRoute | None:
        session = self._session_factory()
        try:
            return self._thread_route(Repository(session).get_thread_mapping_by_thread(thread_id))
        finally:
            session.close()

    def delete_thread_mapping(self, conversation_id: int) -> bool:
        session = self._session_factory()
        try:
            return Repository(session).delete_thread_mapping(conversation_id)
        finally:
            session.close()

    @staticmethod
    def _thread_route(row) -> ThreadRoute | None:
        if row is None:
            return None
        return ThreadRoute(
            conversation_id=row.conversation_id,
            account_id=row.account_id,
            thread_id=row.thread_id,
            thread_name=row.thread_name,
            created_at=row.created_at,
        )
