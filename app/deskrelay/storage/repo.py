from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from deskrelay.logging import logger
from deskrelay.storage.models import MessageMapping, ThreadMapping


class Repository:
    def __init__(self, session: Session):
        self.session = session

    def _insert(self, model):
        """INSERT с поддержкой ON CONFLICT для текущего диалекта."""
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(model)
        if dialect == "sqlite":
            return sqlite.insert(model)
        raise NotImplementedError(f"Upsert is not supported for dialect {dialect!r}")

    def upsert_message_mapping(
        self,
        telegram_message_id: int,
        conversation_id: int,
        account_id: int | None,
        chatwoot_message_id: int | None,
    ) -> None:
        """Записать (или перезаписать) маппинг одним атомарным запросом."""
        values = {
            "conversation_id": conversation_id,
            "account_id": account_id,
            "chatwoot_message_id": chatwoot_message_id,
        }
        stmt = self._insert(MessageMapping).values(telegram_message_id=telegram_message_id, **values)
        stmt = stmt.on_conflict_do_update(index_elements=[MessageMapping.telegram_message_id], set_=values)
        self.session.execute(stmt)
        self.session.commit()

    def get_message_mapping(self, telegram_message_id: int) -> MessageMapping | None:
        return self.session.get(MessageMapping, telegram_message_id)

    def upsert_thread_mapping(
        self,
        conversation_id: int,
        account_id: int | None,
        thread_id: int,
        thread_name: str,
    ) -> None:
        values = {
            "account_id": account_id,
            "thread_id": thread_id,
            "thread_name": thread_name,
        }
        stmt = self._insert(ThreadMapping).values(conversation_id=conversation_id, **values)
        stmt = stmt.on_conflict_do_update(index_elements=[ThreadMapping.conversation_id], set_=values)
        self.session.execute(stmt)
        self.session.commit()
        logger.info("Thread mapping stored: conversation=%d thread=%d", conversation_id, thread_id)

    def get_thread_mapping(self, conversation_id: int) -> ThreadMapping | None:
        return self.session.get(ThreadMapping, conversation_id)

    def get_thread_mapping_by_thread(self, thread_id: int) -> ThreadMapping | None:
        stmt = select(ThreadMapping).where(ThreadMapping.thread_id == thread_id).limit(1)
        return self.session.execute(stmt).scalar_one_or_none()

    def delete_thread_mapping(self, conversation_id: int) -> bool:
        """Удалить маппинг топика. Возвращает True, если запись была."""
        result = self.session.execute(
            delete(ThreadMapping).where(ThreadMapping.conversation_id == conversation_id)
        )
        self.session.commit()
        return result.rowcount > 0
