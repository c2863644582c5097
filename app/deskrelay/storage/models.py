from datetime import datetime

from sqlalchemy import BigInteger, Integer, String, DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class MessageMapping(Base):
    """Связь между сообщением, отправленным ботом в Telegram, и диалогом Chatwoot."""
    __tablename__ = "message_mappings"

    telegram_message_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    conversation_id: Mapped[int] = mapped_column(Integer, nullable=False)
    account_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    chatwoot_message_id: Mapped[int | None] = mapped_column(Integer, nullable=True)


class ThreadMapping(Base):
    """Топик форум-группы, закреплённый за диалогом Chatwoot."""
    __tablename__ = "thread_mappings"

    conversation_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    account_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    thread_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    thread_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
