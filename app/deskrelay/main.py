import time
from concurrent.futures import ThreadPoolExecutor

import telebot

from deskrelay.config import settings
from deskrelay.logging import logger
from deskrelay.bot.handlers import register_handlers
from deskrelay.bot.webhook_server import app, set_bot, set_inbound_relay
from deskrelay.services.attachments import AttachmentSender, create_download_client
from deskrelay.services.chatwoot import ChatwootClient
from deskrelay.services.dedup import create_deduplicator
from deskrelay.services.inbound import InboundRelay
from deskrelay.services.mapping_store import MappingStore
from deskrelay.services.outbound import OutboundRelay
from deskrelay.services.threads import ThreadManager
from deskrelay.storage.db import engine
from deskrelay.storage.schema import MigrationError, run_migrations


def create_bot() -> telebot.TeleBot:
    """Создать экземпляр бота."""
    return telebot.TeleBot(settings.bot_token, threaded=False)


def setup_webhook(bot: telebot.TeleBot) -> None:
    """Установить webhook в Telegram."""
    logger.info("Removing old webhook...")
    bot.delete_webhook(drop_pending_updates=True)
    time.sleep(0.5)

    logger.info("Setting webhook: %s", settings.webhook_url)
    bot.set_webhook(
        url=settings.webhook_url,
        secret_token=settings.webhook_secret_token or None,
        allowed_updates=["message", "callback_query"],
    )
    logger.info("Webhook set successfully")


def migrate_or_exit() -> None:
    """Миграции при старте; при ошибке процесс не запускается."""
    try:
        run_migrations(engine)
    except MigrationError:
        raise SystemExit(1)


def wire(bot: telebot.TeleBot) -> InboundRelay:
    """Собрать компоненты релея и подключить их к боту и Flask."""
    store = MappingStore()
    chatwoot = ChatwootClient(
        settings.chatwoot_base_url,
        settings.chatwoot_access_token,
        settings.chatwoot_account_id,
        timeout=settings.chatwoot_timeout_seconds,
    )
    threads = ThreadManager(
        bot,
        store,
        admin_chat_id=settings.admin_id,
        forum_chat_id=settings.forum_chat_id,
        chatwoot_base_url=settings.chatwoot_base_url,
    )
    attachments = AttachmentSender(
        bot,
        store,
        create_download_client(settings.chatwoot_access_token, settings.attachment_download_timeout),
        max_bytes=settings.max_attachment_bytes,
        concurrency=settings.attachment_concurrency,
        download_timeout=settings.attachment_download_timeout,
    )
    inbound = InboundRelay(
        bot,
        store,
        threads,
        attachments,
        chatwoot_base_url=settings.chatwoot_base_url,
        deduplicator=create_deduplicator(),
    )
    outbound = OutboundRelay(bot, store, threads, chatwoot, chatwoot_base_url=settings.chatwoot_base_url)

    register_handlers(bot, outbound)
    set_bot(bot)
    set_inbound_relay(
        inbound,
        ThreadPoolExecutor(max_workers=settings.webhook_workers, thread_name_prefix="chatwoot-event"),
    )

    mode = f"forum topics in chat {settings.forum_chat_id}" if settings.forum_mode else "admin private chat"
    logger.info("Relay wired: %s", mode)
    return inbound


def main() -> None:
    logger.info("Starting deskrelay...")

    # Применяем миграции
    migrate_or_exit()

    # Создание бота и сборка релея
    bot = create_bot()
    wire(bot)

    # Установка webhook
    setup_webhook(bot)

    logger.info("Starting webhook server on %s:%d", settings.app_host, settings.app_port)

    # Запуск Flask через gunicorn (в продакшене) или встроенный сервер
    app.run(host=settings.app_host, port=settings.app_port)


if __name__ == "__main__":
    main()
