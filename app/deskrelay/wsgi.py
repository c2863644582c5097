"""WSGI entrypoint для gunicorn."""
from deskrelay.main import create_bot, setup_webhook, migrate_or_exit, wire
from deskrelay.bot.webhook_server import app
from deskrelay.logging import logger

logger.info("WSGI: Initializing application...")

migrate_or_exit()

bot = create_bot()
wire(bot)
setup_webhook(bot)

logger.info("WSGI: Application ready")

# gunicorn ищет переменную `application` или `app`
application = app
