from concurrent.futures import Executor, Future

import telebot
from flask import Flask, request, abort

from deskrelay.config import settings
from deskrelay.logging import logger
from deskrelay.services.inbound import InboundRelay

app = Flask(__name__)

# Экземпляры устанавливаются из main.py / wsgi.py
_bot: telebot.TeleBot | None = None
_inbound: InboundRelay | None = None
_executor: Executor | None = None


def set_bot(bot: telebot.TeleBot) -> None:
    """Установить экземпляр бота для обработки апдейтов."""
    global _bot
    _bot = bot


def set_inbound_relay(relay: InboundRelay, executor: Executor) -> None:
    """Установить обработчик событий Chatwoot и пул, в котором он работает."""
    global _inbound, _executor
    _inbound = relay
    _executor = executor


@app.route(f"/{settings.webhook_path}", methods=["POST"])
def webhook() -> tuple[str, int]:
    """Эндпоинт для приёма webhook-апдейтов от Telegram."""
    if _bot is None:
        logger.error("Bot instance not set")
        abort(500)

    # Проверка secret token (если задан)
    if settings.webhook_secret_token:
        token = request.headers.get("X-Telegram-Bot-Api-Secret-Token", "")
        if token != settings.webhook_secret_token:
            logger.warning("Invalid secret token in webhook request")
            abort(403)

    if request.headers.get("content-type") != "application/json":
        logger.warning("Invalid content-type: %s", request.headers.get("content-type"))
        abort(400)

    json_data = request.get_data(as_text=True)
    update = telebot.types.Update.de_json(json_data)
    _bot.process_new_updates([update])

    return "OK", 200


def _log_dispatch_failure(future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("Chatwoot event processing crashed: %s", exc)


@app.route(f"/{settings.chatwoot_webhook_path}", methods=["POST"])
def chatwoot_webhook() -> tuple[str, int]:
    """
    Эндпоинт для webhook-событий Chatwoot.

    Всегда отвечает 200 сразу: обработка (вложения могут качаться долго)
    идёт в фоне, иначе Chatwoot уходит в таймаут и ретраи.
    """
    payload = request.get_json(silent=True)
    if payload is None:
        logger.warning("Chatwoot webhook with non-JSON body ignored")
        return "OK", 200

    if _inbound is None or _executor is None:
        logger.error("Inbound relay not set, Chatwoot event dropped")
        return "OK", 200

    future = _executor.submit(_inbound.dispatch, payload)
    future.add_done_callback(_log_dispatch_failure)
    return "OK", 200


@app.route("/health", methods=["GET"])
def health() -> tuple[str, int]:
    """Healthcheck эндпоинт."""
    return "OK", 200
