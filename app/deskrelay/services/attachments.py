"""
Перенос вложений Chatwoot в Telegram.

Порядок для каждого вложения:
  1. прямая передача URL в Bot API (Telegram сам скачивает файл);
  2. при неудаче скачивание (или разбор data: URL) и загрузка байтов;
  3. слишком большие, пустые и неотправленные файлы заменяются текстовым
     уведомлением со ссылкой.
Ошибка одного вложения не влияет ни на другие вложения, ни на родительское сообщение.
"""
import base64
import binascii
import io
import math
import re
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
import telebot
from telebot.types import InputFile

from deskrelay.bot.messages import (
    ATTACHMENT_TOO_LARGE,
    ATTACHMENT_DOWNLOAD_FAILED,
    ATTACHMENT_SEND_FAILED,
    ATTACHMENT_LINK,
)
from deskrelay.logging import logger
from deskrelay.services.mapping_store import MappingStore
from deskrelay.services.payload import int_or_none, str_or_none

# Сверх лимита отправки докачиваем не больше мегабайта, потом обрываем загрузку
DOWNLOAD_HEADROOM_BYTES = 1024 * 1024

_DATA_URL_RE = re.compile(r"^data:([^;]+);base64,(.*)$", re.DOTALL)


class SendKind(str, Enum):
    PHOTO = "photo"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"


class DataUrlError(ValueError):
    """data: URL не соответствует виду data:<mime>;base64,<payload>."""


class DownloadError(RuntimeError):
    """Не удалось получить байты вложения."""


@dataclass(frozen=True)
class Attachment:
    id: int | None = None
    file_type: str | None = None
    content_type: str | None = None
    file_name: str | None = None
    declared_size: int | None = None
    data_url: str | None = None
    file_url: str | None = None
    download_url: str | None = None
    url: str | None = None
    thumb_url: str | None = None

    @classmethod
    def from_payload(cls, raw: dict[str, Any]) -> "Attachment":
        declared_size = int_or_none(raw.get("file_size"))
        if declared_size is None:
            declared_size = int_or_none(raw.get("size"))
        return cls(
            id=int_or_none(raw.get("id")),
            file_type=str_or_none(raw.get("file_type")),
            content_type=str_or_none(raw.get("content_type")),
            file_name=str_or_none(raw.get("file_name")),
            declared_size=declared_size,
            data_url=str_or_none(raw.get("data_url")),
            file_url=str_or_none(raw.get("file_url")),
            download_url=str_or_none(raw.get("download_url")),
            url=str_or_none(raw.get("url")),
            thumb_url=str_or_none(raw.get("thumb_url")),
        )

    @property
    def candidate_urls(self) -> list[str]:
        """URL в порядке предпочтения."""
        urls = (self.data_url, self.file_url, self.download_url, self.url, self.thumb_url)
        return [u for u in urls if u]

    @property
    def best_url(self) -> str | None:
        urls = self.candidate_urls
        return urls[0] if urls else None

    @property
    def public_url(self) -> str | None:
        """Первый URL, который имеет смысл показать человеку (не data:)."""
        for u in self.candidate_urls:
            if not u.startswith("data:"):
                return u
        return None

    @property
    def filename(self) -> str:
        if self.file_name:
            return self.file_name
        return f"attachment-{self.id}" if self.id is not None else "attachment"

    @property
    def label(self) -> str:
        if self.file_name:
            return self.file_name
        return str(self.id) if self.id is not None else ""


@dataclass(frozen=True)
class RelayTarget:
    """Куда отправлять и к какому диалогу привязывать отправленные сообщения."""
    chat_id: int
    thread_id: int | None
    conversation_id: int
    account_id: int | None
    chatwoot_message_id: int | None = None


@dataclass(frozen=True)
class DownloadedFile:
    data: bytes
    filename: str
    size: int
    mime_type: str | None = None
    source_url: str | None = None


def classify(file_type: str | None, mime_type: str | None) -> SendKind:
    """Тип отправки в Telegram по подсказке Chatwoot или MIME-типу."""
    ft = (file_type or "").lower()
    mt = (mime_type or "").lower()

    if ft == "image" or mt.startswith("image/"):
        return SendKind.PHOTO
    if ft == "video" or mt.startswith("video/"):
        return SendKind.VIDEO
    if ft == "audio" or mt.startswith("audio/"):
        return SendKind.AUDIO
    return SendKind.DOCUMENT


def parse_data_url(data_url: str) -> tuple[str, bytes]:
    """data:<mime>;base64,<payload> -> (mime, bytes)."""
    match = _DATA_URL_RE.match(data_url)
    if match is None:
        raise DataUrlError("unsupported data URL shape")
    mime_type, payload = match.groups()
    try:
        return mime_type, base64.b64decode(payload)
    except (binascii.Error, ValueError) as e:
        raise DataUrlError(f"invalid base64 payload: {e}") from e


def create_download_client(access_token: str, timeout: float) -> httpx.Client:
    """Общий клиент скачивания: переиспользование соединений, таймаут, редиректы."""
    return httpx.Client(
        timeout=timeout,
        follow_redirects=True,
        max_redirects=5,
        # Ссылки Chatwoot бывают и подписанными, и требующими токен агента
        headers={"api_access_token": access_token},
        limits=httpx.Limits(max_connections=50, max_keepalive_connections=10),
    )


class AttachmentSender:
    def __init__(
        self,
        bot: telebot.TeleBot,
        store: MappingStore,
        http_client: httpx.Client,
        max_bytes: int,
        concurrency: int = 2,
        download_timeout: float = 20.0,
    ):
        self._bot = bot
        self._store = store
        self._http = http_client
        self.max_bytes = max_bytes
        self.concurrency = concurrency
        # Таймауты httpx ограничивают каждое чтение, а не загрузку целиком
        self.download_timeout = download_timeout

    def send_all(self, attachments: list[Attachment], target: RelayTarget) -> None:
        """Отправить вложения пулом из `concurrency` потоков, дождавшись всех."""
        if not attachments:
            return

        workers = max(1, min(self.concurrency, len(attachments)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="attachment") as pool:
            futures = [pool.submit(self.send, att, target) for att in attachments]
            for att, future in zip(attachments, futures):
                try:
                    future.result()
                except Exception as e:
                    logger.error(
                        "Attachment %s of conversation %d was not relayed: %s",
                        att.label,
                        target.conversation_id,
                        e,
                    )

    def send(self, att: Attachment, target: RelayTarget) -> None:
        if self._send_direct(att, target):
            return

        try:
            downloaded = self.download(att)
        except (DownloadError, DataUrlError) as e:
            logger.error("Attachment download failed (%s): %s", att.label, e)
            self._send_notice(
                target,
                ATTACHMENT_DOWNLOAD_FAILED.format(filename=att.label, link=self._link(att.public_url)),
            )
            return

        if downloaded.size > self.max_bytes or len(downloaded.data) == 0:
            logger.warning(
                "Attachment %s is not uploadable (%d bytes), sending a link instead",
                downloaded.filename,
                downloaded.size,
            )
            self._send_notice(
                target,
                ATTACHMENT_TOO_LARGE.format(
                    size_mb=math.ceil(downloaded.size / 1024 / 1024),
                    filename=downloaded.filename,
                    link=self._link(downloaded.source_url or att.public_url),
                ),
            )
            return

        kind = classify(att.file_type, downloaded.mime_type)
        try:
            sent = self._send_kind(
                kind,
                target,
                InputFile(io.BytesIO(downloaded.data), file_name=downloaded.filename),
            )
        except Exception as e:
            logger.error("Failed to upload attachment %s to Telegram: %s", downloaded.filename, e)
            self._send_notice(
                target,
                ATTACHMENT_SEND_FAILED.format(
                    filename=downloaded.filename,
                    link=self._link(downloaded.source_url or att.public_url),
                ),
            )
            return

        self._record(sent.message_id, target)
        logger.info("Attachment %s uploaded as %s", downloaded.filename, kind.value)

    def download(self, att: Attachment) -> DownloadedFile:
        """Получить байты вложения (или пустой файл с размером, если заведомо не влезет)."""
        url = att.best_url
        if url is None:
            raise DownloadError("attachment has no downloadable URL")

        if url.startswith("data:"):
            mime_type, data = parse_data_url(url)
            return DownloadedFile(data=data, filename=att.filename, size=len(data), mime_type=mime_type)

        if att.declared_size is not None and att.declared_size > self.max_bytes:
            return DownloadedFile(data=b"", filename=att.filename, size=att.declared_size, source_url=url)

        data, header_mime = self._fetch(url)
        return DownloadedFile(
            data=data,
            filename=att.filename,
            size=len(data),
            mime_type=header_mime or att.content_type,
            source_url=url,
        )

    def _fetch(self, url: str) -> tuple[bytes, str | None]:
        limit = self.max_bytes + DOWNLOAD_HEADROOM_BYTES
        deadline = time.monotonic() + self.download_timeout
        try:
            with self._http.stream("GET", url) as response:
                response.raise_for_status()
                declared = response.headers.get("content-length", "")
                if declared.isdigit() and int(declared) > limit:
                    raise DownloadError(f"content-length {declared} exceeds {limit} bytes")

                buffer = bytearray()
                for chunk in response.iter_bytes():
                    buffer.extend(chunk)
                    if len(buffer) > limit:
                        raise DownloadError(f"response exceeds {limit} bytes")
                    if time.monotonic() > deadline:
                        raise DownloadError(f"download exceeded {self.download_timeout:g} s")
                return bytes(buffer), response.headers.get("content-type")
        except httpx.HTTPError as e:
            raise DownloadError(str(e)) from e

    def _send_direct(self, att: Attachment, target: RelayTarget) -> bool:
        url = att.best_url
        if url is None or url.startswith("data:"):
            return False

        kind = classify(att.file_type, att.content_type)
        try:
            sent = self._send_kind(kind, target, url)
        except Exception as e:
            # Типично: ссылка требует заголовок авторизации, видна только изнутри или истекла
            logger.warning("Direct URL send failed for %s, falling back to download: %s", att.label, e)
            return False

        self._record(sent.message_id, target)
        logger.info("Attachment %s sent by URL as %s", att.label, kind.value)
        return True

    def _send_kind(self, kind: SendKind, target: RelayTarget, payload: str | InputFile):
        if kind is SendKind.PHOTO:
            return self._bot.send_photo(target.chat_id, payload, message_thread_id=target.thread_id)
        if kind is SendKind.VIDEO:
            return self._bot.send_video(target.chat_id, payload, message_thread_id=target.thread_id)
        if kind is SendKind.AUDIO:
            return self._bot.send_audio(target.chat_id, payload, message_thread_id=target.thread_id)
        return self._bot.send_document(target.chat_id, payload, message_thread_id=target.thread_id)

    def _send_notice(self, target: RelayTarget, text: str) -> None:
        sent = self._bot.send_message(target.chat_id, text, message_thread_id=target.thread_id)
        self._record(sent.message_id, target)

    def _record(self, message_id: int, target: RelayTarget) -> None:
        self._store.upsert_message_mapping(
            message_id,
            target.conversation_id,
            target.account_id,
            target.chatwoot_message_id,
        )

    @staticmethod
    def _link(url: str | None) -> str:
        return ATTACHMENT_LINK.format(url=url) if url else ""
