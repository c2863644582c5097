from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Telegram
    bot_token: str
    webhook_domain: str
    webhook_port: int = 8443
    webhook_path: str = "webhook/secret-path"
    webhook_secret_token: str = ""

    # Telegram ID администратора (ЛС с ботом — фиксированный адресат без топиков)
    admin_id: int

    # Форум-группа для топиков. Если не задана, все диалоги идут админу в ЛС
    forum_chat_id: int | None = None

    @field_validator("forum_chat_id", "redis_dsn", mode="before")
    @classmethod
    def _empty_str_to_none(cls, v: object) -> object:
        """Пустая строка из ENV -> None."""
        if isinstance(v, str) and v.strip() == "":
            return None
        return v

    # Chatwoot
    chatwoot_base_url: str = "https://app.chatwoot.com"
    chatwoot_access_token: str
    chatwoot_account_id: int
    chatwoot_webhook_path: str = "chatwoot/webhook"
    chatwoot_timeout_seconds: float = 15.0

    @field_validator("chatwoot_base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # Хранилище маппингов
    database_url: str = "sqlite:///mappings.db"

    # Redis (опционально, для дедупликации webhook-событий)
    redis_dsn: str | None = None
    dedup_ttl_seconds: int = 60 * 60 * 24

    # Вложения
    max_attachment_bytes: int = 45 * 1024 * 1024  # запас до лимита Bot API в 50MB
    attachment_concurrency: int = 2
    attachment_download_timeout: float = 20.0

    # Пул фоновой обработки webhook-событий Chatwoot
    webhook_workers: int = 8

    @model_validator(mode="after")
    def _check_limits(self) -> "Settings":
        if self.attachment_concurrency < 1:
            raise ValueError("ATTACHMENT_CONCURRENCY must be >= 1")
        if self.webhook_workers < 1:
            raise ValueError("WEBHOOK_WORKERS must be >= 1")
        return self

    # Logging
    log_level: str = "INFO"

    # Внутренний HTTP сервер
    app_host: str = "0.0.0.0"
    app_port: int = 8080

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    @property
    def webhook_url(self) -> str:
        return f"https://{self.webhook_domain}:{self.webhook_port}/{self.webhook_path}"

    @property
    def forum_mode(self) -> bool:
        """Включён ли режим топиков."""
        return self.forum_chat_id is not None


settings = Settings()
