from typing import Any, Literal

import httpx

from deskrelay.logging import logger

ConversationStatus = Literal["open", "resolved"]


class HelpdeskError(RuntimeError):
    """Chatwoot отклонил запрос или не ответил."""


class ChatwootClient:
    """Клиент Chatwoot Application API от имени агента (api_access_token)."""

    def __init__(
        self,
        base_url: str,
        access_token: str,
        account_id: int,
        timeout: float = 15.0,
        http_client: httpx.Client | None = None,
    ):
        self.account_id = account_id
        self._client = http_client or httpx.Client(
            base_url=base_url,
            headers={"api_access_token": access_token},
            timeout=timeout,
        )

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = self._client.post(path, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Chatwoot API error on %s: %s", path, e)
            raise HelpdeskError(str(e)) from e
        if not response.content:
            return {}
        return response.json()

    def _conversation_path(self, conversation_id: int, account_id: int | None) -> str:
        account = account_id if account_id is not None else self.account_id
        return f"/api/v1/accounts/{account}/conversations/{conversation_id}"

    def create_message(self, conversation_id: int, content: str, account_id: int | None = None) -> dict[str, Any]:
        """Отправить ответ клиенту от имени агента."""
        path = f"{self._conversation_path(conversation_id, account_id)}/messages"
        return self._post(
            path,
            {
                "content": content,
                "message_type": "outgoing",
                "private": False,
            },
        )

    def toggle_status(
        self,
        conversation_id: int,
        status: ConversationStatus,
        account_id: int | None = None,
    ) -> dict[str, Any]:
        path = f"{self._conversation_path(conversation_id, account_id)}/toggle_status"
        result = self._post(path, {"status": status})
        logger.info("Chatwoot conversation %d -> %s", conversation_id, status)
        return result
