import json

import httpx
import pytest

from deskrelay.services.chatwoot import ChatwootClient, HelpdeskError


class RecordingTransport:
    def __init__(self, status: int = 200, body: dict | None = None):
        self.status = status
        self.body = body if body is not None else {"id": 1}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, json=self.body)


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def chatwoot(transport):
    http = httpx.Client(
        base_url="https://chatwoot.test",
        headers={"api_access_token": "cw-token"},
        transport=httpx.MockTransport(transport),
    )
    client = ChatwootClient("https://chatwoot.test", "cw-token", account_id=7, http_client=http)
    yield client
    http.close()


class TestChatwootClient:
    def test_create_message(self, chatwoot, transport):
        result = chatwoot.create_message(42, "We are on it", account_id=3)

        assert result == {"id": 1}
        request = transport.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/api/v1/accounts/3/conversations/42/messages"
        assert request.headers["api_access_token"] == "cw-token"
        assert json.loads(request.content) == {
            "content": "We are on it",
            "message_type": "outgoing",
            "private": False,
        }

    def test_default_account(self, chatwoot, transport):
        chatwoot.toggle_status(42, "resolved")

        request = transport.requests[0]
        assert request.url.path == "/api/v1/accounts/7/conversations/42/toggle_status"
        assert json.loads(request.content) == {"status": "resolved"}

    def test_http_error(self, chatwoot, transport):
        transport.status = 404

        with pytest.raises(HelpdeskError):
            chatwoot.toggle_status(42, "open")

    def test_network_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        http = httpx.Client(base_url="https://chatwoot.test", transport=httpx.MockTransport(refuse))
        client = ChatwootClient("https://chatwoot.test", "cw-token", account_id=7, http_client=http)

        with pytest.raises(HelpdeskError):
            client.create_message(42, "hi")

    def test_default_client_sends_token(self):
        client = ChatwootClient("https://chatwoot.test", "cw-token", account_id=7)

        assert client._client.headers["api_access_token"] == "cw-token"
        client._client.close()
