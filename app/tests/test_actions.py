import pytest

from deskrelay.bot.actions import ActionToken, Intent, build_token, parse_token
from deskrelay.bot.keyboards import (
    STATE_RESOLVED,
    STATE_THREAD_CLOSED,
    conversation_keyboard,
    conversation_url,
)

BASE_URL = "https://chatwoot.test"


def rows(markup):
    return [[button.callback_data or button.url for button in row] for row in markup.keyboard]


class TestTokens:
    def test_build(self):
        assert build_token(Intent.RESOLVE, 42, 7) == "resolve:42:7"
        assert build_token(Intent.CLOSE_THREAD, 42, None) == "close:42"

    @pytest.mark.parametrize(
        "data, expected",
        [
            ("resolve:42:7", ActionToken(Intent.RESOLVE, 42, 7)),
            ("reopen:42:7", ActionToken(Intent.REOPEN, 42, 7)),
            ("close:42", ActionToken(Intent.CLOSE_THREAD, 42, None)),
            ("resolve", ActionToken(Intent.RESOLVE)),
        ],
    )
    def test_parse(self, data, expected):
        assert parse_token(data) == expected

    def test_legacy_flag(self):
        assert parse_token("resolve").is_legacy
        assert not parse_token("resolve:42:7").is_legacy

    @pytest.mark.parametrize(
        "data",
        [None, "", "reopen", "close", "resolve:", "resolve:abc", "resolve:-1", "resolve:1:2:3", "ban:42:7"],
    )
    def test_rejected(self, data):
        assert parse_token(data) is None

    def test_encoded_token_parses_back(self):
        token = ActionToken(Intent.REOPEN, 42, 7)
        assert parse_token(token.encode()) == token


class TestKeyboard:
    def test_url(self):
        assert conversation_url(BASE_URL, 42, 7) == f"{BASE_URL}/app/accounts/7/conversations/42"

    def test_admin_mode(self):
        markup = conversation_keyboard(BASE_URL, 42, 7, forum_mode=False)

        assert rows(markup) == [["resolve:42:7"], [conversation_url(BASE_URL, 42, 7)]]

    def test_forum_mode(self):
        markup = conversation_keyboard(BASE_URL, 42, 7, forum_mode=True)

        assert rows(markup) == [
            ["resolve:42:7", "reopen:42:7"],
            ["close:42:7"],
            [conversation_url(BASE_URL, 42, 7)],
        ]

    @pytest.mark.parametrize("forum_mode", [True, False])
    def test_resolved(self, forum_mode):
        markup = conversation_keyboard(BASE_URL, 42, 7, forum_mode=forum_mode, state=STATE_RESOLVED)

        assert rows(markup) == [["reopen:42:7"], [conversation_url(BASE_URL, 42, 7)]]

    def test_thread_closed(self):
        markup = conversation_keyboard(BASE_URL, 42, 7, forum_mode=True, state=STATE_THREAD_CLOSED)

        assert rows(markup)[0] == ["resolve:42:7", "reopen:42:7"]
        assert len(markup.keyboard) == 2

    def test_callback_data_fits_telegram_limit(self):
        markup = conversation_keyboard(BASE_URL, 2**40, 2**40, forum_mode=True)

        for row in markup.keyboard:
            for button in row:
                if button.callback_data:
                    assert len(button.callback_data.encode()) <= 64
