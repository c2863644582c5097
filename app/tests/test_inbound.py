from unittest.mock import Mock

import pytest

from conftest import ADMIN_ID, CHATWOOT_URL, FORUM_CHAT_ID, sent_message, telegram_error
from deskrelay.bot.messages import BTN_RESOLVE, BTN_VIEW
from deskrelay.services.attachments import AttachmentSender, RelayTarget
from deskrelay.services.dedup import EventDeduplicator
from deskrelay.services.events import MessageCreated
from deskrelay.services.inbound import InboundRelay, format_message
from deskrelay.services.threads import ThreadManager


def message_payload(**overrides):
    payload = {
        "event": "message_created",
        "id": 9001,
        "message_type": "incoming",
        "content": "hello",
        "conversation": {"id": 42},
        "account": {"id": 7},
        "sender": {"name": "Alice"},
    }
    payload.update(overrides)
    return payload


def button_rows(markup):
    return [[button.text for button in row] for row in markup.keyboard]


@pytest.fixture
def attachments():
    return Mock(spec=AttachmentSender)


@pytest.fixture
def admin_relay(bot, store, attachments):
    threads = ThreadManager(bot, store, ADMIN_ID, None, CHATWOOT_URL)
    return InboundRelay(bot, store, threads, attachments, CHATWOOT_URL)


@pytest.fixture
def forum_relay(bot, store, attachments):
    threads = ThreadManager(bot, store, ADMIN_ID, FORUM_CHAT_ID, CHATWOOT_URL)
    return InboundRelay(bot, store, threads, attachments, CHATWOOT_URL)


class TestFormatMessage:
    def test_incoming_with_email(self):
        text = format_message(
            MessageCreated(42, 7, "incoming", content="hi", sender_name="Alice", sender_email="a@x.io")
        )

        assert "<b>Alice</b> (a@x.io)" in text
        assert text.endswith("hi")

    def test_incoming_without_email(self):
        text = format_message(MessageCreated(42, 7, "incoming", content="hi", sender_name="Alice"))

        assert "()" not in text

    def test_outgoing(self):
        text = format_message(MessageCreated(42, 7, "outgoing", content="on it", sender_name="Bob"))

        assert "<b>Bob</b> (agent)" in text

    def test_user_data_escaped(self):
        text = format_message(MessageCreated(42, 7, "incoming", content="<script>", sender_name="A&B"))

        assert "&lt;script&gt;" in text
        assert "A&amp;B" in text

    def test_fallbacks(self):
        text = format_message(MessageCreated(42, 7, "incoming"))

        assert "Unknown" in text
        assert "[no content]" in text


class TestMessageCreated:
    def test_relayed_to_admin(self, admin_relay, bot, store, attachments):
        admin_relay.dispatch(message_payload())

        bot.send_message.assert_called_once()
        chat_id, text = bot.send_message.call_args.args
        assert chat_id == ADMIN_ID
        assert "Alice" in text and "hello" in text

        kwargs = bot.send_message.call_args.kwargs
        assert kwargs["parse_mode"] == "HTML"
        assert kwargs["message_thread_id"] is None
        assert button_rows(kwargs["reply_markup"]) == [[BTN_RESOLVE], [BTN_VIEW]]
        assert kwargs["reply_markup"].keyboard[1][0].url == f"{CHATWOOT_URL}/app/accounts/7/conversations/42"

        route = store.get_message_mapping(500)
        assert (route.conversation_id, route.account_id, route.chatwoot_message_id) == (42, 7, 9001)
        attachments.send_all.assert_not_called()

    def test_outgoing_relayed(self, admin_relay, bot):
        admin_relay.dispatch(message_payload(message_type="outgoing", sender={"name": "Bob"}))

        assert "(agent)" in bot.send_message.call_args.args[1]

    @pytest.mark.parametrize(
        "payload",
        [
            message_payload(message_type="activity"),
            {"event": "conversation_created", "id": 42},
            message_payload(account=None),
            ["not", "an", "object"],
        ],
    )
    def test_nothing_sent(self, admin_relay, bot, store, payload):
        admin_relay.dispatch(payload)

        bot.send_message.assert_not_called()
        assert store.get_message_mapping(500) is None

    def test_attachments_follow_text(self, admin_relay, bot, attachments):
        admin_relay.dispatch(
            message_payload(content=None, attachments=[{"id": 1, "file_type": "image", "data_url": "https://f.test/1"}])
        )

        text = bot.send_message.call_args.args[1]
        assert "[attachment]" in text
        assert "Attachments: 1" in text

        sent, target = attachments.send_all.call_args.args
        assert [att.id for att in sent] == [1]
        assert target == RelayTarget(
            chat_id=ADMIN_ID, thread_id=None, conversation_id=42, account_id=7, chatwoot_message_id=9001
        )

    def test_send_failure_skips_mapping_and_attachments(self, admin_relay, bot, store, attachments):
        bot.send_message.side_effect = telegram_error("Forbidden: bot was blocked by the user")

        admin_relay.dispatch(message_payload(attachments=[{"id": 1, "data_url": "https://f.test/1"}]))

        assert store.get_message_mapping(500) is None
        attachments.send_all.assert_not_called()

    def test_duplicate_delivery_skipped(self, bot, store, attachments):
        dedup = Mock(spec=EventDeduplicator)
        dedup.first_seen.return_value = False
        threads = ThreadManager(bot, store, ADMIN_ID, None, CHATWOOT_URL)
        relay = InboundRelay(bot, store, threads, attachments, CHATWOOT_URL, deduplicator=dedup)

        relay.dispatch(message_payload())

        dedup.first_seen.assert_called_once_with("message:9001")
        bot.send_message.assert_not_called()


class TestForumMode:
    def test_first_message_opens_thread(self, forum_relay, bot, store):
        message_id = forum_relay.handle_message_created(
            MessageCreated(42, 7, "incoming", content="hello", sender_name="Alice", message_id=9001)
        )

        bot.create_forum_topic.assert_called_once()
        # приветствие + само сообщение
        assert bot.send_message.call_count == 2
        chat_id = bot.send_message.call_args.args[0]
        kwargs = bot.send_message.call_args.kwargs
        assert chat_id == FORUM_CHAT_ID
        assert kwargs["message_thread_id"] == 77
        assert len(kwargs["reply_markup"].keyboard) == 3
        assert store.get_message_mapping(message_id).conversation_id == 42

    def test_deleted_thread_recreated_once(self, forum_relay, bot, store):
        store.upsert_thread_mapping(42, 7, 55, "old")
        bot.send_message.side_effect = [
            telegram_error("Bad Request: message thread not found"),
            sent_message(600),
            sent_message(601),
        ]

        message_id = forum_relay.handle_message_created(
            MessageCreated(42, 7, "incoming", content="hello", sender_name="Alice", message_id=9001)
        )

        assert message_id == 601
        assert store.get_thread_by_conversation(42).thread_id == 77
        assert store.get_thread_by_thread(55) is None
        assert bot.send_message.call_args.kwargs["message_thread_id"] == 77
        assert store.get_message_mapping(601).chatwoot_message_id == 9001

    def test_resend_failure_gives_up(self, forum_relay, bot, store):
        store.upsert_thread_mapping(42, 7, 55, "old")
        bot.send_message.side_effect = [
            telegram_error("Bad Request: TOPIC_DELETED"),
            sent_message(600),
            telegram_error("Bad Request: TOPIC_DELETED"),
        ]

        message_id = forum_relay.handle_message_created(
            MessageCreated(42, 7, "incoming", content="hello", message_id=9001)
        )

        assert message_id is None
        assert bot.send_message.call_count == 3
        assert bot.create_forum_topic.call_count == 1


class TestStatusChanged:
    def test_resolved_closes_thread(self, forum_relay, bot, store):
        store.upsert_thread_mapping(42, 7, 55, "Alice #42")

        forum_relay.dispatch({"event": "conversation_status_changed", "id": 42, "status": "resolved"})

        bot.close_forum_topic.assert_called_once_with(FORUM_CHAT_ID, 55)
        assert store.get_thread_by_conversation(42) is not None

    def test_other_status_ignored(self, forum_relay, bot, store):
        store.upsert_thread_mapping(42, 7, 55, "Alice #42")

        forum_relay.dispatch({"event": "conversation_status_changed", "id": 42, "status": "pending"})

        bot.close_forum_topic.assert_not_called()

    def test_resolved_without_thread(self, forum_relay, bot):
        forum_relay.dispatch({"event": "conversation_status_changed", "id": 42, "status": "resolved"})

        bot.close_forum_topic.assert_not_called()
