# Тексты бота. HTML parse_mode: пользовательские данные экранируются при подстановке.

INCOMING = "\U0001f464 <b>{name}</b>{email}\n\U0001f4ac {content}{hint}"
SENDER_EMAIL = " ({email})"
OUTGOING = "\U0001f916 <b>{name}</b> (agent)\n\U0001f4e4 {content}{hint}"
ATTACHMENT_HINT = "\n\U0001f4ce Attachments: {count}"
NO_CONTENT = "[no content]"
ATTACHMENT_ONLY = "[attachment]"
UNKNOWN_SENDER = "Unknown"

THREAD_NAME = "\U0001f5e8\ufe0f {name} #{conversation_id}"
WELCOME = "\U0001f4ac <b>New conversation started</b>\n\nUse the buttons below to manage this conversation:"

BTN_RESOLVE = "\u2705 Resolve"
BTN_REOPEN = "\U0001f513 Reopen"
BTN_CLOSE_THREAD = "\U0001f512 Close thread"
BTN_VIEW = "\U0001f4f1 Open in Chatwoot"

ATTACHMENT_TOO_LARGE = "\U0001f4ce Attachment is too large to forward to Telegram ({size_mb}MB)\nFile: {filename}\n{link}"
ATTACHMENT_DOWNLOAD_FAILED = "\U0001f4ce Failed to download attachment: {filename}\n{link}"
ATTACHMENT_SEND_FAILED = "\U0001f4ce Failed to send attachment: {filename}\n{link}"
ATTACHMENT_LINK = "Link: {url}"

MUST_REPLY = "Reply to a customer message to send an answer."
MAPPING_NOT_FOUND = "No conversation is linked to this message. It may have expired or was not sent by the bot."
REPLY_FAIL = "Failed to deliver the message to Chatwoot, check the logs."
UNKNOWN_COMMAND = "Unknown command. To answer the customer, send plain text."

ACTION_RESOLVED = "Conversation #{conversation_id} resolved \u2705"
ACTION_REOPENED = "Conversation #{conversation_id} reopened \U0001f513"
ACTION_THREAD_CLOSED = "Thread of conversation #{conversation_id} closed \U0001f512"
ACTION_EXPIRED = "Message expired or unknown."
ACTION_FAIL = "Action failed, check the logs."

FORGET_OK = "Thread closed and unlinked from conversation #{conversation_id}. The next customer message opens a new one."
FORGET_NOT_FOUND = "This thread is not linked to any conversation."

CHAT_INFO = "chat_id: <code>{chat_id}</code>\ntype: {chat_type}\ntitle: {title}"
