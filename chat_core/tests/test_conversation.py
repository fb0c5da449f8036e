import pytest

from chat_core.domain.conversation import WELCOME_MESSAGE_ID, ConversationHistory, Message
from chat_core.domain.exceptions import ValidationError


def test_message_append_then_finalize():
    msg = Message.create("model", streaming=True)
    msg.append("Hel")
    msg.append("lo")
    assert msg.content == "Hello"
    assert msg.is_streaming
    msg.finalize()
    assert not msg.is_streaming
    assert msg.finalized
    with pytest.raises(ValidationError):
        msg.append("!")
    with pytest.raises(ValidationError):
        msg.finalize("again")


def test_finalize_can_replace_content():
    msg = Message.create("model", streaming=True)
    msg.append("partial")
    msg.finalize("error text")
    assert msg.content == "error text"


def test_history_skips_welcome_and_streaming_messages():
    welcome = Message(id=WELCOME_MESSAGE_ID, role="model", content="Hello!")
    user = Message.create("user", "hi")
    reply = Message.create("model", "hey")
    pending = Message.create("model", streaming=True)
    history = ConversationHistory.from_messages([welcome, user, reply, pending])
    assert [m.id for m in history] == [user.id, reply.id]
    contents = history.to_contents()
    assert [c.role for c in contents] == ["user", "model"]
    assert contents[0].parts[0].text == "hi"


def test_history_append_returns_new_snapshot():
    history = ConversationHistory()
    user = Message.create("user", "hi")
    extended = history.append(user)
    assert len(history) == 0
    assert len(extended) == 1
    welcome = Message(id=WELCOME_MESSAGE_ID, role="model", content="Hello!")
    assert extended.append(welcome) is extended
