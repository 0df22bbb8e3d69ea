import pytest

from support_chat import services


@pytest.fixture
def conversation(end_user, agent):
    """Fresh conversation between ``end_user`` and ``agent``."""
    conv, created = services.create_or_get_conversation(end_user)
    assert created
    return conv


@pytest.fixture
def send_text():
    def _send(conversation, sender, text="hello", **kwargs):
        message, _ = services.append_message(conversation.pk, sender, "text", content=text, **kwargs)
        return message

    return _send
