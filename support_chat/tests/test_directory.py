"""
Tests for the conversation directory: create-or-get, listing, status
changes, soft delete, reassignment and statistics.
"""
import pytest

from support_chat import services
from support_chat.exceptions import AuthorizationError, NotFoundError, ServiceUnavailable, ValidationError
from support_chat.models import Conversation
from users.models import Role


@pytest.mark.django_db
def test_create_or_get_starts_open_with_zero_counters(end_user, agent):
    conv, created = services.create_or_get_conversation(end_user)
    assert created
    assert conv.user == end_user
    assert conv.assigned_support == agent
    assert conv.status == Conversation.Status.OPEN
    assert conv.unread_count == {str(end_user.pk): 0, str(agent.pk): 0}
    assert conv.last_message is None


@pytest.mark.django_db
def test_create_or_get_is_idempotent(end_user, agent):
    first, _ = services.create_or_get_conversation(end_user)
    second, created = services.create_or_get_conversation(end_user)
    assert not created
    assert second.pk == first.pk
    assert Conversation.objects.count() == 1


@pytest.mark.django_db
def test_create_or_get_without_agents_is_unavailable(end_user):
    with pytest.raises(ServiceUnavailable):
        services.create_or_get_conversation(end_user)


@pytest.mark.django_db
def test_create_or_get_after_soft_delete_opens_new_conversation(conversation, end_user):
    services.soft_delete_conversation(conversation.pk, end_user)
    fresh, created = services.create_or_get_conversation(end_user)
    assert created
    assert fresh.pk != conversation.pk


@pytest.mark.django_db
def test_create_or_get_keeps_existing_agent_when_policy_changes(settings, conversation, end_user, make_user):
    make_user("agent-0", Role.SUPPORT)
    settings.SUPPORT_CHAT = {**settings.SUPPORT_CHAT, "ASSIGNMENT_POLICY": "round_robin"}
    again, created = services.create_or_get_conversation(end_user)
    assert not created
    assert again.pk == conversation.pk


@pytest.mark.django_db
def test_list_conversations_is_scoped_by_role(conversation, end_user, agent, chat_admin, make_user):
    other_user = make_user("bob")
    other_agent = make_user("agent-2", Role.SUPPORT)
    Conversation.objects.create(user=other_user, assigned_support=other_agent)

    mine, pagination = services.list_conversations(end_user)
    assert [c.pk for c in mine] == [conversation.pk]
    assert pagination["total_items"] == 1

    assigned, _ = services.list_conversations(agent)
    assert [c.pk for c in assigned] == [conversation.pk]

    everything, _ = services.list_conversations(chat_admin)
    assert len(everything) == 2


@pytest.mark.django_db
def test_list_conversations_filters_by_status_and_paginates(end_user, make_user):
    agents = [make_user(f"agent-{i}", Role.SUPPORT) for i in range(3)]
    for agent, status in zip(agents, ["open", "closed", "open"]):
        Conversation.objects.create(user=end_user, assigned_support=agent, status=status)

    items, pagination = services.list_conversations(end_user, page=1, page_size=1, status="open")
    assert len(items) == 1
    assert pagination == {
        "current_page": 1,
        "total_pages": 2,
        "total_items": 2,
        "items_per_page": 1,
        "has_next_page": True,
        "has_prev_page": False,
    }


@pytest.mark.django_db
def test_list_conversations_rejects_unknown_status(end_user):
    with pytest.raises(ValidationError):
        services.list_conversations(end_user, status="archived")


@pytest.mark.django_db
def test_get_conversation_access(conversation, end_user, agent, chat_admin, outsider):
    assert services.get_conversation(conversation.pk, end_user).pk == conversation.pk
    assert services.get_conversation(conversation.pk, agent).pk == conversation.pk
    assert services.get_conversation(conversation.pk, chat_admin).pk == conversation.pk
    with pytest.raises(AuthorizationError):
        services.get_conversation(conversation.pk, outsider)
    with pytest.raises(AuthorizationError):
        services.get_conversation(conversation.pk, chat_admin, allow_admin=False)
    with pytest.raises(NotFoundError):
        services.get_conversation(999999, end_user)


@pytest.mark.django_db
def test_update_status_by_assigned_agent(conversation, agent):
    updated = services.update_status(conversation.pk, "resolved", agent)
    assert updated.status == Conversation.Status.RESOLVED
    conversation.refresh_from_db()
    assert conversation.status == Conversation.Status.RESOLVED


@pytest.mark.django_db
def test_update_status_by_admin(conversation, chat_admin):
    assert services.update_status(conversation.pk, "closed", chat_admin).status == "closed"


@pytest.mark.django_db
def test_user_cannot_change_status(conversation, end_user):
    with pytest.raises(AuthorizationError):
        services.update_status(conversation.pk, "closed", end_user)


@pytest.mark.django_db
def test_other_agent_cannot_change_status(conversation, make_user):
    stranger = make_user("agent-9", Role.SUPPORT)
    with pytest.raises(AuthorizationError):
        services.update_status(conversation.pk, "closed", stranger)


@pytest.mark.django_db
def test_update_status_validates_value(conversation, agent):
    with pytest.raises(ValidationError):
        services.update_status(conversation.pk, "archived", agent)


@pytest.mark.django_db
def test_soft_delete_by_owner(conversation, end_user):
    services.soft_delete_conversation(conversation.pk, end_user)
    conversation.refresh_from_db()
    assert conversation.is_active is False
    assert Conversation.objects.filter(pk=conversation.pk).exists()
    with pytest.raises(NotFoundError):
        services.get_conversation(conversation.pk, end_user)


@pytest.mark.django_db
def test_support_cannot_soft_delete(conversation, agent):
    with pytest.raises(AuthorizationError):
        services.soft_delete_conversation(conversation.pk, agent)


@pytest.mark.django_db
def test_admin_can_soft_delete(conversation, chat_admin):
    services.soft_delete_conversation(conversation.pk, chat_admin)
    conversation.refresh_from_db()
    assert not conversation.is_active


@pytest.mark.django_db
def test_reassign_resets_support_counter(conversation, end_user, chat_admin, make_user, send_text):
    send_text(conversation, end_user)
    new_agent = make_user("agent-2", Role.SUPPORT)

    updated, previous = services.reassign_conversation(conversation.pk, new_agent.pk, chat_admin)

    assert previous == conversation.assigned_support_id
    assert updated.assigned_support_id == new_agent.pk
    assert updated.unread_for_support == 0


@pytest.mark.django_db
def test_reassign_requires_admin(conversation, agent, make_user):
    new_agent = make_user("agent-2", Role.SUPPORT)
    with pytest.raises(AuthorizationError):
        services.reassign_conversation(conversation.pk, new_agent.pk, agent)


@pytest.mark.django_db
def test_reassign_rejects_non_staff_and_pair_clash(conversation, end_user, chat_admin, make_user):
    with pytest.raises(ValidationError):
        services.reassign_conversation(conversation.pk, make_user("bob").pk, chat_admin)

    new_agent = make_user("agent-2", Role.SUPPORT)
    Conversation.objects.create(user=end_user, assigned_support=new_agent)
    with pytest.raises(ValidationError):
        services.reassign_conversation(conversation.pk, new_agent.pk, chat_admin)

    with pytest.raises(NotFoundError):
        services.reassign_conversation(conversation.pk, 999999, chat_admin)


@pytest.mark.django_db
def test_stats(conversation, end_user, agent, chat_admin, send_text):
    send_text(conversation, end_user)
    send_text(conversation, agent, "hi there")

    stats = services.conversation_stats(agent)

    assert stats["total_conversations"] == 1
    assert stats["active_conversations"] == 1
    assert stats["by_status"]["waiting"] == 1
    assert stats["by_status"]["closed"] == 0
    assert stats["total_messages"] == 2
    assert stats["per_agent"] == [
        {"support_id": agent.pk, "username": agent.username, "total": 1, "active": 1}
    ]


@pytest.mark.django_db
def test_stats_requires_staff(end_user):
    with pytest.raises(AuthorizationError):
        services.conversation_stats(end_user)
