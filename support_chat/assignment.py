"""
Support assignment policies.

A policy picks the support agent that handles a new conversation.  The
policy in use is selected by ``SUPPORT_CHAT["ASSIGNMENT_POLICY"]``:
either one of the names in ``POLICIES`` or a dotted path to an
``AssignmentPolicy`` subclass.

Every policy chooses among active users whose profile role is
``support``, and raises ``ServiceUnavailable`` when there are none.
Ties are broken by the lowest user id so the choice is deterministic.
"""
from __future__ import annotations

import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db.models import Count, F, Q
from django.utils.module_loading import import_string

from users.models import Role

from .exceptions import ServiceUnavailable
from .models import Conversation
from .presence import registry

logger = logging.getLogger(__name__)

User = get_user_model()


class AssignmentPolicy:
    name = ""

    def candidates(self):
        return (
            User.objects.filter(is_active=True, profile__role=Role.SUPPORT)
            .select_related("profile")
            .order_by("id")
        )

    def select(self, requester=None):
        agents = list(self.candidates().exclude(pk=getattr(requester, "pk", None)))
        if not agents:
            logger.error("No active support users found")
            raise ServiceUnavailable("No support agents available. Please contact administrator.")
        agent = self.choose(agents)
        logger.info("Assignment policy %s selected support user %s", self.name or type(self).__name__, agent.pk)
        return agent

    def choose(self, agents):
        raise NotImplementedError


class SingleAgentPolicy(AssignmentPolicy):
    """Always the first support agent."""

    name = "single"

    def choose(self, agents):
        return agents[0]


def _by_conversation_count(agents, conversation_filter: Q | None = None):
    counts = dict(
        User.objects.filter(pk__in=[a.pk for a in agents])
        .annotate(n=Count("assigned_support_conversations", filter=conversation_filter))
        .values_list("pk", "n")
    )
    return min(agents, key=lambda a: (counts.get(a.pk, 0), a.pk))


class RoundRobinPolicy(AssignmentPolicy):
    """The agent with the fewest conversations ever assigned, which spreads load evenly."""

    name = "round_robin"

    def choose(self, agents):
        return _by_conversation_count(agents)


class LeastBusyPolicy(AssignmentPolicy):
    """The agent with the fewest open or waiting conversations."""

    name = "least_busy"

    def choose(self, agents):
        return _by_conversation_count(
            agents,
            Q(
                assigned_support_conversations__is_active=True,
                assigned_support_conversations__status__in=Conversation.ACTIVE_STATUSES,
            ),
        )


class AvailabilityFirstPolicy(LeastBusyPolicy):
    """Least busy among online agents; with nobody online, the most recently seen one."""

    name = "availability"

    def choose(self, agents):
        online = [a for a in agents if registry.is_online(a.pk)]
        if online:
            return super().choose(online)
        ordered = (
            User.objects.filter(pk__in=[a.pk for a in agents])
            .order_by(F("profile__last_seen_at").desc(nulls_last=True), "id")
            .values_list("pk", flat=True)
        )
        first = ordered.first()
        return next(a for a in agents if a.pk == first)


POLICIES = {
    policy.name: policy
    for policy in (SingleAgentPolicy, RoundRobinPolicy, LeastBusyPolicy, AvailabilityFirstPolicy)
}


def get_assignment_policy(name: str | None = None) -> AssignmentPolicy:
    name = name or settings.SUPPORT_CHAT.get("ASSIGNMENT_POLICY", SingleAgentPolicy.name)
    policy_class = POLICIES.get(name) or import_string(name)
    return policy_class()
