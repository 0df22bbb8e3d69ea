"""
Presence registry.

Tracks which identities hold a live WebSocket connection in this process
and which conversation rooms each connection has joined.  An identity
may hold several connections (tabs, devices); it goes offline only when
the last one closes.

The registry is process-local.  Several gateway processes would each see
only their own connections, so deployments run a single gateway process.
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Optional

from django.utils import timezone

from users.models import UserProfile

logger = logging.getLogger(__name__)


class PresenceRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._connections: dict[int, set[str]] = {}
        self._owner: dict[str, int] = {}
        self._rooms: dict[str, set[int]] = {}
        self._last_seen: dict[int, datetime] = {}

    # ---------- connections ----------
    def set_online(self, identity: int, connection_ref: str) -> bool:
        """Register a connection; True when the identity just came online."""
        with self._lock:
            channels = self._connections.setdefault(identity, set())
            came_online = not channels
            channels.add(connection_ref)
            self._owner[connection_ref] = identity
            self._rooms.setdefault(connection_ref, set())
            self._last_seen[identity] = timezone.now()
        return came_online

    def set_offline(self, identity: int, connection_ref: Optional[str] = None) -> bool:
        """Drop one connection (or all of them); True when the identity went offline."""
        with self._lock:
            channels = self._connections.get(identity)
            if not channels:
                return False
            dropped = [connection_ref] if connection_ref else list(channels)
            for ref in dropped:
                channels.discard(ref)
                self._owner.pop(ref, None)
                self._rooms.pop(ref, None)
            self._last_seen[identity] = timezone.now()
            if channels:
                return False
            del self._connections[identity]
        return True

    def is_online(self, identity: int) -> bool:
        with self._lock:
            return bool(self._connections.get(identity))

    def list_online(self) -> list[int]:
        with self._lock:
            return sorted(self._connections)

    def last_seen(self, identity: int) -> Optional[datetime]:
        with self._lock:
            return self._last_seen.get(identity)

    # ---------- rooms ----------
    def join_room(self, connection_ref: str, conversation_id: int) -> None:
        with self._lock:
            if connection_ref in self._owner:
                self._rooms.setdefault(connection_ref, set()).add(conversation_id)

    def leave_room(self, connection_ref: str, conversation_id: int) -> None:
        with self._lock:
            self._rooms.get(connection_ref, set()).discard(conversation_id)

    def rooms_of(self, connection_ref: str) -> set[int]:
        with self._lock:
            return set(self._rooms.get(connection_ref, ()))

    def is_in_room(self, identity: int, conversation_id: int) -> bool:
        """True when any connection of ``identity`` has joined the conversation room."""
        with self._lock:
            return any(
                conversation_id in self._rooms.get(ref, ())
                for ref in self._connections.get(identity, ())
            )

    def reset(self) -> None:
        with self._lock:
            self._connections.clear()
            self._owner.clear()
            self._rooms.clear()
            self._last_seen.clear()


registry = PresenceRegistry()


def record_last_seen(identity: int, when: Optional[datetime] = None) -> None:
    """Persist the last time ``identity`` was seen on a live connection."""
    when = when or timezone.now()
    UserProfile.objects.filter(user_id=identity).update(last_seen_at=when)
    logger.debug("Recorded last seen for user %s at %s", identity, when.isoformat())
