import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Set

logger = logging.getLogger(__name__)


class RoomRegistry:
    """Room membership, keyed by room id.

    A room exists only while it has members: it appears on the first join and
    its entry is dropped when the last member leaves. Every membership change
    and every read of a member set goes through that room's lock.
    """

    def __init__(self):
        self._rooms: Dict[str, Set[str]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        # room id -> coroutines holding or waiting on its lock
        self._lock_users: Dict[str, int] = {}
        # sid -> rooms it joined, for disconnect cleanup
        self._sid_rooms: Dict[str, Set[str]] = {}

    @asynccontextmanager
    async def _hold(self, room_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(room_id)
        if lock is None:
            lock = self._locks[room_id] = asyncio.Lock()
        self._lock_users[room_id] = self._lock_users.get(room_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[room_id] -= 1
            if not self._lock_users[room_id]:
                del self._lock_users[room_id]
                # the lock goes with the room once nobody is using it
                if room_id not in self._rooms:
                    del self._locks[room_id]

    @asynccontextmanager
    async def locked(self, room_id: str) -> AsyncIterator[Set[str]]:
        """Hold the room lock and yield a snapshot of its members."""
        async with self._hold(room_id):
            yield set(self._rooms.get(room_id, ()))

    async def add_user(self, room_id: str, sid: str) -> int:
        async with self._hold(room_id):
            members = self._rooms.setdefault(room_id, set())
            if sid in members:
                logger.debug(f"{sid} already in room {room_id}")
            members.add(sid)
            self._sid_rooms.setdefault(sid, set()).add(room_id)
            return len(members)

    async def remove_user(self, room_id: str, sid: str) -> int:
        if room_id not in self._rooms:
            return 0
        async with self._hold(room_id):
            members = self._rooms.get(room_id)
            if members is None:
                return 0
            members.discard(sid)
            rooms = self._sid_rooms.get(sid)
            if rooms is not None:
                rooms.discard(room_id)
                if not rooms:
                    del self._sid_rooms[sid]
            if not members:
                logger.info(f"Room {room_id} is empty, dropping it")
                del self._rooms[room_id]
                return 0
            return len(members)

    async def remove_everywhere(self, sid: str) -> Set[str]:
        rooms = set(self._sid_rooms.get(sid, ()))
        for room_id in rooms:
            await self.remove_user(room_id, sid)
        return rooms

    def is_member(self, room_id: str, sid: str) -> bool:
        return sid in self._rooms.get(room_id, ())

    def size(self, room_id: str) -> int:
        return len(self._rooms.get(room_id, ()))

    def rooms_of(self, sid: str) -> Set[str]:
        return set(self._sid_rooms.get(sid, ()))

    def room_ids(self) -> Set[str]:
        return set(self._rooms)

    def lock_count(self) -> int:
        return len(self._locks)
