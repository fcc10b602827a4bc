import logging
from typing import Any, Awaitable, Callable, Optional

from pydantic import ValidationError

from watchsync.models.command import JoinRequest, SyncCommand
from watchsync.services.room import RoomRegistry

logger = logging.getLogger(__name__)

# (sid, event, data) -> delivery to one connection
Sender = Callable[[str, str, dict], Awaitable[None]]


class RelayServer:
    """Fans playback commands out to the other members of a room.

    Payloads are checked for shape and then forwarded exactly as received.
    Commands from connections that never joined the room are ignored.
    """

    def __init__(self, send: Sender, rooms: Optional[RoomRegistry] = None):
        self._send = send
        self.rooms = rooms or RoomRegistry()

    async def join(self, sid: str, data: Any) -> dict:
        try:
            request = JoinRequest.from_wire(data)
        except ValidationError as e:
            logger.warning(f"Malformed join from {sid}: {e.errors()}")
            return {"ok": False, "error": "Invalid room"}

        members = await self.rooms.add_user(request.room, sid)
        logger.info(f"User {sid} joined room {request.room} ({members} members)")
        return {"ok": True, "room": request.room, "members": members}

    async def leave(self, sid: str, data: Any) -> dict:
        try:
            request = JoinRequest.from_wire(data)
        except ValidationError as e:
            logger.warning(f"Malformed leave from {sid}: {e.errors()}")
            return {"ok": False, "error": "Invalid room"}

        await self.rooms.remove_user(request.room, sid)
        logger.info(f"User {sid} left room {request.room}")
        return {"ok": True, "room": request.room}

    async def disconnect(self, sid: str) -> None:
        rooms = await self.rooms.remove_everywhere(sid)
        if rooms:
            logger.info(f"Removed {sid} from rooms {sorted(rooms)}")

    async def relay(self, sid: str, kind: str, data: Any) -> int:
        """Forward one command; returns how many peers it was handed to."""
        try:
            command = SyncCommand.from_wire(kind, data)
        except ValidationError as e:
            logger.warning(f"Dropping malformed {kind} from {sid}: {e.errors()}")
            return 0

        if not self.rooms.is_member(command.room, sid):
            logger.warning(f"Ignoring {kind} from {sid}: not a member of room {command.room}")
            return 0

        delivered = 0
        async with self.rooms.locked(command.room) as members:
            if sid not in members:
                # left while waiting for the lock
                return 0
            for peer in members:
                if peer == sid:
                    continue
                try:
                    await self._send(peer, kind, data)
                    delivered += 1
                except Exception as e:
                    # Peer went away mid fan-out; best effort only
                    logger.debug(f"Skipping {peer} in room {command.room}: {e}")

        logger.info(f"{kind.capitalize()} in room {command.room} at {command.time} -> {delivered} peers")
        return delivered
