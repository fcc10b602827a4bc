"""Client side of room synchronization.

Local player events go out to the room; commands from the room are applied to
the local player. Applying a command makes the player raise its own events,
and those must never go back out, or two clients would echo each other
forever. Everything here runs on one thread (the event loop), so the
"applying" scope below cannot interleave with a genuine user action.
"""

import asyncio
import logging
import time
from collections import deque
from contextlib import contextmanager
from typing import Any, Callable, Deque, Iterator, List, Optional

from pydantic import ValidationError

from watchsync import config
from watchsync.client.debounce import EventDebouncer
from watchsync.client.player import PlayerAdapter
from watchsync.errors import SyncError
from watchsync.models.command import CommandKind, SyncCommand
from watchsync.models.playback import EventKind, PlaybackState

logger = logging.getLogger(__name__)


class Transport:
    """Connection to the relay server, as the syncer uses it."""

    async def join(self, room: str) -> bool:
        raise NotImplementedError

    async def leave(self, room: str) -> None:
        raise NotImplementedError

    async def send(self, command: SyncCommand) -> None:
        raise NotImplementedError


class PlaybackSyncer:
    def __init__(
        self,
        transport: Transport,
        player: Optional[PlayerAdapter] = None,
        debouncer: Optional[EventDebouncer] = None,
        drift_tolerance: float = config.DRIFT_TOLERANCE,
        clock: Callable[[], float] = time.time,
    ):
        self._transport = transport
        self._debouncer = debouncer or EventDebouncer()
        self.drift_tolerance = drift_tolerance
        self._clock = clock

        self.enabled = False
        self.room_id: Optional[str] = None
        self.connected = False

        self.state: Optional[PlaybackState] = None
        self.last_applied_remote: Optional[SyncCommand] = None
        self._applying = 0
        self._outbox: Deque[SyncCommand] = deque()
        self._wakeup = asyncio.Event()

        self._player: Optional[PlayerAdapter] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        if player is not None:
            self.attach(player)

    # ------------------------------------------------------------------
    # Player binding

    @property
    def player(self) -> Optional[PlayerAdapter]:
        return self._player

    def attach(self, player: PlayerAdapter) -> None:
        """Start following ``player``, replacing any previous one."""
        self.detach()
        self._player = player
        self._unsubscribe = player.subscribe(self.handle_local_event)
        self.state = player.current_state()
        logger.info("Player attached")

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
        self._unsubscribe = None
        self._player = None

    # ------------------------------------------------------------------
    # Control surface

    def status(self) -> dict:
        return {"enabled": self.enabled, "room_id": self.room_id, "connected": self.connected}

    async def enable(self, enabled: bool) -> None:
        self.enabled = enabled
        if enabled and self.room_id and not self.connected:
            await self._join()
        elif not enabled and self.connected:
            await self._leave()

    async def set_room(self, room_id: Optional[str]) -> None:
        room_id = (room_id or "").strip() or None
        if room_id == self.room_id:
            return
        if self.connected:
            await self._leave()
        self.room_id = room_id
        if self.enabled and room_id:
            await self._join()

    async def on_transport_connected(self) -> None:
        """Rejoin after the socket (re)connects."""
        if self.enabled and self.room_id:
            await self._join()

    def on_transport_disconnected(self) -> None:
        if self.connected:
            logger.warning(f"Lost connection while in room {self.room_id}")
        self.connected = False

    async def _join(self) -> None:
        self.connected = await self._transport.join(self.room_id)
        if self.connected:
            logger.info(f"Joined room {self.room_id}")
        else:
            logger.warning(f"Could not join room {self.room_id}")

    async def _leave(self) -> None:
        room_id = self.room_id
        self.connected = False
        try:
            await self._transport.leave(room_id)
        except SyncError as e:
            logger.warning(f"Leave for room {room_id} not delivered: {e}")
        logger.info(f"Left room {room_id}")

    # ------------------------------------------------------------------
    # Local -> room

    @contextmanager
    def applying(self) -> Iterator[None]:
        """Events raised by the player inside this block are not sent."""
        self._applying += 1
        try:
            yield
        finally:
            self._applying -= 1

    @property
    def is_applying(self) -> bool:
        return self._applying > 0

    def handle_local_event(self, kind: EventKind, state: PlaybackState) -> None:
        self.state = state
        if not self._debouncer.accept(kind, state.observed_at):
            return
        if self.is_applying:
            logger.debug(f"Suppressed {kind.value} caused by a remote command")
            return
        if not self.connected:
            return
        command = self.command_for(kind, state)
        self._outbox.append(command)
        self._wakeup.set()

    def command_for(self, kind: EventKind, state: PlaybackState) -> SyncCommand:
        now = self._clock()
        if kind == EventKind.SEEK:
            return SyncCommand(kind=CommandKind.SEEK, room=self.room_id, position=state.position, time=now)
        if kind == EventKind.PLAY:
            paused = False
        elif kind == EventKind.PAUSE:
            paused = True
        else:
            # rate changes and progress ticks report the whole state
            paused = state.paused
        return SyncCommand(
            kind=CommandKind.PAUSE if paused else CommandKind.PLAY,
            room=self.room_id,
            paused=paused,
            position=state.position,
            rate=state.rate,
            time=now,
        )

    def pending(self) -> List[SyncCommand]:
        """Commands queued for sending, oldest first."""
        return list(self._outbox)

    async def flush(self) -> int:
        """Send whatever is queued right now; returns how many went out."""
        sent = 0
        while self._outbox:
            if await self._deliver(self._outbox.popleft()):
                sent += 1
        return sent

    async def run(self) -> None:
        """Send queued commands until cancelled."""
        while True:
            await self._wakeup.wait()
            self._wakeup.clear()
            await self.flush()

    async def _deliver(self, command: SyncCommand) -> bool:
        try:
            await self._transport.send(command)
            return True
        except SyncError as e:
            # Not retried: the next progress tick carries the state again
            logger.warning(f"Dropped {command.kind.value} for room {command.room}: {e}")
            return False
        except Exception as e:
            logger.error(f"Error sending {command.kind.value} for room {command.room}: {e}", exc_info=True)
            return False

    # ------------------------------------------------------------------
    # Room -> local

    def handle_remote(self, kind: str, data: Any) -> bool:
        try:
            command = SyncCommand.from_wire(kind, data)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed {kind}: {e.errors()}")
            return False
        return self.apply_remote(command)

    def apply_remote(self, command: SyncCommand) -> bool:
        """Bring the local player in line with ``command``.

        Returns False when the command is ignored.
        """
        if not self.enabled or not self.connected or command.room != self.room_id:
            logger.debug(f"Ignoring {command.kind.value} for room {command.room}")
            return False
        if self._player is None:
            logger.debug("No player attached, ignoring remote command")
            return False

        current = self._player.current_state()
        with self.applying():
            if command.position is not None and abs(current.position - command.position) > self.drift_tolerance:
                self._player.set_position(command.position)
            if command.rate is not None and command.rate != current.rate:
                self._player.set_rate(command.rate)
            if command.paused is not None and command.paused != current.paused:
                self._player.set_paused(command.paused)

        self.last_applied_remote = command
        logger.debug(f"Applied {command.kind.value} (sent at {command.time})")
        return True
