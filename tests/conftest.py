"""Shared fakes for the watchsync tests."""

from typing import Dict, List, Optional, Tuple

import pytest

from watchsync.client.player import MemoryPlayer
from watchsync.client.syncer import PlaybackSyncer, Transport
from watchsync.errors import TransportUnavailable
from watchsync.models.command import SyncCommand
from watchsync.services.relay import RelayServer


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingTransport(Transport):
    def __init__(self, join_ok: bool = True) -> None:
        self.join_ok = join_ok
        self.sent: List[SyncCommand] = []
        self.joined: List[str] = []
        self.left: List[str] = []
        self.fail_sends = False

    async def join(self, room: str) -> bool:
        self.joined.append(room)
        return self.join_ok

    async def leave(self, room: str) -> None:
        self.left.append(room)

    async def send(self, command: SyncCommand) -> None:
        if self.fail_sends:
            raise TransportUnavailable("socket closed")
        self.sent.append(command)


class LoopbackNetwork:
    """Relay server plus clients wired together in one process."""

    def __init__(self) -> None:
        self.syncers: Dict[str, PlaybackSyncer] = {}
        self.delivered: List[Tuple[str, str, dict]] = []
        self.relay = RelayServer(self._deliver)

    async def _deliver(self, sid: str, event: str, data: dict) -> None:
        self.delivered.append((sid, event, data))
        syncer = self.syncers.get(sid)
        if syncer is None:
            raise ConnectionError(f"{sid} is gone")
        syncer.handle_remote(event, data)

    def client(self, sid: str, player: MemoryPlayer, clock: Optional[FakeClock] = None) -> PlaybackSyncer:
        syncer = PlaybackSyncer(LoopbackTransport(self, sid), player, clock=clock or FakeClock())
        self.syncers[sid] = syncer
        return syncer

    async def drop(self, sid: str) -> None:
        del self.syncers[sid]
        await self.relay.disconnect(sid)

    async def pump(self) -> None:
        """Flush every client's outbox until the network is quiet."""
        while any(s.pending() for s in self.syncers.values()):
            for syncer in list(self.syncers.values()):
                await syncer.flush()


class LoopbackTransport(Transport):
    def __init__(self, network: LoopbackNetwork, sid: str) -> None:
        self.network = network
        self.sid = sid
        self.sent: List[SyncCommand] = []

    async def join(self, room: str) -> bool:
        ack = await self.network.relay.join(self.sid, {"room": room})
        return ack["ok"]

    async def leave(self, room: str) -> None:
        await self.network.relay.leave(self.sid, {"room": room})

    async def send(self, command: SyncCommand) -> None:
        self.sent.append(command)
        await self.network.relay.relay(self.sid, command.kind.value, command.to_wire())


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def network() -> LoopbackNetwork:
    return LoopbackNetwork()
