import asyncio
import logging
from typing import Optional, Tuple

import httpx
import socketio
from socketio import exceptions as sio_exceptions

from watchsync import config
from watchsync.client.player import PlayerAdapter
from watchsync.client.syncer import PlaybackSyncer, Transport
from watchsync.errors import TransportUnavailable
from watchsync.models.command import CommandKind, SyncCommand

logger = logging.getLogger(__name__)

JOIN_TIMEOUT = 5


class SocketTransport(Transport):
    """Socket.IO link to the relay server."""

    def __init__(self, server_url: str = config.SERVER_URL, sio: Optional[socketio.AsyncClient] = None):
        self.server_url = server_url
        self.sio = sio or socketio.AsyncClient()

    def bind(self, syncer: PlaybackSyncer) -> None:
        """Route room commands and connection changes into ``syncer``."""

        def remote_handler(kind: str):
            def handler(data):
                syncer.handle_remote(kind, data)
            return handler

        for kind in CommandKind:
            self.sio.on(kind.value, remote_handler(kind.value))

        @self.sio.event
        async def connect():
            logger.info(f"Connected to {self.server_url}")
            # join waits for an ack, which the connect handler would block
            self.sio.start_background_task(syncer.on_transport_connected)

        @self.sio.event
        def disconnect(*args):
            logger.info(f"Disconnected from {self.server_url}")
            syncer.on_transport_disconnected()

        @self.sio.on("error")
        def on_error(data):
            logger.warning(f"Server error: {data}")

    async def probe(self) -> bool:
        """Whether the relay server answers its health check."""
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(self.server_url, timeout=3)
                response.raise_for_status()
                return response.json().get("status") == "ok"
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Server at {self.server_url} is not reachable: {e}")
            return False

    async def connect(self) -> None:
        try:
            await self.sio.connect(self.server_url)
        except sio_exceptions.ConnectionError as e:
            raise TransportUnavailable(f"Connection failed - check if server is running: {e}") from e

    async def close(self) -> None:
        await self.sio.disconnect()

    async def join(self, room: str) -> bool:
        try:
            ack = await self.sio.call("join", {"room": room}, timeout=JOIN_TIMEOUT)
        except sio_exceptions.SocketIOError as e:
            logger.warning(f"Join for room {room} failed: {e}")
            return False
        return bool(ack and ack.get("ok"))

    async def leave(self, room: str) -> None:
        try:
            await self.sio.emit("leave", {"room": room})
        except sio_exceptions.SocketIOError as e:
            raise TransportUnavailable(str(e)) from e

    async def send(self, command: SyncCommand) -> None:
        try:
            await self.sio.emit(command.kind.value, command.to_wire())
        except sio_exceptions.SocketIOError as e:
            raise TransportUnavailable(str(e)) from e


async def open_session(
    player: PlayerAdapter,
    room_id: str,
    server_url: str = config.SERVER_URL,
    sio: Optional[socketio.AsyncClient] = None,
) -> Tuple[PlaybackSyncer, asyncio.Task]:
    """Connect ``player`` to a room and keep it in sync.

    Returns the syncer and the task sending its commands; cancel the task to stop.
    """
    transport = SocketTransport(server_url, sio=sio)
    syncer = PlaybackSyncer(transport, player)
    transport.bind(syncer)
    await transport.connect()
    await syncer.set_room(room_id)
    await syncer.enable(True)
    pump = transport.sio.start_background_task(syncer.run)
    return syncer, pump
