import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import socketio

from watchsync import config
from watchsync.models.command import CommandKind
from watchsync.services.relay import RelayServer

# Configure logging
logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI()

origins = config.ALLOWED_ORIGINS

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

sio = socketio.AsyncServer(async_mode='asgi', cors_allowed_origins=origins if origins != ["*"] else "*")
socket_app = socketio.ASGIApp(sio, app)


async def send_to_sid(sid: str, event: str, data: dict):
    await sio.emit(event, data, to=sid)

relay = RelayServer(send_to_sid)

# REST API
@app.get("/")
async def health():
    return {"message": "Socket.IO server is running", "status": "ok"}

@app.get("/api/rooms/{room_id}")
async def room_info(room_id: str):
    return {"room": room_id, "members": relay.rooms.size(room_id)}

# Socket Events
@sio.event
async def connect(sid, environ):
    logger.info(f"Client {sid} connected")

@sio.event
async def disconnect(sid):
    try:
        logger.info(f"Client {sid} disconnected")
        await relay.disconnect(sid)
    except Exception as e:
        logger.error(f"Error in disconnect: {e}", exc_info=True)

@sio.event
async def join(sid, data):
    try:
        ack = await relay.join(sid, data)
        if not ack["ok"]:
            await sio.emit("error", {"message": ack["error"]}, to=sid)
        return ack
    except Exception as e:
        logger.error(f"Error in join: {e}", exc_info=True)
        await sio.emit("error", {"message": "Internal server error during join"}, to=sid)
        return {"ok": False, "error": "Internal server error"}

@sio.event
async def leave(sid, data):
    try:
        return await relay.leave(sid, data)
    except Exception as e:
        logger.error(f"Error in leave: {e}", exc_info=True)
        return {"ok": False, "error": "Internal server error"}


def _relay_handler(kind: str):
    async def handler(sid, data):
        try:
            await relay.relay(sid, kind, data)
        except Exception as e:
            logger.error(f"Error relaying {kind}: {e}", exc_info=True)
    return handler

for _kind in CommandKind:
    sio.on(_kind.value, _relay_handler(_kind.value))


def run():
    import uvicorn
    uvicorn.run(socket_app, host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
