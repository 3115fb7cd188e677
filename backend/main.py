from fastapi import FastAPI, WebSocket, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import uvicorn
import logging

import config
config.setup_logging()

from ai_engine import ai_engine
from socket_manager import socket_manager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting party game backend (AI provider: %s)", config.AI_PROVIDER)
    yield
    socket_manager.shutdown()
    logger.info("Shutting down party game backend")


app = FastAPI(title="AI Impostor Party Game", lifespan=lifespan)


@app.get("/providers")
async def get_providers():
    return {"default": config.AI_PROVIDER, "providers": ai_engine.get_available_providers()}


@app.get("/rooms/{room_code}")
async def get_room(room_code: str):
    room = socket_manager.registry.get_room(room_code.upper())
    if room is None:
        raise HTTPException(status_code=404, detail="Room not found")
    return {
        "room_code": room.code,
        "state": room.state.value,
        "round_number": room.round_number,
        "player_count": len(room.players),
        "connected_count": len(room.connected_players()),
    }


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await socket_manager.connect(websocket)


# Configure CORS
if config.ALLOWED_ORIGINS.strip():
    origins = [o.strip() for o in config.ALLOWED_ORIGINS.split(",")]
    socket_manager.allowed_origins = origins
else:
    origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=False,
    allow_methods=["GET"],
    allow_headers=["Content-Type"],
)


@app.get("/")
async def root():
    return {"message": "AI Impostor Party Game API is running"}


@app.get("/health")
async def health():
    return {"status": "healthy", "rooms": len(socket_manager.rooms)}


if __name__ == "__main__":
    uvicorn.run("main:app", host=config.HOST, port=config.PORT, reload=True)
