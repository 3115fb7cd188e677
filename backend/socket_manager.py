from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PayloadError
from typing import Dict, List, Optional
import json
import uuid
import random
import logging

import config
from ai_engine import ai_engine
from errors import GameError, NotFoundError, ValidationError
from game_engine import AnswerProvider, GameEngine
from registry import RoomRegistry
from schemas import (CreateRoomEvent, JoinRoomEvent, RequestRoomStateEvent, SubmitAnswerEvent,
                     SubmitVoteEvent, first_error_message)

logger = logging.getLogger(__name__)

# Events that act on the room the connection is already attached to
ROOM_EVENTS = ("start-game", "submit-answer", "submit-vote", "skip-to-answers", "play-again", "leave-room")


class SocketManager:
    """Owns live WebSocket connections and routes their events into the game engine."""

    def __init__(self, registry: Optional[RoomRegistry] = None,
                 ai: Optional[AnswerProvider] = None, rng: Optional[random.Random] = None):
        self.registry = registry or RoomRegistry()
        self.connections: Dict[str, WebSocket] = {}  # connection id -> ws
        self.memberships: Dict[str, str] = {}  # connection id -> room code
        self.allowed_origins: List[str] = []
        self.engine = GameEngine(self.registry, self, ai or ai_engine, rng=rng)

    @property
    def rooms(self):
        return self.registry.rooms

    # --- Notifier ---

    def attach(self, conn_id: str, room_code: str):
        self.memberships[conn_id] = room_code

    def detach(self, conn_id: str):
        self.memberships.pop(conn_id, None)

    def release_room(self, room_code: str):
        for conn_id in [c for c, code in self.memberships.items() if code == room_code]:
            del self.memberships[conn_id]

    async def send(self, conn_id: str, message: dict):
        ws = self.connections.get(conn_id)
        if ws is None:
            return
        try:
            await ws.send_json(message)
        except Exception:
            # The receive loop notices the dead socket and runs the disconnect path
            logger.debug("Send to %s failed", conn_id)

    async def broadcast(self, room_code: str, message: dict):
        for conn_id in [c for c, code in self.memberships.items() if code == room_code]:
            await self.send(conn_id, message)

    # --- Connection lifecycle ---

    async def connect(self, websocket: WebSocket):
        origin = websocket.headers.get("origin", "")
        if self.allowed_origins and origin not in self.allowed_origins:
            logger.warning("Rejected WebSocket from unauthorized origin: %s", origin)
            await websocket.close(code=1008)
            return

        await websocket.accept()
        conn_id = uuid.uuid4().hex
        self.connections[conn_id] = websocket
        await websocket.send_json({"type": "connected", "connectionId": conn_id})
        logger.info("Client %s connected", conn_id)

        try:
            while True:
                data = await websocket.receive_text()

                if len(data) > config.MAX_WS_MESSAGE_SIZE:
                    await self.send(conn_id, {"type": "error", "message": "Message too large"})
                    continue

                try:
                    message = json.loads(data)
                except json.JSONDecodeError:
                    logger.warning("Malformed JSON from client %s: %s", conn_id, data[:100])
                    await self.send(conn_id, {"type": "error", "message": "Invalid message format"})
                    continue
                if not isinstance(message, dict):
                    await self.send(conn_id, {"type": "error", "message": "Invalid message format"})
                    continue

                await self.handle_message(conn_id, message)
        except WebSocketDisconnect:
            logger.info("Client %s disconnected", conn_id)
        except Exception:
            logger.exception("WebSocket error for client %s", conn_id)
        finally:
            await self.disconnect(conn_id)

    async def disconnect(self, conn_id: str):
        self.connections.pop(conn_id, None)
        room_code = self.memberships.get(conn_id)
        if room_code:
            await self.engine.leave(conn_id, room_code)

    # --- Event handling ---

    async def handle_message(self, conn_id: str, message: dict):
        msg_type = message.get("type")
        try:
            await self._dispatch(conn_id, msg_type, message)
        except PayloadError as e:
            reason = first_error_message(e)
            logger.warning("Rejected %s from %s: %s", msg_type, conn_id, reason)
            await self.send(conn_id, {"type": "error", "message": reason})
        except GameError as e:
            logger.warning("Rejected %s from %s: %s", msg_type, conn_id, e.message)
            await self.send(conn_id, {"type": "error", "message": e.message})
        except Exception:
            logger.exception("Error handling %s from %s", msg_type, conn_id)
            await self.send(conn_id, {"type": "error", "message": "Something went wrong"})

    async def _dispatch(self, conn_id: str, msg_type, message: dict):
        engine = self.engine

        if msg_type == "create-room":
            event = CreateRoomEvent.model_validate(message)
            await self._leave_current(conn_id)
            await engine.create_room(conn_id, event.hostName)

        elif msg_type == "join-room":
            event = JoinRoomEvent.model_validate(message)
            self.registry.require_room(event.roomCode)
            await self._leave_current(conn_id, keep=event.roomCode)
            await engine.join_room(conn_id, event.roomCode, event.playerName)

        elif msg_type == "request-room-state":
            event = RequestRoomStateEvent.model_validate(message)
            self.registry.require_room(event.roomCode)
            await self._leave_current(conn_id, keep=event.roomCode)
            await engine.request_room_state(conn_id, event.roomCode, event.playerName)

        elif msg_type in ROOM_EVENTS:
            room_code = self.memberships.get(conn_id)
            if not room_code:
                raise NotFoundError("You are not in a room")

            if msg_type == "start-game":
                await engine.start_game(conn_id, room_code)
            elif msg_type == "submit-answer":
                event = SubmitAnswerEvent.model_validate(message)
                await engine.submit_answer(conn_id, room_code, event.answer)
            elif msg_type == "submit-vote":
                event = SubmitVoteEvent.model_validate(message)
                await engine.submit_vote(conn_id, room_code, event.answerIndex)
            elif msg_type == "skip-to-answers":
                await engine.skip_to_answers(conn_id, room_code)
            elif msg_type == "play-again":
                await engine.play_again(conn_id, room_code)
            elif msg_type == "leave-room":
                await engine.leave(conn_id, room_code, explicit=True)

        else:
            raise ValidationError("Unknown event")

    async def _leave_current(self, conn_id: str, keep: str = ""):
        """Leave the room this connection is attached to, unless it is ``keep``."""
        current = self.memberships.get(conn_id)
        if current and current != keep:
            await self.engine.leave(conn_id, current)

    def shutdown(self):
        self.registry.shutdown()


socket_manager = SocketManager()
