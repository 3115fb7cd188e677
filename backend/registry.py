from typing import Awaitable, Callable, Dict, Optional
import random
import logging

import config
from auto_advance import PhaseTimers
from errors import NotFoundError, StateConflict
from models import Room

logger = logging.getLogger(__name__)


class RoomRegistry:
    """Owns every live room plus the per-room timers that must die with it."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rooms: Dict[str, Room] = {}
        self.timers = PhaseTimers()  # phase fallbacks and delayed transitions
        self.cleanup_timers = PhaseTimers()  # grace-window deletions
        self._rng = rng or random.Random()

    def generate_room_code(self) -> str:
        """Generate a unique room code, checking for collisions."""
        for _ in range(config.MAX_ROOM_CODE_ATTEMPTS):
            code = "".join(self._rng.choices(config.ROOM_CODE_ALPHABET, k=config.ROOM_CODE_LENGTH))
            if code not in self.rooms:
                return code
        raise RuntimeError("Failed to generate unique room code")

    def create_room(self, host_id: str) -> Room:
        if len(self.rooms) >= config.MAX_ROOMS:
            raise StateConflict("Too many active rooms. Please try again later.")
        room = Room(self.generate_room_code(), host_id)
        self.rooms[room.code] = room
        logger.info("Room created: %s (host %s)", room.code, host_id)
        return room

    def get_room(self, code: str) -> Optional[Room]:
        return self.rooms.get(code)

    def require_room(self, code: str) -> Room:
        room = self.rooms.get(code)
        if room is None:
            raise NotFoundError("Room not found")
        return room

    def is_live(self, room: Room) -> bool:
        return self.rooms.get(room.code) is room

    def delete_room(self, code: str) -> Optional[Room]:
        room = self.rooms.pop(code, None)
        self.timers.cancel(code)
        self.cleanup_timers.cancel(code)
        if room:
            logger.info("Room %s deleted", code)
        return room

    def schedule_deletion(self, code: str,
                          on_deleted: Optional[Callable[[Room], Awaitable[None]]] = None):
        """Delete the room after the grace window unless someone is connected by then."""

        async def _expire():
            room = self.rooms.get(code)
            if room is None:
                return
            if room.connected_players():
                logger.info("Room %s: player reconnected, deletion skipped", code)
                return
            self.delete_room(code)
            logger.info("Room %s expired after %.0fs with nobody connected",
                        code, config.ROOM_GRACE_SECONDS)
            if on_deleted:
                await on_deleted(room)

        self.cleanup_timers.schedule(code, config.ROOM_GRACE_SECONDS, _expire, label="room cleanup")

    def cancel_deletion(self, code: str) -> bool:
        cancelled = self.cleanup_timers.cancel(code)
        if cancelled:
            logger.info("Room %s: pending deletion cancelled", code)
        return cancelled

    def shutdown(self):
        self.timers.cancel_all()
        self.cleanup_timers.cancel_all()

    def clear(self):
        """Forget every room and timer reference."""
        self.rooms.clear()
        self.timers.forget_all()
        self.cleanup_timers.forget_all()
