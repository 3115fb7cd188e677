"""Player roster and reconnection.

Players are matched across connections by display name. A reconnecting player
keeps their roster slot, score and host status; only the connection id changes.
"""
from typing import Optional, Tuple
import time
import logging

import config
from errors import StateConflict
from models import GameState, Player, Room

logger = logging.getLogger(__name__)

UNCHANGED = "unchanged"
RECONNECTED = "reconnected"
JOINED = "joined"


def join_or_reconnect(room: Room, conn_id: str, name: str,
                      allow_new: bool = True) -> Tuple[Player, str, Optional[str]]:
    """Attach ``conn_id`` to the room under ``name``.

    Returns ``(player, outcome, previous_id)``. ``previous_id`` is the connection
    id the record held before a reconnect, so callers can detach it.
    """
    current = room.find_player(conn_id)
    if current is not None and current.connected:
        return current, UNCHANGED, None

    record = room.find_player_by_name(name)
    if record is not None:
        previous_id = record.id
        _rekey(room, previous_id, conn_id)
        record.id = conn_id
        record.connected = True
        record.disconnected_at = None
        logger.info("Player '%s' reconnected to room %s with score %d",
                    name, room.code, room.scores.get(conn_id, 0))
        return record, RECONNECTED, previous_id

    if not allow_new:
        raise StateConflict("Game already in progress")
    if len(room.players) >= config.MAX_PLAYERS_PER_ROOM:
        raise StateConflict("Room is full")

    player = Player(conn_id, name)
    room.players.append(player)
    room.scores[conn_id] = 0
    logger.info("Player '%s' joined room %s", name, room.code)
    return player, JOINED, None


def _rekey(room: Room, old_id: str, new_id: str):
    """Move everything keyed by the old connection id onto the new one."""
    if old_id == new_id:
        return
    room.scores[new_id] = room.scores.pop(old_id, 0)
    if old_id in room.answers:
        room.answers[new_id] = room.answers.pop(old_id)
    if old_id in room.votes:
        room.votes[new_id] = room.votes.pop(old_id)
    for entry in room.shuffled_entries:
        if not entry.is_ai and entry.author_id == old_id:
            entry.author_id = new_id
    if room.host_id == old_id:
        room.host_id = new_id


def leave(room: Room, conn_id: str) -> Optional[Player]:
    """Mark the player disconnected and drop their in-flight answer and vote.

    The roster slot and score are kept for a later reconnect.
    """
    player = room.find_player(conn_id)
    if player is None or not player.connected:
        return None
    player.connected = False
    player.disconnected_at = time.time()
    room.answers.pop(conn_id, None)
    room.votes.pop(conn_id, None)
    logger.info("Player '%s' disconnected from room %s (data preserved)", player.name, room.code)
    return player


def can_join_new(room: Room) -> bool:
    return room.state == GameState.LOBBY
