from typing import List, Optional
import logging

import config
from models import Player, Room

logger = logging.getLogger(__name__)

GUESSED_AI_EVENT = "Guessed AI correctly!"


def calculate_results(room: Room) -> dict:
    """Award this round's points and return the per-player breakdown.

    Only connected players score or give credit. Each earns a point for
    spotting the AI answer, plus a point for every other connected player
    who voted for their answer.
    """
    ai_index = room.ai_entry_index()
    connected = room.connected_players()
    results: List[dict] = []

    for player in connected:
        points = 0
        events: List[str] = []

        if room.votes.get(player.id) == ai_index:
            points += 1
            events.append(GUESSED_AI_EVENT)

        own_index = room.entry_index_for(player.id)
        if own_index is not None:
            for voter in connected:
                if voter.id != player.id and room.votes.get(voter.id) == own_index:
                    points += 1
                    events.append(f"{voter.name} voted for your answer!")

        room.scores[player.id] = room.scores.get(player.id, 0) + points
        results.append({
            "playerId": player.id,
            "playerName": player.name,
            "pointsEarned": points,
            "events": events,
            "newScore": room.scores[player.id],
        })

    winner = check_for_winner(room)
    if winner:
        logger.info("Room %s: %s reached %d points", room.code, winner.name, room.scores[winner.id])
    return {"results": results, "aiAnswerIndex": ai_index, "winner": winner}


def check_for_winner(room: Room) -> Optional[Player]:
    for player in room.players:
        if room.scores.get(player.id, 0) >= config.WINNING_SCORE:
            return player
    return None


def reset_scores(room: Room):
    for player in room.players:
        room.scores[player.id] = 0
