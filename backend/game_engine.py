"""Round orchestration: the phase state machine for every room.

All handlers run on the event loop, one event at a time. The only await that
can interleave with other events for the same room is the AI provider call,
so everything applied after it is re-validated against the room's state.
"""
from typing import List, Optional, Protocol
import random
import logging

import config
import questions
import roster
import scoring
from errors import AuthorizationError, ExternalProviderError, NotFoundError, StateConflict, ValidationError
from models import AI_AUTHOR_ID, AnswerEntry, GameState, Player, Room
from registry import RoomRegistry

logger = logging.getLogger(__name__)

NO_ANSWERS_MESSAGE = "Everyone was too slow! Starting a new round..."
NEW_GAME_MESSAGE = "New game starting..."


class Notifier(Protocol):
    def attach(self, conn_id: str, room_code: str) -> None: ...

    def detach(self, conn_id: str) -> None: ...

    def release_room(self, room_code: str) -> None: ...

    async def send(self, conn_id: str, message: dict) -> None: ...

    async def broadcast(self, room_code: str, message: dict) -> None: ...


class AnswerProvider(Protocol):
    async def generate_answer(self, question: str, answers: List[str],
                              player_names: Optional[List[str]] = None) -> str: ...


class GameEngine:
    def __init__(self, registry: RoomRegistry, notifier: Notifier, ai: AnswerProvider,
                 rng: Optional[random.Random] = None):
        self.registry = registry
        self.notifier = notifier
        self.ai = ai
        self.rng = rng or random.Random()

    # ------------------------------------------------------------------
    # Rooms and roster
    # ------------------------------------------------------------------

    async def create_room(self, conn_id: str, host_name: str) -> Room:
        room = self.registry.create_room(conn_id)
        roster.join_or_reconnect(room, conn_id, host_name)
        self.notifier.attach(conn_id, room.code)
        await self.notifier.send(conn_id, {
            "type": "room-created",
            "roomCode": room.code,
            "players": room.player_list(),
            "isHost": True,
            "hostId": room.host_id,
        })
        return room

    async def join_room(self, conn_id: str, room_code: str, name: str) -> Player:
        room = self.registry.require_room(room_code)
        player, outcome = self._attach_player(room, conn_id, name)
        await self.notifier.send(conn_id, {
            "type": "room-joined",
            "roomCode": room.code,
            "players": room.player_list(),
            "isHost": room.is_host(conn_id),
            "hostId": room.host_id,
            "gameState": room.state.value,
        })
        if outcome == roster.RECONNECTED and room.state != GameState.LOBBY:
            await self.notifier.send(conn_id, self.room_state(room, conn_id))
        await self._after_attach(room, outcome)
        return player

    async def request_room_state(self, conn_id: str, room_code: str,
                                 name: Optional[str] = None):
        """Send the room snapshot. With a name, also join or reconnect as that player."""
        room = self.registry.require_room(room_code)
        outcome = roster.UNCHANGED
        if name:
            _, outcome = self._attach_player(room, conn_id, name)
        else:
            self.notifier.attach(conn_id, room.code)
        await self.notifier.send(conn_id, self.room_state(room, conn_id))
        await self._after_attach(room, outcome)

    def _attach_player(self, room: Room, conn_id: str, name: str):
        player, outcome, previous_id = roster.join_or_reconnect(
            room, conn_id, name, allow_new=roster.can_join_new(room))
        self.registry.cancel_deletion(room.code)
        if previous_id and previous_id != conn_id:
            # The same name took over from another live connection
            self.notifier.detach(previous_id)
        self.notifier.attach(conn_id, room.code)
        return player, outcome

    async def _after_attach(self, room: Room, outcome: str):
        if outcome == roster.UNCHANGED:
            return
        await self.notifier.broadcast(room.code, {
            "type": "player-joined",
            "players": room.player_list(),
            "hostId": room.host_id,
        })
        if outcome == roster.RECONNECTED:
            self._resume(room)

    async def leave(self, conn_id: str, room_code: str, explicit: bool = False):
        """Handle a disconnect (or an explicit leave) of ``conn_id``."""
        self.notifier.detach(conn_id)
        room = self.registry.get_room(room_code)
        if room is None:
            return
        player = roster.leave(room, conn_id)
        if player is None:
            return

        if not room.connected_players():
            # Nobody left to play; park the round until someone returns
            self.registry.timers.cancel(room.code)
            if explicit and room.is_host(conn_id):
                await self._close_room(room)
                return
            self.registry.schedule_deletion(room.code, on_deleted=self._on_room_expired)
        else:
            self.registry.cancel_deletion(room.code)

        await self.notifier.broadcast(room.code, {
            "type": "player-left",
            "players": room.player_list(),
            "hostId": room.host_id,
        })
        await self._check_phase_complete(room)

    async def _close_room(self, room: Room):
        self.registry.delete_room(room.code)
        await self._on_room_expired(room)

    async def _on_room_expired(self, room: Room):
        await self.notifier.broadcast(room.code, {"type": "room-closed", "roomCode": room.code})
        self.notifier.release_room(room.code)

    def _resume(self, room: Room):
        """Re-arm the pending phase action of a room that sat with nobody connected."""
        if self.registry.timers.is_pending(room.code) or room.generating:
            return
        if room.state == GameState.ANSWERING:
            room.advancing = False
            self._schedule(room, config.ANSWER_TIME_LIMIT, self.end_answering_phase, "answer timeout")
        elif room.state == GameState.VOTING:
            self._schedule(room, config.VOTING_TIME_LIMIT, self.end_voting_phase, "voting timeout")
        elif room.state == GameState.RESULTS:
            self._schedule_after_results(room)
        else:
            return
        logger.info("Room %s resumed in %s", room.code, room.state.value)

    def room_state(self, room: Room, conn_id: str) -> dict:
        state = {
            "type": "room-state",
            "roomCode": room.code,
            "players": room.player_list(),
            "isHost": room.is_host(conn_id),
            "hostId": room.host_id,
            "gameState": room.state.value,
            "roundNumber": room.round_number,
            "scores": room.scores_by_name(),
        }
        if room.state != GameState.LOBBY and room.current_question:
            state["question"] = room.current_question
            state["subjectName"] = room.current_subject.name if room.current_subject else None
        if room.state in (GameState.VOTING, GameState.RESULTS):
            state["answers"] = room.public_answers()
        return state

    # ------------------------------------------------------------------
    # Host actions
    # ------------------------------------------------------------------

    def _require_host(self, room: Room, conn_id: str, action: str):
        if not room.is_host(conn_id):
            raise AuthorizationError(f"Only host can {action}")

    async def start_game(self, conn_id: str, room_code: str):
        room = self.registry.require_room(room_code)
        self._require_host(room, conn_id, "start game")
        if room.state != GameState.LOBBY:
            raise StateConflict("Game already started")
        if len(room.connected_players()) < config.MIN_PLAYERS:
            raise StateConflict(f"Need at least {config.MIN_PLAYERS} players")
        logger.info("Room %s: game started with %d players", room.code, len(room.connected_players()))
        await self.start_round(room)

    async def skip_to_answers(self, conn_id: str, room_code: str):
        room = self.registry.require_room(room_code)
        self._require_host(room, conn_id, "skip")
        if room.state != GameState.ANSWERING:
            raise StateConflict("Can only skip while players are answering")
        if room.advancing:
            raise StateConflict("Answers are already being revealed")
        logger.info("Room %s: host skipped to answers", room.code)
        await self.end_answering_phase(room)

    async def play_again(self, conn_id: str, room_code: str):
        room = self.registry.require_room(room_code)
        self._require_host(room, conn_id, "start a new game")
        if room.state != GameState.GAME_OVER:
            raise StateConflict("Game is not over yet")
        scoring.reset_scores(room)
        logger.info("Room %s: new game requested", room.code)
        await self.notifier.broadcast(room.code, {"type": "new-game-started", "message": NEW_GAME_MESSAGE})
        self._schedule(room, config.NEW_GAME_DELAY, self._start_new_game, "new game")

    async def _start_new_game(self, room: Room):
        if not self.registry.is_live(room) or room.state != GameState.GAME_OVER:
            return
        await self.start_round(room)

    # ------------------------------------------------------------------
    # Rounds
    # ------------------------------------------------------------------

    async def start_round(self, room: Room):
        if not self.registry.is_live(room):
            return
        connected = room.connected_players()
        if not connected:
            logger.info("Room %s: nobody connected, round not started", room.code)
            return

        subject = self.rng.choice(connected)
        room.current_subject = subject
        room.current_question = questions.draw_question(subject.name, self.rng)
        room.answers.clear()
        room.votes.clear()
        room.shuffled_entries = []
        room.ai_answer = ""
        room.round_number += 1
        room.advancing = False
        room.state = GameState.ANSWERING
        logger.info("Room %s: round %d started, subject '%s'", room.code, room.round_number, subject.name)

        await self.notifier.broadcast(room.code, {
            "type": "round-started",
            "question": room.current_question,
            "subjectName": subject.name,
            "roundNumber": room.round_number,
        })
        self._schedule(room, config.ANSWER_TIME_LIMIT, self.end_answering_phase, "answer timeout")

    def _connected_player(self, room: Room, conn_id: str) -> Player:
        player = room.find_player(conn_id)
        if player is None or not player.connected:
            raise NotFoundError("You are not in this room")
        return player

    async def submit_answer(self, conn_id: str, room_code: str, text: str):
        room = self.registry.require_room(room_code)
        self._connected_player(room, conn_id)
        if room.state != GameState.ANSWERING:
            raise StateConflict("Not accepting answers right now")
        if room.advancing:
            raise StateConflict("Answers are closed for this round")
        text = text.strip()
        if not text:
            raise ValidationError("Answer cannot be empty")

        room.answers[conn_id] = text
        await self.notifier.broadcast(room.code, {
            "type": "answer-submitted",
            "count": len(room.answers),
            "total": len(room.connected_players()),
        })
        await self._check_phase_complete(room)

    async def submit_vote(self, conn_id: str, room_code: str, answer_index: int):
        room = self.registry.require_room(room_code)
        self._connected_player(room, conn_id)
        if room.state != GameState.VOTING:
            raise StateConflict("Not accepting votes right now")
        if not isinstance(answer_index, int) or not (0 <= answer_index < len(room.shuffled_entries)):
            raise ValidationError("Invalid answer index")

        room.votes[conn_id] = answer_index
        await self.notifier.broadcast(room.code, {
            "type": "vote-submitted",
            "count": len(room.votes),
            "total": len(room.connected_players()),
        })
        await self._check_phase_complete(room)

    def phase_complete(self, room: Room) -> bool:
        """True once every connected player has responded in the current phase."""
        connected = {p.id for p in room.connected_players()}
        if not connected:
            return False
        if room.state == GameState.ANSWERING:
            return connected.issubset(room.answers)
        if room.state == GameState.VOTING:
            return connected.issubset(room.votes)
        return False

    async def _check_phase_complete(self, room: Room):
        if room.advancing or not self.phase_complete(room):
            return
        if room.state == GameState.ANSWERING:
            await self.end_answering_phase(room)
        elif room.state == GameState.VOTING:
            await self.end_voting_phase(room)

    async def end_answering_phase(self, room: Room):
        if not self.registry.is_live(room) or room.state != GameState.ANSWERING or room.advancing:
            return
        self.registry.timers.cancel(room.code)
        room.advancing = True

        if not room.answers:
            logger.info("Room %s: no answers in round %d", room.code, room.round_number)
            await self.notifier.broadcast(room.code, {"type": "no-answers", "message": NO_ANSWERS_MESSAGE})
            self._schedule(room, config.NO_ANSWERS_DELAY, self._restart_round, "fresh round")
            return

        round_number = room.round_number
        submitted = [(room.find_player(pid), text) for pid, text in room.answers.items()]
        submitted = [(player, text) for player, text in submitted if player is not None]
        room.generating = True
        try:
            ai_answer = await self.ai.generate_answer(
                room.current_question,
                [text for _, text in submitted],
                [p.name for p in room.players],
            )
        except Exception as e:
            room.generating = False
            error = e if isinstance(e, ExternalProviderError) else ExternalProviderError("Failed to generate AI answer")
            if not isinstance(e, ExternalProviderError):
                logger.exception("AI provider raised unexpectedly in room %s", room.code)
            if self._is_current(room, round_number):
                # Stay in Answering; another skip, submission or reconnect retries
                room.advancing = False
                logger.warning("Room %s: AI answer failed, staying in answering: %s", room.code, error.message)
                await self.notifier.broadcast(room.code, {"type": "error", "message": error.message})
            return
        room.generating = False

        if not self._is_current(room, round_number):
            logger.info("Room %s: discarding stale AI answer for round %d", room.code, round_number)
            return

        entries = [AnswerEntry(text, player.id, player.name) for player, text in submitted]
        entries.append(AnswerEntry(ai_answer, AI_AUTHOR_ID, "AI", is_ai=True))
        self.rng.shuffle(entries)

        room.ai_answer = ai_answer
        room.shuffled_entries = entries
        room.votes.clear()
        room.advancing = False
        room.state = GameState.VOTING
        logger.info("Room %s: voting on %d answers", room.code, len(entries))

        await self.notifier.broadcast(room.code, {
            "type": "answers-shown",
            "answers": room.public_answers(),
            "aiAnswerIndex": room.ai_entry_index(),
        })
        self._schedule(room, config.VOTING_TIME_LIMIT, self.end_voting_phase, "voting timeout")

    def _is_current(self, room: Room, round_number: int) -> bool:
        return (self.registry.is_live(room)
                and room.state == GameState.ANSWERING
                and room.round_number == round_number)

    async def _restart_round(self, room: Room):
        if not self.registry.is_live(room) or room.state != GameState.ANSWERING:
            return
        await self.start_round(room)

    async def end_voting_phase(self, room: Room):
        if not self.registry.is_live(room) or room.state != GameState.VOTING:
            return
        self.registry.timers.cancel(room.code)

        outcome = scoring.calculate_results(room)
        room.state = GameState.RESULTS
        await self.notifier.broadcast(room.code, {
            "type": "results-shown",
            "results": outcome["results"],
            "aiAnswerIndex": outcome["aiAnswerIndex"],
            "answers": [entry.to_dict() for entry in room.shuffled_entries],
        })
        self._schedule_after_results(room)

    def _schedule_after_results(self, room: Room):
        if scoring.check_for_winner(room):
            self._schedule(room, config.GAME_OVER_DELAY, self._advance_after_results, "game over")
        else:
            self._schedule(room, config.RESULTS_DELAY, self._advance_after_results, "next round")

    async def _advance_after_results(self, room: Room):
        if not self.registry.is_live(room) or room.state != GameState.RESULTS:
            return
        winner = scoring.check_for_winner(room)
        if winner is None:
            await self.start_round(room)
            return
        room.state = GameState.GAME_OVER
        logger.info("Room %s: game over, winner '%s'", room.code, winner.name)
        await self.notifier.broadcast(room.code, {
            "type": "game-over",
            "winner": winner.name,
            "scores": room.scores_by_name(),
        })

    def _schedule(self, room: Room, delay: float, handler, label: str):
        self.registry.timers.schedule(room.code, delay, lambda: handler(room), label=label)
