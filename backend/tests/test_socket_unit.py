"""
Unit tests for socket_manager.py and game_engine.py.
Uses mock WebSockets and a fake AI provider to test phase transitions,
idempotent phase ends, reconnection, room cleanup and the timer fallbacks.
"""
import sys
import os
import asyncio
import random
from typing import Optional

import pytest
import pytest_asyncio

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import config
from errors import ExternalProviderError
from models import GameState
from registry import RoomRegistry
from socket_manager import SocketManager


# ---------------------------------------------------------------------------
# Mocks
# ---------------------------------------------------------------------------

class MockWebSocket:
    """Lightweight mock for fastapi.WebSocket."""
    def __init__(self):
        self.sent_messages: list[dict] = []
        self.closed = False

    async def send_json(self, data: dict):
        self.sent_messages.append(data)

    async def close(self, code: int = 1000):
        self.closed = True

    async def accept(self):
        pass

    @property
    def headers(self):
        return {"origin": ""}

    def last(self, msg_type: str) -> dict | None:
        """Return the last sent message of a given type."""
        for msg in reversed(self.sent_messages):
            if msg.get("type") == msg_type:
                return msg
        return None

    def all(self, msg_type: str) -> list[dict]:
        """Return all sent messages of a given type."""
        return [m for m in self.sent_messages if m.get("type") == msg_type]


class FakeAI:
    """AI provider double. Set ``gate`` to hold the call open until released."""
    def __init__(self, answer: str = "the gym obviously", fail: bool = False):
        self.answer = answer
        self.fail = fail
        self.calls: list[tuple] = []
        self.gate: Optional[asyncio.Event] = None

    async def generate_answer(self, question, answers, player_names=None):
        self.calls.append((question, list(answers)))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise ExternalProviderError("Failed to generate AI answer")
        return self.answer


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def sm():
    manager = SocketManager(registry=RoomRegistry(rng=random.Random(1)), ai=FakeAI(),
                            rng=random.Random(1))
    yield manager
    manager.shutdown()


@pytest.fixture
def fast(monkeypatch):
    """Shrink every delay so timer paths run within a test."""
    monkeypatch.setattr(config, "NO_ANSWERS_DELAY", 0.01)
    monkeypatch.setattr(config, "RESULTS_DELAY", 0.01)
    monkeypatch.setattr(config, "GAME_OVER_DELAY", 0.01)
    monkeypatch.setattr(config, "NEW_GAME_DELAY", 0.01)
    monkeypatch.setattr(config, "ROOM_GRACE_SECONDS", 0.05)


def connect(sm, conn_id):
    ws = MockWebSocket()
    sm.connections[conn_id] = ws
    return ws


async def send(sm, conn_id, msg_type, **fields):
    await sm.handle_message(conn_id, {"type": msg_type, **fields})


async def setup_room(sm, names=("Alice", "Bob")):
    """Host names[0] creates a room and the rest join. Connection ids are 'c-<name>'."""
    socks = {}
    host = names[0]
    socks[host] = connect(sm, f"c-{host}")
    await send(sm, f"c-{host}", "create-room", hostName=host)
    code = socks[host].last("room-created")["roomCode"]
    for name in names[1:]:
        socks[name] = connect(sm, f"c-{name}")
        await send(sm, f"c-{name}", "join-room", roomCode=code, playerName=name)
    return code, socks


async def start_game(sm, names=("Alice", "Bob")):
    code, socks = await setup_room(sm, names)
    await send(sm, f"c-{names[0]}", "start-game")
    return sm.rooms[code], socks


async def answer_all(sm, room, socks):
    for name in socks:
        await send(sm, f"c-{name}", "submit-answer", answer=f"{name}'s answer")


async def settle(seconds=0.1):
    await asyncio.sleep(seconds)


# ===========================================================================
# Creating and joining rooms
# ===========================================================================

class TestCreateAndJoin:
    @pytest.mark.asyncio
    async def test_room_created_payload(self, sm):
        ws = connect(sm, "h")
        await send(sm, "h", "create-room", hostName="Alice")
        msg = ws.last("room-created")
        assert msg["isHost"] is True
        assert msg["hostId"] == "h"
        assert len(msg["roomCode"]) == 4
        assert msg["players"] == [{"id": "h", "name": "Alice", "connected": True}]
        assert sm.memberships["h"] == msg["roomCode"]

    @pytest.mark.asyncio
    async def test_join_broadcasts_player_joined(self, sm):
        code, socks = await setup_room(sm)
        joined = socks["Bob"].last("room-joined")
        assert joined["isHost"] is False
        assert joined["hostId"] == "c-Alice"
        assert joined["gameState"] == "lobby"
        for ws in socks.values():
            players = ws.last("player-joined")["players"]
            assert [p["name"] for p in players] == ["Alice", "Bob"]

    @pytest.mark.asyncio
    async def test_join_lowercase_code(self, sm):
        code, socks = await setup_room(sm, ("Alice",))
        ws = connect(sm, "c-Bob")
        await send(sm, "c-Bob", "join-room", roomCode=code.lower(), playerName="Bob")
        assert ws.last("room-joined")["roomCode"] == code

    @pytest.mark.asyncio
    async def test_unknown_room_errors_only_to_sender(self, sm):
        code, socks = await setup_room(sm, ("Alice",))
        ws = connect(sm, "x")
        await send(sm, "x", "join-room", roomCode="ZZZZ", playerName="Bob")
        assert ws.last("error")["message"] == "Room not found"
        assert socks["Alice"].last("error") is None

    @pytest.mark.asyncio
    async def test_missing_name(self, sm):
        ws = connect(sm, "x")
        await send(sm, "x", "create-room")
        assert "hostName" in ws.last("error")["message"]

    @pytest.mark.asyncio
    async def test_bad_room_code(self, sm):
        ws = connect(sm, "x")
        await send(sm, "x", "join-room", roomCode="AB", playerName="Bob")
        assert "Room code" in ws.last("error")["message"]

    @pytest.mark.asyncio
    async def test_new_name_rejected_mid_game(self, sm):
        room, socks = await start_game(sm)
        ws = connect(sm, "late")
        await send(sm, "late", "join-room", roomCode=room.code, playerName="Zed")
        assert ws.last("error")["message"] == "Game already in progress"
        assert len(room.players) == 2

    @pytest.mark.asyncio
    async def test_unknown_event(self, sm):
        ws = connect(sm, "x")
        await send(sm, "x", "dance")
        assert ws.last("error")["message"] == "Unknown event"

    @pytest.mark.asyncio
    async def test_room_event_without_room(self, sm):
        ws = connect(sm, "x")
        await send(sm, "x", "submit-answer", answer="hi")
        assert ws.last("error")["message"] == "You are not in a room"

    @pytest.mark.asyncio
    async def test_watch_without_name(self, sm):
        code, socks = await setup_room(sm)
        ws = connect(sm, "w")
        await send(sm, "w", "request-room-state", roomCode=code)
        state = ws.last("room-state")
        assert state["gameState"] == "lobby"
        assert state["isHost"] is False
        assert len(sm.rooms[code].players) == 2


# ===========================================================================
# Starting the game
# ===========================================================================

class TestStartGame:
    @pytest.mark.asyncio
    async def test_non_host_cannot_start(self, sm):
        code, socks = await setup_room(sm)
        await send(sm, "c-Bob", "start-game")
        assert socks["Bob"].last("error")["message"] == "Only host can start game"
        assert sm.rooms[code].state == GameState.LOBBY

    @pytest.mark.asyncio
    async def test_needs_two_connected_players(self, sm):
        code, socks = await setup_room(sm, ("Alice",))
        await send(sm, "c-Alice", "start-game")
        assert socks["Alice"].last("error")["message"] == "Need at least 2 players"

    @pytest.mark.asyncio
    async def test_round_started(self, sm):
        room, socks = await start_game(sm)
        assert room.state == GameState.ANSWERING
        assert room.round_number == 1
        for ws in socks.values():
            msg = ws.last("round-started")
            assert msg["roundNumber"] == 1
            assert msg["subjectName"] in ("Alice", "Bob")
            assert msg["question"] == room.current_question
        assert sm.registry.timers.pending_label(room.code) == "answer timeout"

    @pytest.mark.asyncio
    async def test_cannot_start_twice(self, sm):
        room, socks = await start_game(sm)
        await send(sm, "c-Alice", "start-game")
        assert socks["Alice"].last("error")["message"] == "Game already started"
        assert room.round_number == 1


# ===========================================================================
# Answering phase
# ===========================================================================

class TestAnswering:
    @pytest.mark.asyncio
    async def test_answer_outside_answering(self, sm):
        code, socks = await setup_room(sm)
        await send(sm, "c-Bob", "submit-answer", answer="jail")
        assert socks["Bob"].last("error")["message"] == "Not accepting answers right now"

    @pytest.mark.asyncio
    async def test_resubmission_overwrites(self, sm):
        room, socks = await start_game(sm)
        await send(sm, "c-Bob", "submit-answer", answer="jail")
        await send(sm, "c-Bob", "submit-answer", answer="  prison ")
        assert room.answers == {"c-Bob": "prison"}
        assert socks["Alice"].last("answer-submitted") == {"type": "answer-submitted", "count": 1, "total": 2}

    @pytest.mark.asyncio
    async def test_all_answered_moves_to_voting(self, sm):
        room, socks = await start_game(sm)
        await send(sm, "c-Alice", "submit-answer", answer="the moon")
        await send(sm, "c-Bob", "submit-answer", answer="jail")

        assert room.state == GameState.VOTING
        assert sm.engine.ai.calls == [(room.current_question, ["the moon", "jail"])]
        shown = socks["Alice"].last("answers-shown")
        assert sorted(shown["answers"]) == sorted(["the moon", "jail", "the gym obviously"])
        assert shown["answers"][shown["aiAnswerIndex"]] == "the gym obviously"
        assert sum(1 for e in room.shuffled_entries if e.is_ai) == 1
        assert sm.registry.timers.pending_label(room.code) == "voting timeout"

    @pytest.mark.asyncio
    async def test_phase_end_runs_once(self, sm):
        room, socks = await start_game(sm)
        await answer_all(sm, room, socks)
        await sm.engine.end_answering_phase(room)
        await send(sm, "c-Alice", "skip-to-answers")
        assert len(sm.engine.ai.calls) == 1
        assert len(socks["Bob"].all("answers-shown")) == 1
        assert socks["Alice"].last("error")["message"] == "Can only skip while players are answering"

    @pytest.mark.asyncio
    async def test_triggers_during_ai_call_do_not_duplicate(self, sm):
        room, socks = await start_game(sm)
        sm.engine.ai.gate = asyncio.Event()
        await send(sm, "c-Alice", "submit-answer", answer="the moon")
        pending = asyncio.create_task(send(sm, "c-Bob", "submit-answer", answer="jail"))
        await asyncio.sleep(0)
        assert room.generating

        await send(sm, "c-Alice", "skip-to-answers")
        await sm.engine.end_answering_phase(room)
        await send(sm, "c-Alice", "submit-answer", answer="changed my mind")

        sm.engine.ai.gate.set()
        await pending
        assert len(sm.engine.ai.calls) == 1
        assert len(socks["Alice"].all("answers-shown")) == 1
        assert socks["Alice"].last("error")["message"] == "Answers are closed for this round"
        assert "changed my mind" not in room.public_answers()

    @pytest.mark.asyncio
    async def test_stale_ai_answer_discarded(self, sm):
        room, socks = await start_game(sm)
        sm.engine.ai.gate = asyncio.Event()
        await send(sm, "c-Alice", "submit-answer", answer="the moon")
        pending = asyncio.create_task(send(sm, "c-Bob", "submit-answer", answer="jail"))
        await asyncio.sleep(0)

        sm.registry.delete_room(room.code)
        sm.engine.ai.gate.set()
        await pending
        assert room.state == GameState.ANSWERING
        assert room.shuffled_entries == []
        assert socks["Alice"].last("answers-shown") is None

    @pytest.mark.asyncio
    async def test_host_skip_with_partial_answers(self, sm):
        room, socks = await start_game(sm, ("Alice", "Bob", "Carol"))
        await send(sm, "c-Bob", "submit-answer", answer="jail")
        await send(sm, "c-Alice", "skip-to-answers")
        assert room.state == GameState.VOTING
        assert len(room.shuffled_entries) == 2
        assert room.entry_index_for("c-Carol") is None

    @pytest.mark.asyncio
    async def test_only_host_can_skip(self, sm):
        room, socks = await start_game(sm)
        await send(sm, "c-Bob", "skip-to-answers")
        assert socks["Bob"].last("error")["message"] == "Only host can skip"
        assert room.state == GameState.ANSWERING


class TestProviderFailure:
    @pytest.mark.asyncio
    async def test_room_parked_in_answering(self, sm):
        sm.engine.ai = FakeAI(fail=True)
        room, socks = await start_game(sm)
        await answer_all(sm, room, socks)

        assert room.state == GameState.ANSWERING
        assert not room.advancing
        assert socks["Bob"].last("error")["message"] == "Failed to generate AI answer"
        assert socks["Bob"].last("answers-shown") is None
        # No automatic retry
        assert len(sm.engine.ai.calls) == 1
        assert not sm.registry.timers.is_pending(room.code)
        # Answers already recorded are kept
        assert len(room.answers) == 2

    @pytest.mark.asyncio
    async def test_skip_retries(self, sm):
        sm.engine.ai = FakeAI(fail=True)
        room, socks = await start_game(sm)
        await answer_all(sm, room, socks)
        sm.engine.ai.fail = False
        await send(sm, "c-Alice", "skip-to-answers")
        assert room.state == GameState.VOTING
        assert len(sm.engine.ai.calls) == 2

    @pytest.mark.asyncio
    async def test_late_resubmission_retries(self, sm):
        sm.engine.ai = FakeAI(fail=True)
        room, socks = await start_game(sm)
        await answer_all(sm, room, socks)
        sm.engine.ai.fail = False
        await send(sm, "c-Bob", "submit-answer", answer="jail again")
        assert room.state == GameState.VOTING


# ===========================================================================
# No answers
# ===========================================================================

class TestNoAnswers:
    @pytest.mark.asyncio
    async def test_fresh_round_without_ai(self, sm, fast):
        room, socks = await start_game(sm)
        await send(sm, "c-Alice", "skip-to-answers")
        assert socks["Bob"].last("no-answers")["message"]
        await settle()
        assert room.state == GameState.ANSWERING
        assert room.round_number == 2
        assert len(socks["Bob"].all("round-started")) == 2
        assert sm.engine.ai.calls == []
        assert room.scores_by_name() == {"Alice": 0, "Bob": 0}

    @pytest.mark.asyncio
    async def test_timeout_with_single_connected_player(self, sm, monkeypatch):
        monkeypatch.setattr(config, "ANSWER_TIME_LIMIT", 0.02)
        monkeypatch.setattr(config, "NO_ANSWERS_DELAY", 10)
        room, socks = await start_game(sm)
        await sm.disconnect("c-Bob")
        await settle()
        assert socks["Alice"].last("no-answers") is not None
        assert sm.registry.timers.pending_label(room.code) == "fresh round"
        # The pause before the fresh round refuses answers
        await send(sm, "c-Alice", "submit-answer", answer="too late")
        assert socks["Alice"].last("error")["message"] == "Answers are closed for this round"
        assert sm.engine.ai.calls == []


# ===========================================================================
# Voting and results
# ===========================================================================

class TestVoting:
    @pytest.mark.asyncio
    async def test_vote_outside_voting(self, sm):
        room, socks = await start_game(sm)
        await send(sm, "c-Bob", "submit-vote", answerIndex=0)
        assert socks["Bob"].last("error")["message"] == "Not accepting votes right now"

    @pytest.mark.asyncio
    async def test_vote_index_bounds(self, sm):
        room, socks = await start_game(sm)
        await answer_all(sm, room, socks)
        await send(sm, "c-Bob", "submit-vote", answerIndex=3)
        assert socks["Bob"].last("error")["message"] == "Invalid answer index"
        await send(sm, "c-Bob", "submit-vote", answerIndex=-1)
        assert room.votes == {}

    @pytest.mark.asyncio
    async def test_vote_overwrites(self, sm):
        room, socks = await start_game(sm, ("Alice", "Bob", "Carol"))
        await answer_all(sm, room, socks)
        await send(sm, "c-Bob", "submit-vote", answerIndex=0)
        await send(sm, "c-Bob", "submit-vote", answerIndex=2)
        assert room.votes == {"c-Bob": 2}

    @pytest.mark.asyncio
    async def test_all_voted_shows_results_once(self, sm):
        room, socks = await start_game(sm)
        await answer_all(sm, room, socks)
        ai_index = room.ai_entry_index()
        await send(sm, "c-Alice", "submit-vote", answerIndex=ai_index)
        await send(sm, "c-Bob", "submit-vote", answerIndex=ai_index)
        await sm.engine.end_voting_phase(room)

        assert room.state == GameState.RESULTS
        shown = socks["Alice"].all("results-shown")
        assert len(shown) == 1
        assert shown[0]["aiAnswerIndex"] == ai_index
        assert shown[0]["answers"][ai_index]["isAI"] is True
        assert room.scores_by_name() == {"Alice": 1, "Bob": 1}
        assert sm.registry.timers.pending_label(room.code) == "next round"

    @pytest.mark.asyncio
    async def test_voting_timeout(self, sm, monkeypatch):
        monkeypatch.setattr(config, "VOTING_TIME_LIMIT", 0.02)
        room, socks = await start_game(sm)
        await answer_all(sm, room, socks)
        await send(sm, "c-Alice", "submit-vote", answerIndex=room.ai_entry_index())
        await settle()
        assert room.state == GameState.RESULTS
        assert room.scores_by_name() == {"Alice": 1, "Bob": 0}

    @pytest.mark.asyncio
    async def test_next_round_after_results(self, sm, fast):
        room, socks = await start_game(sm)
        await answer_all(sm, room, socks)
        for name in socks:
            await send(sm, f"c-{name}", "submit-vote", answerIndex=0)
        await settle()
        assert room.state == GameState.ANSWERING
        assert room.round_number == 2
        assert room.answers == {}
        assert room.votes == {}


class TestGameOver:
    async def _win_round(self, sm, room, socks):
        room.scores["c-Alice"] = config.WINNING_SCORE - 1
        await answer_all(sm, room, socks)
        await send(sm, "c-Alice", "submit-vote", answerIndex=room.ai_entry_index())
        await send(sm, "c-Bob", "submit-vote", answerIndex=room.entry_index_for("c-Bob"))

    @pytest.mark.asyncio
    async def test_winner_announced(self, sm, monkeypatch):
        monkeypatch.setattr(config, "GAME_OVER_DELAY", 0.01)
        room, socks = await start_game(sm)
        await self._win_round(sm, room, socks)
        assert sm.registry.timers.pending_label(room.code) == "game over"
        await settle()
        assert room.state == GameState.GAME_OVER
        over = socks["Bob"].last("game-over")
        assert over["winner"] == "Alice"
        assert over["scores"] == {"Alice": config.WINNING_SCORE, "Bob": 0}

    @pytest.mark.asyncio
    async def test_play_again(self, sm, fast):
        room, socks = await start_game(sm)
        await self._win_round(sm, room, socks)
        await settle()

        await send(sm, "c-Bob", "play-again")
        assert socks["Bob"].last("error")["message"] == "Only host can start a new game"

        await send(sm, "c-Alice", "play-again")
        assert socks["Bob"].last("new-game-started")["message"]
        assert room.scores_by_name() == {"Alice": 0, "Bob": 0}
        await settle()
        assert room.state == GameState.ANSWERING
        assert room.round_number == 2

    @pytest.mark.asyncio
    async def test_play_again_only_when_over(self, sm):
        room, socks = await start_game(sm)
        await send(sm, "c-Alice", "play-again")
        assert socks["Alice"].last("error")["message"] == "Game is not over yet"


# ===========================================================================
# Disconnect and reconnect
# ===========================================================================

class TestDisconnect:
    @pytest.mark.asyncio
    async def test_host_disconnect_mid_answering(self, sm):
        room, socks = await start_game(sm)
        await sm.disconnect("c-Alice")

        assert sm.rooms[room.code] is room
        assert room.host_id == "c-Alice"
        assert not sm.registry.cleanup_timers.is_pending(room.code)
        left = socks["Bob"].last("player-left")
        assert left["hostId"] == "c-Alice"
        assert [p["connected"] for p in left["players"]] == [False, True]

        # Bob is not promoted
        await send(sm, "c-Bob", "skip-to-answers")
        assert socks["Bob"].last("error")["message"] == "Only host can skip"

    @pytest.mark.asyncio
    async def test_host_reconnect_restores_host_and_score(self, sm):
        room, socks = await start_game(sm)
        room.scores["c-Alice"] = 6
        await sm.disconnect("c-Alice")

        ws = connect(sm, "c-Alice-2")
        await send(sm, "c-Alice-2", "request-room-state", roomCode=room.code, playerName="Alice")
        state = ws.last("room-state")
        assert state["isHost"] is True
        assert state["hostId"] == "c-Alice-2"
        assert state["gameState"] == "answering"
        assert state["question"] == room.current_question
        assert room.scores_by_name()["Alice"] == 6
        assert len(room.players) == 2

    @pytest.mark.asyncio
    async def test_answer_purged_on_disconnect(self, sm):
        room, socks = await start_game(sm, ("Alice", "Bob", "Carol"))
        await send(sm, "c-Bob", "submit-answer", answer="jail")
        await sm.disconnect("c-Bob")
        assert room.answers == {}
        assert len(room.answers) <= len(room.connected_players())

    @pytest.mark.asyncio
    async def test_disconnect_completes_phase(self, sm):
        room, socks = await start_game(sm, ("Alice", "Bob", "Carol"))
        await send(sm, "c-Alice", "submit-answer", answer="the moon")
        await send(sm, "c-Bob", "submit-answer", answer="jail")
        await sm.disconnect("c-Carol")
        assert room.state == GameState.VOTING
        assert len(room.shuffled_entries) == 3

    @pytest.mark.asyncio
    async def test_reconnect_during_voting_keeps_answer_credit(self, sm):
        room, socks = await start_game(sm, ("Alice", "Bob", "Carol"))
        await answer_all(sm, room, socks)
        await sm.disconnect("c-Bob")
        connect(sm, "c-Bob-2")
        await send(sm, "c-Bob-2", "join-room", roomCode=room.code, playerName="Bob")

        bob_entry = room.entry_index_for("c-Bob-2")
        assert bob_entry is not None
        await send(sm, "c-Alice", "submit-vote", answerIndex=bob_entry)
        await send(sm, "c-Carol", "submit-vote", answerIndex=bob_entry)
        await send(sm, "c-Bob-2", "submit-vote", answerIndex=room.ai_entry_index())
        assert room.state == GameState.RESULTS
        assert room.scores_by_name()["Bob"] == 3

    @pytest.mark.asyncio
    async def test_same_name_takes_over_connection(self, sm):
        code, socks = await setup_room(sm)
        tab = connect(sm, "c-Bob-tab")
        await send(sm, "c-Bob-tab", "join-room", roomCode=code, playerName="Bob")
        assert "c-Bob" not in sm.memberships
        assert len(sm.rooms[code].players) == 2
        # The old socket going away later changes nothing
        await sm.disconnect("c-Bob")
        assert sm.rooms[code].find_player("c-Bob-tab").connected


class TestRoomCleanup:
    @pytest.mark.asyncio
    async def test_deleted_after_grace(self, sm, fast):
        room, socks = await start_game(sm)
        await sm.disconnect("c-Alice")
        await sm.disconnect("c-Bob")
        assert sm.registry.cleanup_timers.is_pending(room.code)
        assert not sm.registry.timers.is_pending(room.code)
        await settle()
        assert room.code not in sm.rooms

    @pytest.mark.asyncio
    async def test_reconnect_cancels_deletion(self, sm, fast):
        room, socks = await start_game(sm)
        await sm.disconnect("c-Alice")
        await sm.disconnect("c-Bob")
        connect(sm, "c-Bob-2")
        await send(sm, "c-Bob-2", "join-room", roomCode=room.code, playerName="Bob")
        await settle()
        assert sm.rooms[room.code] is room

    @pytest.mark.asyncio
    async def test_reconnect_resumes_round_timer(self, sm):
        room, socks = await start_game(sm)
        await sm.disconnect("c-Alice")
        await sm.disconnect("c-Bob")
        assert not sm.registry.timers.is_pending(room.code)
        connect(sm, "c-Alice-2")
        await send(sm, "c-Alice-2", "request-room-state", roomCode=room.code, playerName="Alice")
        assert sm.registry.timers.pending_label(room.code) == "answer timeout"

    @pytest.mark.asyncio
    async def test_host_leaving_alone_closes_room(self, sm):
        code, socks = await setup_room(sm, ("Alice",))
        await send(sm, "c-Alice", "leave-room")
        assert code not in sm.rooms
        assert not sm.registry.cleanup_timers.is_pending(code)

    @pytest.mark.asyncio
    async def test_watchers_told_room_closed(self, sm, fast):
        code, socks = await setup_room(sm, ("Alice",))
        watcher = connect(sm, "w")
        await send(sm, "w", "request-room-state", roomCode=code)
        await sm.disconnect("c-Alice")
        await settle()
        assert watcher.last("room-closed") == {"type": "room-closed", "roomCode": code}
        assert "w" not in sm.memberships
