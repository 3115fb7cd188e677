from enum import Enum
from typing import Dict, List, Optional
import time

AI_AUTHOR_ID = "ai"


class GameState(str, Enum):
    LOBBY = "lobby"
    ANSWERING = "answering"
    VOTING = "voting"
    RESULTS = "results"
    GAME_OVER = "game_over"


class Player:
    def __init__(self, player_id: str, name: str):
        self.id = player_id  # current connection id, replaced on reconnect
        self.name = name  # also the reconnection key
        self.connected = True
        self.disconnected_at: Optional[float] = None

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "connected": self.connected}

    def __repr__(self):
        return f"Player({self.id!r}, {self.name!r}, connected={self.connected})"


class AnswerEntry:
    def __init__(self, text: str, author_id: str, author_name: str, is_ai: bool = False):
        self.text = text
        self.author_id = author_id
        self.author_name = author_name
        self.is_ai = is_ai

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "authorId": self.author_id,
            "authorName": self.author_name,
            "isAI": self.is_ai,
        }


class Room:
    def __init__(self, code: str, host_id: str):
        self.code = code
        self.host_id = host_id
        self.players: List[Player] = []  # roster order, disconnected players included
        self.state = GameState.LOBBY
        self.current_question: Optional[str] = None
        self.current_subject: Optional[Player] = None
        self.answers: Dict[str, str] = {}  # connection id -> answer text
        self.ai_answer = ""
        self.shuffled_entries: List[AnswerEntry] = []
        self.votes: Dict[str, int] = {}  # connection id -> index into shuffled_entries
        self.scores: Dict[str, int] = {}  # connection id -> score, moved on reconnect
        self.round_number = 0
        # Set while a phase-end handler owns the phase (AI call in flight,
        # or the "too slow" pause before a fresh round). Submissions are refused.
        self.advancing = False
        self.generating = False  # AI answer request in flight
        self.created_at = time.time()

    def connected_players(self) -> List[Player]:
        return [p for p in self.players if p.connected]

    def find_player(self, player_id: str) -> Optional[Player]:
        return next((p for p in self.players if p.id == player_id), None)

    def find_player_by_name(self, name: str) -> Optional[Player]:
        return next((p for p in self.players if p.name == name), None)

    def is_host(self, player_id: str) -> bool:
        return self.host_id == player_id

    def ai_entry_index(self) -> int:
        for i, entry in enumerate(self.shuffled_entries):
            if entry.is_ai:
                return i
        return -1

    def entry_index_for(self, player_id: str) -> Optional[int]:
        """Index of the entry this player wrote this round, None if they didn't answer."""
        for i, entry in enumerate(self.shuffled_entries):
            if not entry.is_ai and entry.author_id == player_id:
                return i
        return None

    def player_list(self) -> List[dict]:
        return [p.to_dict() for p in self.players]

    def scores_by_name(self) -> Dict[str, int]:
        return {p.name: self.scores.get(p.id, 0) for p in self.players}

    def public_answers(self) -> List[str]:
        """Entry texts in shuffled order, authors hidden."""
        return [entry.text for entry in self.shuffled_entries]
