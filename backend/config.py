"""Centralized configuration: all env vars in one place."""
import os
import logging
from dotenv import load_dotenv

load_dotenv()

# --- AI provider ---
AI_PROVIDER = os.getenv("AI_PROVIDER", "openai")
AI_TIMEOUT = int(os.getenv("AI_TIMEOUT", "30"))
AI_TEMPERATURE = float(os.getenv("AI_TEMPERATURE", "0.9"))

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_URL = os.getenv("OPENAI_URL", "https://api.openai.com/v1/chat/completions")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-3.5-turbo")

OLLAMA_URL = os.getenv("OLLAMA_URL", "http://localhost:11434/api/generate")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "qwen2.5:14b-instruct")

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-5-20250929")

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")

# --- Server ---
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "")

# --- WebSocket ---
MAX_WS_MESSAGE_SIZE = 4096  # bytes

# --- Rooms ---
ROOM_CODE_LENGTH = 4
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ"  # no I or O
MAX_ROOM_CODE_ATTEMPTS = 50
MAX_ROOMS = int(os.getenv("MAX_ROOMS", "200"))
MAX_PLAYERS_PER_ROOM = 12
ROOM_GRACE_SECONDS = float(os.getenv("ROOM_GRACE_SECONDS", "30"))

# --- Game ---
MIN_PLAYERS = 2
WINNING_SCORE = 10
MAX_NAME_LENGTH = 20
MAX_ANSWER_LENGTH = 200

# --- Phase timers (seconds) ---
ANSWER_TIME_LIMIT = float(os.getenv("ANSWER_TIME_LIMIT", "20"))
VOTING_TIME_LIMIT = float(os.getenv("VOTING_TIME_LIMIT", "30"))
NO_ANSWERS_DELAY = 3
RESULTS_DELAY = 8
GAME_OVER_DELAY = 5
NEW_GAME_DELAY = 3

# --- Logging ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("LOG_FILE", "")  # empty = stdout only


def setup_logging():
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if LOG_FILE:
        handlers.append(logging.FileHandler(LOG_FILE))
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )
