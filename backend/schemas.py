"""Inbound event payloads. Field names follow the client's camelCase JSON."""
import re
from typing import Optional

from pydantic import BaseModel, StrictInt, field_validator

import config

_CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]')
_HTML_TAGS = re.compile(r'<[^>]+>')


def clean_text(value: str) -> str:
    """Strip HTML tags and control characters."""
    value = _HTML_TAGS.sub('', value)
    value = _CONTROL_CHARS.sub('', value)
    return value.strip()


def _validate_name(v: str) -> str:
    v = clean_text(v)
    if not v or len(v) > config.MAX_NAME_LENGTH:
        raise ValueError(f'Name must be 1-{config.MAX_NAME_LENGTH} characters')
    return v


def _validate_code(v: str) -> str:
    v = v.strip().upper()
    if len(v) != config.ROOM_CODE_LENGTH or not v.isalpha():
        raise ValueError(f'Room code must be {config.ROOM_CODE_LENGTH} letters')
    return v


class CreateRoomEvent(BaseModel):
    hostName: str

    @field_validator('hostName')
    @classmethod
    def validate_host_name(cls, v: str) -> str:
        return _validate_name(v)


class JoinRoomEvent(BaseModel):
    roomCode: str
    playerName: str

    @field_validator('roomCode')
    @classmethod
    def validate_room_code(cls, v: str) -> str:
        return _validate_code(v)

    @field_validator('playerName')
    @classmethod
    def validate_player_name(cls, v: str) -> str:
        return _validate_name(v)


class RequestRoomStateEvent(BaseModel):
    roomCode: str
    playerName: Optional[str] = None

    @field_validator('roomCode')
    @classmethod
    def validate_room_code(cls, v: str) -> str:
        return _validate_code(v)

    @field_validator('playerName')
    @classmethod
    def validate_player_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _validate_name(v)


class SubmitAnswerEvent(BaseModel):
    answer: str

    @field_validator('answer')
    @classmethod
    def validate_answer(cls, v: str) -> str:
        v = clean_text(v)
        if not v:
            raise ValueError('Answer cannot be empty')
        if len(v) > config.MAX_ANSWER_LENGTH:
            raise ValueError(f'Answer must be at most {config.MAX_ANSWER_LENGTH} characters')
        return v


class SubmitVoteEvent(BaseModel):
    answerIndex: StrictInt


def first_error_message(exc) -> str:
    """Readable message from a pydantic ValidationError."""
    errors = exc.errors()
    if not errors:
        return "Invalid message"
    err = errors[0]
    msg = err.get("msg", "Invalid message")
    # "Value error, Name must be ..." -> "Name must be ..."
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    field = ".".join(str(p) for p in err.get("loc", ()))
    if err.get("type") == "missing":
        return f"{field} is required"
    if err.get("type", "").startswith(("int", "string")):
        return f"{field}: {msg}"
    return msg
