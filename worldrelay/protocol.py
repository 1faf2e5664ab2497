"""World relay wire protocol helpers (JSON over WebSocket)."""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

# JSON numbers only: no numeric strings, no booleans, no NaN/Infinity.
FiniteFloat = Annotated[float, Field(strict=True, allow_inf_nan=False)]

MESSAGE_TYPES = frozenset({"init", "join", "leave", "move", "emote", "chat", "debug"})


class ProtocolError(ValueError):
    """Inbound frame could not be decoded into a known message."""


class UnknownMessageType(ProtocolError):
    def __init__(self, msg_type: Any) -> None:
        super().__init__(f"unknown message type: {msg_type!r}")
        self.msg_type = msg_type


class Message(BaseModel):
    """Base for client->server messages.

    Browser clients attach fields the relay does not use (e.g. ``emote`` on
    ``move``); those are ignored rather than rejected.
    """

    model_config = ConfigDict(extra="ignore")

    type: str


class InitMessage(Message):
    type: Literal["init"] = "init"


class MoveMessage(Message):
    type: Literal["move"] = "move"
    x: FiniteFloat
    y: FiniteFloat
    z: FiniteFloat
    rotationY: FiniteFloat | None = None
    topId: str | None = None


class EmoteMessage(Message):
    type: Literal["emote"] = "emote"
    emote: str = Field(min_length=1)


class ChatMessage(Message):
    type: Literal["chat"] = "chat"
    message: str = Field(min_length=1)


class DebugMessage(Message):
    type: Literal["debug"] = "debug"
    command: str


INBOUND: dict[str, type[Message]] = {
    "init": InitMessage,
    "move": MoveMessage,
    "emote": EmoteMessage,
    "chat": ChatMessage,
    "debug": DebugMessage,
}


def parse_message(raw: str | bytes) -> Message:
    """Decode one inbound frame.

    Raises ``UnknownMessageType`` for a well-formed object whose ``type`` the
    relay does not accept from clients, and ``ProtocolError`` for anything
    else that does not validate.
    """
    try:
        data = json.loads(raw)
    except (UnicodeDecodeError, ValueError) as e:
        raise ProtocolError(f"bad json: {e}") from e

    if not isinstance(data, dict):
        raise ProtocolError("expected a JSON object")
    msg_type = data.get("type")
    if not isinstance(msg_type, str) or not msg_type:
        raise ProtocolError("missing type")

    model = INBOUND.get(msg_type)
    if model is None:
        raise UnknownMessageType(msg_type)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ProtocolError(f"invalid {msg_type}: {e.error_count()} error(s): {e.errors()[0]['msg']}") from e


def encode(message: dict[str, Any]) -> str:
    return json.dumps(message, ensure_ascii=True, separators=(",", ":"))


def make_message(msg_type: str, **fields: Any) -> dict[str, Any]:
    return {"type": msg_type, **fields}
