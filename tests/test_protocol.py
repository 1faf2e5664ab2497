import json

import pytest

from worldrelay.protocol import (
    ChatMessage,
    DebugMessage,
    InitMessage,
    MoveMessage,
    ProtocolError,
    UnknownMessageType,
    encode,
    parse_message,
)


def test_parse_move_with_optional_fields():
    msg = parse_message('{"type":"move","x":1,"y":2.5,"z":-3,"rotationY":0.5,"topId":"red"}')
    assert isinstance(msg, MoveMessage)
    assert (msg.x, msg.y, msg.z, msg.rotationY, msg.topId) == (1.0, 2.5, -3.0, 0.5, "red")


def test_parse_move_null_optionals_and_extra_fields():
    msg = parse_message('{"type":"move","x":0,"y":0,"z":0,"topId":null,"emote":null}')
    assert isinstance(msg, MoveMessage)
    assert msg.rotationY is None
    assert msg.topId is None


def test_parse_accepts_bytes_and_other_kinds():
    assert isinstance(parse_message(b'{"type":"chat","message":"hi"}'), ChatMessage)
    assert isinstance(parse_message('{"type":"debug","command":"listConnections"}'), DebugMessage)
    assert isinstance(parse_message('{"type":"init"}'), InitMessage)


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[1, 2, 3]",
        '{"x": 1}',
        '{"type":"move","x":1,"y":2}',
        '{"type":"move","x":"left","y":2,"z":3}',
        '{"type":"move","x":"1.5","y":2,"z":3}',
        '{"type":"move","x":1,"y":true,"z":3}',
        '{"type":"move","x":1,"y":2,"z":3,"rotationY":"0.5"}',
        '{"type":"move","x":NaN,"y":2,"z":3}',
        '{"type":"chat"}',
        '{"type":"chat","message":""}',
        '{"type":"emote"}',
        b"\xff\xfe",
    ],
)
def test_malformed_frames_raise_protocol_error(raw):
    with pytest.raises(ProtocolError):
        parse_message(raw)


def test_unknown_type_is_distinguished():
    with pytest.raises(UnknownMessageType) as exc:
        parse_message('{"type":"teleport"}')
    assert exc.value.msg_type == "teleport"


def test_server_only_types_are_not_accepted_from_clients():
    with pytest.raises(UnknownMessageType):
        parse_message('{"type":"leave","id":"abc"}')


def test_encode_is_compact_json():
    out = encode({"type": "leave", "id": "abc"})
    assert out == '{"type":"leave","id":"abc"}'
    assert json.loads(encode({"type": "chat", "message": "héllo"}))["message"] == "héllo"
