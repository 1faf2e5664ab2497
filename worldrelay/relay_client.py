"""Thin websocket client for the world relay (diagnostics and tests)."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import websockets

from worldrelay.protocol import encode, make_message


class RelayClient:
    def __init__(self, url: str, *, timeout_s: float = 10.0) -> None:
        self.url = url
        self.timeout_s = timeout_s
        self.player_id: str | None = None
        self.players: list[dict[str, Any]] = []
        self._ws: Any = None

    async def __aenter__(self) -> "RelayClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def connect(self) -> None:
        self._ws = await websockets.connect(self.url)
        init = await self.recv()
        if init.get("type") != "init":
            await self.close()
            raise RuntimeError(f"expected init, got {init.get('type')!r}")
        self.player_id = init.get("id")
        self.players = init.get("players", []) or []

    async def close(self) -> None:
        if self._ws is not None:
            await self._ws.close()
            self._ws = None

    async def send(self, message: dict[str, Any]) -> None:
        if self._ws is None:
            raise RuntimeError("not connected")
        await self._ws.send(encode(message))

    async def send_raw(self, data: str) -> None:
        if self._ws is None:
            raise RuntimeError("not connected")
        await self._ws.send(data)

    async def recv(self, timeout_s: float | None = None) -> dict[str, Any]:
        if self._ws is None:
            raise RuntimeError("not connected")
        raw = await asyncio.wait_for(self._ws.recv(), timeout=timeout_s or self.timeout_s)
        return json.loads(raw)

    async def send_move(
        self,
        x: float,
        y: float,
        z: float,
        *,
        rotation_y: float | None = None,
        top_id: str | None = None,
    ) -> None:
        msg = make_message("move", x=x, y=y, z=z)
        if rotation_y is not None:
            msg["rotationY"] = rotation_y
        if top_id is not None:
            msg["topId"] = top_id
        await self.send(msg)

    async def send_emote(self, emote: str) -> None:
        await self.send(make_message("emote", emote=emote))

    async def send_chat(self, message: str) -> None:
        await self.send(make_message("chat", message=message))

    async def list_connections(self) -> dict[str, Any]:
        """Ask the relay for its connection table; other traffic is skipped."""
        await self.send(make_message("debug", command="listConnections"))
        while True:
            msg = await self.recv()
            if msg.get("type") == "debug" and msg.get("command") == "connectionInfo":
                return msg
