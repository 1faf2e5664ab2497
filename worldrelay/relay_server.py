"""World relay server.

Each browser client holds one websocket to the relay. The relay assigns the
connection an id, keeps the player's last reported position/cosmetic, and
rebroadcasts move/emote/chat intents to every other connection. It does not
simulate physics; clients are authoritative for their own movement.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from loguru import logger

import websockets
from websockets.asyncio.server import ServerConnection

from worldrelay.player_state import DEFAULT_SPAWN, DEFAULT_TOP_ID, PlayerStateTable
from worldrelay.protocol import (
    ChatMessage,
    DebugMessage,
    EmoteMessage,
    InitMessage,
    Message,
    MoveMessage,
    ProtocolError,
    UnknownMessageType,
    make_message,
    parse_message,
)
from worldrelay.registry import DEFAULT_MAX_QUEUED, ConnectionRegistry


@dataclass
class RelayServerConfig:
    host: str = "0.0.0.0"
    port: int = 8081
    ping_interval_s: float | None = 20.0
    ping_timeout_s: float | None = 20.0
    max_message_bytes: int = 65536
    spawn: tuple[float, float, float] = DEFAULT_SPAWN
    default_top_id: str = DEFAULT_TOP_ID
    max_queued_messages: int = DEFAULT_MAX_QUEUED


class RelayServer:
    def __init__(self, cfg: RelayServerConfig | None = None) -> None:
        self.cfg = cfg or RelayServerConfig()
        self.bound_port: int = self.cfg.port
        self.registry = ConnectionRegistry(max_queued=self.cfg.max_queued_messages)
        self.players = PlayerStateTable(spawn=self.cfg.spawn, default_top_id=self.cfg.default_top_id)
        # Ids whose join has gone out; only these appear in init snapshots.
        self.announced: set[str] = set()
        # Serializes every registry/table mutation together with its fan-out.
        # Nothing awaits socket I/O while holding it; fan-out only queues frames.
        self._lock = asyncio.Lock()
        self._server: websockets.asyncio.server.Server | None = None

    async def start(self) -> None:
        """Bind and start accepting. Raises ``OSError`` if the port is taken."""
        self._server = await websockets.serve(
            self._handler,
            self.cfg.host,
            self.cfg.port,
            ping_interval=self.cfg.ping_interval_s,
            ping_timeout=self.cfg.ping_timeout_s,
            max_size=self.cfg.max_message_bytes,
        )
        # If port=0 was used, capture the actual bound port for tests/clients.
        try:
            if self._server.sockets:
                self.bound_port = int(next(iter(self._server.sockets)).getsockname()[1])
        except Exception:
            self.bound_port = self.cfg.port
        logger.info(f"World relay listening on ws://{self.cfg.host}:{self.bound_port}")

    async def stop(self) -> None:
        if self._server is None:
            return
        logger.info("Shutting down world relay...")
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("World relay closed")

    async def _handler(self, ws: ServerConnection) -> None:
        conn_id: str | None = None
        try:
            conn_id = await self._connect(ws)
            async for raw in ws:
                await self.dispatch(conn_id, raw)
        except websockets.ConnectionClosed:
            pass
        except Exception as e:
            logger.exception(f"relay handler error for {conn_id}: {e}")
        finally:
            if conn_id is not None:
                await self._disconnect(conn_id)

    async def _connect(self, ws: ServerConnection) -> str:
        async with self._lock:
            conn_id = self.registry.register(ws)
            player = self.players.create(conn_id)
            others = [p.to_dict() for p in self.players.snapshot() if p.id in self.announced]
            logger.info(f"New client connected: {conn_id}")

        try:
            # The newcomer learns its id and the world before anyone hears of it.
            # Frames broadcast meanwhile wait in its queue behind the init.
            await self.registry.send_now(conn_id, make_message("init", id=conn_id, players=others))
        except BaseException:
            await self._disconnect(conn_id)
            raise

        async with self._lock:
            if conn_id not in self.players:
                return conn_id
            self.registry.start_writer(conn_id)
            self.announced.add(conn_id)
            self.registry.broadcast(conn_id, make_message("join", player=player.to_dict()))
            logger.debug(f"Current clients: {', '.join(self.registry.ids())}")
        return conn_id

    async def _disconnect(self, conn_id: str) -> None:
        async with self._lock:
            self.registry.unregister(conn_id)
            removed = self.players.remove(conn_id)
            if removed is None:
                return
            logger.info(f"Client disconnected: {conn_id}")
            if conn_id in self.announced:
                self.announced.discard(conn_id)
                self.registry.broadcast(conn_id, make_message("leave", id=conn_id))
            logger.debug(f"Current clients: {', '.join(self.registry.ids())}")

    async def dispatch(self, conn_id: str, raw: str | bytes) -> None:
        """Handle one inbound frame from ``conn_id``.

        Malformed or unknown frames are logged and dropped; the connection
        stays open.
        """
        try:
            msg = parse_message(raw)
        except UnknownMessageType as e:
            logger.warning(f"Ignoring message from {conn_id}: {e}")
            return
        except ProtocolError as e:
            logger.warning(f"Dropping malformed message from {conn_id}: {e}")
            return

        logger.debug(f"Received message from {conn_id}: {msg.model_dump(exclude_none=True)}")
        async with self._lock:
            self._handle_message(conn_id, msg)

    def _handle_message(self, conn_id: str, msg: Message) -> None:
        if isinstance(msg, MoveMessage):
            player = self.players.apply_move(conn_id, msg.x, msg.y, msg.z, msg.rotationY, msg.topId)
            if player is None:
                return
            logger.debug(f"Updated player {conn_id}: {player}")
            self.registry.broadcast(
                conn_id,
                make_message(
                    "move",
                    id=conn_id,
                    x=player.x,
                    y=player.y,
                    z=player.z,
                    rotationY=player.rotation_y,
                    topId=player.top_id,
                ),
            )
            return

        if isinstance(msg, EmoteMessage):
            if conn_id not in self.players:
                return
            self.registry.broadcast(conn_id, make_message("emote", id=conn_id, emote=msg.emote))
            return

        if isinstance(msg, ChatMessage):
            if conn_id not in self.players:
                return
            # Senders render their own line locally; only peers get the echo.
            self.registry.broadcast(conn_id, make_message("chat", id=conn_id, message=msg.message))
            return

        if isinstance(msg, DebugMessage):
            self._handle_debug(conn_id, msg)
            return

        if isinstance(msg, InitMessage):
            # init is pushed at connect time; a client-sent one needs no reply.
            logger.debug(f"Ignoring client init from {conn_id}")
            return

    def _handle_debug(self, conn_id: str, msg: DebugMessage) -> None:
        if msg.command != "listConnections":
            logger.warning(f"Unknown debug command from {conn_id}: {msg.command!r}")
            return
        info = self.connection_info()
        self.registry.send_to(conn_id, info)
        logger.debug(f"Debug connection info sent: {info}")

    def connection_info(self) -> dict[str, Any]:
        return make_message(
            "debug",
            command="connectionInfo",
            totalConnections=len(self.registry),
            playerCount=len(self.players),
            players=[p.to_debug_dict() for p in self.players.snapshot()],
        )
