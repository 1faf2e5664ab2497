from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable
from uuid import uuid4

from loguru import logger
from websockets.protocol import State

from worldrelay.protocol import encode

DEFAULT_MAX_QUEUED = 1024


def _new_id() -> str:
    return str(uuid4())


@dataclass
class Peer:
    conn_id: str
    ws: Any  # websockets.asyncio.server.ServerConnection
    queue: asyncio.Queue[str]
    writer: asyncio.Task[None] | None = None
    dropped: bool = False


class ConnectionRegistry:
    """Open websocket connections keyed by the id assigned at connect.

    Outbound frames are queued per connection and written by that
    connection's own writer task, so a peer that stops reading only ever
    delays itself. A peer whose queue overflows is aborted.
    """

    def __init__(self, id_factory: Callable[[], str] = _new_id, max_queued: int = DEFAULT_MAX_QUEUED) -> None:
        self._id_factory = id_factory
        self.max_queued = max_queued
        self._peers: dict[str, Peer] = {}

    def __len__(self) -> int:
        return len(self._peers)

    def __contains__(self, conn_id: object) -> bool:
        return conn_id in self._peers

    def ids(self) -> list[str]:
        return list(self._peers.keys())

    def get(self, conn_id: str) -> Any | None:
        peer = self._peers.get(conn_id)
        return peer.ws if peer else None

    def register(self, ws: Any) -> str:
        """Add ``ws`` under a fresh id.

        Frames addressed to it are queued but not written until
        ``start_writer`` is called.
        """
        conn_id = self._id_factory()
        while conn_id in self._peers:
            conn_id = self._id_factory()
        self._peers[conn_id] = Peer(conn_id=conn_id, ws=ws, queue=asyncio.Queue(maxsize=self.max_queued))
        return conn_id

    def unregister(self, conn_id: str) -> Any | None:
        peer = self._peers.pop(conn_id, None)
        if peer is None:
            return None
        if peer.writer is not None:
            peer.writer.cancel()
        return peer.ws

    def start_writer(self, conn_id: str) -> None:
        peer = self._peers.get(conn_id)
        if peer is None or peer.writer is not None:
            return
        peer.writer = asyncio.create_task(self._write_loop(peer), name=f"relay-writer-{conn_id}")

    async def send_now(self, conn_id: str, message: dict[str, Any]) -> None:
        """Write directly to the socket, bypassing the queue.

        Only for the first frame of a connection, before its writer starts.
        Transport errors propagate to the caller.
        """
        peer = self._peers.get(conn_id)
        if peer is None:
            return
        await peer.ws.send(encode(message))

    def broadcast(self, exclude_id: str | None, message: dict[str, Any]) -> int:
        """Queue ``message`` for every writable connection except ``exclude_id``.

        Never blocks and never raises; returns the number of peers queued.
        """
        payload = encode(message)
        queued = 0
        for conn_id, peer in list(self._peers.items()):
            if conn_id == exclude_id:
                continue
            if self._enqueue(peer, payload):
                queued += 1
        return queued

    def send_to(self, conn_id: str, message: dict[str, Any]) -> bool:
        peer = self._peers.get(conn_id)
        if peer is None:
            return False
        return self._enqueue(peer, encode(message))

    async def drain(self, conn_id: str) -> None:
        """Wait until everything queued for ``conn_id`` has been written."""
        peer = self._peers.get(conn_id)
        if peer is not None and not peer.dropped:
            await peer.queue.join()

    def _enqueue(self, peer: Peer, payload: str) -> bool:
        if peer.dropped or not _writable(peer.ws):
            return False
        try:
            peer.queue.put_nowait(payload)
        except asyncio.QueueFull:
            self._drop(peer, f"outbound queue full ({self.max_queued} frames)")
            return False
        return True

    def _drop(self, peer: Peer, reason: str) -> None:
        peer.dropped = True
        logger.warning(f"Dropping slow client {peer.conn_id}: {reason}")
        if peer.writer is not None:
            peer.writer.cancel()
        # The connection handler sees the abort and runs the normal disconnect.
        transport = getattr(peer.ws, "transport", None)
        if transport is not None:
            transport.abort()

    async def _write_loop(self, peer: Peer) -> None:
        while True:
            payload = await peer.queue.get()
            try:
                await peer.ws.send(payload)
            except Exception as e:
                # The peer's own handler sees the closure and cleans up.
                logger.debug(f"send to {peer.conn_id} failed: {e!r}")
                peer.dropped = True
                _discard(peer.queue)
                return
            finally:
                peer.queue.task_done()


def _discard(queue: asyncio.Queue[str]) -> None:
    while not queue.empty():
        queue.get_nowait()
        queue.task_done()


def _writable(ws: Any) -> bool:
    return getattr(ws, "state", None) is State.OPEN
