"""Multiplayer session relay for the virtual world.

Browser clients connect over WebSocket; the relay assigns ids, tracks each
player's last reported position and cosmetic, and fans move/emote/chat
intents out to the other players. Physics stays client-side.
"""

from .player_state import PlayerState, PlayerStateTable
from .registry import ConnectionRegistry
from .relay_server import RelayServer, RelayServerConfig

__all__ = ["ConnectionRegistry", "PlayerState", "PlayerStateTable", "RelayServer", "RelayServerConfig"]
