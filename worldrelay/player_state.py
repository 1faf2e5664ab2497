from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

DEFAULT_SPAWN: tuple[float, float, float] = (0.0, 1.1, 0.0)
DEFAULT_TOP_ID = "default-blue"


def default_display_name(player_id: str) -> str:
    return f"Player {player_id[:5]}"


@dataclass
class PlayerState:
    id: str
    display_name: str
    x: float = DEFAULT_SPAWN[0]
    y: float = DEFAULT_SPAWN[1]
    z: float = DEFAULT_SPAWN[2]
    rotation_y: float = 0.0
    top_id: str = DEFAULT_TOP_ID

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.display_name,
            "x": self.x,
            "y": self.y,
            "z": self.z,
            "rotationY": self.rotation_y,
            "topId": self.top_id,
        }

    def to_debug_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.display_name, "x": self.x, "y": self.y, "z": self.z}


class PlayerStateTable:
    """Last reported state of every connected player, keyed by connection id."""

    def __init__(
        self,
        spawn: tuple[float, float, float] = DEFAULT_SPAWN,
        default_top_id: str = DEFAULT_TOP_ID,
    ) -> None:
        self.spawn = spawn
        self.default_top_id = default_top_id
        self._players: dict[str, PlayerState] = {}

    def __len__(self) -> int:
        return len(self._players)

    def __contains__(self, player_id: object) -> bool:
        return player_id in self._players

    def create(self, player_id: str, display_name: str | None = None) -> PlayerState:
        x, y, z = self.spawn
        player = PlayerState(
            id=player_id,
            display_name=display_name or default_display_name(player_id),
            x=x,
            y=y,
            z=z,
            top_id=self.default_top_id,
        )
        self._players[player_id] = player
        return player

    def get(self, player_id: str) -> PlayerState | None:
        return self._players.get(player_id)

    def apply_move(
        self,
        player_id: str,
        x: float,
        y: float,
        z: float,
        rotation_y: float | None = None,
        top_id: str | None = None,
    ) -> PlayerState | None:
        """Overwrite position; keep rotation and top id unless given.

        An empty ``top_id`` counts as omitted.

        Returns the updated record, or ``None`` when the player is already
        gone (a move racing its own disconnect).
        """
        player = self._players.get(player_id)
        if player is None:
            return None
        player.x = x
        player.y = y
        player.z = z
        if rotation_y is not None:
            player.rotation_y = rotation_y
        if top_id:
            player.top_id = top_id
        return player

    def remove(self, player_id: str) -> PlayerState | None:
        return self._players.pop(player_id, None)

    def snapshot(self) -> list[PlayerState]:
        return [replace(p) for p in self._players.values()]
