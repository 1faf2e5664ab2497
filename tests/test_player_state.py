from worldrelay.player_state import DEFAULT_TOP_ID, PlayerStateTable


def test_create_uses_spawn_defaults():
    table = PlayerStateTable()
    player = table.create("abcdef-123")
    assert (player.x, player.y, player.z) == (0.0, 1.1, 0.0)
    assert player.rotation_y == 0.0
    assert player.top_id == DEFAULT_TOP_ID
    assert player.display_name == "Player abcde"
    assert table.get("abcdef-123") is player


def test_custom_spawn_and_top_id():
    table = PlayerStateTable(spawn=(5.0, 2.0, -1.0), default_top_id="green")
    player = table.create("p1")
    assert (player.x, player.y, player.z) == (5.0, 2.0, -1.0)
    assert player.top_id == "green"


def test_apply_move_keeps_optional_fields_sticky():
    table = PlayerStateTable()
    table.create("p1")
    table.apply_move("p1", 1.0, 2.0, 3.0, rotation_y=1.5, top_id="red-hat")
    player = table.apply_move("p1", 4.0, 5.0, 6.0)
    assert (player.x, player.y, player.z) == (4.0, 5.0, 6.0)
    assert player.rotation_y == 1.5
    assert player.top_id == "red-hat"


def test_apply_move_accepts_zero_rotation():
    table = PlayerStateTable()
    table.create("p1")
    table.apply_move("p1", 0, 0, 0, rotation_y=2.0)
    player = table.apply_move("p1", 0, 0, 0, rotation_y=0.0)
    assert player.rotation_y == 0.0


def test_apply_move_unknown_player_is_noop():
    table = PlayerStateTable()
    assert table.apply_move("ghost", 1, 2, 3) is None
    assert len(table) == 0


def test_remove_and_snapshot_copies():
    table = PlayerStateTable()
    table.create("a")
    table.create("b")
    snap = table.snapshot()
    assert sorted(p.id for p in snap) == ["a", "b"]

    table.apply_move("a", 9, 9, 9)
    assert next(p for p in snap if p.id == "a").x == 0.0

    assert table.remove("a").id == "a"
    assert table.remove("a") is None
    assert "a" not in table
    assert [p.id for p in table.snapshot()] == ["b"]


def test_to_dict_uses_wire_names():
    table = PlayerStateTable()
    player = table.create("xyz12345")
    assert player.to_dict() == {
        "id": "xyz12345",
        "name": "Player xyz12",
        "x": 0.0,
        "y": 1.1,
        "z": 0.0,
        "rotationY": 0.0,
        "topId": "default-blue",
    }
    assert set(player.to_debug_dict()) == {"id", "name", "x", "y", "z"}


def test_empty_top_id_counts_as_omitted():
    table = PlayerStateTable()
    table.create("p1")
    table.apply_move("p1", 0, 0, 0, top_id="red-hat")
    player = table.apply_move("p1", 1, 1, 1, top_id="")
    assert player.top_id == "red-hat"
