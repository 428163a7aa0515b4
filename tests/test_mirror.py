import pytest

from factories import dish, item
from preplist.errors import OrphanReference
from preplist.mirror import MirrorStore


def _names(mirror: MirrorStore, dish_id: str) -> list[str]:
    return [member.name for member in mirror.members_of(dish_id)]


def test_load_sorts_items_by_position_and_drops_orphans() -> None:
    mirror = MirrorStore()
    mirror.load(
        [dish("d1", "Soup"), dish("d2", "Salad")],
        [
            item("i2", "d1", "Carrot", 2),
            item("i1", "d1", "Stock", 0),
            item("i3", "d1", "Onion", 1),
            item("i4", "missing", "Ghost", 0),
            item("i1", "d2", "Duplicate id", 0),
        ],
    )
    assert [c.name for c in mirror.containers()] == ["Soup", "Salad"]
    assert _names(mirror, "d1") == ["Stock", "Onion", "Carrot"]
    assert _names(mirror, "d2") == []
    assert mirror.owner_of("i4") is None


def test_equal_positions_keep_arrival_order() -> None:
    mirror = MirrorStore()
    mirror.load([dish("d1", "Soup")], [item("a", "d1", "A", 0), item("b", "d1", "B", 0)])
    mirror.upsert_member("d1", "c", "C", 0)
    assert _names(mirror, "d1") == ["A", "B", "C"]


def test_upsert_member_rename_keeps_slot() -> None:
    mirror = MirrorStore()
    mirror.load([dish("d1", "Soup")], [item("a", "d1", "A", 0), item("b", "d1", "B", 1)])
    assert mirror.upsert_member("d1", "a", "Alpha", 0) is True
    assert _names(mirror, "d1") == ["Alpha", "B"]
    assert mirror.upsert_member("d1", "a", "Alpha", 0) is False


def test_upsert_member_reposition_and_move_between_dishes() -> None:
    mirror = MirrorStore()
    mirror.load(
        [dish("d1", "Soup"), dish("d2", "Salad")],
        [item("a", "d1", "A", 0), item("b", "d1", "B", 1)],
    )
    mirror.upsert_member("d1", "a", "A", 5)
    assert _names(mirror, "d1") == ["B", "A"]

    mirror.upsert_member("d2", "a", "A", 0)
    assert _names(mirror, "d1") == ["B"]
    assert _names(mirror, "d2") == ["A"]
    assert mirror.owner_of("a") == "d2"


def test_orphan_references_raise() -> None:
    mirror = MirrorStore()
    mirror.load([dish("d1", "Soup")], [])
    with pytest.raises(OrphanReference):
        mirror.upsert_member("nope", "x", "X", 0)
    with pytest.raises(OrphanReference):
        mirror.remove_member("d1", "x")
    with pytest.raises(OrphanReference):
        mirror.remove_container("nope")


def test_remove_container_returns_member_ids() -> None:
    mirror = MirrorStore()
    mirror.load([dish("d1", "Soup")], [item("a", "d1", "A", 0), item("b", "d1", "B", 1)])
    assert mirror.remove_container("d1") == ["a", "b"]
    assert len(mirror) == 0
    assert mirror.member("a") is None


def test_snapshot_lists_dishes_and_items_in_order() -> None:
    mirror = MirrorStore()
    mirror.load([dish("d1", "Soup")], [item("b", "d1", "B", 1), item("a", "d1", "A", 0)])
    assert mirror.snapshot() == [
        {
            "id": "d1",
            "name": "Soup",
            "items": [
                {"id": "a", "name": "A", "position": 0},
                {"id": "b", "name": "B", "position": 1},
            ],
        }
    ]
