from preplist import keys, selection
from preplist.models import MemberMeta, RowState
from preplist.row_state import MemberMetaStore, RowStateStore, keys_for_container
from preplist.selection import SelectionManager

K1 = keys.encode("d1", "a")
K2 = keys.encode("d1", "b")
K3 = keys.encode("d2", "c")


def test_unknown_row_reads_as_defaults() -> None:
    assert RowStateStore().get(K1) == RowState()


def test_toggles_and_note() -> None:
    rows = RowStateStore()
    assert rows.toggle_on_hand(K1) is True
    assert rows.toggle_prep(K1) is True
    assert rows.toggle_highlight(K1) is True
    rows.set_note(K1, "no onions")
    assert rows.get(K1) == RowState(on_hand=True, prep=True, highlighted=True, note="no onions")
    assert rows.toggle_on_hand(K1) is False


def test_rekey_moves_every_map() -> None:
    rows = RowStateStore()
    rows.set_on_hand(K1, True)
    rows.set_note(K1, "thin")
    new_key = keys.encode("d2", "a")
    rows.rekey(K1, new_key)
    assert rows.get(K1) == RowState()
    assert rows.get(new_key) == RowState(on_hand=True, note="thin")


def test_delete_all_for_container_skips_bad_keys() -> None:
    rows = RowStateStore()
    for key in (K1, K2, K3, "garbage"):
        rows.set_on_hand(key, True)
    assert rows.delete_all_for_container("d1") == 2
    assert rows.keys() == {K3, "garbage"}


def test_snapshot_restore() -> None:
    rows = RowStateStore()
    rows.set_on_hand(K1, True)
    rows.set_highlighted(K2, True)
    rows.set_note(K3, "x")
    snap = rows.to_snapshot()

    restored = RowStateStore()
    restored.restore(cells=snap["cells"], row_hi=snap["row_hi"], notes=snap["notes"])
    assert restored.get(K1).on_hand
    assert restored.is_highlighted(K2)
    assert restored.get(K3).note == "x"


def test_meta_store_set_reports_change() -> None:
    meta = MemberMetaStore()
    assert meta.set(K1, MemberMeta("a", None)) is True
    assert meta.set(K1, MemberMeta("a", None)) is False
    assert meta.set(K1, MemberMeta("a", "2 kg bones")) is True
    meta.set(K3, MemberMeta("c"))
    assert meta.delete_all_for_container("d1") == 1
    assert meta.keys() == {K3}


def test_keys_for_container() -> None:
    assert keys_for_container([K1, K2, K3, "nope"], "d1") == [K1, K2]


def test_disabled_selection_includes_everything() -> None:
    manager = SelectionManager()
    assert manager.includes(K1)
    manager.build([K2])
    assert not manager.includes(K1)
    assert manager.includes(K2)
    manager.clear()
    assert manager.includes(K1)


def test_selection_rekey_and_container_delete() -> None:
    manager = SelectionManager(selection.build([K1, K2, K3]))
    moved = keys.encode("d3", "a")
    manager.rekey(K1, moved)
    assert manager.current.member_keys == {moved, K2, K3}
    assert manager.delete_all_for_container("d1") == 1
    assert manager.current.member_keys == {moved, K3}
    assert manager.current.enabled


def test_selection_from_mapping_accepts_list_or_map() -> None:
    assert selection.from_mapping({"enabled": True, "items": [K1]}).member_keys == {K1}
    picked = selection.from_mapping({"enabled": True, "items": {K1: True, K2: False}})
    assert picked.member_keys == {K1}
    assert selection.from_mapping({}) == selection.clear()


def test_restore_ignores_malformed_nested_maps() -> None:
    store = RowStateStore()
    store.restore(cells={"on": ["x"], "prep": {K1: True}}, row_hi="oops", notes={K2: "thin"})  # type: ignore[arg-type]
    assert store.get(K1).prep
    assert store.get(K2).note == "thin"
    assert store.keys() == {K1, K2}


def test_retain_drops_dead_keys() -> None:
    store = RowStateStore()
    store.set_on_hand(K1, True)
    store.set_note(K3, "thin")
    manager = SelectionManager()
    manager.build([K1, K3])

    assert store.retain({K1}) == 1
    assert manager.retain({K1}) == 1
    assert store.keys() == {K1}
    assert manager.current.member_keys == {K1}
    assert manager.current.enabled


def test_selection_from_mapping_rejects_bad_items() -> None:
    assert selection.from_mapping({"enabled": True, "items": 5}) == selection.clear()
    assert selection.from_mapping({"enabled": True, "items": "abc"}) == selection.clear()
    assert selection.from_mapping([]) == selection.clear()  # type: ignore[arg-type]
