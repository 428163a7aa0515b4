import pytest

from factories import dish, item
from preplist import keys, projector, selection
from preplist.mirror import MirrorStore
from preplist.models import FilterKind, MemberMeta, ViewMode, ViewState
from preplist.row_state import MemberMetaStore, RowStateStore


@pytest.fixture
def mirror() -> MirrorStore:
    store = MirrorStore()
    store.load(
        [dish("A", "Ramen"), dish("B", "Curry"), dish("C", "Empty")],
        [item("x", "A", "x", 0), item("y1", "A", "y", 1), item("y2", "B", "y", 0), item("z", "B", "z", 1)],
    )
    return store


def _shape(views) -> list[tuple[str, list[str]]]:
    return [(view.dish.id, [m.id for m in view.members]) for view in views]


def test_shared_names_match_across_dishes(mirror: MirrorStore) -> None:
    assert projector.shared_names(mirror.containers()) == frozenset({"y"})


def test_duplicate_name_within_one_dish_is_not_shared() -> None:
    store = MirrorStore()
    store.load([dish("A", "Ramen")], [item("1", "A", "egg", 0), item("2", "A", "egg", 1)])
    assert projector.shared_names(store.containers()) == frozenset()


def test_all_filter_shows_every_dish(mirror: MirrorStore) -> None:
    views = projector.project(mirror, ViewState(), selection.clear(), RowStateStore())
    assert _shape(views) == [("A", ["x", "y1"]), ("B", ["y2", "z"]), ("C", [])]


def test_projection_is_pure(mirror: MirrorStore) -> None:
    rows = RowStateStore()
    rows.set_highlighted(keys.encode("A", "x"), True)
    view = ViewState(ViewMode.FULL, FilterKind.HIGHLIGHTED)
    assert projector.project(mirror, view, selection.clear(), rows) == projector.project(
        mirror, view, selection.clear(), rows
    )


def test_dish_filter_shows_one_dish(mirror: MirrorStore) -> None:
    views = projector.project(mirror, ViewState(filter=FilterKind.DISH, dish_id="B"), selection.clear(), RowStateStore())
    assert _shape(views) == [("B", ["y2", "z"])]


def test_highlighted_filter_hides_dishes_without_matches(mirror: MirrorStore) -> None:
    rows = RowStateStore()
    rows.set_highlighted(keys.encode("B", "z"), True)
    views = projector.project(mirror, ViewState(filter=FilterKind.HIGHLIGHTED), selection.clear(), rows)
    assert _shape(views) == [("B", ["z"])]


def test_daily_mode_filters_by_selection(mirror: MirrorStore) -> None:
    picked = selection.build([keys.encode("A", "y1"), keys.encode("B", "z")])
    views = projector.project(mirror, ViewState(mode=ViewMode.DAILY), picked, RowStateStore())
    assert _shape(views) == [("A", ["y1"]), ("B", ["z"]), ("C", [])]


def test_daily_mode_with_disabled_selection_shows_everything(mirror: MirrorStore) -> None:
    views = projector.project(mirror, ViewState(mode=ViewMode.DAILY), selection.clear(), RowStateStore())
    assert _shape(views) == [("A", ["x", "y1"]), ("B", ["y2", "z"]), ("C", [])]


def test_full_mode_ignores_selection(mirror: MirrorStore) -> None:
    picked = selection.build([keys.encode("A", "x")])
    views = projector.project(mirror, ViewState(mode=ViewMode.FULL), picked, RowStateStore())
    assert _shape(views)[0] == ("A", ["x", "y1"])


def test_has_recipe_checks_every_source() -> None:
    meta = MemberMetaStore()
    key = keys.encode("A", "x")
    assert not projector.has_recipe(key, "Mystery", meta, {}, builtin={})
    assert projector.has_recipe(key, "Mystery", meta, {"Mystery": "1 cup"}, builtin={})
    assert projector.has_recipe(key, "Stock", meta, {}, builtin={"Stock": "bones"})
    meta.set(key, MemberMeta("x", "salt"))
    assert projector.has_recipe(key, "Mystery", meta, {}, builtin={})
