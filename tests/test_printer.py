from preplist.models import Container, DishView, Member, RowState
from preplist.printer import checklist_lines


def test_checklist_lines_marks_rows_and_notes() -> None:
    stock = Member("a", "d1", "Stock", 0)
    onion = Member("b", "d1", "Onion", 1)
    leek = Member("c", "d1", "Leek", 2)
    views = (
        DishView(Container("d1", "Soup", (stock, onion, leek)), (stock, onion, leek)),
        DishView(Container("d2", "Stew"), ()),
    )
    states = {
        "a": RowState(on_hand=True),
        "b": RowState(prep=True, note="no skins"),
    }

    lines = checklist_lines(views, lambda dish_id, item_id: states.get(item_id, RowState()), frozenset({"Onion"}))

    assert lines == [
        ("dish", "Soup"),
        ("item", "ON Stock"),
        ("item", "PREP Onion *"),
        ("note", "    x skins"),
        ("item", "[ ] Leek"),
        ("dish", "Stew"),
        ("empty", "  (no items)"),
    ]


def test_checklist_lines_empty_view() -> None:
    assert checklist_lines((), lambda dish_id, item_id: RowState()) == []
