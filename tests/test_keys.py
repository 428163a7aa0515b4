import pytest

from preplist import keys
from preplist.errors import UnparseableKey


@pytest.mark.parametrize(
    "container_id,member_id",
    (
        ("dish-1", "item-1"),
        ("a|b", "c"),
        ("100%", "x|y|z"),
        ("%7C", "%25"),
        ("Soup", "Stock"),
    ),
)
def test_decode_inverts_encode(container_id: str, member_id: str) -> None:
    assert keys.decode(keys.encode(container_id, member_id)) == (container_id, member_id)


def test_encoded_key_has_single_separator() -> None:
    key = keys.encode("a|b", "c|d")
    assert key.count(keys.SEPARATOR) == 1
    assert keys.container_of(key) == "a|b"


def test_encode_is_injective_for_separator_in_ids() -> None:
    assert keys.encode("a|b", "c") != keys.encode("a", "b|c")


@pytest.mark.parametrize("bad", ("", "nosep", "a|b|c", "|b", "a|", "a%zz|b", "a|b%7c", "a%|b"))
def test_decode_rejects_malformed_keys(bad: str) -> None:
    with pytest.raises(UnparseableKey):
        keys.decode(bad)


def test_encode_requires_both_parts() -> None:
    with pytest.raises(ValueError):
        keys.encode("", "item")
    with pytest.raises(ValueError):
        keys.encode("dish", "")
