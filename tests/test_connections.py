from __future__ import annotations

import pytest

from tickwire.connections import ConnectionTable

A = ("127.0.0.1", 5000)
B = ("127.0.0.1", 5001)
C = ("127.0.0.1", 5002)


def _assert_inverse(table: ConnectionTable) -> None:
    assert {v: k for k, v in table.by_endpoint.items()} == dict(table.by_id)
    assert len(table.by_endpoint) == len(table.by_id) == len(table)


def test_ids_follow_connection_count() -> None:
    table = ConnectionTable()
    assert table.add(A) == 0
    assert table.add(B) == 1
    assert table.add(C) == 2
    _assert_inverse(table)


def test_remove_drops_exactly_one_pair() -> None:
    table = ConnectionTable()
    table.add(A)
    table.add(B)
    table.add(C)

    assert table.remove(B) == 1
    assert B not in table
    assert table.by_id == {0: A, 2: C}
    _assert_inverse(table)


def test_freed_id_is_reused_without_collision() -> None:
    table = ConnectionTable()
    table.add(A)
    table.add(B)
    table.remove(A)

    assert table.add(C) == 0
    assert table.endpoint_for(1) == B
    _assert_inverse(table)


def test_gap_above_count_is_skipped() -> None:
    table = ConnectionTable()
    table.add(A)
    table.add(B)
    table.add(C)
    table.remove(A)
    # count is 2 but id 2 is still held by C
    d = ("127.0.0.1", 5003)
    assert table.add(d) == 0
    _assert_inverse(table)


def test_duplicate_add_raises() -> None:
    table = ConnectionTable()
    table.add(A)
    with pytest.raises(KeyError):
        table.add(A)
    assert len(table) == 1


def test_remove_unknown_raises() -> None:
    table = ConnectionTable()
    with pytest.raises(KeyError):
        table.remove(A)


def test_lookups_return_none_when_absent() -> None:
    table = ConnectionTable()
    assert table.id_for(A) is None
    assert table.endpoint_for(0) is None


def test_views_are_read_only() -> None:
    table = ConnectionTable()
    table.add(A)
    with pytest.raises(TypeError):
        table.by_id[5] = B  # type: ignore[index]


def test_endpoints_iterate_in_id_order() -> None:
    table = ConnectionTable()
    table.add(A)
    table.add(B)
    assert list(table.endpoints()) == [A, B]


def test_clear() -> None:
    table = ConnectionTable()
    table.add(A)
    table.clear()
    assert len(table) == 0
    assert not table.by_endpoint
