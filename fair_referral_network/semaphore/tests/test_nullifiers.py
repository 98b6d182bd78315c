import pytest

from ..exceptions import NullifierReusedError
from ..nullifiers import NullifierRecord


def test_spend_marks_nullifier():
    record = NullifierRecord()
    assert not record.is_spent(1, 100)
    record.spend(1, 100)
    assert record.is_spent(1, 100)
    assert len(record) == 1


def test_double_spend_in_same_scope_raises():
    record = NullifierRecord()
    record.spend(1, 100)
    with pytest.raises(NullifierReusedError, match="already used"):
        record.spend(1, 100)
    with pytest.raises(NullifierReusedError):
        record.check_unspent(1, 100)
    assert record.count() == 1


def test_scopes_are_independent():
    record = NullifierRecord()
    record.spend(1, 100)
    record.spend(2, 100)
    record.spend(2, 101)
    assert record.count(1) == 1
    assert record.count(2) == 2
    assert record.count(3) == 0
    assert set(record.scopes()) == {1, 2}


def test_spend_rejects_non_field_values():
    record = NullifierRecord()
    with pytest.raises(ValueError):
        record.spend(-1, 100)
    assert len(record) == 0


def test_iteration_and_rebuild():
    record = NullifierRecord()
    record.spend(2, 200)
    record.spend(2, 100)
    record.spend(1, 300)

    items = list(record)
    assert sorted(items) == [(1, 300), (2, 100), (2, 200)]

    rebuilt = NullifierRecord.from_items(items)
    assert sorted(rebuilt) == sorted(items)
    assert rebuilt.is_spent(2, 100)


def test_from_items_rejects_duplicates():
    with pytest.raises(NullifierReusedError):
        NullifierRecord.from_items([(1, 5), (1, 5)])
