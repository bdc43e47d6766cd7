"""
Merged Log Tests

INVARIANTS TESTED:
1. Merging is idempotent and order-insensitive
2. Confirmed records are presented in id order
3. Provisional entries are replaced, never duplicated, by their confirmed record
"""

import pytest
from datetime import timedelta
from hypothesis import given, strategies as st

from launchday.contracts.base import LogKind
from launchday.contracts.records import InteractionRecord
from launchday.sync.merge import MergedLog, Provisional, new_local_id, LOCAL_ID_PREFIX
from tests.fixtures import EVENT_ID, NOW


def record(record_id):
    return InteractionRecord(
        id=record_id,
        event_id=EVENT_ID,
        kind=LogKind.CHAT,
        payload={'message': f"message {record_id}"},
        created_at=NOW + timedelta(seconds=record_id),
    )


def provisional(text="hello"):
    return Provisional(
        local_id=new_local_id(),
        kind=LogKind.CHAT,
        payload={'message': text},
        pending_since=NOW,
    )


ids = st.lists(st.integers(min_value=1, max_value=200), max_size=40)


class TestMerge:

    def test_out_of_order_batch(self):
        log = MergedLog()
        assert log.merge([record(3), record(1), record(2)]) == 3
        assert [r.id for r in log.confirmed] == [1, 2, 3]
        assert log.cursor == 3

    def test_duplicates_ignored(self):
        log = MergedLog()
        log.merge([record(1), record(2)])
        assert log.merge([record(2), record(1)]) == 0
        assert len(log) == 2

    def test_empty_cursor(self):
        assert MergedLog().cursor == 0

    def test_trim_keeps_newest(self):
        log = MergedLog(max_records=3)
        log.merge(record(i) for i in range(1, 6))
        assert [r.id for r in log.confirmed] == [3, 4, 5]

    @given(ids, ids)
    def test_converges_regardless_of_batch_order(self, first, second):
        a, b = MergedLog(), MergedLog()
        a.merge(record(i) for i in first)
        a.merge(record(i) for i in second)
        b.merge(record(i) for i in second)
        b.merge(record(i) for i in first)
        b.merge(record(i) for i in first)

        expected = sorted(set(first) | set(second))
        assert [r.id for r in a.confirmed] == expected
        assert [r.id for r in b.confirmed] == expected


class TestProvisional:

    def test_local_ids_never_look_like_server_ids(self):
        entry = provisional()
        assert entry.local_id.startswith(LOCAL_ID_PREFIX)
        with pytest.raises(ValueError):
            MergedLog().add_provisional(Provisional("7", LogKind.CHAT, {}, NOW))

    def test_entries_put_provisional_last(self):
        log = MergedLog()
        entry = log.add_provisional(provisional())
        log.merge([record(1)])
        assert [e.id for e in log.entries] == [1, entry.local_id]
        assert log.entries[1].to_dict()['provisional'] is True

    def test_confirmed_record_replaces_acknowledged_entry(self):
        log = MergedLog()
        entry = log.add_provisional(provisional())
        log.acknowledge(entry.local_id, NOW, record(5))
        assert len(log.provisional) == 1

        log.merge([record(5)])
        assert log.provisional == ()
        assert [e.id for e in log.entries] == [5]

    def test_acknowledge_after_record_already_merged(self):
        log = MergedLog()
        entry = log.add_provisional(provisional())
        log.merge([record(5)])
        log.acknowledge(entry.local_id, NOW, record(5))
        assert log.provisional == ()

    def test_drop_acknowledged_by_read_start(self):
        log = MergedLog()
        acked = log.add_provisional(provisional("acked"))
        pending = log.add_provisional(provisional("pending"))
        log.acknowledge(acked.local_id, NOW + timedelta(seconds=2))

        assert log.drop_acknowledged(NOW + timedelta(seconds=1)) == 0
        assert log.drop_acknowledged(NOW + timedelta(seconds=2)) == 1
        assert [p.local_id for p in log.provisional] == [pending.local_id]

    def test_drop_provisional(self):
        log = MergedLog()
        a = log.add_provisional(provisional())
        log.add_provisional(provisional())
        assert log.drop_provisional(a.local_id) == 1
        assert log.drop_provisional() == 1
        assert log.provisional == ()
