import sqlite3

import pytest

from gc_loading.errors import DataAnomaly, PersistenceError, SessionClosed, StaleSelection
from gc_loading.logic.loading_context import LoadingContext, MultiGroupCoordinator
from gc_loading.logic.persistence import ProgressPersistenceGateway, diff_packages
from gc_loading.logic.selection import SelectionStateMachine


def add_overlapping_gc(dm):
    sender = dm.add_consignor('S')
    receiver = dm.add_consignee('R')
    dm.add_shipment(
        'AB1', sender, receiver, 5,
        content_groups=[
            {'group_id': 'A', 'packing_label': 'CASE', 'content_label': 'FW', 'start_number': 1, 'quantity': 3},
            {'group_id': 'B', 'packing_label': 'BALE', 'content_label': 'CLOTH', 'start_number': 1, 'quantity': 2},
        ],
    )


def test_overlapping_groups_round_trip(dm):
    add_overlapping_gc(dm)
    ctx = LoadingContext.hydrate(dm.fetch_shipment_by_id('AB1'))
    SelectionStateMachine(ctx).select_all('A')

    committed = ProgressPersistenceGateway(dm).save(ctx)
    assert committed.loaded == 3
    assert committed.pending == 2
    assert committed.status == 'PARTIAL'
    assert committed.packages == {'A': [1, 2, 3]}
    assert not committed.anomaly

    reopened = LoadingContext.hydrate(dm.fetch_shipment_by_id('AB1'))
    coord = MultiGroupCoordinator(reopened)
    assert coord.completion_of('A')
    assert not coord.completion_of('B')
    assert coord.loaded_count == 3


def test_save_closes_context(dm):
    add_overlapping_gc(dm)
    ctx = LoadingContext.hydrate(dm.fetch_shipment_by_id('AB1'))
    gateway = ProgressPersistenceGateway(dm)
    committed = gateway.save(ctx)
    assert committed.revision == 1
    assert ctx.closed
    with pytest.raises(SessionClosed):
        gateway.save(ctx)


def test_concurrent_save_is_rejected(dm):
    add_overlapping_gc(dm)
    first = LoadingContext.hydrate(dm.fetch_shipment_by_id('AB1'))
    second = LoadingContext.hydrate(dm.fetch_shipment_by_id('AB1'))
    gateway = ProgressPersistenceGateway(dm, last_write_wins=False)

    SelectionStateMachine(first).toggle(1)
    gateway.save(first)

    SelectionStateMachine(second).toggle(2)
    with pytest.raises(StaleSelection) as excinfo:
        gateway.save(second)
    assert excinfo.value.expected == 0
    assert excinfo.value.actual == 1
    # local selection is kept and the session stays usable
    assert not second.closed
    assert second.selection_of('A') == {2}
    assert dm.fetch_shipment_by_id('AB1')['loaded_packages'] == [{'itemId': 'A', 'packages': [1]}]


def test_last_write_wins_overrides(dm):
    add_overlapping_gc(dm)
    first = LoadingContext.hydrate(dm.fetch_shipment_by_id('AB1'))
    second = LoadingContext.hydrate(dm.fetch_shipment_by_id('AB1'))
    gateway = ProgressPersistenceGateway(dm, last_write_wins=True)

    SelectionStateMachine(first).toggle(1)
    gateway.save(first)
    SelectionStateMachine(second).toggle(2)
    committed = gateway.save(second)
    assert committed.revision == 2
    assert dm.fetch_shipment_by_id('AB1')['loaded_packages'] == [{'itemId': 'A', 'packages': [2]}]


def test_store_error_becomes_persistence_error(dm):
    add_overlapping_gc(dm)
    ctx = LoadingContext.hydrate(dm.fetch_shipment_by_id('AB1'))
    SelectionStateMachine(ctx).toggle(3)

    class BrokenStore:
        def save_loading_progress(self, *a, **kw):
            raise sqlite3.OperationalError('database is locked')

    with pytest.raises(PersistenceError, match='database is locked'):
        ProgressPersistenceGateway(BrokenStore()).save(ctx)
    assert not ctx.closed
    assert ctx.selection_of('A') == {3}


def test_missing_gc_becomes_persistence_error(dm):
    ctx = LoadingContext.hydrate({'gc_no': 'NOPE', 'quantity': 2, 'start_number': 1})
    with pytest.raises(PersistenceError):
        ProgressPersistenceGateway(dm).save(ctx)


def test_out_of_range_packages_are_not_committed(dm):
    sender = dm.add_consignor('S')
    receiver = dm.add_consignee('R')
    dm.add_shipment('OV1', sender, receiver, 2)
    record = dm.fetch_shipment_by_id('OV1')
    record['loaded_packages'] = [1, 2, 3]
    with pytest.warns(DataAnomaly):
        ctx = LoadingContext.hydrate(record)
    assert ctx.selection_of('default') == {1, 2}

    committed = ProgressPersistenceGateway(dm).save(ctx)
    assert committed.anomaly
    assert committed.packages == {'default': [1, 2]}
    assert committed.pending == 0
    assert committed.status == 'LOADED'
    assert dm.fetch_shipment_by_id('OV1')['loaded_packages'] == [{'itemId': 'default', 'packages': [1, 2]}]

    # the next session starts clean
    ctx = LoadingContext.hydrate(dm.fetch_shipment_by_id('OV1'))
    assert ctx.out_of_range == {}
    assert not ctx.anomaly


def test_store_and_gateway_agree_on_orphans(dm):
    sender = dm.add_consignor('S')
    receiver = dm.add_consignee('R')
    dm.add_shipment(
        'OR1', sender, receiver, 2,
        content_groups=[{'group_id': 'A', 'packing_label': 'CASE', 'content_label': 'FW', 'start_number': 1, 'quantity': 2}],
    )
    dm.save_loading_progress('OR1', [{'itemId': 'OLD', 'packages': [1, 2]}])
    row = next(r for r in dm.list_loading_sheet(pending_only=False) if r['gc_no'] == 'OR1')
    assert row['loaded_count'] == 0
    assert row['loading_status'] == 'PENDING'

    ctx = LoadingContext.hydrate(dm.fetch_shipment_by_id('OR1'))
    committed = ProgressPersistenceGateway(dm).save(ctx)
    row = next(r for r in dm.list_loading_sheet(pending_only=False) if r['gc_no'] == 'OR1')
    assert committed.loaded == row['loaded_count'] == 0
    assert committed.status == row['loading_status'] == 'PENDING'
    assert committed.packages == {'OLD': [1, 2]}


def test_diff_packages():
    old = [{'itemId': 'A', 'packages': [1, 2]}]
    new = [{'itemId': 'A', 'packages': [2, 3]}, {'itemId': 'B', 'packages': [1]}]
    assert diff_packages(old, new) == (2, 1)
    assert diff_packages([1, 2], []) == (0, 2)
