import sqlite3

import pytest

from database.migrate import add_loading_columns
from gc_loading.errors import DataAnomaly


def test_fetch_shipment_hydrates_groups(dm, seeded):
    record = dm.fetch_shipment_by_id('101')
    assert record['quantity'] == 5
    assert record['sender_id'] == seeded['sender']
    assert record['receiver_id'] == seeded['receiver']
    assert record['loaded_packages'] == []
    assert record['loading_revision'] == 0
    assert record['loading_status'] == 'PENDING'
    assert record['content_groups'] == [
        {'group_id': 'i1', 'packing_label': 'CASE', 'content_label': 'FW', 'start_number': '1', 'quantity': '5'}
    ]
    assert dm.fetch_shipment_by_id('999') is None


def test_save_updates_counts_status_and_audit(dm, seeded):
    revision = dm.save_loading_progress('101', [{'itemId': 'i1', 'packages': [1, 2]}], expected_revision=0, user_id=7)
    assert revision == 1
    revision = dm.save_loading_progress('101', [{'itemId': 'i1', 'packages': [2, 3, 4, 5, 1]}], expected_revision=1)
    assert revision == 2

    rows = dm.list_loading_sheet(pending_only=False)
    row = next(r for r in rows if r['gc_no'] == '101')
    assert row['loaded_count'] == 5
    assert row['pending'] == 0
    assert row['loading_status'] == 'LOADED'

    audit = dm.get_loading_audit('101')
    assert [(a['added_count'], a['removed_count']) for a in audit] == [(2, 0), (3, 0)]
    assert audit[0]['user_id'] == 7
    assert audit[0]['old_status'] == 'PENDING'
    assert audit[1]['new_status'] == 'LOADED'
    assert audit[1]['new_packages'] == [{'itemId': 'i1', 'packages': [2, 3, 4, 5, 1]}]


def test_save_conflict_returns_none_and_writes_nothing(dm, seeded):
    assert dm.save_loading_progress('101', [{'itemId': 'i1', 'packages': [1]}], expected_revision=3) is None
    assert dm.get_loading_revision('101') == 0
    assert dm.get_loading_audit('101') == []


def test_save_unknown_gc_raises(dm):
    with pytest.raises(KeyError):
        dm.save_loading_progress('nope', [])


def test_loading_sheet_hides_loaded(dm, seeded):
    dm.save_loading_progress('102', [{'itemId': 'i2', 'packages': [6, 7, 8]}])
    pending = [r['gc_no'] for r in dm.list_loading_sheet()]
    assert pending == ['101', '103']
    row = next(r for r in dm.list_loading_sheet() if r['gc_no'] == '103')
    assert row['total'] == 4
    assert row['consignor_name'] == 'Acme Mills'


def test_print_batch_by_ids(dm, seeded):
    records = dm.fetch_print_batch(shipment_ids=['103', '101'])
    assert [r['gc_no'] for r in records] == ['101', '103']
    assert records[0]['consignor'] == {'id': seeded['sender'], 'name': 'Acme Mills'}
    assert records[0]['consignee']['name'] == 'Bharat Traders'
    assert dm.fetch_print_batch(shipment_ids=[]) == []


def test_print_batch_match_all_filters(dm, seeded):
    records = dm.fetch_print_batch(match_all_filters=True, filters={'storage_location': 'g1'})
    assert [r['gc_no'] for r in records] == ['101', '102']

    records = dm.fetch_print_batch(
        match_all_filters=True, filters={'sender_id': seeded['sender'], 'exclude_ids': ['102']}
    )
    assert [r['gc_no'] for r in records] == ['101', '103']

    dm.save_loading_progress('101', [{'itemId': 'i1', 'packages': [1, 2, 3, 4, 5]}])
    records = dm.fetch_print_batch(match_all_filters=True, filters={'pending_only': True})
    assert [r['gc_no'] for r in records] == ['102', '103']


def test_migration_adds_loading_columns(tmp_path):
    db_path = str(tmp_path / 'old.db')
    conn = sqlite3.connect(db_path)
    conn.execute('CREATE TABLE shipments (gc_no TEXT PRIMARY KEY, quantity INTEGER)')
    conn.commit()
    conn.close()

    added = add_loading_columns(db_path)
    assert added == ['loaded_packages', 'loaded_count', 'loading_status', 'loading_revision']
    assert add_loading_columns(db_path) == []

    conn = sqlite3.connect(db_path)
    cols = [row[1] for row in conn.execute('PRAGMA table_info(shipments)')]
    tables = [row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")]
    conn.close()
    assert 'loading_revision' in cols
    assert 'loading_audit' in tables


def test_loading_sheet_flags_over_declared(dm, seeded, temp_db):
    dm.save_loading_progress('102', [{'itemId': 'i2', 'packages': [6, 7, 8]}])
    with sqlite3.connect(temp_db) as conn:
        conn.execute("UPDATE content_groups SET quantity='2' WHERE gc_no='102'")

    with pytest.warns(DataAnomaly):
        rows = dm.list_loading_sheet(pending_only=False)
    row = next(r for r in rows if r['gc_no'] == '102')
    assert row['total'] == 2
    assert row['pending'] == 0
    assert row['anomaly'] is True
    assert not next(r for r in rows if r['gc_no'] == '101')['anomaly']


def test_save_counts_only_current_groups(dm, seeded):
    dm.save_loading_progress('101', [{'itemId': 'i1', 'packages': [1, 2]}, {'itemId': 'old', 'packages': [3]}])
    row = next(r for r in dm.list_loading_sheet() if r['gc_no'] == '101')
    assert row['loaded_count'] == 2
    assert row['pending'] == 3
    assert dm.fetch_shipment_by_id('101')['loaded_packages'][1] == {'itemId': 'old', 'packages': [3]}
