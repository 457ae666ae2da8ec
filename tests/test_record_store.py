import pytest
from sqlalchemy.exc import OperationalError

from fieldops.exceptions import UnknownCollection, StoreError
from fieldops.extensions import db
from fieldops.models import StockItem, PurchaseRequest, CheckIn
from fieldops.services.record_store import RecordStore


def test_unknown_collection(app):
    with pytest.raises(UnknownCollection):
        RecordStore.get_all('invoices')
    with pytest.raises(UnknownCollection):
        RecordStore.save('invoices', StockItem(name='x'))


def test_record_must_match_collection(app):
    with pytest.raises(UnknownCollection):
        RecordStore.save('stock_items', PurchaseRequest(item_name='x', quantity=1))


def test_save_assigns_id_and_upserts(app):
    item = RecordStore.save('stock_items', StockItem(name='Roof hook', quantity=5))
    assert item.id is not None

    item.quantity = 7
    RecordStore.save('stock_items', item)

    assert StockItem.query.count() == 1
    assert RecordStore.get('stock_items', item.id).quantity == 7


def test_save_merges_detached_record(app):
    item = RecordStore.save('stock_items', StockItem(name='Roof hook', quantity=5))
    assert item.quantity == 5
    db.session.expunge(item)

    item.quantity = 9
    saved = RecordStore.save('stock_items', item)

    assert saved.id == item.id
    assert StockItem.query.count() == 1
    assert db.session.get(StockItem, item.id).quantity == 9


def test_get_handles_missing_and_malformed_ids(app):
    assert RecordStore.get('stock_items', None) is None
    assert RecordStore.get('stock_items', 'abc') is None
    assert RecordStore.get('stock_items', 99) is None


def test_get_respects_record_kind(app):
    checkin = RecordStore.save('checkin_records', CheckIn(project='Residence Silva', status='open'))

    assert RecordStore.get('checkin_records', checkin.id) is checkin
    assert RecordStore.get('checkout_records', checkin.id) is None
    assert RecordStore.get('maintenance_records', checkin.id) is None


def test_private_collections_are_scoped_by_owner(app):
    RecordStore.save_many([
        ('purchase_requests', PurchaseRequest(item_name='Cable', quantity=1, owner_id='a')),
        ('purchase_requests', PurchaseRequest(item_name='Drill', quantity=1, owner_id='b')),
        ('stock_items', StockItem(name='Panel', owner_id='a')),
        ('stock_items', StockItem(name='Rail', owner_id='b')),
    ])

    assert [r.item_name for r in RecordStore.get_all('purchase_requests', owner_id='a')] == ['Cable']
    assert len(RecordStore.get_all('purchase_requests', owner_id='a', include_all_owners=True)) == 2
    # stock is shared across technicians
    assert len(RecordStore.get_all('stock_items', owner_id='a')) == 2


def test_delete(app):
    item = RecordStore.save('stock_items', StockItem(name='Roof hook'))

    assert RecordStore.delete('stock_items', item.id) is True
    assert RecordStore.delete('stock_items', item.id) is False
    assert StockItem.query.count() == 0


def test_failed_commit_raises_retryable_store_error(app, monkeypatch):
    def broken_commit():
        raise OperationalError('COMMIT', {}, Exception('connection lost'))

    monkeypatch.setattr(db.session(), 'commit', broken_commit)

    with pytest.raises(StoreError) as excinfo:
        RecordStore.save('stock_items', StockItem(name='Roof hook'))

    assert excinfo.value.code == 503
    assert excinfo.value.to_dict()['retryable'] is True
