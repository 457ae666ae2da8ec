"""
Pytest fixtures for the FieldOps test suite.

Every test gets a fresh application built with the ``testing`` config and an
in-memory SQLite database.
"""
import pytest

from fieldops import create_app
from fieldops.exceptions import StoreError
from fieldops.extensions import db as _db
from fieldops.models import StockItem, SalesQuote
from fieldops.services.record_store import RecordStore
from fieldops.services.workflow_service import FieldRecordWorkflow


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_item(app):
    def _make(name='Solar panel 550W', quantity=100, reserved=0, min_quantity=5, unit='un', average_price=0.0):
        item = StockItem(
            name=name,
            unit=unit,
            quantity=quantity,
            reserved_quantity=reserved,
            min_quantity=min_quantity,
            average_price=average_price,
        )
        _db.session.add(item)
        _db.session.commit()
        return item
    return _make


@pytest.fixture
def make_checkin(app):
    def _make(components, project='Residence Silva', owner_id='tech-1'):
        return FieldRecordWorkflow.save_record(
            'checkin',
            {'project': project, 'responsible': 'Ana', 'components_used': components},
            owner_id=owner_id,
        )
    return _make


@pytest.fixture
def make_quote(app):
    def _make(client_name='Residence Silva', status=SalesQuote.STATUS_APPROVED, owner_id='seller-1'):
        quote = SalesQuote(client_name=client_name, status=status, owner_id=owner_id, closed_value=25000.0)
        _db.session.add(quote)
        _db.session.commit()
        return quote
    return _make


@pytest.fixture
def fail_store_call(monkeypatch):
    """
    Make the n-th RecordStore.save_many call fail like a lost connection:
    the session is rolled back and StoreError is raised.
    """
    def _arm(n, error=StoreError):
        original = RecordStore.save_many
        calls = {'count': 0}

        def flaky(pairs):
            calls['count'] += 1
            if calls['count'] == n:
                _db.session.rollback()
                raise error()
            return original(pairs)

        monkeypatch.setattr(RecordStore, 'save_many', staticmethod(flaky))
        return calls
    return _arm
