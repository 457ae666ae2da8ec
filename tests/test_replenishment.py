from fieldops.models import PurchaseRequest
from fieldops.services.inventory_service import StockLedgerService
from fieldops.services.replenishment_service import ReplenishmentPlanner


def open_requests():
    return PurchaseRequest.query.filter(
        PurchaseRequest.status.notin_(PurchaseRequest.CLOSED_STATUSES)
    ).all()


def test_buy_quantity_targets_twice_the_minimum():
    assert ReplenishmentPlanner.buy_quantity(5, 2) == 8
    assert ReplenishmentPlanner.buy_quantity(10, 0) == 20


def test_deduction_below_minimum_raises_request(make_item):
    item = make_item(name='Solar panel 550W', quantity=12, min_quantity=5)

    results = StockLedgerService.apply_deduction(
        [{'item_id': item.id, 'quantity': 10}], [], 'Residence Silva', 'maintenance'
    )

    assert item.quantity == 2
    request = results[0].purchase_request
    assert request is not None
    assert request.quantity == 8
    assert request.item_id == item.id
    assert request.item_name == 'Solar panel 550W'
    assert request.priority == PurchaseRequest.PRIORITY_HIGH
    assert request.purchase_type == PurchaseRequest.TYPE_REPLENISHMENT
    assert request.status == PurchaseRequest.STATUS_PENDING
    assert request.client_name == 'Replenishment via project: Residence Silva'
    assert '(2)' in request.note and '(5)' in request.note
    assert '(min*2)' in request.note


def test_no_request_when_balance_stays_at_minimum(make_item):
    item = make_item(quantity=15, min_quantity=5)
    results = StockLedgerService.apply_deduction(
        [{'item_id': item.id, 'quantity': 10}], [], 'Residence Silva', 'maintenance'
    )
    assert item.quantity == 5
    assert results[0].purchase_request is None
    assert PurchaseRequest.query.count() == 0


def test_at_most_one_open_request_per_item(make_item):
    item = make_item(quantity=20, min_quantity=10)
    for _ in range(4):
        StockLedgerService.apply_deduction(
            [{'item_id': item.id, 'quantity': 5}], [], 'Farm Souza', 'maintenance'
        )
    # 15, 10, 5 (request raised), 0 (already pending)
    assert item.quantity == 0
    assert len(open_requests()) == 1


def test_closed_requests_do_not_block_new_ones(db, make_item):
    item = make_item(quantity=4, min_quantity=5)
    db.session.add_all([
        PurchaseRequest(item_name=item.name, quantity=3, status=PurchaseRequest.STATUS_DONE),
        PurchaseRequest(item_name=item.name, quantity=3, status=PurchaseRequest.STATUS_CANCELLED),
    ])
    db.session.commit()

    request = ReplenishmentPlanner.check(item, 4, 'Farm Souza')
    assert request is not None
    assert request.quantity == 6


def test_open_request_matched_by_name_case_insensitive(db, make_item):
    item = make_item(name='MC4 connector pair', quantity=1, min_quantity=5)
    db.session.add(PurchaseRequest(item_name='  mc4 CONNECTOR pair ', quantity=3,
                                   status=PurchaseRequest.STATUS_IN_TRANSIT))
    db.session.commit()

    assert ReplenishmentPlanner.has_open_request(item) is True
    assert ReplenishmentPlanner.check(item, 1, 'Farm Souza') is None


def test_open_request_matched_by_item_id_after_rename(db, make_item):
    item = make_item(name='Roof hook', quantity=1, min_quantity=5)
    db.session.add(PurchaseRequest(item_id=item.id, item_name='Roof hook (old name)', quantity=3))
    db.session.commit()

    assert ReplenishmentPlanner.has_open_request(item) is True


def test_reservation_checks_future_stock(make_item):
    item = make_item(quantity=12, min_quantity=5)

    results = StockLedgerService.reserve([{'item_id': item.id, 'quantity': 10}], project_name='Residence Silva')

    request = results[0].purchase_request
    assert request is not None
    # future stock = 12 - 10 = 2
    assert request.quantity == 8
    assert 'reservation' in request.note


def test_reservation_check_can_be_disabled(app, make_item):
    app.config['REPLENISH_ON_RESERVATION'] = False
    item = make_item(quantity=12, min_quantity=5)

    results = StockLedgerService.reserve([{'item_id': item.id, 'quantity': 10}])

    assert results[0].purchase_request is None
    assert PurchaseRequest.query.count() == 0
