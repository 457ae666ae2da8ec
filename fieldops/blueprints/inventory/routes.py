"""库存 JSON 接口"""
from flask import request, jsonify
from fieldops.blueprints.inventory import inventory_bp
from fieldops.exceptions import NotFound
from fieldops.services.record_store import RecordStore
from fieldops.services.inventory_service import StockLedgerService
from fieldops.services.movement_service import MovementRecorder
from fieldops.utils.request_helpers import json_body, request_owner


@inventory_bp.route('/items', methods=['GET'])
def items():
    """物料列表，按名称排序；low=1 只看低于最小库存的物料"""
    stock = sorted(RecordStore.get_all('stock_items'), key=lambda i: (i.name or '').lower())
    if request.args.get('low') == '1':
        stock = [i for i in stock if i.is_below_minimum]
    return jsonify({'success': True, 'items': [i.to_dict() for i in stock]})


@inventory_bp.route('/items', methods=['POST'])
def create_item():
    item = StockLedgerService.save_item(json_body(), owner_id=request_owner())
    return jsonify({'success': True, 'item': item.to_dict()}), 201


@inventory_bp.route('/items/<int:item_id>', methods=['GET'])
def view_item(item_id):
    item = RecordStore.get('stock_items', item_id)
    if item is None:
        raise NotFound(f"Stock item #{item_id} not found")
    data = item.to_dict()
    data['price_history'] = [h.to_dict() for h in item.price_history]
    return jsonify({'success': True, 'item': data})


@inventory_bp.route('/items/<int:item_id>', methods=['PUT'])
def update_item(item_id):
    item = StockLedgerService.save_item(json_body(), item_id=item_id)
    return jsonify({'success': True, 'item': item.to_dict()})


@inventory_bp.route('/items/<int:item_id>', methods=['DELETE'])
def delete_item(item_id):
    StockLedgerService.delete_item(item_id)
    return jsonify({'success': True})


@inventory_bp.route('/items/<int:item_id>/reservations')
def reservations(item_id):
    """查看哪些已成交的 check-in 预留了该物料"""
    item = RecordStore.get('stock_items', item_id)
    if item is None:
        raise NotFound(f"Stock item #{item_id} not found")
    return jsonify({
        'success': True,
        'reserved_quantity': item.reserved_quantity,
        'unit': item.unit,
        'reservations': StockLedgerService.reservations_for(item_id),
    })


@inventory_bp.route('/movements')
def movements():
    item_id = request.args.get('item_id', type=int)
    move_type = request.args.get('type') or None
    history = MovementRecorder.history(item_id=item_id, move_type=move_type)
    return jsonify({'success': True, 'items': [m.to_dict() for m in history]})


@inventory_bp.route('/summary')
def summary():
    return jsonify({'success': True, 'summary': StockLedgerService.inventory_summary()})
