"""采购申请 JSON 接口"""
from flask import request, jsonify
from fieldops.blueprints.purchase import purchase_bp
from fieldops.services.purchase_service import PurchaseService
from fieldops.utils.request_helpers import json_body, request_owner, include_all_owners


@purchase_bp.route('/requests', methods=['GET'])
def index():
    requests = PurchaseService.list_requests(
        owner_id=request_owner(),
        include_all_owners=include_all_owners(),
        status=request.args.get('status') or None,
    )
    return jsonify({'success': True, 'items': [r.to_dict() for r in requests]})


@purchase_bp.route('/requests', methods=['POST'])
def create():
    data = json_body()
    pr = PurchaseService.create_request(data, owner_id=request_owner(), requester=data.get('requester'))
    return jsonify({'success': True, 'request': pr.to_dict()}), 201


@purchase_bp.route('/requests/<int:request_id>/receive', methods=['POST'])
def receive(request_id):
    """收货：录入发票号和总金额"""
    data = json_body()
    pr, item = PurchaseService.receive(
        request_id,
        invoice_number=data.get('invoice_number'),
        total_value=data.get('total_value'),
        owner_id=request_owner(),
    )
    return jsonify({
        'success': True,
        'request': pr.to_dict(),
        'item': item.to_dict() if item else None,
    })


@purchase_bp.route('/requests/<int:request_id>/cancel', methods=['POST'])
def cancel(request_id):
    pr = PurchaseService.cancel(request_id)
    return jsonify({'success': True, 'request': pr.to_dict()})
