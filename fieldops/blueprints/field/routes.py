"""现场记录 JSON 接口"""
from flask import request, jsonify
from fieldops.blueprints.field import field_bp
from fieldops.services.workflow_service import FieldRecordWorkflow
from fieldops.utils.request_helpers import json_body, request_owner, include_all_owners
from fieldops.utils.validators import parse_bool


@field_bp.route('/<kind>/', methods=['GET'])
def index(kind):
    """记录列表：支持 status 过滤和 q 搜索 (项目/负责人)"""
    records = FieldRecordWorkflow.list_records(
        kind,
        owner_id=request_owner(),
        include_all_owners=include_all_owners(),
        status=request.args.get('status') or None,
        search=request.args.get('q', '').strip() or None,
    )
    return jsonify({'success': True, 'items': [r.to_dict() for r in records]})


@field_bp.route('/<kind>/', methods=['POST'])
def create(kind):
    data = json_body()
    record = FieldRecordWorkflow.save_record(
        kind, data,
        owner_id=request_owner(),
        finalize_now=parse_bool(data.get('finalize_now')),
    )
    return jsonify({'success': True, 'record': record.to_dict()}), 201


@field_bp.route('/<kind>/<int:record_id>', methods=['GET'])
def view(kind, record_id):
    record = FieldRecordWorkflow.find_record(record_id, kind)
    return jsonify({'success': True, 'record': record.to_dict()})


@field_bp.route('/<kind>/<int:record_id>', methods=['PUT'])
def update(kind, record_id):
    data = json_body()
    record = FieldRecordWorkflow.save_record(
        kind, data,
        owner_id=request_owner(),
        record_id=record_id,
        finalize_now=parse_bool(data.get('finalize_now')),
    )
    return jsonify({'success': True, 'record': record.to_dict()})


@field_bp.route('/checkin/<int:record_id>/confirm', methods=['POST'])
def confirm(record_id):
    """确认成交：预留物料并生成 check-out"""
    checkout = FieldRecordWorkflow.confirm_sale(record_id)
    return jsonify({
        'success': True,
        'message': 'Sale confirmed. Materials reserved and installation order created.',
        'checkout': checkout.to_dict(),
    })


@field_bp.route('/checkin/<int:record_id>/lost', methods=['POST'])
def lost(record_id):
    checkin = FieldRecordWorkflow.mark_lost(record_id)
    return jsonify({'success': True, 'record': checkin.to_dict()})


@field_bp.route('/<kind>/<int:record_id>/finalize', methods=['POST'])
def finalize(kind, record_id):
    """完工：扣减库存、释放预留、级联关闭"""
    result = FieldRecordWorkflow.finalize_service(record_id, kind)
    return jsonify({
        'success': True,
        'message': 'Service finalized. Stock and reservations updated.',
        'record': result.record.to_dict(),
        'deductions': [
            {
                'item_id': d.item_id,
                'quantity_after': d.quantity_after,
                'reserved_after': d.reserved_after,
                'consumed': d.consumed,
                'released': d.released,
                'purchase_request_id': d.purchase_request.id if d.purchase_request else None,
            }
            for d in result.deductions
        ],
        'quote_id': result.quote.id if result.quote else None,
    })
