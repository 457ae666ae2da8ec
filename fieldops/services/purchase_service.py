"""采购管理服务 (采购申请的人工创建、收货入库、取消)"""
import logging
from datetime import datetime
from sqlalchemy import func
from fieldops.exceptions import ValidationError, NotFound
from fieldops.models.purchase import PurchaseRequest
from fieldops.models.stock import StockItem, PriceHistory
from fieldops.services.record_store import RecordStore
from fieldops.services.movement_service import MovementRecorder
from fieldops.utils.validators import validate_positive_number

logger = logging.getLogger(__name__)


class PurchaseService:
    """采购服务"""

    PRIORITIES = (PurchaseRequest.PRIORITY_LOW, PurchaseRequest.PRIORITY_MEDIUM, PurchaseRequest.PRIORITY_HIGH)

    @staticmethod
    def list_requests(owner_id=None, include_all_owners=False, status=None):
        requests = RecordStore.get_all('purchase_requests', owner_id, include_all_owners)
        if status:
            requests = [r for r in requests if r.status == status]
        return sorted(requests, key=lambda r: r.date or datetime.min, reverse=True)

    @staticmethod
    def create_request(data, owner_id=None, requester=None):
        """
        人工采购申请
        关联到库存物料时为补货，否则为临时采购
        """
        item_name = (data.get('item_name') or '').strip()
        if not item_name:
            raise ValidationError("Item description is required")
        quantity = validate_positive_number(data.get('quantity'), 'quantity')
        priority = data.get('priority') or PurchaseRequest.PRIORITY_MEDIUM
        if priority not in PurchaseService.PRIORITIES:
            raise ValidationError(f"Unknown priority: {priority}")

        item = PurchaseService._match_item(data.get('item_id'), item_name)
        request = PurchaseRequest(
            owner_id=owner_id,
            item_id=item.id if item else None,
            item_name=item_name,
            quantity=quantity,
            unit=data.get('unit') or (item.unit if item else 'un'),
            requester=requester or data.get('requester'),
            date=datetime.utcnow(),
            priority=priority,
            status=PurchaseRequest.STATUS_PENDING,
            client_name=data.get('client_name') or ('Central stock' if item else 'One-off request'),
            purchase_type=PurchaseRequest.TYPE_REPLENISHMENT if item else PurchaseRequest.TYPE_ONE_OFF,
            purchase_link=data.get('purchase_link'),
            note=data.get('note'),
        )
        return RecordStore.save('purchase_requests', request)

    @staticmethod
    def _match_item(item_id, item_name):
        if item_id not in (None, ''):
            item = RecordStore.get('stock_items', item_id)
            if item is not None:
                return item
        name = (item_name or '').strip().lower()
        return RecordStore.query('stock_items').filter(
            func.lower(func.trim(StockItem.name)) == name
        ).first()

    @staticmethod
    def _get_open(request_id):
        request = RecordStore.get('purchase_requests', request_id)
        if request is None:
            raise NotFound(f"Purchase request #{request_id} not found")
        if not request.is_open:
            raise ValidationError(f"Purchase request #{request.id} is already {request.status}")
        return request

    @staticmethod
    def receive(request_id, invoice_number, total_value, owner_id=None):
        """
        收货入库
        有对应物料时：数量增加，按加权平均重算单价，记录价格历史和入库流水。
        申请状态置为 done。
        """
        request = PurchaseService._get_open(request_id)
        if not invoice_number:
            raise ValidationError("Invoice number is required")
        total_value = validate_positive_number(total_value, 'total_value')

        item = PurchaseService._match_item(request.item_id, request.item_name)
        pairs = []
        if item is not None:
            unit_cost = total_value / request.quantity
            current_qty = item.quantity or 0
            current_avg = item.average_price or 0
            new_qty = current_qty + request.quantity
            weighted = ((current_qty * current_avg) + (request.quantity * unit_cost)) / new_qty

            item.quantity = new_qty
            item.average_price = round(weighted, 2)
            history = PriceHistory(item_id=item.id, price=unit_cost, invoice_number=invoice_number)
            movement = MovementRecorder.build_inbound(
                item, request.quantity,
                f"Inbound via invoice {invoice_number} (request #{request.id}) - "
                f"unit cost {unit_cost:.2f} | destination: {request.client_name or 'stock'}",
                owner_id=owner_id,
            )
            pairs += [('stock_items', item), ('stock_movements', movement)]
            item.price_history.append(history)
        else:
            logger.info(f"采购申请 #{request.id} ({request.item_name}) 未关联库存物料，仅更新状态")

        request.status = PurchaseRequest.STATUS_DONE
        request.invoice_number = invoice_number
        request.note = f"{request.note or ''}\n[Invoice: {invoice_number} | Value: {total_value:.2f}]".strip()
        pairs.append(('purchase_requests', request))
        RecordStore.save_many(pairs)
        logger.info(f"采购申请 #{request.id} 已收货入库")
        return request, item

    @staticmethod
    def cancel(request_id):
        request = PurchaseService._get_open(request_id)
        request.status = PurchaseRequest.STATUS_CANCELLED
        return RecordStore.save('purchase_requests', request)
