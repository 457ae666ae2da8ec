"""补货计划：库存低于阈值时自动生成采购申请"""
import logging
from datetime import datetime
from flask import current_app
from sqlalchemy import func, or_
from fieldops.models.purchase import PurchaseRequest
from fieldops.services.record_store import RecordStore

logger = logging.getLogger(__name__)


class ReplenishmentPlanner:
    """
    每个物料同一时间最多一张未关闭 (非 done / cancelled) 的采购申请。
    补货量 = (最小库存 * 2) - 当前余额
    """

    TRIGGER_DEDUCTION = 'deduction'
    TRIGGER_RESERVATION = 'reservation'

    @staticmethod
    def buy_quantity(min_quantity, current):
        return (min_quantity or 0) * 2 - (current or 0)

    @staticmethod
    def has_open_request(item):
        """按 item_id 匹配；旧数据没有 item_id 时按名称 (不区分大小写) 匹配"""
        query = RecordStore.query('purchase_requests').filter(
            PurchaseRequest.status.notin_(PurchaseRequest.CLOSED_STATUSES)
        )
        name = (item.name or '').strip().lower()
        query = query.filter(or_(
            PurchaseRequest.item_id == item.id,
            func.lower(func.trim(PurchaseRequest.item_name)) == name,
        ))
        return query.first() is not None

    @staticmethod
    def check(item, balance, origin_project, trigger=TRIGGER_DEDUCTION, owner_id=None):
        """
        扣减 (或预留) 后检查是否需要补货
        :param balance: 扣减后的在库量，或预留后的未来库存
        :return: 新建的 PurchaseRequest 或 None
        """
        min_quantity = item.min_quantity or 0
        if balance >= min_quantity:
            return None

        if ReplenishmentPlanner.has_open_request(item):
            logger.debug(f"物料 {item.name} 已有未关闭的采购申请，跳过补货")
            return None

        buy_qty = ReplenishmentPlanner.buy_quantity(min_quantity, balance)
        if buy_qty <= 0:
            return None

        if trigger == ReplenishmentPlanner.TRIGGER_RESERVATION:
            balance_label = 'Future stock'
            after = 'reservation'
        else:
            balance_label = 'Current stock'
            after = 'consumption'

        request = PurchaseRequest(
            owner_id=owner_id,
            item_id=item.id,
            item_name=item.name,
            quantity=buy_qty,
            unit=item.unit,
            requester=current_app.config.get('REPLENISHMENT_REQUESTER', 'FieldOps (auto)'),
            date=datetime.utcnow(),
            priority=PurchaseRequest.PRIORITY_HIGH,
            status=PurchaseRequest.STATUS_PENDING,
            client_name=f"Replenishment via project: {origin_project}",
            purchase_type=PurchaseRequest.TYPE_REPLENISHMENT,
            note=(
                f"Automatic request: {balance_label} ({balance:g}) below minimum ({min_quantity:g}) "
                f"after {after}. Quantity computed as (min*2)-balance = {buy_qty:g}."
            ),
        )
        request = RecordStore.save('purchase_requests', request)
        logger.info(f"自动补货申请已创建: {item.name} x {buy_qty:g} (来源: {origin_project})")
        return request
