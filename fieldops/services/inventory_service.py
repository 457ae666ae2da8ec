"""库存账本：预留、扣减、物料目录维护"""
import logging
from collections import namedtuple
from flask import current_app
from fieldops.exceptions import ConcurrencyConflict, ValidationError, NotFound
from fieldops.models.stock import StockItem
from fieldops.models.field import FieldRecord
from fieldops.services.record_store import RecordStore
from fieldops.services.movement_service import MovementRecorder
from fieldops.services.replenishment_service import ReplenishmentPlanner
from fieldops.services.step_journal import StepJournal
from fieldops.utils.validators import validate_non_negative_number

logger = logging.getLogger(__name__)


DeductionResult = namedtuple('DeductionResult', [
    'item_id', 'quantity_before', 'quantity_after',
    'reserved_before', 'reserved_after',
    'consumed', 'released', 'movement', 'purchase_request', 'replayed',
])

ReservationResult = namedtuple('ReservationResult', [
    'item_id', 'reserved_before', 'reserved_after', 'purchase_request', 'replayed',
])


def sum_lines(lines):
    """合并同一物料的多行，保持首次出现的顺序: {item_id: quantity}"""
    totals = {}
    for line in lines or []:
        item_id = int(line['item_id'])
        totals[item_id] = totals.get(item_id, 0) + float(line.get('quantity') or 0)
    return totals


class StockLedgerService:

    @staticmethod
    def _write_with_retry(item_id, mutate, extras=None):
        """
        读取库存行 -> 修改 -> 提交 (带行版本校验)
        版本冲突时重新读取并重做修改，超过 STOCK_WRITE_RETRIES 次后抛出 ConcurrencyConflict。
        :param mutate: fn(item) -> 任意结果，在内存中修改 item
        :param extras: fn(item) -> [(collection, record)]，与库存行同一次提交
        :return: (item, mutate 结果, 附带写入的记录) ；物料不存在时返回 None
        """
        retries = current_app.config.get('STOCK_WRITE_RETRIES', 3)
        attempt = 0
        while True:
            item = RecordStore.get('stock_items', item_id)
            if item is None:
                return None
            outcome = mutate(item)
            pairs = [('stock_items', item)] + (extras(item) if extras else [])
            try:
                saved = RecordStore.save_many(pairs)
                return item, outcome, saved[1:]
            except ConcurrencyConflict:
                attempt += 1
                if attempt > retries:
                    logger.error(f"物料 #{item_id} 版本冲突重试 {retries} 次后放弃")
                    raise
                logger.warning(f"物料 #{item_id} 版本冲突，第 {attempt} 次重试")

    @staticmethod
    def reserve(components, project_name=None, replay_key=None, owner_id=None):
        """
        销售确认时预留物料：只增加 reserved_quantity，不动 quantity
        :param components: [{'item_id': 1, 'quantity': 20}, ...]
        """
        results = []
        for item_id, qty in sum_lines(components).items():
            step = f"reserve:{item_id}"
            if StepJournal.is_done(replay_key, step):
                logger.debug(f"{replay_key} 步骤 {step} 已完成，跳过")
                item = RecordStore.get('stock_items', item_id)
                if item is not None:
                    results.append(ReservationResult(
                        item_id, item.reserved_quantity, item.reserved_quantity,
                        StockLedgerService._reservation_check(item, project_name, owner_id), True
                    ))
                continue

            def _reserve(item, qty=qty):
                before = item.reserved_quantity or 0
                item.reserved_quantity = max(0, before + qty)
                return before

            written = StockLedgerService._write_with_retry(
                item_id, _reserve, lambda item, step=step: StepJournal.marker(replay_key, step)
            )
            if written is None:
                logger.warning(f"预留时物料 #{item_id} 不存在，已跳过")
                continue
            item, before, _ = written

            request = StockLedgerService._reservation_check(item, project_name, owner_id)
            results.append(ReservationResult(item.id, before, item.reserved_quantity, request, False))
        return results

    @staticmethod
    def _reservation_check(item, project_name, owner_id):
        if not current_app.config.get('REPLENISH_ON_RESERVATION', True):
            return None
        return ReplenishmentPlanner.check(
            item, item.available_quantity, project_name,
            trigger=ReplenishmentPlanner.TRIGGER_RESERVATION, owner_id=owner_id
        )

    @staticmethod
    def apply_deduction(consumed, reserved, project_name, origin_kind,
                        origin_record_id=None, replay_key=None, owner_id=None):
        """
        完工扣减：实际消耗扣 quantity，原预留释放 reserved_quantity，两者各自截断到 0。
        每个物料单独提交 (库存行 + 出库流水 + 步骤日志)，随后做补货检查。
        :param consumed: 实际消耗 [{'item_id', 'quantity'}]
        :param reserved: 需释放的预留 (仅 check-out 有，维护为空)
        """
        consumed_totals = sum_lines(consumed)
        reserved_totals = sum_lines(reserved)
        involved = list(consumed_totals)
        involved += [i for i in reserved_totals if i not in consumed_totals]

        results = []
        for item_id in involved:
            consumed_qty = consumed_totals.get(item_id, 0)
            reserved_qty = reserved_totals.get(item_id, 0)
            step = f"deduct:{item_id}"

            if StepJournal.is_done(replay_key, step):
                logger.debug(f"{replay_key} 步骤 {step} 已完成，跳过")
                item = RecordStore.get('stock_items', item_id)
                if item is not None:
                    request = ReplenishmentPlanner.check(item, item.quantity, project_name, owner_id=owner_id)
                    results.append(DeductionResult(
                        item_id, item.quantity, item.quantity,
                        item.reserved_quantity, item.reserved_quantity,
                        consumed_qty, reserved_qty, None, request, True
                    ))
                continue

            def _deduct(item, consumed_qty=consumed_qty, reserved_qty=reserved_qty):
                before = (item.quantity or 0, item.reserved_quantity or 0)
                item.quantity = max(0, before[0] - consumed_qty)
                item.reserved_quantity = max(0, before[1] - reserved_qty)
                return before

            def _extras(item, consumed_qty=consumed_qty, step=step):
                pairs = []
                if consumed_qty > 0:
                    movement = MovementRecorder.build_outbound(
                        item, consumed_qty, project_name, origin_kind, origin_record_id, owner_id
                    )
                    pairs.append(('stock_movements', movement))
                return pairs + StepJournal.marker(replay_key, step)

            written = StockLedgerService._write_with_retry(item_id, _deduct, _extras)
            if written is None:
                logger.warning(f"扣减时物料 #{item_id} 不存在，已跳过")
                continue
            item, (quantity_before, reserved_before), extra_saved = written
            movement = extra_saved[0] if consumed_qty > 0 else None

            request = ReplenishmentPlanner.check(item, item.quantity, project_name, owner_id=owner_id)
            results.append(DeductionResult(
                item.id, quantity_before, item.quantity,
                reserved_before, item.reserved_quantity,
                consumed_qty, reserved_qty, movement, request, False
            ))
        return results

    @staticmethod
    def reservations_for(item_id):
        """当前预留了该物料的已成交 check-in"""
        reservations = []
        checkins = RecordStore.query('checkin_records').filter_by(status=FieldRecord.STATUS_CONFIRMED).all()
        for checkin in checkins:
            qty = sum_lines(checkin.component_lines()).get(int(item_id))
            if qty:
                reservations.append({
                    'record_id': checkin.id,
                    'client_name': checkin.project or 'Unidentified client',
                    'quantity': qty,
                    'date': checkin.date.isoformat() if checkin.date else None,
                })
        return reservations

    @staticmethod
    def inventory_summary():
        items = RecordStore.get_all('stock_items')
        return {
            'items': len(items),
            'total_value': round(sum(i.total_value for i in items), 2),
            'below_minimum': [i.id for i in items if i.is_below_minimum],
            'total_reserved': sum(i.reserved_quantity or 0 for i in items),
        }

    # ------------------------------------------------------------------
    # 物料目录维护
    # ------------------------------------------------------------------

    EDITABLE_FIELDS = ('name', 'ncm', 'unit', 'description', 'quantity',
                       'min_quantity', 'average_price', 'is_fixed_in_budget')
    NUMERIC_FIELDS = ('quantity', 'min_quantity', 'average_price')

    @staticmethod
    def save_item(data, owner_id=None, item_id=None):
        """新建或修改物料 (目录维护，不产生流水)"""
        name = (data.get('name') or '').strip()
        if (item_id is None or 'name' in data) and not name:
            raise ValidationError("Item name is required")
        numbers = {
            field: validate_non_negative_number(data[field], field)
            for field in StockLedgerService.NUMERIC_FIELDS if field in data
        }

        if item_id is not None:
            item = RecordStore.get('stock_items', item_id)
            if item is None:
                raise NotFound(f"Stock item #{item_id} not found")
        else:
            item = StockItem(owner_id=owner_id, reserved_quantity=0)

        for field in StockLedgerService.EDITABLE_FIELDS:
            if field in data:
                value = numbers.get(field, data[field])
                if field == 'name':
                    value = name
                setattr(item, field, value)
        return RecordStore.save('stock_items', item)

    @staticmethod
    def delete_item(item_id):
        item = RecordStore.get('stock_items', item_id)
        if item is None:
            raise NotFound(f"Stock item #{item_id} not found")
        if (item.reserved_quantity or 0) > 0:
            raise ValidationError("Item has active reservations and cannot be removed")
        if item.price_history or RecordStore.query('stock_movements').filter_by(item_id=item.id).first():
            raise ValidationError("Item has stock history and cannot be removed")
        return RecordStore.delete('stock_items', item_id)
