"""
现场记录流转服务

check-in:    open -> confirmed (预留物料 + 生成 check-out) / open -> lost
check-out:   open -> finalized (扣减库存 + 关闭原 check-in + 完结报价)
maintenance: open -> finalized (扣减库存)

每次流转按固定顺序逐步读写，没有跨实体事务。已完成的步骤记录在
workflow_steps 中，失败后重试同一操作会跳过已完成步骤继续执行。
"""
import logging
from collections import namedtuple
from datetime import datetime
from sqlalchemy import func, or_
from fieldops.exceptions import ValidationError, NotFound, InvalidTransition
from fieldops.models.field import FieldRecord, CheckOut, RECORD_CLASSES
from fieldops.models.sales import SalesQuote
from fieldops.services.record_store import RecordStore
from fieldops.services.inventory_service import StockLedgerService
from fieldops.services.step_journal import StepJournal
from fieldops.utils.validators import parse_components, parse_datetime

logger = logging.getLogger(__name__)


FinalizeResult = namedtuple('FinalizeResult', ['record', 'deductions', 'quote'])

COLLECTION_BY_KIND = {
    FieldRecord.KIND_CHECKIN: 'checkin_records',
    FieldRecord.KIND_CHECKOUT: 'checkout_records',
    FieldRecord.KIND_MAINTENANCE: 'maintenance_records',
}

STEP_SPAWN_CHECKOUT = 'spawn_checkout'
STEP_CASCADE = 'cascade'


class FieldRecordWorkflow:

    @staticmethod
    def collection_for(kind):
        collection = COLLECTION_BY_KIND.get(kind)
        if collection is None:
            raise ValidationError(f"Unknown record kind: {kind}")
        return collection

    @staticmethod
    def find_record(record_id, kind=None):
        """按 id 查找现场记录；未指定 kind 时在三个集合中查找"""
        kinds = [kind] if kind else list(COLLECTION_BY_KIND)
        for k in kinds:
            record = RecordStore.get(FieldRecordWorkflow.collection_for(k), record_id)
            if record is not None:
                return record
        raise NotFound(f"Field record #{record_id} not found")

    @staticmethod
    def list_records(kind, owner_id=None, include_all_owners=False, status=None, search=None):
        """记录列表，按日期倒序"""
        collection = FieldRecordWorkflow.collection_for(kind)
        model = RecordStore.model_for(collection)
        query = RecordStore.query(collection)
        if owner_id and not include_all_owners:
            query = query.filter_by(owner_id=owner_id)
        if status:
            if status not in FieldRecord.STATUSES:
                raise ValidationError(f"Unknown status: {status}")
            query = query.filter_by(status=status)
        if search:
            keyword = f"%{search}%"
            query = query.filter(or_(model.project.ilike(keyword), model.responsible.ilike(keyword)))
        return query.order_by(model.date.desc(), model.id.desc()).all()

    @staticmethod
    def save_record(kind, data, owner_id=None, record_id=None, finalize_now=False):
        """
        新建或编辑现场记录
        新建时状态为 open；编辑保留原状态，只允许编辑 open 的记录。
        finalize_now 仅对维护记录有效：保存后立即走完工扣减流程。
        """
        collection = FieldRecordWorkflow.collection_for(kind)
        if finalize_now and kind != FieldRecord.KIND_MAINTENANCE:
            raise ValidationError("Only maintenance visits can be finalized on save")
        components = parse_components(data.get('components_used'))

        if record_id is not None:
            record = FieldRecordWorkflow.find_record(record_id, kind)
            if record.status != FieldRecord.STATUS_OPEN:
                raise ValidationError(
                    f"Record #{record.id} is {record.status} and can no longer be edited"
                )
        else:
            if kind == FieldRecord.KIND_CHECKOUT:
                raise ValidationError("Check-outs are created by confirming a check-in sale")
            record = RECORD_CLASSES[kind](owner_id=owner_id, status=FieldRecord.STATUS_OPEN)

        # 编辑时只覆盖请求中出现的字段
        if 'project' in data or record_id is None:
            record.project = (data.get('project') or '').strip() or 'Unnamed'
        if 'responsible' in data:
            record.responsible = data.get('responsible')
        record.date = parse_datetime(data.get('date'), default=record.date or datetime.utcnow())
        if 'details' in data:
            record.details = data.get('details') or {}
        if 'components_used' in data or record_id is None:
            record.set_components(FieldRecordWorkflow._with_item_names(components))

        record = RecordStore.save(collection, record)
        logger.info(f"{kind} #{record.id} 已保存 ({record.project})")

        if finalize_now:
            FieldRecordWorkflow.finalize_service(record.id, kind)
        return record

    @staticmethod
    def _with_item_names(components):
        """补全缺失的物料名称"""
        for line in components:
            if not line.get('item_name'):
                item = RecordStore.get('stock_items', line['item_id'])
                line['item_name'] = item.name if item else None
        return components

    @staticmethod
    def _ensure_transition(record, target):
        if not record.can_transition(target):
            raise InvalidTransition(
                f"{record.kind} #{record.id} cannot go from {record.status} to {target}",
                payload={'status': record.status, 'target': target},
            )

    # ------------------------------------------------------------------
    # check-in: 成交 / 丢单
    # ------------------------------------------------------------------

    @staticmethod
    def confirm_sale(checkin_id):
        """
        确认成交
        1. 逐项增加 reserved_quantity
        2. 生成 check-out (open)，物料清单复制自 check-in
        3. check-in 置为 confirmed
        :return: 生成的 CheckOut
        """
        checkin = FieldRecordWorkflow.find_record(checkin_id, FieldRecord.KIND_CHECKIN)
        FieldRecordWorkflow._ensure_transition(checkin, FieldRecord.STATUS_CONFIRMED)

        reserved = [line for line in checkin.component_lines() if line['quantity'] > 0]
        if not reserved:
            raise ValidationError(f"Check-in #{checkin.id} has no reserved components to confirm")

        key = StepJournal.replay_key('checkin_records', checkin.id, FieldRecord.STATUS_CONFIRMED)
        logger.info(f"确认成交 check-in #{checkin.id} ({checkin.project})，预留 {len(reserved)} 项物料")

        StockLedgerService.reserve(reserved, checkin.project, replay_key=key, owner_id=checkin.owner_id)
        checkout = FieldRecordWorkflow._spawn_checkout(checkin, key)

        checkin.status = FieldRecord.STATUS_CONFIRMED
        RecordStore.save('checkin_records', checkin)
        logger.info(f"check-in #{checkin.id} 已成交，生成 check-out #{checkout.id}")
        return checkout

    @staticmethod
    def _spawn_checkout(checkin, key):
        if StepJournal.is_done(key, STEP_SPAWN_CHECKOUT):
            existing = RecordStore.query('checkout_records').filter_by(linked_record_id=checkin.id).first()
            if existing is not None:
                logger.debug(f"{key} 的 check-out 已生成，复用 #{existing.id}")
                return existing

        checkout = CheckOut(
            owner_id=checkin.owner_id,
            project=checkin.project,
            responsible=checkin.responsible,
            date=datetime.utcnow(),
            status=FieldRecord.STATUS_OPEN,
            linked_record_id=checkin.id,
            details={'client_name': checkin.project},
        )
        # 复制，技术员完工前可修改实际用量
        checkout.set_components([dict(line) for line in checkin.component_lines()])
        saved = RecordStore.save_many(
            [('checkout_records', checkout)] + StepJournal.marker(key, STEP_SPAWN_CHECKOUT)
        )
        return saved[0]

    @staticmethod
    def mark_lost(checkin_id):
        """
        丢单：只改状态，不影响库存
        成交确认中途失败时物料已预留，此时拒绝丢单，需先重试确认成交。
        """
        checkin = FieldRecordWorkflow.find_record(checkin_id, FieldRecord.KIND_CHECKIN)
        FieldRecordWorkflow._ensure_transition(checkin, FieldRecord.STATUS_LOST)

        key = StepJournal.replay_key('checkin_records', checkin.id, FieldRecord.STATUS_CONFIRMED)
        reserved_steps = [s for s in StepJournal.steps(key) if s.startswith('reserve:')]
        if reserved_steps:
            raise InvalidTransition(
                f"Check-in #{checkin.id} has materials reserved by an unfinished confirmation; "
                f"retry the confirmation first",
                payload={'status': checkin.status, 'target': FieldRecord.STATUS_LOST},
            )
        checkin.status = FieldRecord.STATUS_LOST
        RecordStore.save('checkin_records', checkin)
        logger.info(f"check-in #{checkin.id} 标记为丢单")
        return checkin

    # ------------------------------------------------------------------
    # check-out / 维护: 完工
    # ------------------------------------------------------------------

    @staticmethod
    def finalize_service(record_id, kind=None):
        """
        完工
        1. 扣减库存：本记录物料为实际消耗；check-out 另以原 check-in 物料释放预留
        2. 本记录置为 finalized
        3. check-out：原 check-in 置为 finalized，按客户名匹配报价并完结 (匹配不到不报错)
        """
        record = FieldRecordWorkflow.find_record(record_id, kind)
        if record.kind not in (FieldRecord.KIND_CHECKOUT, FieldRecord.KIND_MAINTENANCE):
            raise InvalidTransition(
                f"{record.kind} #{record.id} cannot be finalized",
                payload={'status': record.status, 'target': FieldRecord.STATUS_FINALIZED},
            )

        collection = FieldRecordWorkflow.collection_for(record.kind)
        key = StepJournal.replay_key(collection, record.id, FieldRecord.STATUS_FINALIZED)
        is_checkout = record.kind == FieldRecord.KIND_CHECKOUT

        # check-out 已完结但级联未完成：上次在级联阶段失败，继续执行
        resuming = (
            is_checkout
            and record.status == FieldRecord.STATUS_FINALIZED
            and not StepJournal.is_done(key, STEP_CASCADE)
        )
        if not resuming:
            FieldRecordWorkflow._ensure_transition(record, FieldRecord.STATUS_FINALIZED)

        checkin = None
        reserved = []
        if is_checkout:
            checkin = RecordStore.get('checkin_records', record.linked_record_id)
            if checkin is None:
                raise ValidationError(
                    f"Check-out #{record.id} has no linked check-in to reconcile reservations",
                    payload={'linked_record_id': record.linked_record_id},
                )
            reserved = checkin.component_lines()

        deductions = []
        if not resuming:
            logger.info(f"完工 {record.kind} #{record.id} ({record.project})")
            deductions = StockLedgerService.apply_deduction(
                record.component_lines(), reserved, record.project, record.kind,
                origin_record_id=record.id, replay_key=key, owner_id=record.owner_id,
            )
            record.status = FieldRecord.STATUS_FINALIZED
            RecordStore.save(collection, record)

        quote = None
        if is_checkout:
            if checkin.status != FieldRecord.STATUS_FINALIZED:
                checkin.status = FieldRecord.STATUS_FINALIZED
                RecordStore.save('checkin_records', checkin)
            quote = FieldRecordWorkflow._finalize_quote(record.project, key)

        logger.info(f"{record.kind} #{record.id} 已完结，涉及 {len(deductions)} 项物料")
        return FinalizeResult(record, deductions, quote)

    @staticmethod
    def _finalize_quote(client_name, key):
        """按客户名 (忽略大小写和首尾空格) 完结最近的一张报价，匹配不到只记录日志"""
        name = (client_name or '').strip().lower()
        quote = None
        if name:
            quote = RecordStore.query('sales_quotes').filter(
                func.lower(func.trim(SalesQuote.client_name)) == name,
                SalesQuote.status.notin_([SalesQuote.STATUS_FINALIZED, SalesQuote.STATUS_LOST]),
            ).order_by(SalesQuote.saved_at.desc(), SalesQuote.id.desc()).first()

        pairs = []
        if quote is None:
            logger.info(f"未找到客户 '{client_name}' 的报价，跳过报价完结")
        else:
            quote.status = SalesQuote.STATUS_FINALIZED
            pairs.append(('sales_quotes', quote))
        pairs += StepJournal.marker(key, STEP_CASCADE)
        if pairs:
            RecordStore.save_many(pairs)
        return quote
