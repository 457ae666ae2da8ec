"""现场记录模型：check-in / check-out / 维护"""
from datetime import datetime
from fieldops.extensions import db
from .base import BaseModel


class FieldRecord(BaseModel):
    """
    现场记录 (单表，按 kind 区分三种记录)
    components 为本记录关联的物料：check-in 中表示预留量，
    check-out / 维护中表示实际消耗量。
    """
    __tablename__ = 'field_records'

    KIND_CHECKIN = 'checkin'
    KIND_CHECKOUT = 'checkout'
    KIND_MAINTENANCE = 'maintenance'

    STATUS_OPEN = 'open'            # 进行中
    STATUS_CONFIRMED = 'confirmed'  # 已成交 (仅 check-in)
    STATUS_LOST = 'lost'            # 已丢单 (仅 check-in)
    STATUS_FINALIZED = 'finalized'  # 已完结

    STATUSES = (STATUS_OPEN, STATUS_CONFIRMED, STATUS_LOST, STATUS_FINALIZED)

    # 合法状态流转: {当前状态: {目标状态}}，子类覆盖
    TRANSITIONS = {}

    kind = db.Column(db.String(20), nullable=False, index=True)
    owner_id = db.Column(db.String(64), index=True)

    project = db.Column(db.String(128), index=True)  # 客户 / 站点名称
    responsible = db.Column(db.String(64))
    date = db.Column(db.DateTime, default=datetime.utcnow)
    status = db.Column(db.String(20), default=STATUS_OPEN, nullable=False, index=True)

    # 由 check-in 自动生成的 check-out 指向原 check-in
    linked_record_id = db.Column(db.Integer, db.ForeignKey('field_records.id'), index=True)

    # 表单层收集的检查项答案，引擎不解析
    details = db.Column(db.JSON, default=dict)

    components = db.relationship(
        'FieldRecordComponent',
        backref='record',
        order_by='FieldRecordComponent.position',
        cascade='all, delete-orphan',
    )
    linked_record = db.relationship('FieldRecord', remote_side='FieldRecord.id')

    __mapper_args__ = {
        'polymorphic_on': kind,
        'polymorphic_identity': 'field_record',
    }

    def can_transition(self, target):
        return target in self.TRANSITIONS.get(self.status, ())

    def component_lines(self):
        """返回 [{'item_id', 'item_name', 'quantity'}]，保持录入顺序"""
        return [c.to_line() for c in self.components]

    def set_components(self, lines):
        """整体替换物料清单"""
        self.components = [
            FieldRecordComponent(
                item_id=int(line['item_id']),
                item_name=line.get('item_name'),
                quantity=float(line.get('quantity') or 0),
                position=idx,
            )
            for idx, line in enumerate(lines)
        ]

    def to_dict(self):
        data = super().to_dict()
        data['components_used'] = self.component_lines()
        return data


class CheckIn(FieldRecord):
    """现场勘查 (销售前)"""
    TRANSITIONS = {
        FieldRecord.STATUS_OPEN: {FieldRecord.STATUS_CONFIRMED, FieldRecord.STATUS_LOST},
    }
    __mapper_args__ = {'polymorphic_identity': FieldRecord.KIND_CHECKIN}


class CheckOut(FieldRecord):
    """安装完工交付"""
    TRANSITIONS = {
        FieldRecord.STATUS_OPEN: {FieldRecord.STATUS_FINALIZED},
    }
    __mapper_args__ = {'polymorphic_identity': FieldRecord.KIND_CHECKOUT}


class Maintenance(FieldRecord):
    """单次维护"""
    TRANSITIONS = {
        FieldRecord.STATUS_OPEN: {FieldRecord.STATUS_FINALIZED},
    }
    __mapper_args__ = {'polymorphic_identity': FieldRecord.KIND_MAINTENANCE}


class FieldRecordComponent(db.Model):
    """现场记录物料明细"""
    __tablename__ = 'field_record_components'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    record_id = db.Column(db.Integer, db.ForeignKey('field_records.id'), nullable=False, index=True)
    item_id = db.Column(db.Integer, nullable=False, index=True)  # 对应 stock_items.id，不加外键以允许物料下架
    item_name = db.Column(db.String(128))
    quantity = db.Column(db.Float, default=0)
    position = db.Column(db.Integer, default=0)

    def to_line(self):
        return {'item_id': self.item_id, 'item_name': self.item_name, 'quantity': self.quantity}


RECORD_CLASSES = {
    FieldRecord.KIND_CHECKIN: CheckIn,
    FieldRecord.KIND_CHECKOUT: CheckOut,
    FieldRecord.KIND_MAINTENANCE: Maintenance,
}
