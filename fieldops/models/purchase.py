"""采购申请模型"""
from datetime import datetime
from fieldops.extensions import db
from .base import BaseModel


class PurchaseRequest(BaseModel):
    """采购申请"""
    __tablename__ = 'purchase_requests'

    STATUS_PENDING = 'pending'        # 待处理
    STATUS_APPROVED = 'approved'      # 已审批
    STATUS_PURCHASED = 'purchased'    # 已下单
    STATUS_IN_TRANSIT = 'in_transit'  # 运输中
    STATUS_DONE = 'done'              # 已入库
    STATUS_CANCELLED = 'cancelled'    # 已取消

    CLOSED_STATUSES = (STATUS_DONE, STATUS_CANCELLED)

    PRIORITY_LOW = 'low'
    PRIORITY_MEDIUM = 'medium'
    PRIORITY_HIGH = 'high'

    TYPE_REPLENISHMENT = 'replenishment'  # 补货
    TYPE_ONE_OFF = 'one_off'              # 临时采购

    owner_id = db.Column(db.String(64), index=True)

    # item_id 为稳定关联；item_name 保留用于按名称匹配的旧数据
    item_id = db.Column(db.Integer, index=True)
    item_name = db.Column(db.String(128), nullable=False, index=True)
    quantity = db.Column(db.Float, nullable=False)
    unit = db.Column(db.String(16), default='un')

    requester = db.Column(db.String(64))
    date = db.Column(db.DateTime, default=datetime.utcnow)
    priority = db.Column(db.String(10), default=PRIORITY_MEDIUM)
    status = db.Column(db.String(20), default=STATUS_PENDING, index=True)

    client_name = db.Column(db.String(128))
    purchase_type = db.Column(db.String(20), default=TYPE_ONE_OFF)
    purchase_link = db.Column(db.String(255))
    note = db.Column(db.Text)
    invoice_number = db.Column(db.String(64))

    @property
    def is_open(self):
        return self.status not in self.CLOSED_STATUSES
