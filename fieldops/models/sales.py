from datetime import datetime
from fieldops.extensions import db
from .base import BaseModel


class SalesQuote(BaseModel):
    """销售报价 (报价计算器生成，引擎只读取并在完工时标记完结)"""
    __tablename__ = 'sales_quotes'

    STATUS_OPEN = 'open'
    STATUS_APPROVED = 'approved'
    STATUS_FINALIZED = 'finalized'
    STATUS_STALLED = 'stalled'
    STATUS_LOST = 'lost'

    owner_id = db.Column(db.String(64), index=True)
    client_name = db.Column(db.String(128), index=True)
    status = db.Column(db.String(20), default=STATUS_OPEN, index=True)
    closed_value = db.Column(db.Float, default=0.0)
    saved_at = db.Column(db.DateTime, default=datetime.utcnow)
