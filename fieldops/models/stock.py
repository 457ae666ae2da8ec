from datetime import datetime
from fieldops.extensions import db
from .base import BaseModel


class StockItem(BaseModel):
    """
    库存物料 (SKU)
    quantity 为实物在库量，仅在消耗时扣减；
    reserved_quantity 为软预留量，不从 quantity 中扣除，只在完工时对账释放。
    两者始终 >= 0。
    """
    __tablename__ = 'stock_items'

    owner_id = db.Column(db.String(64), index=True)
    name = db.Column(db.String(128), nullable=False, index=True)
    ncm = db.Column(db.String(16))  # 税务编码
    unit = db.Column(db.String(16), default='un')
    description = db.Column(db.Text)

    quantity = db.Column(db.Float, default=0, nullable=False)
    reserved_quantity = db.Column(db.Float, default=0, nullable=False)
    min_quantity = db.Column(db.Float, default=5, nullable=False)  # 补货阈值
    average_price = db.Column(db.Float, default=0.0)
    is_fixed_in_budget = db.Column(db.Boolean, default=False)

    # 行版本号 (乐观锁)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    price_history = db.relationship(
        'PriceHistory',
        backref='item',
        order_by='PriceHistory.date',
        cascade='all, delete-orphan',
    )

    __mapper_args__ = {'version_id_col': version_id}

    @property
    def available_quantity(self):
        """未来库存 = 在库 - 预留 (仅用于展示，可为负)"""
        return (self.quantity or 0) - (self.reserved_quantity or 0)

    @property
    def total_value(self):
        return (self.quantity or 0) * (self.average_price or 0)

    @property
    def is_below_minimum(self):
        return (self.quantity or 0) < (self.min_quantity or 0)

    def to_dict(self):
        data = super().to_dict()
        data['available_quantity'] = self.available_quantity
        data['total_value'] = round(self.total_value, 2)
        data['is_below_minimum'] = self.is_below_minimum
        return data


class PriceHistory(BaseModel):
    """采购入库价格历史"""
    __tablename__ = 'stock_price_history'

    item_id = db.Column(db.Integer, db.ForeignKey('stock_items.id'), nullable=False, index=True)
    date = db.Column(db.DateTime, default=datetime.utcnow)
    price = db.Column(db.Float, nullable=False)
    invoice_number = db.Column(db.String(64))


class StockMovement(BaseModel):
    """
    库存流水 (只追加，不修改不删除)
    出库流水仅在完工实际扣减时写入，预留不产生流水。
    """
    __tablename__ = 'stock_movements'

    TYPE_OUT = 'outbound'  # 出库 (完工消耗)
    TYPE_IN = 'inbound'    # 入库 (采购收货)

    owner_id = db.Column(db.String(64), index=True)
    item_id = db.Column(db.Integer, db.ForeignKey('stock_items.id'), nullable=False, index=True)
    quantity = db.Column(db.Float, nullable=False)
    move_type = db.Column(db.String(20), default=TYPE_OUT, index=True)
    date = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    project_name = db.Column(db.String(128))
    note = db.Column(db.String(255))

    # 来源单据
    origin_kind = db.Column(db.String(20))
    origin_record_id = db.Column(db.Integer, index=True)

    item = db.relationship('StockItem')
