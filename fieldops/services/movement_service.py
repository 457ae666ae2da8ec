"""库存流水记录"""
from datetime import datetime
from fieldops.models.stock import StockMovement
from fieldops.models.field import FieldRecord
from fieldops.services.record_store import RecordStore


ORIGIN_LABELS = {
    FieldRecord.KIND_CHECKOUT: 'installation',
    FieldRecord.KIND_MAINTENANCE: 'maintenance',
}


class MovementRecorder:
    """只追加的流水日志，不提供修改和删除"""

    @staticmethod
    def build_outbound(item, quantity, project_name, origin_kind, origin_record_id=None, owner_id=None):
        """
        构造出库流水（不提交），由调用方与库存行在同一次提交中写入
        """
        label = ORIGIN_LABELS.get(origin_kind, origin_kind)
        return StockMovement(
            owner_id=owner_id,
            item_id=item.id,
            quantity=quantity,
            move_type=StockMovement.TYPE_OUT,
            date=datetime.utcnow(),
            project_name=project_name,
            note=f"Final consumption on {label} finalization: {project_name}",
            origin_kind=origin_kind,
            origin_record_id=origin_record_id,
        )

    @staticmethod
    def build_inbound(item, quantity, note, owner_id=None):
        return StockMovement(
            owner_id=owner_id,
            item_id=item.id,
            quantity=quantity,
            move_type=StockMovement.TYPE_IN,
            date=datetime.utcnow(),
            note=note,
        )

    @staticmethod
    def history(item_id=None, move_type=None):
        """流水查询，最新在前"""
        query = RecordStore.query('stock_movements')
        if item_id is not None:
            query = query.filter_by(item_id=item_id)
        if move_type:
            query = query.filter_by(move_type=move_type)
        return query.order_by(StockMovement.date.desc(), StockMovement.id.desc()).all()
