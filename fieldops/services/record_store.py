"""通用记录存储：按集合名读写所有实体"""
import logging
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError
from fieldops.extensions import db
from fieldops.exceptions import StoreError, UnknownCollection, ConcurrencyConflict
from fieldops.models import (
    CheckIn, CheckOut, Maintenance, StockItem, StockMovement,
    PurchaseRequest, SalesQuote, TransitionStep
)

logger = logging.getLogger(__name__)


COLLECTIONS = {
    'checkin_records': CheckIn,
    'checkout_records': CheckOut,
    'maintenance_records': Maintenance,
    'stock_items': StockItem,
    'stock_movements': StockMovement,
    'purchase_requests': PurchaseRequest,
    'sales_quotes': SalesQuote,
    'workflow_steps': TransitionStep,
}

# 按 owner 隔离的集合，其余集合所有技术员共享
PRIVATE_COLLECTIONS = {'purchase_requests', 'sales_quotes'}


class RecordStore:
    """
    每次 save / save_many / delete 都单独提交。
    多步操作之间没有分布式事务：中途失败时之前的提交保留。
    """

    @staticmethod
    def model_for(collection):
        model = COLLECTIONS.get(collection)
        if model is None:
            raise UnknownCollection(collection)
        return model

    @staticmethod
    def query(collection):
        return RecordStore.model_for(collection).query

    @staticmethod
    def get_all(collection, owner_id=None, include_all_owners=False):
        """返回集合全部记录；私有集合在非管理员视角下按 owner 过滤"""
        query = RecordStore.query(collection)
        if owner_id and not include_all_owners and collection in PRIVATE_COLLECTIONS:
            query = query.filter_by(owner_id=owner_id)
        try:
            return query.order_by(RecordStore.model_for(collection).id.asc()).all()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"读取 {collection} 失败: {e}")
            raise StoreError(payload={'collection': collection}) from e

    @staticmethod
    def get(collection, record_id):
        model = RecordStore.model_for(collection)
        if record_id is None:
            return None
        try:
            record = db.session.get(model, int(record_id))
        except (TypeError, ValueError):
            return None
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"读取 {collection}#{record_id} 失败: {e}")
            raise StoreError(payload={'collection': collection}) from e
        # 单表继承：同一 id 可能属于另一种现场记录
        return record if isinstance(record, model) else None

    @staticmethod
    def save(collection, record):
        """按 id upsert：不存在则新建，存在则覆盖"""
        return RecordStore.save_many([(collection, record)])[0]

    @staticmethod
    def save_many(pairs):
        """
        在同一次提交中写入多条记录
        :param pairs: [(collection, record), ...]
        """
        saved = []
        for collection, record in pairs:
            model = RecordStore.model_for(collection)
            if not isinstance(record, model):
                raise UnknownCollection(f"{collection} ({type(record).__name__})")
            if record.id is not None and record not in db.session:
                record = db.session.merge(record)
            else:
                db.session.add(record)
            saved.append(record)
        RecordStore._commit([c for c, _ in pairs])
        return saved

    @staticmethod
    def delete(collection, record_id):
        record = RecordStore.get(collection, record_id)
        if record is None:
            return False
        db.session.delete(record)
        RecordStore._commit([collection])
        return True

    @staticmethod
    def _commit(collections):
        try:
            db.session.commit()
        except StaleDataError as e:
            db.session.rollback()
            logger.warning(f"版本冲突 {collections}: {e}")
            raise ConcurrencyConflict() from e
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"写入 {collections} 失败: {e}")
            raise StoreError(payload={'collections': collections}) from e
