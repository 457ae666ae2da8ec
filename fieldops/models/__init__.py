# 按照依赖顺序导入
from .base import BaseModel
from .stock import StockItem, PriceHistory, StockMovement
from .field import FieldRecord, CheckIn, CheckOut, Maintenance, FieldRecordComponent, RECORD_CLASSES
from .purchase import PurchaseRequest
from .sales import SalesQuote
from .workflow import TransitionStep
