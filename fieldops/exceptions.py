class FieldOpsException(Exception):
    """FieldOps 系统基础异常类"""
    def __init__(self, message, code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['code'] = self.code
        rv['success'] = False
        return rv


class ValidationError(FieldOpsException):
    """业务校验失败，在任何写入之前抛出"""
    def __init__(self, message="Invalid data", payload=None):
        super().__init__(message, code=400, payload=payload)


class NotFound(FieldOpsException):
    """记录不存在"""
    def __init__(self, message="Record not found", payload=None):
        super().__init__(message, code=404, payload=payload)


class InvalidTransition(FieldOpsException):
    """非法的状态流转"""
    def __init__(self, message="Transition not allowed", payload=None):
        super().__init__(message, code=409, payload=payload)


class ConcurrencyConflict(FieldOpsException):
    """库存行乐观锁重试耗尽"""
    def __init__(self, message="Stock row changed concurrently, retry the action", payload=None):
        super().__init__(message, code=409, payload=payload)


class StoreError(FieldOpsException):
    """
    存储层写入/读取失败。
    多步流转中途失败时，已提交的写入不会回滚，调用方重试同一操作即可收敛。
    """
    def __init__(self, message="Storage failure, please retry the action", payload=None):
        payload = dict(payload or ())
        payload.setdefault('retryable', True)
        super().__init__(message, code=503, payload=payload)


class UnknownCollection(FieldOpsException):
    def __init__(self, collection):
        super().__init__(f"Unknown collection: {collection}", code=500)
        self.collection = collection
