from fieldops.extensions import db
from .base import BaseModel


class TransitionStep(BaseModel):
    """
    状态流转步骤日志
    replay_key = "<collection>:<record_id>:<target_status>"
    已记录的步骤在重试时跳过，避免重复预留/扣减。
    """
    __tablename__ = 'workflow_steps'
    __table_args__ = (
        db.UniqueConstraint('replay_key', 'step', name='uq_workflow_step'),
    )

    replay_key = db.Column(db.String(96), nullable=False, index=True)
    step = db.Column(db.String(64), nullable=False)
