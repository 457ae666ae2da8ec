from fieldops.models.workflow import TransitionStep
from fieldops.services.record_store import RecordStore


class StepJournal:
    """流转步骤日志：重试时跳过已完成的步骤"""

    @staticmethod
    def replay_key(collection, record_id, target_status):
        return f"{collection}:{record_id}:{target_status}"

    @staticmethod
    def is_done(replay_key, step):
        if not replay_key:
            return False
        return RecordStore.query('workflow_steps').filter_by(
            replay_key=replay_key, step=step
        ).first() is not None

    @staticmethod
    def marker(replay_key, step):
        """返回待写入的步骤记录；无 replay_key 时返回空列表"""
        if not replay_key:
            return []
        return [('workflow_steps', TransitionStep(replay_key=replay_key, step=step))]

    @staticmethod
    def steps(replay_key):
        return [s.step for s in RecordStore.query('workflow_steps').filter_by(replay_key=replay_key).all()]
