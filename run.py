import os
from fieldops import create_app
from fieldops.extensions import db
from fieldops.models import (
    StockItem, StockMovement, PriceHistory,
    FieldRecord, CheckIn, CheckOut, Maintenance,
    PurchaseRequest, SalesQuote, TransitionStep
)
from fieldops.services.workflow_service import FieldRecordWorkflow

# 从环境变量获取配置模式
# 支持 FLASK_ENV 或 FLASK_CONFIG
config_name = os.getenv('FLASK_ENV') or os.getenv('FLASK_CONFIG') or 'default'
if config_name in ('development', 'dev'):
    config_name = 'development'

app = create_app(config_name)


@app.shell_context_processor
def make_shell_context():
    """
    配置 Flask Shell 上下文。
    允许在命令行中使用 'flask shell' 时自动导入 db、模型和流转服务。
    """
    return dict(
        db=db,
        app=app,
        StockItem=StockItem,
        StockMovement=StockMovement,
        PriceHistory=PriceHistory,
        FieldRecord=FieldRecord,
        CheckIn=CheckIn,
        CheckOut=CheckOut,
        Maintenance=Maintenance,
        PurchaseRequest=PurchaseRequest,
        SalesQuote=SalesQuote,
        TransitionStep=TransitionStep,
        workflow=FieldRecordWorkflow,
    )


if __name__ == '__main__':
    app.run(host='0.0.0.0', port=5000)
