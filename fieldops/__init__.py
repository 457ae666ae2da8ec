import logging
import colorlog
from flask import Flask, jsonify
from config import config
from fieldops.extensions import db, migrate
from fieldops.exceptions import FieldOpsException

# 导入 commands 模块，用于注册 CLI 命令
from fieldops import commands


def create_app(config_name='default'):
    """FieldOps 应用工厂函数"""
    app = Flask(__name__)

    # 1. 加载配置
    app.config.from_object(config[config_name])
    config[config_name].init_app(app)

    # 2. 初始化扩展
    db.init_app(app)
    migrate.init_app(app, db)

    # 3. 配置日志
    configure_logging(app)

    # 4. 注册蓝图 (Blueprints)
    register_blueprints(app)

    # 5. 注册全局错误处理
    register_error_handlers(app)

    # 6. 注册 CLI 命令
    register_commands(app)

    return app


def register_blueprints(app):
    """注册所有业务模块蓝图"""
    # 现场记录 (check-in / check-out / 维护)
    from fieldops.blueprints.field import field_bp
    app.register_blueprint(field_bp, url_prefix='/field')

    # 库存
    from fieldops.blueprints.inventory import inventory_bp
    app.register_blueprint(inventory_bp, url_prefix='/inventory')

    # 采购申请
    from fieldops.blueprints.purchase import purchase_bp
    app.register_blueprint(purchase_bp, url_prefix='/purchase')


def register_error_handlers(app):
    @app.errorhandler(FieldOpsException)
    def handle_fieldops_exception(e):
        if e.code >= 500:
            app.logger.error(f"{type(e).__name__}: {e.message}")
        return jsonify(e.to_dict()), e.code

    @app.errorhandler(404)
    def page_not_found(e):
        return jsonify({'success': False, 'code': 404, 'message': 'Not found'}), 404

    @app.errorhandler(500)
    def internal_server_error(e):
        return jsonify({'success': False, 'code': 500, 'message': 'Internal server error'}), 500


def register_commands(app):
    """注册 Flask CLI 命令"""
    app.cli.add_command(commands.forge)
    app.cli.add_command(commands.status)
    app.cli.add_command(commands.check_stock)


def configure_logging(app):
    """配置日志：开发环境彩色控制台输出，其余环境使用普通格式"""
    level = logging.getLevelName(app.config.get('LOG_LEVEL', 'INFO'))
    handler = logging.StreamHandler()
    handler.setLevel(level)

    if app.debug:
        formatter = colorlog.ColoredFormatter(
            "%(log_color)s[%(asctime)s] %(levelname)-8s%(reset)s %(blue)s%(message)s",
            datefmt="%H:%M:%S",
            reset=True,
            log_colors={
                'DEBUG':    'cyan',
                'INFO':     'green',
                'WARNING':  'yellow',
                'ERROR':    'red',
                'CRITICAL': 'red,bg_white',
            },
            secondary_log_colors={},
            style='%'
        )
    else:
        formatter = logging.Formatter("[%(asctime)s] %(levelname)-8s %(name)s: %(message)s", datefmt="%H:%M:%S")
    handler.setFormatter(formatter)

    # app.logger 即 'fieldops'，服务层的 fieldops.* logger 向上传递到这里
    package_logger = logging.getLogger('fieldops')
    package_logger.setLevel(level)
    if not any(getattr(h, '_fieldops_handler', False) for h in package_logger.handlers):
        handler._fieldops_handler = True
        package_logger.addHandler(handler)
