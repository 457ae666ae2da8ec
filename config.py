import os
from dotenv import load_dotenv

# 加载 .env 环境变量
load_dotenv()
basedir = os.path.abspath(os.path.dirname(__file__))


def _env_flag(name, default):
    return os.environ.get(name, default).lower() in ('1', 'true', 'yes')


class Config:
    """基础配置类"""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'hard-to-guess-string'

    # 数据库配置
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_RECORD_QUERIES = True

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # 补货配置
    # 销售确认（预留）时按未来库存 (quantity - reserved) 检查是否需要补货
    REPLENISH_ON_RESERVATION = _env_flag('REPLENISH_ON_RESERVATION', 'true')
    REPLENISHMENT_REQUESTER = os.environ.get('REPLENISHMENT_REQUESTER', 'FieldOps (auto)')

    # 库存行乐观锁冲突时的重试次数
    STOCK_WRITE_RETRIES = int(os.environ.get('STOCK_WRITE_RETRIES', 3))

    @staticmethod
    def init_app(app):
        # 确保 sqlite 实例目录存在
        instance_dir = os.path.join(basedir, 'instance')
        if not os.path.exists(instance_dir):
            os.makedirs(instance_dir)


class DevelopmentConfig(Config):
    """开发环境配置"""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'fieldops.db')


class ProductionConfig(Config):
    """生产环境配置"""
    DEBUG = False

    DATABASE_URL = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'fieldops_prod.db')
    # PostgreSQL URL 修正（部分托管平台使用 postgres://）
    if DATABASE_URL and DATABASE_URL.startswith('postgres://'):
        DATABASE_URL = DATABASE_URL.replace('postgres://', 'postgresql://', 1)

    SQLALCHEMY_DATABASE_URI = DATABASE_URL

    @classmethod
    def init_app(cls, app):
        Config.init_app(app)


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    REPLENISH_ON_RESERVATION = True
    REPLENISHMENT_REQUESTER = 'FieldOps (auto)'
    STOCK_WRITE_RETRIES = 3

    @staticmethod
    def init_app(app):
        pass


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
