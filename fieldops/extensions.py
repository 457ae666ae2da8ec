from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# 初始化扩展对象 (暂不绑定 app)
db = SQLAlchemy()
migrate = Migrate()
