from flask import Blueprint

# 注意：url_prefix 在 fieldops/__init__.py 注册时设置，这里不重复设置
field_bp = Blueprint('field', __name__)

from . import routes
