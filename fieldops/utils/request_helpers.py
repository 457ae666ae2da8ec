from flask import request
from fieldops.utils.validators import parse_bool


def json_body():
    return request.get_json(silent=True) or {}


def request_owner():
    """操作人 (认证由外部负责，这里只读取 X-Owner-Id 头或 owner_id 参数)"""
    return request.headers.get('X-Owner-Id') or request.args.get('owner_id') or json_body().get('owner_id')


def include_all_owners():
    return parse_bool(request.args.get('all_owners'))
