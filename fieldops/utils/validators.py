"""
请求数据校验
"""
from datetime import datetime
from fieldops.exceptions import ValidationError


def parse_components(lines):
    """
    校验物料清单
    :param lines: [{'item_id': 1, 'item_name': 'panel', 'quantity': 20}, ...]
    :return: 规范化后的列表
    """
    if lines is None:
        return []
    if not isinstance(lines, list):
        raise ValidationError("components_used must be a list")

    parsed = []
    for idx, line in enumerate(lines):
        if not isinstance(line, dict) or line.get('item_id') in (None, ''):
            raise ValidationError("Each component needs an item_id", payload={'line': idx})
        try:
            item_id = int(line['item_id'])
            quantity = float(line.get('quantity') or 0)
        except (TypeError, ValueError):
            raise ValidationError("Component item_id and quantity must be numeric", payload={'line': idx})
        if quantity < 0:
            raise ValidationError("Component quantity cannot be negative", payload={'line': idx})
        parsed.append({'item_id': item_id, 'item_name': line.get('item_name'), 'quantity': quantity})
    return parsed


def parse_datetime(value, default=None):
    """解析 ISO 日期 (YYYY-MM-DD 或完整时间戳)"""
    if value in (None, ''):
        return default
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00')).replace(tzinfo=None)
    except ValueError:
        raise ValidationError(f"Invalid date: {value}")


def parse_bool(value):
    if isinstance(value, bool):
        return value
    return str(value or '').lower() in ('1', 'true', 'yes', 'on')


def validate_positive_number(value, field):
    """验证正数"""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number", payload={'field': field})
    if number <= 0:
        raise ValidationError(f"{field} must be greater than 0", payload={'field': field})
    return number


def validate_non_negative_number(value, field):
    """验证非负数 (允许 0)"""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number", payload={'field': field})
    if number < 0:
        raise ValidationError(f"{field} cannot be negative", payload={'field': field})
    return number
