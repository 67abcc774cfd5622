"""
Helpers called from generated program text as `__nako.<name>`.
"""

from typing import Any


def to_str(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'はい' if value else 'いいえ'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ','.join(to_str(v) for v in value)
    return str(value)


def concat(a: Any, b: Any) -> str:
    return to_str(a) + to_str(b)


def to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value != ''
    return bool(value)


def to_int(value: Any) -> int:
    if isinstance(value, str):
        return int(float(value))
    return int(value)


def count_range(start: Any, end: Any) -> range:
    """Inclusive range counting up or down by one."""
    start, end = to_int(start), to_int(end)
    step = 1 if start <= end else -1
    return range(start, end + step, step)
