from __future__ import annotations

import json
from typing import Any

import yaml


def _to_builtin(obj: Any) -> Any:
    # Tokens and AST nodes know how to flatten themselves
    if hasattr(obj, 'to_dict'):
        return _to_builtin(obj.to_dict())
    if isinstance(obj, (list, tuple)):
        return [_to_builtin(x) for x in obj]
    if isinstance(obj, dict):
        return {str(k): _to_builtin(v) for k, v in obj.items()}
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    return repr(obj)


def serialize(value: Any, *, fmt: str = 'yaml', pretty: bool = True) -> str:
    """
    Convert tokens, AST nodes or plain values into text for debug dumps.
    - fmt: 'json' | 'yaml'
    """
    f = (fmt or '').lower()
    built = _to_builtin(value)
    if f == 'json':
        return json.dumps(built, ensure_ascii=False, indent=2 if pretty else None)
    if f == 'yaml':
        return yaml.safe_dump(built, sort_keys=False, allow_unicode=True)
    raise ValueError(f"Unsupported serialization format: {fmt}")
