"""
TxRegistry Canonical JSON Encoding

Semantically identical payloads produce identical byte representations,
so a signature made by one client verifies on any registry node.
"""

import json
from typing import Any, Dict, List, Union


def canonicalize(obj: Any) -> bytes:
    """
    Convert an object to canonical JSON bytes.

    Rules:
    - Object keys sorted lexicographically (Unicode code point order)
    - No whitespace between tokens
    - UTF-8 encoding, no BOM, minimal escaping
    - Arrays preserve order
    - Integers of any size are emitted verbatim
    """
    canonical = _canonicalize_value(obj)
    return json.dumps(canonical, separators=(',', ':'), ensure_ascii=False).encode('utf-8')


def canonicalize_str(obj: Any) -> str:
    """Return canonical JSON as string."""
    return canonicalize(obj).decode('utf-8')


def _canonicalize_value(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    elif isinstance(value, float):
        # floats have no single byte representation across platforms
        raise ValueError("Cannot canonicalize float; encode as string or integer")
    elif isinstance(value, bytes):
        raise ValueError("Cannot canonicalize bytes; encode as hex or base64 first")
    elif isinstance(value, dict):
        return _canonicalize_object(value)
    elif isinstance(value, (list, tuple)):
        return _canonicalize_array(value)
    else:
        raise ValueError(f"Cannot canonicalize type: {type(value)}")


def _canonicalize_object(obj: Dict[str, Any]) -> Dict[str, Any]:
    for key in obj:
        if not isinstance(key, str):
            raise ValueError(f"Object keys must be strings, got {type(key)}")
    return {k: _canonicalize_value(obj[k]) for k in sorted(obj.keys())}


def _canonicalize_array(arr: Union[List, tuple]) -> List:
    return [_canonicalize_value(item) for item in arr]
