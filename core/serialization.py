"""
Conversion of arbitrary Python values into JSON-structural data
"""

import base64
import dataclasses
import json
import math
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Set
from uuid import UUID


class SerializationError(ValueError):
    """Raised when a value cannot be represented as JSON"""
    pass


def to_jsonable(value: Any, _seen: Optional[Set[int]] = None) -> Any:
    """
    Convert a value into plain dicts, lists, strings, numbers, booleans and None.

    Pydantic models (the backend's session and response types) are dumped in
    JSON mode, dataclasses become dicts, temporal values become ISO strings
    and non-finite floats become None. Anything else falls back to its repr.

    Raises:
        SerializationError: If the value contains a reference cycle
    """
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None

    if _seen is None:
        _seen = set()

    if isinstance(value, Enum):
        return to_jsonable(value.value, _seen)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")

    marker = id(value)
    if marker in _seen:
        raise SerializationError(f"Circular reference detected in {type(value).__name__}")
    _seen.add(marker)
    try:
        if isinstance(value, dict):
            return {str(key): to_jsonable(item, _seen) for key, item in value.items()}
        if isinstance(value, (list, tuple, set, frozenset)):
            return [to_jsonable(item, _seen) for item in value]
        if hasattr(value, "model_dump"):
            return to_jsonable(value.model_dump(mode="json"), _seen)
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            return to_jsonable(dataclasses.asdict(value), _seen)
        if hasattr(value, "to_dict") and callable(value.to_dict):
            return to_jsonable(value.to_dict(), _seen)
    finally:
        _seen.discard(marker)

    return repr(value)


def encode_json(value: Any) -> str:
    """Encode a value as a JSON document"""
    try:
        return json.dumps(to_jsonable(value), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError, RecursionError) as e:
        raise SerializationError(f"Value is not JSON serializable: {e}") from e


def decode_json(text: str) -> Dict[str, Any]:
    """Decode a JSON document"""
    return json.loads(text)
