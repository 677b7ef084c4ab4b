"""
Assumption Document Utilities

Readers for JSON-shaped assumption documents. Documents come from an editor
and can be incomplete or malformed, so every reader here degrades to a neutral
default instead of raising. Values are usually wrapped as
{"value": ..., "unit": ..., "rationale": ...}; bare numbers are accepted too.

Also holds the dotted-path helpers (``a.b[0].c``) used by sensitivity drivers.
"""

import copy
import hashlib
import json
import math
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

_ARRAY_PART = re.compile(r"^(.+)\[(\d+)\]$")
_UNSAFE_PATH_PATTERNS = [
    re.compile(r"__proto__", re.IGNORECASE),
    re.compile(r"constructor", re.IGNORECASE),
    re.compile(r"prototype", re.IGNORECASE),
    re.compile(r"\.\."),
    re.compile(r"[<>{}]"),
]
MAX_ARRAY_INDEX = 10000


# =============================================================================
# SAFE READERS
# =============================================================================

def dig(node: Any, *keys: Any) -> Any:
    """Walk nested dicts/lists, returning None as soon as a step is missing"""
    current = node
    for key in keys:
        if isinstance(key, int):
            if not isinstance(current, list) or not -len(current) <= key < len(current):
                return None
            current = current[key]
        else:
            if not isinstance(current, dict):
                return None
            current = current.get(key)
        if current is None:
            return None
    return current


def optional_number(node: Any) -> Optional[float]:
    """
    Read a number from a bare value or a {"value": ...} wrapper.

    Returns None when nothing numeric is there; booleans and non-finite
    values do not count as numbers.
    """
    if isinstance(node, dict):
        node = node.get("value")
    if node is None or isinstance(node, bool):
        return None
    if isinstance(node, (int, float)):
        value = float(node)
    elif isinstance(node, str):
        try:
            value = float(node.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(value):
        return None
    return value


def read_number(node: Any, default: float = 0.0) -> float:
    value = optional_number(node)
    return default if value is None else value


def read_list(node: Any) -> List[Any]:
    """Lists pass through; a {"value": [...]} wrapper is unwrapped; anything else is empty"""
    if isinstance(node, dict):
        node = node.get("value")
    return node if isinstance(node, list) else []


def read_dicts(node: Any) -> List[Dict[str, Any]]:
    return [item for item in read_list(node) if isinstance(item, dict)]


def read_text(node: Any, default: str = "") -> str:
    if isinstance(node, dict):
        node = node.get("value")
    return node if isinstance(node, str) else default


# =============================================================================
# NUMERIC HELPERS
# =============================================================================

def round_half_up(value: float) -> int:
    """Round to the nearest whole amount, halves away from zero; non-finite rounds to 0"""
    if value is None or not math.isfinite(value):
        return 0
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def round_to(value: float, places: int) -> float:
    if value is None or not math.isfinite(value):
        return 0.0
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    if not denominator:
        return default
    result = numerator / denominator
    return result if math.isfinite(result) else default


def canonical_hash(payload: Any) -> str:
    """SHA256 of a canonical JSON rendering, used for reproducibility checks"""
    encoded = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(encoded.encode()).hexdigest()


# =============================================================================
# DOTTED PATHS
# =============================================================================

def validate_path(path: Any) -> bool:
    """A path is usable when it is a non-empty string with no unsafe segments"""
    if not path or not isinstance(path, str):
        return False
    return not any(pattern.search(path) for pattern in _UNSAFE_PATH_PATTERNS)


def _parse_array_part(part: str):
    match = _ARRAY_PART.match(part)
    if not match:
        return None
    index = int(match.group(2))
    if index > MAX_ARRAY_INDEX:
        raise ValueError(f"Array index too large: {index}. Maximum allowed index is {MAX_ARRAY_INDEX}")
    return match.group(1), index


def get_nested_value(document: Any, path: str) -> Any:
    """Read ``a.b[0].c`` from a document; any missing step yields None"""
    if not document:
        return None
    if not path or not isinstance(path, str):
        raise ValueError("Path must be a non-empty string")

    current = document
    for part in path.split("."):
        if current is None:
            return None
        array_part = _parse_array_part(part) if "[" in part else None
        if array_part:
            name, index = array_part
            items = current.get(name) if isinstance(current, dict) else None
            if not isinstance(items, list) or index >= len(items):
                return None
            current = items[index]
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return None
            current = current[index]
        else:
            if not isinstance(current, dict) or part not in current:
                return None
            current = current[part]
    return current


def set_nested_value(document: Dict[str, Any], path: str, value: Any) -> Dict[str, Any]:
    """
    Return a deep copy of ``document`` with ``value`` written at ``path``.

    Missing dicts and list slots along the path are created. The input
    document is never mutated.
    """
    if not isinstance(document, dict):
        raise ValueError("Document must be a JSON object")
    if not validate_path(path):
        raise ValueError(f"Invalid or unsafe path: {path!r}")

    result = copy.deepcopy(document)
    parts = path.split(".")
    current: Any = result

    for position, part in enumerate(parts):
        is_last = position == len(parts) - 1
        array_part = _parse_array_part(part) if "[" in part else None

        if isinstance(current, list) and part.isdigit():
            index = int(part)
            if index > MAX_ARRAY_INDEX:
                raise ValueError(f"Array index too large: {index}. Maximum allowed index is {MAX_ARRAY_INDEX}")
            while len(current) <= index:
                current.append({})
            if is_last:
                current[index] = value
            else:
                current = current[index]
            continue

        if not isinstance(current, dict):
            raise ValueError(f"Failed to set nested value at path {path!r}: {part!r} is not inside an object")

        if array_part:
            name, index = array_part
            items = current.get(name)
            if items is None:
                items = current[name] = []
            if not isinstance(items, list):
                raise ValueError(f"Failed to set nested value at path {path!r}: expected array at {name!r}")
            while len(items) <= index:
                items.append({})
            if is_last:
                items[index] = value
            else:
                current = items[index]
        elif "[" in part or "]" in part:
            raise ValueError(f"Invalid array path format: {part!r}. Expected format: \"name[index]\"")
        else:
            if is_last:
                current[part] = value
            else:
                if current.get(part) is None:
                    current[part] = {}
                current = current[part]

    return result
