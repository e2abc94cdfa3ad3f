import logging
import math
import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

MAX_DEPTH = 10
MAX_STRING_LENGTH = 10_000
MAX_KEY_LENGTH = 128
MAX_IDENTIFIER_LENGTH = 64
MAX_CATEGORY_LENGTH = 64
MAX_COLLECTION_SIZE = 1_000

DEFAULT_CATEGORY = "general"

# Ключи, которые никогда не попадают в метаданные
FORBIDDEN_KEYS = {"__proto__", "constructor", "prototype"}

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_IDENTIFIER_CHARS = re.compile(r"[^A-Za-z0-9_.:\-]")

_DROP = object()


def sanitize_string(value: str, max_length: int = MAX_STRING_LENGTH) -> str:
    """Удаление управляющих символов и обрезка строки"""
    cleaned = _CONTROL_CHARS.sub("", value)
    if len(cleaned) > max_length:
        logger.debug(f"String truncated from {len(cleaned)} to {max_length} characters")
    return cleaned[:max_length]


def sanitize_identifier(value: Optional[str]) -> Optional[str]:
    """Нормализация идентификатора плагина или функции"""
    if value is None:
        return None
    cleaned = _IDENTIFIER_CHARS.sub("", str(value).strip().replace(" ", "_"))
    cleaned = cleaned[:MAX_IDENTIFIER_LENGTH]
    return cleaned or None


def sanitize_category(value: Optional[str]) -> str:
    """Категория - открытая строка: символы сохраняются, убираются только управляющие"""
    if value is None:
        return DEFAULT_CATEGORY
    cleaned = sanitize_string(str(value), MAX_CATEGORY_LENGTH).strip()
    return cleaned or DEFAULT_CATEGORY


def _sanitize_key(key: Any) -> Optional[str]:
    if not isinstance(key, str):
        return None
    cleaned = sanitize_string(key.strip(), MAX_KEY_LENGTH)
    if not cleaned or cleaned in FORBIDDEN_KEYS or cleaned.startswith("__"):
        return None
    return cleaned


def _sanitize_value(value: Any, depth: int) -> Any:
    if depth > MAX_DEPTH:
        logger.debug(f"Metadata value dropped below depth {MAX_DEPTH}")
        return _DROP

    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else _DROP
    if isinstance(value, str):
        return sanitize_string(value)
    if isinstance(value, Enum):
        return _sanitize_value(value.value, depth)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return sanitize_mapping(value, depth + 1)
    if isinstance(value, (list, tuple, set, frozenset)):
        return sanitize_sequence(value, depth + 1)

    # Функции, объекты и прочее в метаданные не попадают
    return _DROP


def _limit_items(items: List[Any]) -> List[Any]:
    if len(items) > MAX_COLLECTION_SIZE:
        logger.debug(f"Collection truncated from {len(items)} to {MAX_COLLECTION_SIZE} items")
    return items[:MAX_COLLECTION_SIZE]


def sanitize_mapping(data: Dict[Any, Any], depth: int = 0) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, value in _limit_items(list(data.items())):
        clean_key = _sanitize_key(key)
        if clean_key is None:
            continue
        clean_value = _sanitize_value(value, depth)
        if clean_value is not _DROP:
            result[clean_key] = clean_value
    return result


def sanitize_sequence(items: Any, depth: int = 0) -> List[Any]:
    result: List[Any] = []
    for item in _limit_items(list(items)):
        clean_item = _sanitize_value(item, depth)
        if clean_item is not _DROP:
            result.append(clean_item)
    return result


def sanitize_metadata(metadata: Optional[Dict[Any, Any]]) -> Dict[str, Any]:
    """Поштучная рекурсивная очистка произвольных метаданных правки"""
    if not metadata:
        return {}
    if not isinstance(metadata, dict):
        return {}
    return sanitize_mapping(metadata)
