import math
from datetime import datetime
from typing import Any, Optional, Type, Union

Number = Union[int, float]


def parse_float(value: Any) -> Optional[float]:
    try:
        if value is None or value == "":
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_int(value: Any) -> Optional[int]:
    try:
        if value is None or value == "":
            return None
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def to_number(value: Any, kind: Type[Number] = float) -> Optional[Number]:
    """Strictly convert client input to ``kind``.

    ``None`` and blank strings mean absent and return ``None``. Anything else
    that is not a finite number (or a whole number for ``int``) raises
    ``ValueError``.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise ValueError("Must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError("Must be a number") from exc
    if not math.isfinite(number):
        raise ValueError("Must be a number")
    if kind is int:
        if not number.is_integer():
            raise ValueError("Must be a whole number")
        return int(number)
    return number
