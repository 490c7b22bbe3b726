from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Any

from chitalishta.columns import CODE, DECIMAL, FLOAT, INT, TEXT


def parse_text(value: Any) -> str | None:
    if value is None:
        return None
    text_value = str(value).replace("\xa0", " ").strip()
    return text_value or None


def parse_code(value: Any) -> str | None:
    """Identifier cells: numbers typed into Excel come back as floats."""
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    raw = parse_text(value)
    if raw is None:
        return None
    if raw.endswith(".0") and raw[:-2].isdigit():
        return raw[:-2]
    return raw


def parse_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        raw = parse_text(value)
        if raw is None:
            return None
        try:
            number = float(raw.replace(" ", ""))
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def parse_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        raw = parse_text(value)
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            pass
    number = parse_float(value)
    if number is None:
        return None
    return int(number)


def parse_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, (int, float)):
        number = Decimal(str(value))
    else:
        raw = parse_text(value)
        if raw is None:
            return None
        try:
            number = Decimal(raw.replace(" ", ""))
        except InvalidOperation:
            return None
    return number if number.is_finite() else None


_PARSERS = {
    TEXT: parse_text,
    CODE: parse_code,
    INT: parse_int,
    DECIMAL: parse_decimal,
    FLOAT: parse_float,
}


def parse_value(value: Any, kind: str) -> Any:
    try:
        parser = _PARSERS[kind]
    except KeyError as exc:
        raise ValueError(f"Unknown column kind '{kind}'") from exc
    return parser(value)


def cell(row: tuple[Any, ...] | list[Any], position: int) -> Any:
    return row[position] if len(row) > position else None
