from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import Float, Integer, Numeric, String, inspect

from chitalishta import columns
from chitalishta.models import Chitalishte, ChitalishteYearData, Municipality, MunicipalityYearData, Settlement
from chitalishta.resolver import ImportContext
from chitalishta.values import cell, parse_code, parse_int, parse_text, parse_value

MAX_REG_N_LENGTH = 50
MAX_CODE_LENGTH = 10
INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


class RowImportError(ValueError):
    """A row that cannot be imported; the batch carries on without it."""


def _out_of_range(column_type: Any, value: Any) -> bool:
    if isinstance(column_type, Integer):
        return not INT32_MIN <= value <= INT32_MAX
    # Float subclasses Numeric but has no fixed precision.
    if isinstance(column_type, Float):
        return False
    if isinstance(column_type, Numeric) and column_type.precision is not None:
        scale = column_type.scale or 0
        limit = Decimal(10) ** (column_type.precision - scale)
        half_step = Decimal(1).scaleb(-scale) / 2
        return abs(Decimal(value)) >= limit - half_step
    if isinstance(column_type, String) and column_type.length is not None:
        return len(str(value)) > column_type.length
    return False


def _parse_columns(model: type, row: tuple[Any, ...], layout: dict[str, tuple[int, str]]) -> dict[str, Any]:
    mapped = inspect(model).columns
    values = {}
    for attribute, (position, kind) in layout.items():
        value = parse_value(cell(row, position), kind)
        if value is not None:
            column_type = mapped[attribute].type
            if _out_of_range(column_type, value):
                raise RowImportError(
                    f"Column {position + 1} ({attribute}) value '{value}' does not fit {column_type}"
                )
        values[attribute] = value
    return values


def _assign(target: Any, values: dict[str, Any]) -> None:
    for attribute, value in values.items():
        setattr(target, attribute, value)


def _required_code(row: tuple[Any, ...], position: int, label: str, max_length: int) -> str:
    value = parse_code(cell(row, position))
    if value is None:
        raise RowImportError(f"Row is missing {label}")
    if len(value) > max_length:
        raise RowImportError(f"{label} '{value}' exceeds {max_length} characters")
    return value


def _row_year(ctx: ImportContext, row: tuple[Any, ...], row_number: int) -> int | None:
    raw = cell(row, columns.YEAR)
    year = parse_int(raw)
    if year is not None and not INT32_MIN <= year <= INT32_MAX:
        year = None
    if year is None and parse_text(raw) is not None:
        ctx.record_issue(
            level="warning",
            row=row_number,
            message=f"Invalid year '{parse_text(raw)}'; year data skipped.",
        )
    return year


def decompose_row(ctx: ImportContext, row: tuple[Any, ...], row_number: int) -> bool:
    """Apply one sheet row to the normalized entities.

    Every cell is parsed and checked against its column before any entity is
    touched, so a rejected row leaves the session as it was.

    Returns True when the row carried a municipality-year fact that had not yet
    been imported in this run.
    """
    reg_n = _required_code(row, columns.REG_N, "registration number", MAX_REG_N_LENGTH)
    municipality_code = _required_code(row, columns.MUNICIPALITY_CODE, "municipality code", MAX_CODE_LENGTH)
    ekatte = parse_code(cell(row, columns.EKATTE))
    if ekatte is not None and len(ekatte) > MAX_CODE_LENGTH:
        raise RowImportError(f"EKATTE '{ekatte}' exceeds {MAX_CODE_LENGTH} characters")

    municipality_values = _parse_columns(Municipality, row, columns.MUNICIPALITY_COLUMNS)
    settlement_values = _parse_columns(Settlement, row, columns.SETTLEMENT_COLUMNS)
    chitalishte_values = _parse_columns(Chitalishte, row, columns.CHITALISHTE_COLUMNS)
    year_values = _parse_columns(ChitalishteYearData, row, columns.CHITALISHTE_YEAR_COLUMNS)
    municipality_year_values = _parse_columns(MunicipalityYearData, row, columns.MUNICIPALITY_YEAR_COLUMNS)
    year = _row_year(ctx, row, row_number)

    municipality, _ = ctx.municipalities.resolve(municipality_code)
    _assign(municipality, municipality_values)

    settlement = None
    if ekatte is not None:
        settlement, _ = ctx.settlements.resolve(ekatte)
        _assign(settlement, settlement_values)
        settlement.municipality = municipality

    chitalishte, _ = ctx.chitalishta.resolve(reg_n)
    _assign(chitalishte, chitalishte_values)
    chitalishte.municipality = municipality
    chitalishte.settlement = settlement

    if year is None:
        return False

    year_data, _ = ctx.chitalishte_years.resolve(reg_n, year)
    _assign(year_data, year_values)
    year_data.chitalishte = chitalishte

    if not ctx.mark_municipality_year(municipality_code, year):
        return False
    municipality_year, _ = ctx.municipality_years.resolve(municipality_code, year)
    _assign(municipality_year, municipality_year_values)
    municipality_year.municipality = municipality
    return True
