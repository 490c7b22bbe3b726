from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from chitalishta.aggregation import aggregate_all
from chitalishta.models import Chitalishte, Municipality, MunicipalityMetrics, MunicipalityYearData

logger = logging.getLogger(__name__)

SUBSIDY_PER_POSITION = Decimal("19555")
VILLAGE = "село"
CITY = "град"

CENTS = Decimal("0.01")
TENTHS = Decimal("0.1")


def _positive(value: Any) -> bool:
    return value is not None and value > 0


def _round(value: Decimal, places: Decimal) -> Decimal:
    return value.quantize(places, rounding=ROUND_HALF_UP)


def _share(part: Any, whole: Any) -> Decimal | None:
    if part is None or not _positive(whole):
        return None
    return _round(Decimal(part) * 100 / Decimal(whole), CENTS)


def _rate(count: int, population: Any, per: int) -> Decimal | None:
    if not _positive(population):
        return None
    return _round(Decimal(count) * per / Decimal(population), TENTHS)


def settlement_type(chitalishte: Chitalishte) -> str:
    return (chitalishte.village_city or "").strip().casefold()


def count_by_settlement_type(chitalishta: list[Chitalishte]) -> tuple[int, int]:
    """Return (village, city) counts; the type comparison ignores case."""
    kinds = [settlement_type(item) for item in chitalishta]
    return kinds.count(VILLAGE), kinds.count(CITY)


def _without_training(chitalishte: Chitalishte) -> bool:
    latest = chitalishte.latest_year_data()
    return latest is not None and not latest.training_participation


def latest_year_data(municipality: Municipality) -> MunicipalityYearData | None:
    if not municipality.year_data:
        return None
    return max(municipality.year_data, key=lambda item: item.year)


def compute_metrics(municipality: Municipality) -> dict[str, Any]:
    """Derive every indicator for one municipality from its current state.

    Unavailable indicators come back as None so a write replaces stale values.
    """
    chitalishta = list(municipality.chitalishta)
    total = len(chitalishta)
    population = municipality.municipality_population
    latest = latest_year_data(municipality)

    villages, cities = count_by_settlement_type(chitalishta)

    values: dict[str, Any] = {
        "source_year": latest.year if latest is not None else None,
        "total_chitalishta": total,
        "village_chitalishta": villages,
        "city_chitalishta": cities,
        "state_subsidy_amount": None,
        "state_subsidy_per_capita": None,
        "additional_positions": None,
        "revenue_from_subsidies_percent": None,
        "revenue_from_rent_percent": None,
        "revenue_from_other_percent": None,
        "expenses_for_salaries_percent": None,
        "expenses_other_percent": None,
        "total_staff": None,
        "unique_employment_contracts": None,
        "staff_higher_education_percent": None,
        "staff_secondary_education_percent": None,
        "secretaries_count": None,
        "secretaries_higher_education_percent": None,
        "average_insurance_income": None,
        "chitalishta_no_training_percent": None,
        "chitalishta_per_10k_residents": _rate(total, population, 10000),
        "chitalishta_per_1k_children_under_15": _rate(
            total, municipality.population_under_15_aggregate, 1000
        ),
        "chitalishta_per_1k_students": None,
        "chitalishta_per_1k_kindergarten": None,
        "chitalishta_per_1k_elderly": _rate(total, municipality.population_over_65_aggregate, 1000),
    }

    if total > 0:
        without_training = sum(1 for item in chitalishta if _without_training(item))
        values["chitalishta_no_training_percent"] = _share(without_training, total)

    students = municipality.students_number
    kindergarten = municipality.kids_kindergartens

    if latest is not None:
        if latest.subsidized_positions is not None:
            amount = _round(SUBSIDY_PER_POSITION * latest.subsidized_positions, CENTS)
            values["state_subsidy_amount"] = amount
            if _positive(population):
                values["state_subsidy_per_capita"] = _round(amount / Decimal(population), CENTS)
        values["additional_positions"] = latest.additional_positions

        revenue = latest.total_revenue_thousands
        if _positive(revenue):
            subsidies = latest.revenue_from_subsidies_thousands
            rent = latest.revenue_from_rent_thousands
            values["revenue_from_subsidies_percent"] = _share(subsidies, revenue)
            values["revenue_from_rent_percent"] = _share(rent, revenue)
            if subsidies is not None and rent is not None:
                values["revenue_from_other_percent"] = _share(revenue - subsidies - rent, revenue)

        expenses = latest.total_expenses_thousands
        salaries = latest.expenses_salaries_thousands
        social_security = latest.expenses_social_security_thousands
        if _positive(expenses) and salaries is not None and social_security is not None:
            payroll = salaries + social_security
            values["expenses_for_salaries_percent"] = _share(payroll, expenses)
            values["expenses_other_percent"] = _share(expenses - payroll, expenses)

        staff = latest.total_staff_count
        values["total_staff"] = staff
        values["unique_employment_contracts"] = latest.unique_employment_contracts
        values["staff_higher_education_percent"] = _share(latest.staff_higher_education_count, staff)
        values["staff_secondary_education_percent"] = _share(latest.staff_secondary_education_count, staff)

        secretaries = latest.secretaries_count
        values["secretaries_count"] = secretaries
        values["secretaries_higher_education_percent"] = _share(
            latest.secretaries_higher_education_count, secretaries
        )
        values["average_insurance_income"] = latest.average_insurance_income

        if latest.students_number is not None:
            students = latest.students_number
        if latest.kids_kindergartens is not None:
            kindergarten = latest.kids_kindergartens

    values["chitalishta_per_1k_students"] = _rate(total, students, 1000)
    values["chitalishta_per_1k_kindergarten"] = _rate(total, kindergarten, 1000)
    return values


def calculate_metrics(db: Session, municipality: Municipality) -> MunicipalityMetrics:
    values = compute_metrics(municipality)
    metrics = municipality.metrics
    if metrics is None:
        metrics = MunicipalityMetrics()
        municipality.metrics = metrics
        db.add(metrics)
    for name, value in values.items():
        setattr(metrics, name, value)
    metrics.calculated_at = datetime.now(timezone.utc)
    return metrics


def calculate_all_metrics(db: Session) -> dict[str, int]:
    municipalities = db.scalars(
        select(Municipality)
        .options(
            selectinload(Municipality.chitalishta).selectinload(Chitalishte.year_data),
            selectinload(Municipality.year_data),
            selectinload(Municipality.metrics),
        )
        .order_by(Municipality.municipality_code)
    ).all()

    result = {"metrics_calculated": 0, "metrics_created": 0, "metrics_updated": 0, "metrics_errors": 0}
    for municipality in municipalities:
        existed = municipality.metrics is not None
        try:
            calculate_metrics(db, municipality)
        except Exception:
            logger.exception("Failed to calculate metrics for municipality %s", municipality.municipality_code)
            result["metrics_errors"] += 1
            continue
        result["metrics_calculated"] += 1
        result["metrics_updated" if existed else "metrics_created"] += 1

    logger.info(
        "Metrics calculated for %s municipalities (%s errors)",
        result["metrics_calculated"],
        result["metrics_errors"],
    )
    return result


def metrics_for(db: Session, municipality_code: str) -> MunicipalityMetrics | None:
    return db.scalars(
        select(MunicipalityMetrics)
        .join(MunicipalityMetrics.municipality)
        .where(Municipality.municipality_code == municipality_code)
    ).first()


def recalculate_aggregates_and_metrics(db: Session) -> dict[str, int]:
    aggregated = aggregate_all(db)
    db.flush()
    result = calculate_all_metrics(db)
    return {"municipalities_aggregated": aggregated, **result}
