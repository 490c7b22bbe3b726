from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from chitalishta.models import Municipality, Settlement

logger = logging.getLogger(__name__)


def _settlement_sum(settlements: list[Settlement], attribute: str) -> int:
    return sum(getattr(settlement, attribute) or 0 for settlement in settlements)


def _fresh_aggregates(municipality: Municipality) -> tuple[int, int]:
    settlements = list(municipality.settlements)
    return (
        _settlement_sum(settlements, "population_under_15"),
        _settlement_sum(settlements, "population_over_65"),
    )


def aggregate_municipality(municipality: Municipality) -> None:
    """Roll settlement age bands up into the municipality aggregates."""
    if not municipality.settlements:
        logger.warning(
            "Municipality %s has no settlements; population aggregates set to zero",
            municipality.municipality_code,
        )
    under_15, over_65 = _fresh_aggregates(municipality)
    municipality.population_under_15_aggregate = under_15
    municipality.population_over_65_aggregate = over_65


def _all_municipalities(db: Session) -> list[Municipality]:
    return list(
        db.scalars(
            select(Municipality)
            .options(selectinload(Municipality.settlements))
            .order_by(Municipality.municipality_code)
        ).all()
    )


def aggregate_all(db: Session) -> int:
    municipalities = _all_municipalities(db)
    for municipality in municipalities:
        aggregate_municipality(municipality)
    logger.info("Aggregated settlement demographics for %s municipalities", len(municipalities))
    return len(municipalities)


def aggregate_by_code(db: Session, municipality_code: str) -> Municipality:
    municipality = db.scalars(
        select(Municipality).where(Municipality.municipality_code == municipality_code)
    ).first()
    if municipality is None:
        raise LookupError(f"Municipality {municipality_code} not found")
    aggregate_municipality(municipality)
    return municipality


def verify_aggregates(db: Session) -> list[dict[str, Any]]:
    mismatches: list[dict[str, Any]] = []
    for municipality in _all_municipalities(db):
        under_15, over_65 = _fresh_aggregates(municipality)
        stored = (municipality.population_under_15_aggregate, municipality.population_over_65_aggregate)
        if stored == (under_15, over_65):
            continue
        logger.warning(
            "Aggregate mismatch for %s: stored under15=%s over65=%s, expected under15=%s over65=%s",
            municipality.municipality_code,
            stored[0],
            stored[1],
            under_15,
            over_65,
        )
        mismatches.append(
            {
                "municipality_code": municipality.municipality_code,
                "stored_under_15": stored[0],
                "stored_over_65": stored[1],
                "expected_under_15": under_15,
                "expected_over_65": over_65,
            }
        )
    return mismatches
