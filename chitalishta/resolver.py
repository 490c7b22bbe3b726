from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from chitalishta.models import (
    Chitalishte,
    ChitalishteYearData,
    Municipality,
    MunicipalityYearData,
    Settlement,
)

ROW_ISSUE_LIMIT = 300

EntityT = TypeVar("EntityT")


class EntityCache(Generic[EntityT]):
    """Find-or-create by natural key, at most one instance per key per run."""

    def __init__(self, db: Session, model: type[EntityT], key_fields: tuple[str, ...]):
        self.db = db
        self.model = model
        self.key_fields = key_fields
        self.entities: dict[tuple[Any, ...], EntityT] = {}
        self.created = 0
        self.updated = 0

    def resolve(self, *key: Any) -> tuple[EntityT, bool]:
        if len(key) != len(self.key_fields):
            raise ValueError(f"{self.model.__name__} key needs {len(self.key_fields)} part(s)")
        cached = self.entities.get(key)
        if cached is not None:
            return cached, False

        stmt = select(self.model)
        for name, value in zip(self.key_fields, key):
            stmt = stmt.where(getattr(self.model, name) == value)
        entity = self.db.scalars(stmt).first()
        created = entity is None
        if created:
            entity = self.model(**dict(zip(self.key_fields, key)))
            self.db.add(entity)
            self.created += 1
        else:
            self.updated += 1

        self.entities[key] = entity
        return entity, created


@dataclass
class ImportContext:
    """Per-run state threaded through the import pipeline."""

    db: Session
    summary: dict[str, Any]
    municipalities: EntityCache[Municipality] = field(init=False)
    settlements: EntityCache[Settlement] = field(init=False)
    chitalishta: EntityCache[Chitalishte] = field(init=False)
    chitalishte_years: EntityCache[ChitalishteYearData] = field(init=False)
    municipality_years: EntityCache[MunicipalityYearData] = field(init=False)
    seen_municipality_years: set[tuple[str, int]] = field(default_factory=set)

    def __post_init__(self) -> None:
        self.municipalities = EntityCache(self.db, Municipality, ("municipality_code",))
        self.settlements = EntityCache(self.db, Settlement, ("ekatte",))
        self.chitalishta = EntityCache(self.db, Chitalishte, ("reg_n",))
        self.chitalishte_years = EntityCache(self.db, ChitalishteYearData, ("reg_n", "year"))
        self.municipality_years = EntityCache(self.db, MunicipalityYearData, ("municipality_code", "year"))

    def mark_municipality_year(self, municipality_code: str, year: int) -> bool:
        """Return True the first time a (municipality, year) pair is seen in this run."""
        key = (municipality_code, year)
        if key in self.seen_municipality_years:
            return False
        self.seen_municipality_years.add(key)
        return True

    def record_issue(self, *, level: str, row: int | None, message: str) -> None:
        summary = self.summary
        issues = summary.setdefault("row_issues", [])
        issue_limit = int(summary.get("row_issue_limit", ROW_ISSUE_LIMIT))
        if len(issues) < issue_limit:
            issues.append({"level": level, "row": row, "message": message})
        else:
            summary["row_issues_truncated"] = int(summary.get("row_issues_truncated", 0)) + 1

        if level == "error":
            summary["error_count"] = int(summary.get("error_count", 0)) + 1
        elif level == "warning":
            summary["warning_count"] = int(summary.get("warning_count", 0)) + 1

    def entity_counts(self) -> dict[str, int]:
        return {
            "municipalities_created": self.municipalities.created,
            "municipalities_updated": self.municipalities.updated,
            "settlements_created": self.settlements.created,
            "settlements_updated": self.settlements.updated,
            "chitalishta_created": self.chitalishta.created,
            "chitalishta_updated": self.chitalishta.updated,
            "chitalishte_year_data_created": self.chitalishte_years.created,
            "chitalishte_year_data_updated": self.chitalishte_years.updated,
        }
