from __future__ import annotations

import logging
from io import BytesIO
from typing import Any

from fastapi import HTTPException
from openpyxl import load_workbook
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chitalishta.config import settings
from chitalishta.metrics import recalculate_aggregates_and_metrics
from chitalishta.resolver import ROW_ISSUE_LIMIT, ImportContext
from chitalishta.rows import decompose_row
from chitalishta.values import parse_text

logger = logging.getLogger(__name__)


def _is_row_populated(row: tuple[Any, ...]) -> bool:
    return any(parse_text(v) for v in row)


def _new_summary(filename: str, dry_run: bool) -> dict[str, Any]:
    return {
        "filename": filename,
        "dry_run": bool(dry_run),
        "total_rows": 0,
        "successful_rows": 0,
        "error_rows": 0,
        "municipalities_created": 0,
        "municipalities_updated": 0,
        "settlements_created": 0,
        "settlements_updated": 0,
        "chitalishta_created": 0,
        "chitalishta_updated": 0,
        "chitalishte_year_data_created": 0,
        "chitalishte_year_data_updated": 0,
        "municipality_year_data_imported": 0,
        "municipalities_aggregated": 0,
        "metrics_calculated": 0,
        "metrics_created": 0,
        "metrics_updated": 0,
        "metrics_errors": 0,
        "warning_count": 0,
        "error_count": 0,
        "row_issues": [],
        "row_issue_limit": ROW_ISSUE_LIMIT,
        "row_issues_truncated": 0,
    }


def import_chitalishte_workbook(
    db: Session,
    content: bytes,
    filename: str,
    *,
    dry_run: bool = False,
) -> dict[str, Any]:
    """Import the registry sheet, then refresh aggregates and metrics.

    Nothing is committed here: the caller commits or rolls back the session, so
    a run either lands completely or not at all.
    """
    if not filename.lower().endswith((".xlsx", ".xlsm")):
        raise HTTPException(status_code=400, detail="Upload an .xlsx or .xlsm workbook")
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded workbook is empty")

    try:
        workbook = load_workbook(BytesIO(content), data_only=True, read_only=True)
    except Exception as exc:
        raise HTTPException(status_code=400, detail=f"Could not read workbook: {exc}") from exc

    summary = _new_summary(filename, dry_run)
    ctx = ImportContext(db=db, summary=summary)
    progress_every = max(int(settings.import_progress_every), 1)

    try:
        if not workbook.worksheets:
            raise HTTPException(status_code=400, detail="Workbook has no sheets")
        sheet = workbook.worksheets[0]
        logger.info("Importing %s from sheet '%s'", filename, sheet.title)

        for row_num, row in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2):
            if not _is_row_populated(row):
                continue
            summary["total_rows"] += 1
            try:
                if decompose_row(ctx, row, row_num):
                    summary["municipality_year_data_imported"] += 1
            except SQLAlchemyError:
                raise
            except Exception as exc:
                summary["error_rows"] += 1
                logger.error("Error processing row %s: %s", row_num, exc)
                ctx.record_issue(level="error", row=row_num, message=str(exc))
            else:
                summary["successful_rows"] += 1

            if summary["total_rows"] % progress_every == 0:
                logger.info("Processed %s rows", summary["total_rows"])
    finally:
        workbook.close()

    summary.update(ctx.entity_counts())
    db.flush()
    summary.update(recalculate_aggregates_and_metrics(db))
    db.flush()

    logger.info(
        "Import of %s finished: %s rows, %s succeeded, %s failed, %s municipality-year records",
        filename,
        summary["total_rows"],
        summary["successful_rows"],
        summary["error_rows"],
        summary["municipality_year_data_imported"],
    )
    return summary
