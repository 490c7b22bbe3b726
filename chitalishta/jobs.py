from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable

from fastapi import HTTPException
from sqlalchemy.orm import Session

from chitalishta.workbook_import import import_chitalishte_workbook

logger = logging.getLogger(__name__)

# One import at a time: the run-scoped caches and duplicate detection assume it.
_import_lock = threading.Lock()
_status_lock = threading.Lock()
_last_import: dict[str, Any] = {"status": "idle"}


class ImportAlreadyRunning(RuntimeError):
    pass


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def import_status() -> dict[str, Any]:
    with _status_lock:
        return dict(_last_import)


def _set_status(**fields: Any) -> None:
    with _status_lock:
        _last_import.clear()
        _last_import.update(fields)


def claim_import(filename: str) -> None:
    if not _import_lock.acquire(blocking=False):
        raise ImportAlreadyRunning("Another import is already running")
    _set_status(status="processing", filename=filename, started_at=_now())


def finish_import(*, statistics: dict[str, Any] | None = None, error: str | None = None) -> None:
    current = import_status()
    filename = current.get("filename")
    started_at = current.get("started_at")
    if statistics is not None:
        _set_status(
            status="completed",
            filename=filename,
            started_at=started_at,
            finished_at=_now(),
            statistics=statistics,
        )
    else:
        _set_status(
            status="failed",
            filename=filename,
            started_at=started_at,
            finished_at=_now(),
            error=error or "Import failed",
        )
    _import_lock.release()


def run_import_job(session_factory: Callable[[], Session], content: bytes, filename: str) -> None:
    """Background body for a claimed import; always releases the claim."""
    db = session_factory()
    statistics = None
    error = None
    try:
        result = import_chitalishte_workbook(db, content, filename)
        db.commit()
        statistics = result
    except HTTPException as exc:
        db.rollback()
        error = str(exc.detail)
        logger.error("Import of %s failed: %s", filename, error)
    except Exception as exc:
        db.rollback()
        error = f"Failed to import data from workbook: {exc}"
        logger.exception("Import of %s failed", filename)
    finally:
        db.close()
        finish_import(statistics=statistics, error=error)
