import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

from fastapi import BackgroundTasks, Depends, FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy import func, inspect, or_, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from chitalishta.aggregation import aggregate_all, aggregate_by_code, verify_aggregates
from chitalishta.config import settings
from chitalishta.database import Base, SessionLocal, engine
from chitalishta.jobs import ImportAlreadyRunning, claim_import, finish_import, import_status, run_import_job
from chitalishta.metrics import (
    calculate_all_metrics,
    count_by_settlement_type,
    metrics_for,
    recalculate_aggregates_and_metrics,
)
from chitalishta.models import Chitalishte, Municipality
from chitalishta.workbook_import import import_chitalishte_workbook

logger = logging.getLogger(__name__)

IMPORT_MODES = {"background", "apply", "preview"}
MUNICIPALITY_SORT_FIELDS = {
    "municipality_code": Municipality.municipality_code,
    "name": Municipality.name,
    "district": Municipality.district,
    "municipality_population": Municipality.municipality_population,
}


@asynccontextmanager
async def lifespan(_app: FastAPI):
    logging.basicConfig(level=settings.log_level)
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(title="Chitalishta Registry", lifespan=lifespan)
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory():
    return SessionLocal


def json_safe(value):
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {k: json_safe(v) for k, v in value.items()}
    if isinstance(value, list):
        return [json_safe(v) for v in value]
    return value


def row_to_dict(entity) -> dict:
    return json_safe({attr.key: getattr(entity, attr.key) for attr in inspect(entity).mapper.column_attrs})


def municipality_to_dict(municipality: Municipality) -> dict:
    data = row_to_dict(municipality)
    data.pop("id", None)
    return data


def chitalishte_to_dict(chitalishte: Chitalishte) -> dict:
    data = row_to_dict(chitalishte)
    data.pop("id", None)
    data.pop("municipality_id", None)
    data["municipality_code"] = chitalishte.municipality.municipality_code if chitalishte.municipality else None
    latest = chitalishte.latest_year_data()
    data["latest_year"] = latest.year if latest is not None else None
    data["status"] = latest.status if latest is not None else None
    return data


def page_params(page: int, size: int | None) -> tuple[int, int]:
    resolved_size = settings.default_page_size if size is None else size
    if page < 0:
        raise HTTPException(status_code=400, detail="page must be zero or greater")
    if resolved_size < 1 or resolved_size > settings.max_page_size:
        raise HTTPException(
            status_code=400,
            detail=f"size must be between 1 and {settings.max_page_size}",
        )
    return page, resolved_size


def find_municipality(db: Session, municipality_code: str) -> Municipality:
    municipality = db.scalars(
        select(Municipality).where(Municipality.municipality_code == municipality_code)
    ).first()
    if municipality is None:
        raise HTTPException(status_code=404, detail=f"Municipality {municipality_code} not found")
    return municipality


def commit_or_fail(db: Session, action: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Unexpected database error while %s", action)
        raise HTTPException(status_code=500, detail=f"Unexpected server error while {action}.") from exc


@app.get("/health")
def health(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {"ok": True}


# Read API


@app.get("/api/municipalities")
def list_municipalities(
    page: int = Query(0),
    size: int | None = Query(None),
    sort: str = Query("name"),
    direction: str = Query("asc"),
    db: Session = Depends(get_db),
):
    page, size = page_params(page, size)
    column = MUNICIPALITY_SORT_FIELDS.get(sort)
    if column is None:
        allowed = ", ".join(sorted(MUNICIPALITY_SORT_FIELDS))
        raise HTTPException(status_code=400, detail=f"Invalid sort '{sort}'. Allowed: {allowed}.")
    if direction.lower() not in {"asc", "desc"}:
        raise HTTPException(status_code=400, detail="direction must be asc or desc")
    order = column.desc() if direction.lower() == "desc" else column.asc()

    total = db.scalar(select(func.count()).select_from(Municipality))
    rows = db.scalars(
        select(Municipality)
        .order_by(order, Municipality.municipality_code)
        .offset(page * size)
        .limit(size)
    ).all()
    return {"items": [municipality_to_dict(m) for m in rows], "page": page, "size": size, "total": total}


@app.get("/api/municipalities/search")
def search_municipalities(q: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    rows = db.scalars(
        select(Municipality)
        .where(Municipality.name.ilike(f"%{q.strip()}%"))
        .order_by(Municipality.name)
    ).all()
    return {"items": [municipality_to_dict(m) for m in rows]}


@app.get("/api/municipalities/{municipality_code}")
def get_municipality(municipality_code: str, db: Session = Depends(get_db)):
    return municipality_to_dict(find_municipality(db, municipality_code))


@app.get("/api/municipalities/{municipality_code}/chitalishta")
def list_municipality_chitalishta(municipality_code: str, db: Session = Depends(get_db)):
    municipality = find_municipality(db, municipality_code)
    rows = db.scalars(
        select(Chitalishte)
        .where(Chitalishte.municipality_id == municipality.id)
        .options(selectinload(Chitalishte.year_data))
        .order_by(Chitalishte.name)
    ).all()
    return {"items": [chitalishte_to_dict(c) for c in rows]}


@app.get("/api/municipalities/{municipality_code}/metrics")
def get_municipality_metrics(municipality_code: str, db: Session = Depends(get_db)):
    metrics = metrics_for(db, municipality_code)
    if metrics is None:
        raise HTTPException(status_code=404, detail=f"No metrics for municipality {municipality_code}")
    data = row_to_dict(metrics)
    data.pop("id", None)
    data.pop("municipality_id", None)
    data["municipality_code"] = municipality_code
    return data


@app.get("/api/chitalishta")
def list_chitalishta(
    page: int = Query(0),
    size: int | None = Query(None),
    db: Session = Depends(get_db),
):
    page, size = page_params(page, size)
    total = db.scalar(select(func.count()).select_from(Chitalishte))
    rows = db.scalars(
        select(Chitalishte)
        .options(selectinload(Chitalishte.year_data), selectinload(Chitalishte.municipality))
        .order_by(Chitalishte.reg_n)
        .offset(page * size)
        .limit(size)
    ).all()
    return {"items": [chitalishte_to_dict(c) for c in rows], "page": page, "size": size, "total": total}


@app.get("/api/chitalishta/search")
def search_chitalishta(q: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    pattern = f"%{q.strip()}%"
    rows = db.scalars(
        select(Chitalishte)
        .where(or_(Chitalishte.name.ilike(pattern), Chitalishte.town.ilike(pattern)))
        .options(selectinload(Chitalishte.year_data), selectinload(Chitalishte.municipality))
        .order_by(Chitalishte.name)
        .limit(settings.max_page_size)
    ).all()
    return {"items": [chitalishte_to_dict(c) for c in rows]}


@app.get("/api/chitalishta/reg/{reg_n}")
def get_chitalishte(reg_n: str, db: Session = Depends(get_db)):
    chitalishte = db.scalars(select(Chitalishte).where(Chitalishte.reg_n == reg_n)).first()
    if chitalishte is None:
        raise HTTPException(status_code=404, detail=f"Chitalishte {reg_n} not found")
    return chitalishte_to_dict(chitalishte)


@app.get("/api/chitalishta/municipality/{municipality_code}/counts")
def count_municipality_chitalishta(municipality_code: str, db: Session = Depends(get_db)):
    municipality = find_municipality(db, municipality_code)
    villages, cities = count_by_settlement_type(list(municipality.chitalishta))
    return {
        "municipality_code": municipality_code,
        "total": len(municipality.chitalishta),
        "village": villages,
        "city": cities,
    }


# Admin API


def run_sync_import(db: Session, payload: bytes, filename: str, *, dry_run: bool) -> dict:
    """Run a claimed import in the request session and release the claim."""
    statistics = None
    error = None
    try:
        result = import_chitalishte_workbook(db, payload, filename, dry_run=dry_run)
        if dry_run:
            db.rollback()
        else:
            db.commit()
        statistics = result
    except HTTPException as exc:
        db.rollback()
        error = str(exc.detail)
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        error = "Unexpected import database error."
        logger.exception("Unexpected database error during workbook import")
        raise HTTPException(status_code=500, detail=error) from exc
    finally:
        finish_import(statistics=statistics, error=error)
    return statistics


def claim_or_conflict(filename: str) -> None:
    try:
        claim_import(filename)
    except ImportAlreadyRunning as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@app.post("/api/admin/import")
async def admin_import(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    mode: str = Form("background"),
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
):
    resolved_mode = mode.strip().lower() or "background"
    if resolved_mode not in IMPORT_MODES:
        allowed = ", ".join(sorted(IMPORT_MODES))
        raise HTTPException(status_code=400, detail=f"Invalid import mode '{mode}'. Allowed: {allowed}.")

    payload = await file.read()
    filename = file.filename or "workbook.xlsx"
    claim_or_conflict(filename)

    if resolved_mode == "background":
        background_tasks.add_task(run_import_job, session_factory, payload, filename)
        return JSONResponse(status_code=202, content={"status": "processing", "filename": filename})

    return json_safe(run_sync_import(db, payload, filename, dry_run=(resolved_mode == "preview")))


@app.get("/api/admin/import/status")
def admin_import_status():
    return json_safe(import_status())


@app.post("/api/admin/metrics/recalculate")
def admin_recalculate_metrics(db: Session = Depends(get_db)):
    try:
        result = calculate_all_metrics(db)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Unexpected database error while calculating metrics")
        raise HTTPException(status_code=500, detail="Unexpected server error while calculating metrics.") from exc
    commit_or_fail(db, "saving metrics")
    return result


@app.post("/api/admin/recalculate")
def admin_recalculate(db: Session = Depends(get_db)):
    try:
        result = recalculate_aggregates_and_metrics(db)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Unexpected database error while recalculating aggregates and metrics")
        raise HTTPException(status_code=500, detail="Unexpected server error while recalculating.") from exc
    commit_or_fail(db, "saving aggregates and metrics")
    return result


@app.post("/api/admin/aggregates")
def admin_aggregate_all(db: Session = Depends(get_db)):
    aggregated = aggregate_all(db)
    commit_or_fail(db, "saving aggregates")
    return {"municipalities_aggregated": aggregated}


@app.post("/api/admin/aggregates/{municipality_code}")
def admin_aggregate_one(municipality_code: str, db: Session = Depends(get_db)):
    try:
        municipality = aggregate_by_code(db, municipality_code)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    commit_or_fail(db, "saving aggregates")
    return {
        "municipality_code": municipality.municipality_code,
        "population_under_15_aggregate": municipality.population_under_15_aggregate,
        "population_over_65_aggregate": municipality.population_over_65_aggregate,
    }


@app.get("/api/admin/aggregates/verify")
def admin_verify_aggregates(db: Session = Depends(get_db)):
    mismatches = verify_aggregates(db)
    return {"mismatch_count": len(mismatches), "mismatches": mismatches}


# HTML import page


def render_import_page(
    request: Request,
    *,
    result: dict | None = None,
    error: str = "",
    uploaded_name: str = "",
    import_mode: str = "preview",
    status_code: int = 200,
):
    return templates.TemplateResponse(
        request,
        "import.html",
        {
            "result": result,
            "error": error,
            "uploaded_name": uploaded_name,
            "import_mode": import_mode,
        },
        status_code=status_code,
    )


@app.get("/import")
def import_page(request: Request):
    return render_import_page(request)


@app.post("/import/workbook")
async def import_workbook(
    request: Request,
    workbook_file: UploadFile = File(...),
    import_mode: str = Form("preview"),
    db: Session = Depends(get_db),
):
    mode = import_mode.strip().lower() or "preview"
    uploaded_name = workbook_file.filename or ""
    if mode not in {"preview", "apply"}:
        return render_import_page(
            request,
            error="Invalid import mode. Use preview or apply.",
            uploaded_name=uploaded_name,
            import_mode=mode,
            status_code=400,
        )

    payload = await workbook_file.read()
    try:
        claim_or_conflict(uploaded_name or "workbook.xlsx")
        result = run_sync_import(db, payload, uploaded_name or "workbook.xlsx", dry_run=(mode == "preview"))
    except HTTPException as exc:
        return render_import_page(
            request,
            error=str(exc.detail),
            uploaded_name=uploaded_name,
            import_mode=mode,
            status_code=exc.status_code,
        )
    return render_import_page(request, result=result, uploaded_name=uploaded_name, import_mode=mode)
