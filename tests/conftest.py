from contextlib import asynccontextmanager
from io import BytesIO
from pathlib import Path
import sys

import pytest
from fastapi.testclient import TestClient
from openpyxl import Workbook
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from chitalishta import columns, main
from chitalishta.database import Base

ROW_WIDTH = 180

HEADER = [f"col_{i}" for i in range(ROW_WIDTH)]


def position(layout: dict[str, tuple[int, str]], attribute: str) -> int:
    return layout[attribute][0]


def registry_row(
    reg_n="1001",
    *,
    municipality_code="BLG52",
    year=2023,
    ekatte="00151",
    values: dict[int, object] | None = None,
) -> list:
    row: list = [None] * ROW_WIDTH
    row[columns.REG_N] = reg_n
    row[columns.CHITALISHTE_NAME] = f"Chitalishte {reg_n}"
    row[columns.YEAR] = year
    row[columns.MUNICIPALITY_CODE] = municipality_code
    row[columns.EKATTE] = ekatte
    row[position(columns.MUNICIPALITY_COLUMNS, "name")] = f"Municipality {municipality_code}"
    row[position(columns.MUNICIPALITY_COLUMNS, "district")] = "Blagoevgrad"
    row[position(columns.MUNICIPALITY_COLUMNS, "municipality_population")] = 20000
    row[position(columns.CHITALISHTE_COLUMNS, "town")] = "Town"
    row[position(columns.CHITALISHTE_COLUMNS, "village_city")] = "село"
    row[position(columns.SETTLEMENT_COLUMNS, "population_under_15")] = 400
    row[position(columns.SETTLEMENT_COLUMNS, "population_over_65")] = 500
    row[position(columns.CHITALISHTE_YEAR_COLUMNS, "status")] = "Действащо"
    row[position(columns.CHITALISHTE_YEAR_COLUMNS, "training_participation")] = 1
    row[position(columns.MUNICIPALITY_YEAR_COLUMNS, "subsidized_positions")] = 10
    row[position(columns.MUNICIPALITY_YEAR_COLUMNS, "total_revenue_thousands")] = 1000
    row[position(columns.MUNICIPALITY_YEAR_COLUMNS, "revenue_from_subsidies_thousands")] = 600
    row[position(columns.MUNICIPALITY_YEAR_COLUMNS, "revenue_from_rent_thousands")] = 150
    for index, value in (values or {}).items():
        row[index] = value
    return row


def workbook_bytes(rows: list[list]) -> bytes:
    wb = Workbook()
    sheet = wb.active
    sheet.title = "Registry"
    sheet.append(HEADER)
    for row in rows:
        sheet.append(row)
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


@pytest.fixture()
def engine(tmp_path):
    db_path = tmp_path / "test.db"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    original_lifespan = main.app.router.lifespan_context

    @asynccontextmanager
    async def _noop_lifespan(_app):
        yield

    main.app.router.lifespan_context = _noop_lifespan
    main.app.dependency_overrides[main.get_db] = override_get_db
    main.app.dependency_overrides[main.get_session_factory] = lambda: session_factory

    client = TestClient(main.app)
    try:
        yield client
    finally:
        client.close()
        main.app.dependency_overrides.clear()
        main.app.router.lifespan_context = original_lifespan
