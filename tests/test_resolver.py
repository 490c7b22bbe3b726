from chitalishta.models import Chitalishte, Municipality
from chitalishta.resolver import ImportContext


def _context(db, **summary):
    return ImportContext(db=db, summary=dict(summary))


def test_same_reg_n_resolves_to_same_instance(db):
    ctx = _context(db)

    first, first_created = ctx.chitalishta.resolve("1001")
    second, second_created = ctx.chitalishta.resolve("1001")

    assert first is second
    assert first_created is True
    assert second_created is False
    assert ctx.chitalishta.created == 1
    assert ctx.chitalishta.updated == 0


def test_existing_row_is_found_and_counted_as_update(db):
    db.add(Municipality(municipality_code="BLG52", name="Blagoevgrad"))
    db.commit()

    ctx = _context(db)
    municipality, created = ctx.municipalities.resolve("BLG52")

    assert created is False
    assert municipality.name == "Blagoevgrad"
    assert ctx.municipalities.updated == 1
    assert ctx.municipalities.resolve("BLG52")[0] is municipality
    assert ctx.municipalities.updated == 1


def test_new_entity_is_cached_before_flush(db):
    ctx = _context(db)
    chitalishte, _ = ctx.chitalishta.resolve("2002")
    chitalishte.name = "Светлина"

    # Not flushed yet, so only the run cache can know about it.
    assert ctx.chitalishta.resolve("2002")[0].name == "Светлина"
    assert db.query(Chitalishte).count() == 0


def test_composite_keys_are_distinct_per_year(db):
    ctx = _context(db)
    fact_2022, _ = ctx.chitalishte_years.resolve("1001", 2022)
    fact_2023, _ = ctx.chitalishte_years.resolve("1001", 2023)

    assert fact_2022 is not fact_2023
    assert ctx.chitalishte_years.resolve("1001", 2022)[0] is fact_2022


def test_municipality_year_marker_is_set_once(db):
    ctx = _context(db)

    assert ctx.mark_municipality_year("BLG52", 2023) is True
    assert ctx.mark_municipality_year("BLG52", 2023) is False
    assert ctx.mark_municipality_year("BLG52", 2022) is True


def test_record_issue_respects_limit(db):
    ctx = _context(db, row_issue_limit=2)

    for row in range(2, 6):
        ctx.record_issue(level="error", row=row, message="bad row")
    ctx.record_issue(level="warning", row=9, message="odd year")

    assert len(ctx.summary["row_issues"]) == 2
    assert ctx.summary["row_issues_truncated"] == 3
    assert ctx.summary["error_count"] == 4
    assert ctx.summary["warning_count"] == 1
