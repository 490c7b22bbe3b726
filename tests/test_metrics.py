import logging
from decimal import Decimal

import pytest

from chitalishta import metrics
from chitalishta.aggregation import aggregate_all, aggregate_by_code, aggregate_municipality, verify_aggregates
from chitalishta.metrics import calculate_all_metrics, calculate_metrics, compute_metrics, metrics_for
from chitalishta.models import (
    Chitalishte,
    ChitalishteYearData,
    Municipality,
    MunicipalityYearData,
    Settlement,
)


def _municipality(code="BLG52", population=None, **fields):
    return Municipality(municipality_code=code, municipality_population=population, **fields)


def _chitalishte(municipality, reg_n, village_city="село", training=None, year=2023):
    chitalishte = Chitalishte(reg_n=reg_n, village_city=village_city)
    if year is not None:
        chitalishte.year_data.append(ChitalishteYearData(reg_n=reg_n, year=year, training_participation=training))
    municipality.chitalishta.append(chitalishte)
    return chitalishte


def _year(municipality, year=2023, **fields):
    fact = MunicipalityYearData(municipality_code=municipality.municipality_code, year=year, **fields)
    municipality.year_data.append(fact)
    return fact


def test_aggregation_treats_missing_values_as_zero(db):
    municipality = _municipality()
    for index, under_15 in enumerate([120, 0, None, 45]):
        municipality.settlements.append(
            Settlement(ekatte=f"0000{index}", population_under_15=under_15, population_over_65=10)
        )
    db.add(municipality)
    db.flush()

    aggregate_municipality(municipality)

    assert municipality.population_under_15_aggregate == 165
    assert municipality.population_over_65_aggregate == 40


def test_aggregation_without_settlements_yields_zero(caplog):
    municipality = _municipality()

    with caplog.at_level(logging.WARNING):
        aggregate_municipality(municipality)

    assert municipality.population_under_15_aggregate == 0
    assert municipality.population_over_65_aggregate == 0
    assert "has no settlements" in caplog.text


def test_aggregate_by_code_and_verify(db):
    municipality = _municipality()
    municipality.settlements.append(Settlement(ekatte="00001", population_under_15=30, population_over_65=70))
    db.add(municipality)
    db.commit()

    assert verify_aggregates(db)[0]["expected_under_15"] == 30

    aggregate_by_code(db, "BLG52")
    db.commit()
    assert verify_aggregates(db) == []

    with pytest.raises(LookupError):
        aggregate_by_code(db, "NOPE1")


def test_revenue_shares_sum_to_hundred():
    municipality = _municipality(population=1000)
    _year(
        municipality,
        total_revenue_thousands=Decimal("1000"),
        revenue_from_subsidies_thousands=Decimal("600"),
        revenue_from_rent_thousands=Decimal("150"),
    )

    values = compute_metrics(municipality)

    assert values["revenue_from_subsidies_percent"] == Decimal("60.00")
    assert values["revenue_from_rent_percent"] == Decimal("15.00")
    assert values["revenue_from_other_percent"] == Decimal("25.00")


def test_revenue_and_expense_groups_skip_on_missing_totals():
    municipality = _municipality()
    _year(
        municipality,
        total_revenue_thousands=Decimal("0"),
        revenue_from_subsidies_thousands=Decimal("600"),
        total_expenses_thousands=None,
        expenses_salaries_thousands=Decimal("10"),
        expenses_social_security_thousands=Decimal("2"),
    )

    values = compute_metrics(municipality)

    assert values["revenue_from_subsidies_percent"] is None
    assert values["revenue_from_other_percent"] is None
    assert values["expenses_for_salaries_percent"] is None
    assert values["expenses_other_percent"] is None


def test_expense_split():
    municipality = _municipality()
    _year(
        municipality,
        total_expenses_thousands=Decimal("800"),
        expenses_salaries_thousands=Decimal("500"),
        expenses_social_security_thousands=Decimal("100"),
    )

    values = compute_metrics(municipality)

    assert values["expenses_for_salaries_percent"] == Decimal("75.00")
    assert values["expenses_other_percent"] == Decimal("25.00")


@pytest.mark.parametrize("population", [0, None])
def test_per_capita_guards_on_missing_population(population):
    municipality = _municipality(population=population)
    _chitalishte(municipality, "1001")
    _year(municipality, subsidized_positions=4)

    values = compute_metrics(municipality)

    assert values["state_subsidy_amount"] == Decimal("78220.00")
    assert values["state_subsidy_per_capita"] is None
    assert values["chitalishta_per_10k_residents"] is None
    assert values["chitalishta_per_1k_children_under_15"] is None
    assert values["chitalishta_per_1k_elderly"] is None
    assert values["chitalishta_per_1k_students"] is None
    assert values["chitalishta_per_1k_kindergarten"] is None


def test_subsidy_and_rates():
    municipality = _municipality(
        population=19555,
        population_under_15_aggregate=800,
        population_over_65_aggregate=3000,
        students_number=999,
    )
    _chitalishte(municipality, "1001")
    _chitalishte(municipality, "1002")
    _year(municipality, subsidized_positions=10, additional_positions=2, students_number=4000, kids_kindergartens=1500)

    values = compute_metrics(municipality)

    assert values["state_subsidy_amount"] == Decimal("195550.00")
    assert values["state_subsidy_per_capita"] == Decimal("10.00")
    assert values["additional_positions"] == 2
    assert values["chitalishta_per_10k_residents"] == Decimal("1.0")
    assert values["chitalishta_per_1k_children_under_15"] == Decimal("2.5")
    assert values["chitalishta_per_1k_elderly"] == Decimal("0.7")
    assert values["chitalishta_per_1k_students"] == Decimal("0.5")
    assert values["chitalishta_per_1k_kindergarten"] == Decimal("1.3")


def test_staff_shares_round_half_up():
    municipality = _municipality()
    _year(
        municipality,
        total_staff_count=8,
        staff_higher_education_count=1,
        staff_secondary_education_count=5,
        secretaries_count=0,
        secretaries_higher_education_count=0,
    )

    values = compute_metrics(municipality)

    assert values["total_staff"] == 8
    assert values["staff_higher_education_percent"] == Decimal("12.50")
    assert values["staff_secondary_education_percent"] == Decimal("62.50")
    assert values["secretaries_count"] == 0
    assert values["secretaries_higher_education_percent"] is None


def test_village_city_counts_ignore_case():
    municipality = _municipality()
    for index, kind in enumerate(["село", "Село", "СЕЛО", "град", None]):
        _chitalishte(municipality, f"10{index}", village_city=kind)

    values = compute_metrics(municipality)

    assert values["total_chitalishta"] == 5
    assert values["village_chitalishta"] == 3
    assert values["city_chitalishta"] == 1


def test_no_training_share_uses_latest_year():
    municipality = _municipality()
    trained_earlier = _chitalishte(municipality, "1001", training=1, year=2022)
    trained_earlier.year_data.append(ChitalishteYearData(reg_n="1001", year=2023, training_participation=0))
    _chitalishte(municipality, "1002", training=3)
    _chitalishte(municipality, "1003", year=None)

    values = compute_metrics(municipality)

    assert values["chitalishta_no_training_percent"] == Decimal("33.33")


def test_latest_municipality_year_is_used():
    municipality = _municipality()
    _year(municipality, year=2022, subsidized_positions=1)
    _year(municipality, year=2023, subsidized_positions=2)

    values = compute_metrics(municipality)

    assert values["source_year"] == 2023
    assert values["state_subsidy_amount"] == Decimal("39110.00")


def test_without_any_data_counts_are_zero_and_ratios_unset():
    values = compute_metrics(_municipality())

    assert values["total_chitalishta"] == 0
    assert values["chitalishta_no_training_percent"] is None
    assert values["state_subsidy_amount"] is None
    assert values["source_year"] is None


def test_calculate_metrics_overwrites_wholesale(db):
    municipality = _municipality(population=1000)
    fact = _year(municipality, subsidized_positions=3)
    db.add(municipality)
    db.flush()

    first = calculate_metrics(db, municipality)
    db.flush()
    assert first.state_subsidy_amount == Decimal("58665.00")

    fact.subsidized_positions = None
    second = calculate_metrics(db, municipality)
    db.commit()

    assert second is first
    assert second.state_subsidy_amount is None
    assert second.state_subsidy_per_capita is None
    assert metrics_for(db, "BLG52").id == first.id
    assert metrics_for(db, "MISSING") is None


def test_calculate_all_metrics_isolates_failures(db, monkeypatch):
    for code in ("AAA01", "BBB02", "CCC03"):
        db.add(_municipality(code=code, population=100))
    db.commit()

    real_compute = metrics.compute_metrics

    def flaky_compute(municipality):
        if municipality.municipality_code == "BBB02":
            raise ArithmeticError("boom")
        return real_compute(municipality)

    monkeypatch.setattr(metrics, "compute_metrics", flaky_compute)
    result = calculate_all_metrics(db)
    db.flush()

    assert result["metrics_calculated"] == 2
    assert result["metrics_created"] == 2
    assert result["metrics_errors"] == 1
    assert metrics_for(db, "AAA01") is not None
    assert metrics_for(db, "BBB02") is None


def test_recalculate_refreshes_aggregates_before_metrics(db):
    municipality = _municipality(population=5000)
    municipality.settlements.append(Settlement(ekatte="00001", population_under_15=500, population_over_65=250))
    _chitalishte(municipality, "1001")
    db.add(municipality)
    db.commit()

    assert aggregate_all(db) == 1
    result = metrics.recalculate_aggregates_and_metrics(db)
    db.commit()

    assert result["municipalities_aggregated"] == 1
    stored = metrics_for(db, "BLG52")
    assert stored.chitalishta_per_1k_children_under_15 == Decimal("2.0")
    assert stored.chitalishta_per_1k_elderly == Decimal("4.0")
