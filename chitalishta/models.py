from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Float, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chitalishta.database import Base


class Municipality(Base):
    __tablename__ = "municipalities"

    id: Mapped[int] = mapped_column(primary_key=True)
    municipality_code: Mapped[str] = mapped_column(String(10), unique=True, index=True)
    name: Mapped[str | None] = mapped_column(Text)
    municipality_norm: Mapped[str | None] = mapped_column(Text)
    district: Mapped[str | None] = mapped_column(Text)
    district_code: Mapped[str | None] = mapped_column(String(10))
    nuts1: Mapped[str | None] = mapped_column(String(10))
    nuts2: Mapped[str | None] = mapped_column(String(10))
    nuts3: Mapped[str | None] = mapped_column(String(10))
    mrrb_category: Mapped[str | None] = mapped_column(Text)
    n_chitalishta_source: Mapped[int | None] = mapped_column(Integer)
    municipality_population: Mapped[int | None] = mapped_column(Integer)
    share_bulgarian: Mapped[float | None] = mapped_column(Float)
    share_turkish: Mapped[float | None] = mapped_column(Float)
    share_roma: Mapped[float | None] = mapped_column(Float)
    share_others: Mapped[float | None] = mapped_column(Float)
    migration_coefficient: Mapped[float | None] = mapped_column(Float)
    unemployment_rate: Mapped[float | None] = mapped_column(Float)
    gross_wage_monthly: Mapped[float | None] = mapped_column(Float)
    companies_number: Mapped[int | None] = mapped_column(Integer)
    students_number: Mapped[int | None] = mapped_column(Integer)
    kids_kindergartens: Mapped[int | None] = mapped_column(Integer)
    hospitals: Mapped[int | None] = mapped_column(Integer)
    # Sums over owned settlements, refreshed by aggregation.
    population_under_15_aggregate: Mapped[int | None] = mapped_column(Integer)
    population_over_65_aggregate: Mapped[int | None] = mapped_column(Integer)

    settlements: Mapped[list["Settlement"]] = relationship(
        back_populates="municipality", cascade="all, delete-orphan"
    )
    chitalishta: Mapped[list["Chitalishte"]] = relationship(
        back_populates="municipality", cascade="all, delete-orphan"
    )
    year_data: Mapped[list["MunicipalityYearData"]] = relationship(
        back_populates="municipality", cascade="all, delete-orphan"
    )
    metrics: Mapped["MunicipalityMetrics | None"] = relationship(
        back_populates="municipality", cascade="all, delete-orphan", uselist=False
    )


class Settlement(Base):
    __tablename__ = "settlements"

    ekatte: Mapped[str] = mapped_column(String(10), primary_key=True)
    municipality_code: Mapped[str | None] = mapped_column(
        ForeignKey("municipalities.municipality_code", ondelete="CASCADE"), index=True
    )
    settlement_norm: Mapped[str | None] = mapped_column(Text)
    village_city: Mapped[str | None] = mapped_column(String(20))
    settlement_population: Mapped[int | None] = mapped_column(Integer)
    population_under_15: Mapped[int | None] = mapped_column(Integer)
    population_15_64: Mapped[int | None] = mapped_column(Integer)
    population_over_65: Mapped[int | None] = mapped_column(Integer)
    higher_education: Mapped[int | None] = mapped_column(Integer)
    secondary_education: Mapped[int | None] = mapped_column(Integer)
    primary_education: Mapped[int | None] = mapped_column(Integer)
    elementary_education: Mapped[int | None] = mapped_column(Integer)
    no_education: Mapped[int | None] = mapped_column(Integer)
    literate: Mapped[int | None] = mapped_column(Integer)
    illiterate: Mapped[int | None] = mapped_column(Integer)

    municipality: Mapped[Municipality | None] = relationship(back_populates="settlements")
    chitalishta: Mapped[list["Chitalishte"]] = relationship(back_populates="settlement")


class Chitalishte(Base):
    __tablename__ = "chitalishta"

    id: Mapped[int] = mapped_column(primary_key=True)
    reg_n: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    municipality_id: Mapped[int | None] = mapped_column(
        ForeignKey("municipalities.id", ondelete="CASCADE"), index=True
    )
    ekatte: Mapped[str | None] = mapped_column(ForeignKey("settlements.ekatte", ondelete="SET NULL"))
    name: Mapped[str | None] = mapped_column(Text)
    town: Mapped[str | None] = mapped_column(Text)
    address: Mapped[str | None] = mapped_column(Text)
    uic: Mapped[str | None] = mapped_column(String(20))
    phone: Mapped[str | None] = mapped_column(Text)
    settlement_norm: Mapped[str | None] = mapped_column(Text)
    village_city: Mapped[str | None] = mapped_column(String(20))
    mayorality_code: Mapped[str | None] = mapped_column(String(20))
    is_munip_center: Mapped[int | None] = mapped_column(Integer)
    empl_category: Mapped[str | None] = mapped_column(Text)
    regional_list: Mapped[str | None] = mapped_column(Text)
    national_list: Mapped[str | None] = mapped_column(Text)
    # Filled by the public site's slug sync, never by the importer.
    slug: Mapped[str | None] = mapped_column(String(255), unique=True)

    municipality: Mapped[Municipality | None] = relationship(back_populates="chitalishta")
    settlement: Mapped[Settlement | None] = relationship(back_populates="chitalishta")
    year_data: Mapped[list["ChitalishteYearData"]] = relationship(
        back_populates="chitalishte", cascade="all, delete-orphan"
    )

    def latest_year_data(self) -> "ChitalishteYearData | None":
        if not self.year_data:
            return None
        return max(self.year_data, key=lambda item: item.year)


class ChitalishteYearData(Base):
    __tablename__ = "chitalishte_year_data"

    reg_n: Mapped[str] = mapped_column(
        ForeignKey("chitalishta.reg_n", ondelete="CASCADE"), primary_key=True
    )
    year: Mapped[int] = mapped_column(Integer, primary_key=True)

    # Financial statement
    total_expenditure: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    accumulated_profit: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    profit: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    operating_income: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    total_income: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    accumulated_loss: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    loss: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    external_services_spending: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    intangible_assets: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    fixed_assets: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    material_reserves: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    receivables: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    investment: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    cash: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    current_assets: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    total_assets: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    equity: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    liabilities: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    short_term_liabilities: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    long_term_liabilities: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    average_annual_staff: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    net_income: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    staff_expenses: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    trade_price: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))

    # Financial ratios
    income_profitability: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    equity_profitability: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    asset_profitability: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    financial_autonomy: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    financial_debt: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    short_term_liquidity: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    fast_liquidity: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    immediate_liquidity: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    absolute_liquidity: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    turnover_time: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    turnover_count: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    debt_to_tangible_assets: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    assets_per_staff: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    liabilities_per_staff: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    income_per_staff: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    profit_per_staff: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    staff_count: Mapped[int | None] = mapped_column(Integer)

    # Governance and membership
    chairman: Mapped[str | None] = mapped_column(Text)
    phone_registry: Mapped[str | None] = mapped_column(Text)
    secretary: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str | None] = mapped_column(Text)
    total_members: Mapped[int | None] = mapped_column(Integer)
    membership_applications: Mapped[int | None] = mapped_column(Integer)
    new_members: Mapped[int | None] = mapped_column(Integer)
    rejected_applications: Mapped[int | None] = mapped_column(Integer)

    # Activities
    library_activity: Mapped[str | None] = mapped_column(Text)
    art_clubs: Mapped[int | None] = mapped_column(Integer)
    art_clubs_text: Mapped[str | None] = mapped_column(Text)
    language_schools: Mapped[int | None] = mapped_column(Integer)
    language_schools_text: Mapped[str | None] = mapped_column(Text)
    local_history_clubs: Mapped[int | None] = mapped_column(Integer)
    local_history_clubs_text: Mapped[str | None] = mapped_column(Text)
    museum_collections: Mapped[int | None] = mapped_column(Integer)
    museum_collections_text: Mapped[str | None] = mapped_column(Text)
    folklore_groups: Mapped[int | None] = mapped_column(Integer)
    theater_groups: Mapped[int | None] = mapped_column(Integer)
    dance_groups: Mapped[int | None] = mapped_column(Integer)
    classical_dance_groups: Mapped[int | None] = mapped_column(Integer)
    vocal_groups: Mapped[int | None] = mapped_column(Integer)
    other_clubs: Mapped[int | None] = mapped_column(Integer)
    event_participations: Mapped[int | None] = mapped_column(Integer)
    independent_projects: Mapped[int | None] = mapped_column(Integer)
    collaborative_projects: Mapped[int | None] = mapped_column(Integer)
    disability_work: Mapped[str | None] = mapped_column(Text)
    other_activities: Mapped[str | None] = mapped_column(Text)

    # Staffing
    subsidized_staff_count: Mapped[int | None] = mapped_column(Integer)
    total_staff_registry: Mapped[int | None] = mapped_column(Integer)
    staff_higher_edu: Mapped[int | None] = mapped_column(Integer)
    specialized_positions: Mapped[int | None] = mapped_column(Integer)
    administrative_positions: Mapped[int | None] = mapped_column(Integer)
    support_staff: Mapped[int | None] = mapped_column(Integer)
    imposed_sanctions: Mapped[int | None] = mapped_column(Integer)
    training_participation: Mapped[int | None] = mapped_column(Integer)

    # Library
    library_users: Mapped[int | None] = mapped_column(Integer)
    library_users_online: Mapped[int | None] = mapped_column(Integer)
    library_units: Mapped[int | None] = mapped_column(Integer)
    newly_acquired: Mapped[int | None] = mapped_column(Integer)
    newly_acquired_alt: Mapped[int | None] = mapped_column(Integer)
    borrowed_documents: Mapped[int | None] = mapped_column(Integer)
    home_visits: Mapped[int | None] = mapped_column(Integer)
    reading_room_visits: Mapped[int | None] = mapped_column(Integer)
    internet_access: Mapped[int | None] = mapped_column(Integer)
    computerized_workstations: Mapped[int | None] = mapped_column(Integer)
    computerized_workstations_alt: Mapped[int | None] = mapped_column(Integer)
    regional_projects: Mapped[int | None] = mapped_column(Integer)
    national_projects: Mapped[int | None] = mapped_column(Integer)
    international_projects: Mapped[int | None] = mapped_column(Integer)
    library_staff_total: Mapped[int | None] = mapped_column(Integer)
    library_staff_higher_edu: Mapped[int | None] = mapped_column(Integer)
    library_staff_secondary_edu: Mapped[int | None] = mapped_column(Integer)
    library_staff_training: Mapped[int | None] = mapped_column(Integer)

    chitalishte: Mapped[Chitalishte] = relationship(back_populates="year_data")


class MunicipalityYearData(Base):
    __tablename__ = "municipality_year_data"

    municipality_code: Mapped[str] = mapped_column(
        ForeignKey("municipalities.municipality_code", ondelete="CASCADE"), primary_key=True
    )
    year: Mapped[int] = mapped_column(Integer, primary_key=True)

    total_staff_count: Mapped[int | None] = mapped_column(Integer)
    staff_higher_education_count: Mapped[int | None] = mapped_column(Integer)
    staff_secondary_education_count: Mapped[int | None] = mapped_column(Integer)
    secretaries_count: Mapped[int | None] = mapped_column(Integer)
    secretaries_higher_education_count: Mapped[int | None] = mapped_column(Integer)

    total_revenue_thousands: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))
    revenue_from_subsidies_thousands: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))
    revenue_from_rent_thousands: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))
    total_expenses_thousands: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))
    expenses_salaries_thousands: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))
    expenses_social_security_thousands: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))

    average_insurance_income: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    unique_employment_contracts: Mapped[int | None] = mapped_column(Integer)
    subsidized_positions: Mapped[int | None] = mapped_column(Integer)
    additional_positions: Mapped[int | None] = mapped_column(Integer)

    unemployment_rate: Mapped[float | None] = mapped_column(Float)
    unemployment_rate_15_29: Mapped[float | None] = mapped_column(Float)
    gross_wage_monthly: Mapped[float | None] = mapped_column(Float)
    gross_value_added_per_person: Mapped[float | None] = mapped_column(Float)
    companies_number: Mapped[int | None] = mapped_column(Integer)
    companies_per_capita: Mapped[float | None] = mapped_column(Float)
    employment_rate: Mapped[float | None] = mapped_column(Float)
    urban_population_percent: Mapped[float | None] = mapped_column(Float)
    students_number: Mapped[int | None] = mapped_column(Integer)
    students_per_1000: Mapped[float | None] = mapped_column(Float)
    kids_kindergartens: Mapped[int | None] = mapped_column(Integer)
    hospitals: Mapped[int | None] = mapped_column(Integer)
    poor_health: Mapped[float | None] = mapped_column(Float)

    municipality: Mapped[Municipality] = relationship(back_populates="year_data")


class MunicipalityMetrics(Base):
    __tablename__ = "municipality_metrics"

    id: Mapped[int] = mapped_column(primary_key=True)
    municipality_id: Mapped[int] = mapped_column(
        ForeignKey("municipalities.id", ondelete="CASCADE"), unique=True
    )
    source_year: Mapped[int | None] = mapped_column(Integer)

    total_chitalishta: Mapped[int] = mapped_column(Integer, default=0)
    village_chitalishta: Mapped[int] = mapped_column(Integer, default=0)
    city_chitalishta: Mapped[int] = mapped_column(Integer, default=0)

    state_subsidy_amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))
    state_subsidy_per_capita: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    additional_positions: Mapped[int | None] = mapped_column(Integer)

    revenue_from_subsidies_percent: Mapped[Decimal | None] = mapped_column(Numeric(7, 2))
    revenue_from_rent_percent: Mapped[Decimal | None] = mapped_column(Numeric(7, 2))
    revenue_from_other_percent: Mapped[Decimal | None] = mapped_column(Numeric(7, 2))
    expenses_for_salaries_percent: Mapped[Decimal | None] = mapped_column(Numeric(7, 2))
    expenses_other_percent: Mapped[Decimal | None] = mapped_column(Numeric(7, 2))

    total_staff: Mapped[int | None] = mapped_column(Integer)
    unique_employment_contracts: Mapped[int | None] = mapped_column(Integer)
    staff_higher_education_percent: Mapped[Decimal | None] = mapped_column(Numeric(7, 2))
    staff_secondary_education_percent: Mapped[Decimal | None] = mapped_column(Numeric(7, 2))
    secretaries_count: Mapped[int | None] = mapped_column(Integer)
    secretaries_higher_education_percent: Mapped[Decimal | None] = mapped_column(Numeric(7, 2))
    average_insurance_income: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    chitalishta_no_training_percent: Mapped[Decimal | None] = mapped_column(Numeric(7, 2))

    chitalishta_per_10k_residents: Mapped[Decimal | None] = mapped_column(Numeric(10, 1))
    chitalishta_per_1k_children_under_15: Mapped[Decimal | None] = mapped_column(Numeric(10, 1))
    chitalishta_per_1k_students: Mapped[Decimal | None] = mapped_column(Numeric(10, 1))
    chitalishta_per_1k_kindergarten: Mapped[Decimal | None] = mapped_column(Numeric(10, 1))
    chitalishta_per_1k_elderly: Mapped[Decimal | None] = mapped_column(Numeric(10, 1))

    calculated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    municipality: Mapped[Municipality] = relationship(back_populates="metrics")
