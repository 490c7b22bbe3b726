"""Positional layout of the chitalishta registry sheet.

Every column the importer reads is listed here as ``attribute: (position, kind)``
with zero-based positions. When the provider changes the sheet layout, this is
the only module that needs editing.
"""

TEXT = "text"
CODE = "code"
INT = "int"
DECIMAL = "decimal"
FLOAT = "float"

REG_N = 0
CHITALISHTE_NAME = 1
YEAR = 2
MUNICIPALITY_CODE = 12
EKATTE = 17

MUNICIPALITY_COLUMNS: dict[str, tuple[int, str]] = {
    "district": (3, TEXT),
    "name": (4, TEXT),
    "municipality_norm": (9, TEXT),
    "district_code": (11, CODE),
    "nuts1": (14, CODE),
    "nuts2": (15, CODE),
    "nuts3": (16, CODE),
    "mrrb_category": (18, TEXT),
    "n_chitalishta_source": (21, INT),
    "municipality_population": (122, INT),
    "share_bulgarian": (167, FLOAT),
    "share_turkish": (168, FLOAT),
    "share_roma": (169, FLOAT),
    "share_others": (170, FLOAT),
    "migration_coefficient": (171, FLOAT),
    "unemployment_rate": (158, FLOAT),
    "gross_wage_monthly": (160, FLOAT),
    "companies_number": (162, INT),
    "students_number": (172, INT),
    "kids_kindergartens": (176, INT),
    "hospitals": (177, INT),
}

SETTLEMENT_COLUMNS: dict[str, tuple[int, str]] = {
    "settlement_norm": (8, TEXT),
    "village_city": (10, TEXT),
    "settlement_population": (121, INT),
    "population_under_15": (123, INT),
    "population_15_64": (124, INT),
    "population_over_65": (125, INT),
    "higher_education": (126, INT),
    "secondary_education": (127, INT),
    "primary_education": (128, INT),
    "elementary_education": (129, INT),
    "no_education": (130, INT),
    "literate": (131, INT),
    "illiterate": (132, INT),
}

CHITALISHTE_COLUMNS: dict[str, tuple[int, str]] = {
    "name": (CHITALISHTE_NAME, TEXT),
    "town": (5, TEXT),
    "address": (6, TEXT),
    "uic": (7, CODE),
    "settlement_norm": (8, TEXT),
    "village_city": (10, TEXT),
    "mayorality_code": (13, CODE),
    "is_munip_center": (20, INT),
    "empl_category": (22, TEXT),
    "phone": (65, TEXT),
    "regional_list": (72, TEXT),
    "national_list": (73, TEXT),
}

CHITALISHTE_YEAR_COLUMNS: dict[str, tuple[int, str]] = {
    "total_expenditure": (23, DECIMAL),
    "accumulated_profit": (24, DECIMAL),
    "profit": (25, DECIMAL),
    "operating_income": (26, DECIMAL),
    "total_income": (27, DECIMAL),
    "accumulated_loss": (28, DECIMAL),
    "loss": (29, DECIMAL),
    "external_services_spending": (30, DECIMAL),
    "intangible_assets": (31, DECIMAL),
    "fixed_assets": (32, DECIMAL),
    "material_reserves": (33, DECIMAL),
    "receivables": (34, DECIMAL),
    "investment": (35, DECIMAL),
    "cash": (36, DECIMAL),
    "current_assets": (37, DECIMAL),
    "total_assets": (38, DECIMAL),
    "equity": (39, DECIMAL),
    "liabilities": (40, DECIMAL),
    "short_term_liabilities": (41, DECIMAL),
    "long_term_liabilities": (42, DECIMAL),
    "average_annual_staff": (43, DECIMAL),
    "net_income": (44, DECIMAL),
    "staff_expenses": (45, DECIMAL),
    "trade_price": (46, DECIMAL),
    "income_profitability": (47, DECIMAL),
    "equity_profitability": (48, DECIMAL),
    "asset_profitability": (49, DECIMAL),
    "financial_autonomy": (50, DECIMAL),
    "financial_debt": (51, DECIMAL),
    "short_term_liquidity": (52, DECIMAL),
    "fast_liquidity": (53, DECIMAL),
    "immediate_liquidity": (54, DECIMAL),
    "absolute_liquidity": (55, DECIMAL),
    "turnover_time": (56, DECIMAL),
    "turnover_count": (57, DECIMAL),
    "debt_to_tangible_assets": (58, DECIMAL),
    "assets_per_staff": (59, DECIMAL),
    "liabilities_per_staff": (60, DECIMAL),
    "income_per_staff": (61, DECIMAL),
    "profit_per_staff": (62, DECIMAL),
    "staff_count": (63, INT),
    "chairman": (64, TEXT),
    "phone_registry": (65, TEXT),
    "secretary": (66, TEXT),
    "status": (67, TEXT),
    "total_members": (68, INT),
    "membership_applications": (69, INT),
    "new_members": (70, INT),
    "rejected_applications": (71, INT),
    "library_activity": (72, TEXT),
    "art_clubs": (73, INT),
    "art_clubs_text": (74, TEXT),
    "language_schools": (75, INT),
    "language_schools_text": (76, TEXT),
    "local_history_clubs": (77, INT),
    "local_history_clubs_text": (78, TEXT),
    "museum_collections": (79, INT),
    "museum_collections_text": (80, TEXT),
    "folklore_groups": (81, INT),
    "theater_groups": (82, INT),
    "dance_groups": (83, INT),
    "classical_dance_groups": (84, INT),
    "vocal_groups": (85, INT),
    "other_clubs": (86, INT),
    "event_participations": (87, INT),
    "independent_projects": (88, INT),
    "collaborative_projects": (89, INT),
    "disability_work": (90, TEXT),
    "other_activities": (91, TEXT),
    "subsidized_staff_count": (92, INT),
    "total_staff_registry": (93, INT),
    "staff_higher_edu": (94, INT),
    "specialized_positions": (95, INT),
    "administrative_positions": (96, INT),
    "support_staff": (97, INT),
    "imposed_sanctions": (99, INT),
    "training_participation": (101, INT),
    "library_users": (103, INT),
    "library_users_online": (104, INT),
    "library_units": (105, INT),
    "newly_acquired": (106, INT),
    "newly_acquired_alt": (107, INT),
    "borrowed_documents": (108, INT),
    "home_visits": (109, INT),
    "reading_room_visits": (110, INT),
    "internet_access": (111, INT),
    "computerized_workstations": (112, INT),
    "computerized_workstations_alt": (113, INT),
    "regional_projects": (114, INT),
    "national_projects": (115, INT),
    "international_projects": (116, INT),
    "library_staff_total": (117, INT),
    "library_staff_higher_edu": (118, INT),
    "library_staff_secondary_edu": (119, INT),
    "library_staff_training": (120, INT),
}

# Municipality-wide figures, repeated on every row of the municipality.
MUNICIPALITY_YEAR_COLUMNS: dict[str, tuple[int, str]] = {
    "total_staff_count": (137, INT),
    "staff_higher_education_count": (138, INT),
    "staff_secondary_education_count": (139, INT),
    "secretaries_count": (143, INT),
    "secretaries_higher_education_count": (144, INT),
    "total_revenue_thousands": (147, DECIMAL),
    "revenue_from_subsidies_thousands": (148, DECIMAL),
    "revenue_from_rent_thousands": (149, DECIMAL),
    "total_expenses_thousands": (150, DECIMAL),
    "expenses_salaries_thousands": (151, DECIMAL),
    "expenses_social_security_thousands": (152, DECIMAL),
    "average_insurance_income": (154, DECIMAL),
    "unique_employment_contracts": (155, INT),
    "subsidized_positions": (156, INT),
    "additional_positions": (157, INT),
    "unemployment_rate": (158, FLOAT),
    "unemployment_rate_15_29": (159, FLOAT),
    "gross_wage_monthly": (160, FLOAT),
    "gross_value_added_per_person": (161, FLOAT),
    "companies_number": (162, INT),
    "companies_per_capita": (163, FLOAT),
    "employment_rate": (164, FLOAT),
    "urban_population_percent": (165, FLOAT),
    "students_number": (172, INT),
    "students_per_1000": (173, FLOAT),
    "kids_kindergartens": (176, INT),
    "hospitals": (177, INT),
    "poor_health": (178, FLOAT),
}
