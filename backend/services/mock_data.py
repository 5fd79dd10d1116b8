"""
Mock Swiss tax data scenarios for Canton Zurich.
Stands in for a real taxpayer database: three fixed profiles keyed by scenario id.
"""

from backend.models import Deductions, Income, PersonalInfo, TaxData, TaxScenario, Wealth

SCENARIOS = ("single", "married", "freelancer")

# Single employee in Zurich
EMPLOYEE_SINGLE = TaxData(
    personal_info=PersonalInfo(
        first_name="Anna",
        last_name="Müller",
        date_of_birth="1990-05-15",
        address="Bahnhofstrasse 100, 8001 Zürich",
        municipality="Zürich",
        marital_status="single",
    ),
    income=Income(employment=85000, investments=1200, other=0),
    deductions=Deductions(
        professional_expenses=3500,
        healthcare_expenses=2800,
        pillar3a=7056,  # max contribution for 2024
        commuting=2400,
        donations=500,
    ),
    wealth=Wealth(bank_accounts=45000, securities=25000, real_estate=0),
    tax_year=2024,
)

# Married couple with children
FAMILY_MARRIED = TaxData(
    personal_info=PersonalInfo(
        first_name="Thomas",
        last_name="Weber",
        date_of_birth="1985-03-22",
        address="Seestrasse 45, 8002 Zürich",
        municipality="Zürich",
        marital_status="married",
    ),
    income=Income(employment=120000, rental=18000, investments=3500),
    deductions=Deductions(
        professional_expenses=5000,
        healthcare_expenses=4200,
        pillar3a=14112,  # both spouses employed
        childcare=8000,
        commuting=3000,
        donations=1200,
    ),
    wealth=Wealth(bank_accounts=85000, securities=120000, real_estate=650000),
    tax_year=2024,
)

# Self-employed freelancer
FREELANCER = TaxData(
    personal_info=PersonalInfo(
        first_name="Marco",
        last_name="Rossi",
        date_of_birth="1988-11-08",
        address="Langstrasse 88, 8004 Zürich",
        municipality="Zürich",
        marital_status="divorced",
    ),
    income=Income(self_employment=95000, investments=2200),
    deductions=Deductions(
        professional_expenses=12000,
        healthcare_expenses=3600,
        pillar3a=7056,
        education=2500,
        donations=800,
    ),
    wealth=Wealth(bank_accounts=32000, securities=18000),
    tax_year=2024,
)

_BY_SCENARIO = {
    "single": EMPLOYEE_SINGLE,
    "married": FAMILY_MARRIED,
    "freelancer": FREELANCER,
}


def get_mock_tax_data(scenario: str = "single") -> TaxData:
    """Return a copy of the fixture for ``scenario``; unknown ids fall back to ``single``."""
    return _BY_SCENARIO.get(scenario, EMPLOYEE_SINGLE).model_copy(deep=True)


def get_available_scenarios() -> list[TaxScenario]:
    return [
        TaxScenario(
            id="single",
            name="Single Employee",
            description="Young professional, single, employed in Zurich",
            income=EMPLOYEE_SINGLE.income.employment,
        ),
        TaxScenario(
            id="married",
            name="Married with Children",
            description="Married couple with rental income and children",
            income=FAMILY_MARRIED.income.employment,
        ),
        TaxScenario(
            id="freelancer",
            name="Self-Employed Freelancer",
            description="Divorced freelancer with business expenses",
            income=FREELANCER.income.self_employment,
        ),
    ]
