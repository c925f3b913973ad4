from decimal import Decimal

from tradie_market.core.config import PricingSettings
from tradie_market.modules.credits.pricing import CreditCostCalculator


def _calculator() -> CreditCostCalculator:
    return CreditCostCalculator.from_settings(PricingSettings())


def test_cost_multiplies_base_by_both_multipliers_and_rounds_up():
    calculator = _calculator()

    assert calculator.cost("electrical", "urgent") == 6  # 2 * 2.0 * 1.5
    assert calculator.cost("plumbing", "medium") == 4  # 3.6
    assert calculator.cost("cleaning", "low") == 2  # 1.6
    assert calculator.cost("electrical", "high") == 5  # 4.5


def test_unknown_values_default_to_neutral_multiplier():
    calculator = _calculator()

    assert calculator.urgency_multiplier("whenever") == Decimal("1.0")
    assert calculator.job_type_multiplier("underwater welding") == Decimal("1.0")
    assert calculator.cost("underwater welding", "whenever") == 2
    assert calculator.cost(None, None) == 2


def test_lookups_ignore_case_and_whitespace():
    calculator = _calculator()

    assert calculator.cost(" Electrical ", "URGENT") == calculator.cost("electrical", "urgent")


def test_exact_products_are_not_rounded_up_by_float_error():
    # 10 * 1.1 is 11.000000000000002 in binary floating point.
    calculator = CreditCostCalculator(base_cost=10, urgency_multipliers={"high": 1.1})

    assert calculator.cost("general", "high") == 11


def test_quote_matches_charged_cost_and_explains_itself():
    calculator = CreditCostCalculator(base_cost=10, urgency_multipliers={"urgent": 1.5})

    quote = calculator.quote("electrical", "urgent")

    assert quote.final_cost == calculator.cost("electrical", "urgent") == 15
    assert quote.urgency_multiplier == Decimal("1.5")
    assert quote.job_type_multiplier == Decimal("1.0")
    assert quote.breakdown()[0] == "Base cost: 10 credits"
