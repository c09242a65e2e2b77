"""
Income Calculations

Derives annual gross rental income, other income and effective gross income
from the rent roll, unit-type templates and other-income items.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, Sequence

from propmetrics.calculations.errors import require_fraction, require_non_negative
from propmetrics.calculations.types import (
    MONTHS_PER_YEAR,
    ONE,
    ZERO,
    Assumptions,
    OtherIncomeItem,
    RentRollUnit,
    UnitType,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IncomeResult:
    """Annualized income figures."""

    gross_rental_income: Decimal
    vacancy_loss: Decimal
    other_income_annual: Decimal
    effective_gross_income: Decimal

    @property
    def monthly_gross_rent(self) -> Decimal:
        return self.gross_rental_income / MONTHS_PER_YEAR


def unit_monthly_rent(unit: RentRollUnit, unit_types: Dict[str, UnitType]) -> Decimal:
    """
    Active monthly rent for one unit.

    Occupied units earn their current rent. Vacant units are underwritten at
    pro-forma rent, or the unit type's market rent when no pro-forma is set.
    """
    if unit.is_occupied:
        return require_non_negative(f"rent_roll[{unit.unit}].current_rent", unit.current_rent)

    rent = require_non_negative(f"rent_roll[{unit.unit}].pro_forma_rent", unit.pro_forma_rent)
    if rent == ZERO and unit.unit_type_id in unit_types:
        rent = require_non_negative(
            f"unit_types[{unit.unit_type_id}].market_rent",
            unit_types[unit.unit_type_id].market_rent,
        )
    return rent


def calculate_gross_rental_income(
    rent_roll: Sequence[RentRollUnit], unit_types: Sequence[UnitType]
) -> Decimal:
    """
    Annual gross rent at full occupancy.

    With no rent roll yet, the unit-type templates (count x market rent) stand
    in for it, so a property in data entry still gets a pro-forma figure.
    """
    types_by_id = {unit_type.id: unit_type for unit_type in unit_types}

    if rent_roll:
        monthly = sum((unit_monthly_rent(unit, types_by_id) for unit in rent_roll), ZERO)
    else:
        monthly = ZERO
        for unit_type in unit_types:
            require_non_negative(
                f"unit_types[{unit_type.id}].unit_count", Decimal(unit_type.unit_count)
            )
            rent = require_non_negative(
                f"unit_types[{unit_type.id}].market_rent", unit_type.market_rent
            )
            monthly += rent * unit_type.unit_count

    return monthly * MONTHS_PER_YEAR


def calculate_other_income(items: Iterable[OtherIncomeItem]) -> Decimal:
    """Sum of annual other-income amounts."""
    return sum(
        (
            require_non_negative(f"other_income[{item.name}].annual_amount", item.annual_amount)
            for item in items
        ),
        ZERO,
    )


def compute_income(
    rent_roll: Sequence[RentRollUnit],
    unit_types: Sequence[UnitType],
    other_income: Sequence[OtherIncomeItem],
    assumptions: Assumptions,
) -> IncomeResult:
    """
    Compute annual income for a property.

    Vacancy is applied to rental income only; other income is added after.

    Args:
        rent_roll: Rent-roll units
        unit_types: Unit-type templates
        other_income: Other recurring income items
        assumptions: Property assumptions (vacancy rate)

    Returns:
        IncomeResult with gross, vacancy loss, other and effective gross income
    """
    vacancy_rate = require_fraction("assumptions.vacancy_rate", assumptions.vacancy_rate)

    gross = calculate_gross_rental_income(rent_roll, unit_types)
    other = calculate_other_income(other_income)
    vacancy_loss = gross * vacancy_rate
    effective = gross * (ONE - vacancy_rate) + other

    logger.debug(f"Income: gross={gross} vacancy_loss={vacancy_loss} other={other} egi={effective}")

    return IncomeResult(
        gross_rental_income=gross,
        vacancy_loss=vacancy_loss,
        other_income_annual=other,
        effective_gross_income=effective,
    )
