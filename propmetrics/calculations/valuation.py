"""
Valuation Calculations

After-repair value (ARV) and total invested capital.

ARV is determined exactly once per evaluation:
    1. Sold properties: the realized sale price.
    2. Positive NOI and market cap rate: NOI / market cap rate.
    3. Otherwise: the purchase price.
"""

import enum
import logging
from dataclasses import dataclass
from decimal import Decimal

from propmetrics.calculations.errors import (
    InvalidInputError,
    require_fraction,
    require_non_negative,
)
from propmetrics.calculations.types import ONE, ZERO, Assumptions, PropertyRecord, PropertyStatus

logger = logging.getLogger(__name__)


class ArvBasis(str, enum.Enum):
    """Which rule produced the ARV."""

    sale_price = "sale_price"
    income = "income"
    purchase_price = "purchase_price"


@dataclass(frozen=True)
class ValuationResult:
    """ARV and the capital the investor put in."""

    arv: Decimal
    arv_basis: ArvBasis
    down_payment: Decimal
    total_invested_capital: Decimal
    all_in_cost: Decimal


def calculate_arv(
    net_operating_income: Decimal, market_cap_rate: Decimal, prop: PropertyRecord
):
    """
    Apply the ARV policy.

    Returns:
        Tuple of (arv, ArvBasis)
    """
    if prop.status == PropertyStatus.sold:
        if prop.sale_price is None:
            raise InvalidInputError("property.sale_price", None, "required for a sold property")
        return require_non_negative("property.sale_price", prop.sale_price), ArvBasis.sale_price

    if net_operating_income > ZERO and market_cap_rate > ZERO:
        return net_operating_income / market_cap_rate, ArvBasis.income

    return prop.purchase_price, ArvBasis.purchase_price


def compute_valuation(
    net_operating_income: Decimal,
    assumptions: Assumptions,
    prop: PropertyRecord,
    rehab_total: Decimal,
    closing_total: Decimal,
    holding_total: Decimal,
) -> ValuationResult:
    """
    Compute ARV and total invested capital.

    Invested capital is the down payment (purchase price not covered by
    loan-to-cost financing) plus closing and holding costs. Rehab is added only
    when it is not financed through the acquisition loan.

    Args:
        net_operating_income: Annual NOI
        assumptions: Market cap rate, loan-to-cost and rehab financing flag
        prop: Property record
        rehab_total: Total rehab budget
        closing_total: Total closing costs
        holding_total: Total holding costs

    Returns:
        ValuationResult
    """
    market_cap_rate = require_fraction("assumptions.market_cap_rate", assumptions.market_cap_rate)
    loan_to_cost = require_fraction("assumptions.loan_to_cost", assumptions.loan_to_cost)
    purchase_price = require_non_negative("property.purchase_price", prop.purchase_price)
    require_non_negative("rehab_total", rehab_total)
    require_non_negative("closing_total", closing_total)
    require_non_negative("holding_total", holding_total)

    arv, basis = calculate_arv(net_operating_income, market_cap_rate, prop)

    down_payment = purchase_price * (ONE - loan_to_cost)
    invested = down_payment + closing_total + holding_total
    if not assumptions.rehab_financed:
        invested += rehab_total

    all_in_cost = purchase_price + rehab_total + closing_total + holding_total

    logger.debug(f"Valuation: arv={arv} basis={basis.value} invested={invested}")

    return ValuationResult(
        arv=arv,
        arv_basis=basis,
        down_payment=down_payment,
        total_invested_capital=invested,
        all_in_cost=all_in_cost,
    )
