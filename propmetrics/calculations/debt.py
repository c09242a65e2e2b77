"""
Debt Service Calculations

Selects the loan that carries primary debt service and derives its monthly and
annual payment from original principal, rate and term.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Sequence

from propmetrics.calculations.amortization import calculate_monthly_payment
from propmetrics.calculations.errors import (
    AmbiguousLoanSelectionWarning,
    InvalidInputError,
    require_fraction,
    require_non_negative,
)
from propmetrics.calculations.types import MONTHS_PER_YEAR, ZERO, LoanTerms, PaymentType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DebtResult:
    """Debt service from the selected loan."""

    monthly_payment: Decimal
    annual_debt_service: Decimal
    active_loan: Optional[LoanTerms]
    warnings: List[AmbiguousLoanSelectionWarning] = field(default_factory=list)

    @property
    def current_debt(self) -> Decimal:
        """Outstanding balance of the selected loan (zero when all-cash)."""
        if self.active_loan is None:
            return ZERO
        return self.active_loan.outstanding_balance


def select_active_loan(loans: Sequence[LoanTerms]):
    """
    Pick the loan used for primary debt service.

    The loan flagged active wins. With none flagged, the first loan is used and
    a warning is returned if that choice was ambiguous.

    Returns:
        Tuple of (loan or None, list of warnings)
    """
    if not loans:
        return None, []

    for loan in loans:
        if loan.is_active:
            return loan, []

    selected = loans[0]
    warnings = []
    if len(loans) > 1:
        warning = AmbiguousLoanSelectionWarning(selected_loan_id=selected.id, loan_count=len(loans))
        logger.warning(warning.message)
        warnings.append(warning)
    return selected, warnings


def validate_loan(loan: LoanTerms) -> None:
    """Reject loan terms that cannot produce a payment."""
    label = f"loans[{loan.id}]"
    require_non_negative(f"{label}.principal", loan.principal)
    require_fraction(f"{label}.annual_rate", loan.annual_rate)
    if loan.current_balance is not None:
        require_non_negative(f"{label}.current_balance", loan.current_balance)
    if (
        loan.payment_type == PaymentType.amortizing
        and loan.principal > ZERO
        and loan.term_years <= 0
    ):
        raise InvalidInputError(f"{label}.term_years", loan.term_years, "must be positive")


def compute_debt_service(loans: Sequence[LoanTerms]) -> DebtResult:
    """
    Compute debt service for a property.

    No loans means an all-cash acquisition and zero debt service. The payment
    never depends on the loan's current balance.

    Args:
        loans: All loan records for the property

    Returns:
        DebtResult with monthly payment, annual debt service and the loan used
    """
    for candidate in loans:
        validate_loan(candidate)

    loan, warnings = select_active_loan(loans)
    if loan is None:
        return DebtResult(monthly_payment=ZERO, annual_debt_service=ZERO, active_loan=None)

    monthly = calculate_monthly_payment(
        loan.principal, loan.annual_rate, loan.term_years, loan.payment_type
    )
    annual = monthly * MONTHS_PER_YEAR

    logger.debug(f"Debt service: loan={loan.id} monthly={monthly} annual={annual}")

    return DebtResult(
        monthly_payment=monthly,
        annual_debt_service=annual,
        active_loan=loan,
        warnings=warnings,
    )
