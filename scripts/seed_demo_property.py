"""
Seed the database with a demo 4-unit property and print its metrics.
"""
import sys
import os
from datetime import date
from decimal import Decimal

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from propmetrics.calculations.errors import CalculationError
from propmetrics.calculations.types import PaymentType
from propmetrics.db.database import get_db_context, init_db
from propmetrics.db.models import Property
from propmetrics.db.repository import PropertyRepository
from propmetrics.services.metrics import MetricsService

DEMO_NAME = "12 Elm Street Fourplex"


def main():
    init_db()

    with get_db_context() as db:
        repository = PropertyRepository(db)

        existing = db.query(Property).filter(Property.name == DEMO_NAME).first()
        if existing:
            print(f"Property '{DEMO_NAME}' already exists (ID: {existing.id})")
            return

        prop = repository.create_property(
            name=DEMO_NAME,
            address_street="12 Elm Street",
            address_city="Dayton",
            address_state="OH",
            address_zip="45402",
            acquisition_date=date(2024, 3, 1),
            purchase_price=Decimal("400000"),
        )
        print(f"Created property: {prop.name} (ID: {prop.id})")

        for number in range(1, 5):
            repository.add_child(
                prop,
                "units",
                unit=f"{number}A",
                is_occupied=True,
                current_rent=Decimal("1000"),
                pro_forma_rent=Decimal("1100"),
            )
        repository.add_child(
            prop, "expenses", name="Property Taxes", annual_amount=Decimal("12000")
        )
        repository.add_child(
            prop,
            "loans",
            name="Acquisition loan",
            principal=Decimal("300000"),
            annual_rate=Decimal("0.06"),
            term_years=30,
            payment_type=PaymentType.amortizing,
            is_active=True,
        )

        outcome = MetricsService(repository).get_metrics(prop.id, record=True)
        if isinstance(outcome, CalculationError):
            print(f"Metrics not computed: {outcome}")
            return

        print(f"\nNOI:            {outcome.net_operating_income:,.2f}")
        print(f"Cash flow:      {outcome.cash_flow:,.2f}")
        print(f"ARV:            {outcome.arv:,.2f}")
        print(f"Cap rate:       {outcome.cap_rate:.4f}")
        print(f"Cash-on-cash:   {outcome.cash_on_cash_return:.4f}")
        print(f"DSCR:           {outcome.dscr:.2f}")


if __name__ == "__main__":
    main()
