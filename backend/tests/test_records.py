"""
Tests for boundary validation of stored records.
"""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from taxkora.schemas.records import (
    AccountType,
    CapitalAsset,
    Expense,
    IncomeRecord,
    RecipientType,
    StatutoryDeductions,
    VATTransaction,
    WHTPaymentType,
    WHTTransaction,
)


class TestRecordValidation:
    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError):
            IncomeRecord(category="sales", amount=Decimal("-1"), date=date(2025, 1, 1))

    def test_missing_category_rejected(self):
        with pytest.raises(ValidationError):
            Expense(amount=Decimal("100"), date=date(2025, 1, 1))

    def test_malformed_date_rejected(self):
        with pytest.raises(ValidationError):
            Expense(category="rent", amount=Decimal("100"), date="2025-13-45")

    def test_amounts_rounded_to_kobo(self):
        record = IncomeRecord(category="sales", amount="100.005", date="2025-01-01")
        assert record.amount == Decimal("100.01")

    def test_records_are_immutable(self):
        record = IncomeRecord(category="sales", amount="100", date="2025-01-01")
        with pytest.raises(ValidationError):
            record.amount = Decimal("5")

    def test_unknown_columns_ignored(self):
        record = Expense.model_validate({
            "id": "e-1",
            "user_id": "u-1",
            "category": "utilities",
            "amount": 12000,
            "date": "2025-02-10",
            "created_at": "2025-02-10T09:00:00Z",
        })
        assert record.year == 2025


class TestStoredValues:
    def test_personal_account_is_individual(self):
        assert AccountType("personal") == AccountType.INDIVIDUAL

    def test_camel_case_payment_type(self):
        txn = WHTTransaction(
            payment_type="professionalFees",
            recipient_type="corporate",
            recipient_name="Zenith Consulting Ltd",
            gross_amount=1_000_000,
            payment_date="2025-03-01",
        )
        assert txn.payment_type == WHTPaymentType.PROFESSIONAL_FEES
        assert txn.recipient_type == RecipientType.COMPANY
        assert (txn.year, txn.month) == (2025, 3)

    def test_null_deductions_read_as_zero(self):
        record = StatutoryDeductions.model_validate({"year": 2025, "pension_contribution": None})
        assert record.pension_contribution == 0

    def test_negative_deduction_rejected(self):
        with pytest.raises(ValidationError):
            StatutoryDeductions(year=2025, annual_rent_paid=Decimal("-1"))

    def test_asset_year_derived_from_date(self):
        record = CapitalAsset(category="motor_vehicles", cost=5_000_000, acquisition_date="2024-07-01")
        assert record.year_acquired == 2024

    def test_asset_cost_must_be_positive(self):
        with pytest.raises(ValidationError):
            CapitalAsset(category="motor_vehicles", cost=0, acquisition_date="2024-07-01")

    def test_vat_period_must_match_date(self):
        with pytest.raises(ValidationError):
            VATTransaction(
                transaction_type="output",
                amount=1000,
                transaction_date="2025-03-31",
                year=2025,
                month=4,
            )
