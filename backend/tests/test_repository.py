"""
Tests for the Supabase-backed repository against a recording fake client.
"""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from taxkora.core.errors import InvalidRecordError
from taxkora.data.repository import SupabaseTaxRepository, parse_rows
from taxkora.schemas.records import (
    AccountType,
    BusinessEntityType,
    IncomeRecord,
    StatutoryDeductions,
    VATFilingState,
    VATFilingStatus,
    WHTPaymentType,
)


class FakeQuery:
    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.filters = []
        self.upserted = None

    def select(self, columns):
        return self

    def eq(self, column, value):
        self.filters.append(("eq", column, value))
        return self

    def gte(self, column, value):
        self.filters.append(("gte", column, value))
        return self

    def lte(self, column, value):
        self.filters.append(("lte", column, value))
        return self

    def order(self, column):
        return self

    def limit(self, count):
        return self

    def upsert(self, payload, on_conflict=None):
        self.upserted = (payload, on_conflict)
        return self

    def execute(self):
        self.client.executed.append(self)
        if self.upserted is not None:
            return SimpleNamespace(data=[self.upserted[0]])
        return SimpleNamespace(data=self.client.rows.get(self.table, []))


class FakeSupabase:
    def __init__(self, rows=None):
        self.rows = rows or {}
        self.executed: list[FakeQuery] = []

    def table(self, name):
        return FakeQuery(self, name)


class TestReads:
    def test_income_rows_parsed(self):
        client = FakeSupabase({"income_records": [
            {"id": "i-1", "user_id": "u-1", "category": "salary", "amount": "250000", "date": "2025-01-31"},
            {"id": "i-2", "user_id": "u-1", "category": "freelance", "amount": 80000.5, "date": "2025-02-14"},
        ]})
        records = SupabaseTaxRepository(client).fetch_income("u-1", 2025)

        assert [r.id for r in records] == ["i-1", "i-2"]
        assert records[1].amount == Decimal("80000.50")
        assert ("gte", "date", "2025-01-01") in client.executed[0].filters
        assert ("lte", "date", "2025-12-31") in client.executed[0].filters

    def test_bad_row_rejected(self):
        client = FakeSupabase({"expenses": [
            {"id": "e-1", "category": "rent", "amount": "100", "date": "2025-01-01"},
            {"id": "e-2", "category": "rent", "amount": "-100", "date": "2025-01-01"},
        ]})
        with pytest.raises(InvalidRecordError) as exc:
            SupabaseTaxRepository(client).fetch_expenses("u-1", 2025)
        assert exc.value.details["table"] == "expenses"
        assert exc.value.details["row_id"] == "e-2"

    def test_wht_payment_type_from_store(self):
        client = FakeSupabase({"wht_transactions": [{
            "id": "w-1",
            "payment_type": "professionalFees",
            "recipient_type": "individual",
            "recipient_name": "Tunde Bakare",
            "gross_amount": 500000,
            "payment_date": "2025-04-10",
        }]})
        (txn,) = SupabaseTaxRepository(client).fetch_wht_transactions("u-1", 2025)
        assert txn.payment_type == WHTPaymentType.PROFESSIONAL_FEES

    def test_missing_deductions_is_none(self):
        assert SupabaseTaxRepository(FakeSupabase()).fetch_statutory_deductions("u-1", 2025) is None

    def test_vat_month_filter(self):
        client = FakeSupabase()
        SupabaseTaxRepository(client).fetch_vat_transactions("u-1", 2025, month=3)
        assert ("eq", "month", 3) in client.executed[0].filters


class TestAccountType:
    @pytest.mark.parametrize("stored, expected", [
        ("personal", AccountType.INDIVIDUAL),
        ("individual", AccountType.INDIVIDUAL),
        ("business", AccountType.BUSINESS),
    ])
    def test_stored_values(self, stored, expected):
        client = FakeSupabase({"profiles": [{"account_type": stored}]})
        assert SupabaseTaxRepository(client).fetch_account_type("u-1") == expected

    def test_no_profile_defaults_to_individual(self):
        assert SupabaseTaxRepository(FakeSupabase()).fetch_account_type("u-1") == AccountType.INDIVIDUAL

    def test_unknown_value_rejected(self):
        client = FakeSupabase({"profiles": [{"account_type": "charity"}]})
        with pytest.raises(InvalidRecordError):
            SupabaseTaxRepository(client).fetch_account_type("u-1")


class TestBusinessEntityType:
    @pytest.mark.parametrize("stored, expected", [
        ("sole_proprietorship", BusinessEntityType.SOLE_PROPRIETORSHIP),
        ("partnership", BusinessEntityType.PARTNERSHIP),
        ("limited_company", BusinessEntityType.LIMITED_COMPANY),
        (None, BusinessEntityType.LIMITED_COMPANY),
    ])
    def test_stored_values(self, stored, expected):
        client = FakeSupabase({"profiles": [{"account_type": "business", "business_entity_type": stored}]})
        assert SupabaseTaxRepository(client).fetch_business_entity_type("u-1") == expected

    def test_profile_without_column(self):
        client = FakeSupabase({"profiles": [{"account_type": "business"}]})
        assert SupabaseTaxRepository(client).fetch_business_entity_type("u-1") == BusinessEntityType.LIMITED_COMPANY

    def test_unknown_value_rejected(self):
        client = FakeSupabase({"profiles": [{"business_entity_type": "cooperative"}]})
        with pytest.raises(InvalidRecordError):
            SupabaseTaxRepository(client).fetch_business_entity_type("u-1")


class TestClientConstruction:
    def test_client_built_on_first_query(self):
        built = []

        def factory():
            built.append(FakeSupabase())
            return built[-1]

        repo = SupabaseTaxRepository(client_factory=factory)
        assert built == []

        repo.fetch_income("u-1", 2025)
        repo.fetch_expenses("u-1", 2025)
        assert len(built) == 1
        assert len(built[0].executed) == 2

    def test_client_or_factory_required(self):
        with pytest.raises(ValueError):
            SupabaseTaxRepository()


class TestWrites:
    def test_deductions_upserted_per_year(self):
        client = FakeSupabase()
        saved = SupabaseTaxRepository(client).save_statutory_deductions(
            "u-1", StatutoryDeductions(year=2025, pension_contribution=Decimal("120000"))
        )
        payload, on_conflict = client.executed[0].upserted

        assert on_conflict == "user_id,year"
        assert payload["user_id"] == "u-1"
        assert payload["pension_contribution"] == "120000.00"
        assert saved.pension_contribution == Decimal("120000.00")

    def test_filing_status_upserted_per_period(self):
        client = FakeSupabase()
        status = VATFilingStatus(
            year=2025, month=3, status=VATFilingState.FILED, filed_date=date(2025, 4, 18)
        )
        saved = SupabaseTaxRepository(client).save_vat_filing_status("u-1", status)
        payload, on_conflict = client.executed[0].upserted

        assert on_conflict == "user_id,year,month"
        assert payload["status"] == "filed"
        assert payload["filed_date"] == "2025-04-18"
        assert "id" not in payload
        assert saved.status == VATFilingState.FILED


def test_parse_rows_tolerates_empty_result():
    assert parse_rows(IncomeRecord, None, "income_records") == []
