"""
Shared fixtures: built-in rate tables and an in-memory stand-in for the
Supabase repository.
"""

from collections import defaultdict

import pytest

from taxkora.core.rate_tables import RateTableProvider
from taxkora.schemas.records import (
    AccountType,
    BusinessEntityType,
    CapitalAsset,
    Expense,
    IncomeRecord,
    StatutoryDeductions,
    TaxPayment,
    VATFilingStatus,
    VATTransaction,
    WHTTransaction,
)


class InMemoryTaxRepository:
    def __init__(self):
        self.account_types: dict[str, AccountType] = {}
        self.entity_types: dict[str, BusinessEntityType] = {}
        self.records = defaultdict(list)
        self.deductions: dict[tuple[str, int], StatutoryDeductions] = {}
        self.filing_statuses: dict[tuple[str, int, int], VATFilingStatus] = {}
        self.fail_with: Exception | None = None
        self.calls = 0

    def add(self, user_id: str, record):
        if isinstance(record, StatutoryDeductions):
            self.deductions[(user_id, record.year)] = record
        elif isinstance(record, VATFilingStatus):
            self.filing_statuses[(user_id, record.year, record.month)] = record
        else:
            self.records[(user_id, type(record).__name__)].append(record)
        return record

    def _list(self, user_id: str, kind: type) -> list:
        self.calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        return list(self.records[(user_id, kind.__name__)])

    def fetch_account_type(self, user_id: str) -> AccountType:
        return self.account_types.get(user_id, AccountType.INDIVIDUAL)

    def fetch_business_entity_type(self, user_id: str) -> BusinessEntityType:
        return self.entity_types.get(user_id, BusinessEntityType.LIMITED_COMPANY)

    def fetch_income(self, user_id, year):
        return [r for r in self._list(user_id, IncomeRecord) if r.year == year]

    def fetch_expenses(self, user_id, year):
        return [e for e in self._list(user_id, Expense) if e.year == year]

    def fetch_statutory_deductions(self, user_id, year):
        return self.deductions.get((user_id, year))

    def fetch_capital_assets(self, user_id):
        return self._list(user_id, CapitalAsset)

    def fetch_vat_transactions(self, user_id, year, month=None):
        return [
            t for t in self._list(user_id, VATTransaction)
            if t.year == year and (month is None or t.month == month)
        ]

    def fetch_vat_filing_statuses(self, user_id, year):
        return [s for (uid, y, _), s in sorted(self.filing_statuses.items()) if uid == user_id and y == year]

    def fetch_wht_transactions(self, user_id, year):
        return [t for t in self._list(user_id, WHTTransaction) if t.year == year]

    def fetch_tax_payments(self, user_id, year):
        return [p for p in self._list(user_id, TaxPayment) if p.year == year]

    def save_statutory_deductions(self, user_id, deductions):
        self.deductions[(user_id, deductions.year)] = deductions
        return deductions

    def save_vat_filing_status(self, user_id, status):
        self.filing_statuses[(user_id, status.year, status.month)] = status
        return status


@pytest.fixture
def provider():
    return RateTableProvider()


@pytest.fixture
def rates_2025(provider):
    return provider.get(2025)


@pytest.fixture
def rates_2026(provider):
    return provider.get(2026)


@pytest.fixture
def repo():
    return InMemoryTaxRepository()
