"""
Data access for the tax engine.
Loads a user's records for a tax year from Supabase and validates every row
into a typed record. A malformed row is rejected here rather than coerced,
so the engines only ever see clean data.
"""

import logging
from typing import Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from taxkora.core.errors import InvalidRecordError
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

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


class TaxDataRepository(Protocol):
    def fetch_account_type(self, user_id: str) -> AccountType: ...

    def fetch_business_entity_type(self, user_id: str) -> BusinessEntityType: ...

    def fetch_income(self, user_id: str, year: int) -> list[IncomeRecord]: ...

    def fetch_expenses(self, user_id: str, year: int) -> list[Expense]: ...

    def fetch_statutory_deductions(self, user_id: str, year: int) -> StatutoryDeductions | None: ...

    def fetch_capital_assets(self, user_id: str) -> list[CapitalAsset]: ...

    def fetch_vat_transactions(self, user_id: str, year: int, month: int | None = None) -> list[VATTransaction]: ...

    def fetch_vat_filing_statuses(self, user_id: str, year: int) -> list[VATFilingStatus]: ...

    def fetch_wht_transactions(self, user_id: str, year: int) -> list[WHTTransaction]: ...

    def fetch_tax_payments(self, user_id: str, year: int) -> list[TaxPayment]: ...

    def save_statutory_deductions(self, user_id: str, deductions: StatutoryDeductions) -> StatutoryDeductions: ...

    def save_vat_filing_status(self, user_id: str, status: VATFilingStatus) -> VATFilingStatus: ...


def parse_rows(model: type[RecordT], rows: list[dict], table: str) -> list[RecordT]:
    records = []
    for row in rows or []:
        try:
            records.append(model.model_validate(row))
        except ValidationError as e:
            raise InvalidRecordError(
                f"Invalid {table} row {row.get('id', '?')}: {e.error_count()} validation error(s)",
                table=table,
                row_id=row.get("id"),
                errors=[err["msg"] for err in e.errors()],
            ) from e
    return records


def _year_bounds(year: int) -> tuple[str, str]:
    return f"{year}-01-01", f"{year}-12-31"


class SupabaseTaxRepository:
    """
    TaxDataRepository backed by the Supabase tables the web app writes to.

    Pass a ready client, or a client_factory to build one on first use.
    """

    def __init__(self, client=None, client_factory=None):
        if client is None and client_factory is None:
            raise ValueError("SupabaseTaxRepository needs a client or a client_factory")
        self._client = client
        self._client_factory = client_factory

    @property
    def client(self):
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    def fetch_account_type(self, user_id: str) -> AccountType:
        rows = self.client.table("profiles").select("account_type").eq(
            "user_id", user_id
        ).limit(1).execute().data
        if not rows or not rows[0].get("account_type"):
            return AccountType.INDIVIDUAL
        try:
            return AccountType(rows[0]["account_type"])
        except ValueError as e:
            raise InvalidRecordError(
                f"Unknown account type '{rows[0]['account_type']}'",
                table="profiles",
                user_id=user_id,
            ) from e

    def fetch_business_entity_type(self, user_id: str) -> BusinessEntityType:
        """Legal form of a business account; limited company unless the profile says otherwise."""
        rows = self.client.table("profiles").select("*").eq("user_id", user_id).limit(1).execute().data
        value = rows[0].get("business_entity_type") if rows else None
        if not value:
            return BusinessEntityType.LIMITED_COMPANY
        try:
            return BusinessEntityType(value)
        except ValueError as e:
            raise InvalidRecordError(
                f"Unknown business entity type '{value}'",
                table="profiles",
                user_id=user_id,
            ) from e

    def fetch_income(self, user_id: str, year: int) -> list[IncomeRecord]:
        start, end = _year_bounds(year)
        rows = self.client.table("income_records").select("*").eq(
            "user_id", user_id
        ).gte("date", start).lte("date", end).order("date").execute().data
        return parse_rows(IncomeRecord, rows, "income_records")

    def fetch_expenses(self, user_id: str, year: int) -> list[Expense]:
        start, end = _year_bounds(year)
        rows = self.client.table("expenses").select("*").eq(
            "user_id", user_id
        ).gte("date", start).lte("date", end).order("date").execute().data
        return parse_rows(Expense, rows, "expenses")

    def fetch_statutory_deductions(self, user_id: str, year: int) -> StatutoryDeductions | None:
        rows = self.client.table("statutory_deductions").select("*").eq(
            "user_id", user_id
        ).eq("year", year).limit(1).execute().data
        records = parse_rows(StatutoryDeductions, rows, "statutory_deductions")
        return records[0] if records else None

    def fetch_capital_assets(self, user_id: str) -> list[CapitalAsset]:
        rows = self.client.table("capital_assets").select("*").eq(
            "user_id", user_id
        ).order("year_acquired").execute().data
        return parse_rows(CapitalAsset, rows, "capital_assets")

    def fetch_vat_transactions(self, user_id: str, year: int, month: int | None = None) -> list[VATTransaction]:
        query = self.client.table("vat_transactions").select("*").eq("user_id", user_id).eq("year", year)
        if month is not None:
            query = query.eq("month", month)
        rows = query.order("transaction_date").execute().data
        return parse_rows(VATTransaction, rows, "vat_transactions")

    def fetch_vat_filing_statuses(self, user_id: str, year: int) -> list[VATFilingStatus]:
        rows = self.client.table("vat_filing_status").select("*").eq(
            "user_id", user_id
        ).eq("year", year).order("month").execute().data
        return parse_rows(VATFilingStatus, rows, "vat_filing_status")

    def fetch_wht_transactions(self, user_id: str, year: int) -> list[WHTTransaction]:
        start, end = _year_bounds(year)
        rows = self.client.table("wht_transactions").select("*").eq(
            "user_id", user_id
        ).gte("payment_date", start).lte("payment_date", end).order("payment_date").execute().data
        return parse_rows(WHTTransaction, rows, "wht_transactions")

    def fetch_tax_payments(self, user_id: str, year: int) -> list[TaxPayment]:
        rows = self.client.table("tax_payments").select("*").eq(
            "user_id", user_id
        ).eq("year", year).order("payment_date").execute().data
        return parse_rows(TaxPayment, rows, "tax_payments")

    def save_statutory_deductions(self, user_id: str, deductions: StatutoryDeductions) -> StatutoryDeductions:
        payload = deductions.model_dump(mode="json")
        payload["user_id"] = user_id
        rows = self.client.table("statutory_deductions").upsert(
            payload, on_conflict="user_id,year"
        ).execute().data
        logger.info("Saved statutory deductions for user %s, %d", user_id, deductions.year)
        return parse_rows(StatutoryDeductions, rows, "statutory_deductions")[0] if rows else deductions

    def save_vat_filing_status(self, user_id: str, status: VATFilingStatus) -> VATFilingStatus:
        payload = status.model_dump(mode="json", exclude={"id"})
        payload["user_id"] = user_id
        rows = self.client.table("vat_filing_status").upsert(
            payload, on_conflict="user_id,year,month"
        ).execute().data
        logger.info("Saved VAT filing status %s for user %s, %d-%02d", status.status.value, user_id, status.year, status.month)
        return parse_rows(VATFilingStatus, rows, "vat_filing_status")[0] if rows else status
