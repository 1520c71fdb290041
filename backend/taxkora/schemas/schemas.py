"""
Pydantic schemas for API request/response validation.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from taxkora.schemas.records import (
    AccountType,
    CapitalAsset,
    RecipientType,
    StatutoryDeductions,
    VATFilingState,
    VATTransaction,
    WHTPaymentType,
)


# ── Tax Schemas ──

class DeductionsInput(BaseModel):
    pension_contribution: Decimal = Field(default=Decimal("0"), ge=0)
    nhis_contribution: Decimal = Field(default=Decimal("0"), ge=0)
    nhf_contribution: Decimal = Field(default=Decimal("0"), ge=0)
    housing_loan_interest: Decimal = Field(default=Decimal("0"), ge=0)
    life_insurance_premium: Decimal = Field(default=Decimal("0"), ge=0)
    annual_rent_paid: Decimal = Field(default=Decimal("0"), ge=0)
    employment_compensation: Decimal = Field(default=Decimal("0"), ge=0)
    gifts_received: Decimal = Field(default=Decimal("0"), ge=0)
    pension_benefits_received: Decimal = Field(default=Decimal("0"), ge=0)

    def to_record(self, year: int) -> StatutoryDeductions:
        return StatutoryDeductions(year=year, **self.model_dump())


class ReliefsCalculateRequest(DeductionsInput):
    year: int | None = None
    gross_income: Decimal = Field(..., ge=0)
    account_type: AccountType = AccountType.INDIVIDUAL


class PITCalculateRequest(BaseModel):
    year: int | None = None
    taxable_income: Decimal = Field(..., ge=0)
    gross_income: Decimal | None = Field(default=None, ge=0)


class PAYEEstimateRequest(DeductionsInput):
    year: int | None = None
    monthly_gross: Decimal = Field(..., ge=0)


class CITCalculateRequest(BaseModel):
    year: int | None = None
    annual_turnover: Decimal = Field(..., ge=0)
    assessable_profit: Decimal


class VATCalculateRequest(BaseModel):
    year: int | None = None
    amount: Decimal = Field(..., gt=0)
    is_inclusive: bool = False


class VATPeriodRequest(BaseModel):
    year: int
    month: int = Field(..., ge=1, le=12)
    transactions: list[VATTransaction] = Field(default_factory=list)


class VATFilingStatusUpdate(BaseModel):
    status: VATFilingState
    filed_date: date | None = None
    payment_date: date | None = None
    payment_reference: str | None = None
    payment_amount: Decimal | None = Field(default=None, ge=0)
    notes: str | None = None


class WHTCalculateRequest(BaseModel):
    year: int | None = None
    gross_amount: Decimal = Field(..., ge=0)
    payment_type: WHTPaymentType
    recipient_type: RecipientType = RecipientType.COMPANY


class CapitalAllowanceRequest(BaseModel):
    year: int
    assets: list[CapitalAsset] = Field(..., min_length=1)
    assessable_profit: Decimal
    brought_forward: Decimal = Field(default=Decimal("0"), ge=0)
