"""
Reliefs & Exemptions Calculator
Personal Income Tax Act (as amended), Section 33 and Sixth Schedule;
Nigeria Tax Act 2025, Sections 30 and 163

Order of application:
  1. Exempt income is removed first (never treated as a deduction):
     - Compensation for loss of employment, up to ₦50,000,000
     - Gifts received
     - Pension benefits received
  2. Consolidated Relief Allowance (where the regime has one):
     higher of ₦200,000 or 1% of gross income, plus 20% of gross income
  3. Rent relief: 20% of annual rent paid, capped at ₦500,000
  4. Statutory deductions: pension, NHIS, NHF, interest on an owner-occupied
     housing loan, life insurance premiums

Business accounts carry no personal reliefs.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from taxkora.core.money import ZERO, non_negative, quantize
from taxkora.core.rate_tables import (
    HOUSING_LOAN_INTEREST_CAP_KEY,
    LIFE_INSURANCE_CAP_KEY,
    NHF_CAP_KEY,
    NHIS_CAP_KEY,
    PENSION_CAP_KEY,
    RateTable,
)
from taxkora.schemas.records import AccountType, StatutoryDeductions


# (cap key, StatutoryDeductions field)
STATUTORY_ITEMS: tuple[tuple[str, str], ...] = (
    (PENSION_CAP_KEY, "pension_contribution"),
    (NHIS_CAP_KEY, "nhis_contribution"),
    (NHF_CAP_KEY, "nhf_contribution"),
    (HOUSING_LOAN_INTEREST_CAP_KEY, "housing_loan_interest"),
    (LIFE_INSURANCE_CAP_KEY, "life_insurance_premium"),
)


@dataclass
class ExemptIncome:
    employment_compensation: Decimal = ZERO
    gifts: Decimal = ZERO
    pension_benefits: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.employment_compensation + self.gifts + self.pension_benefits


@dataclass
class ReliefResult:
    year: int
    account_type: AccountType
    gross_income: Decimal
    exemptions: ExemptIncome
    total_exempt_income: Decimal
    income_after_exemptions: Decimal
    consolidated_relief_allowance: Decimal
    rent_relief: Decimal
    statutory_deductions: dict[str, Decimal] = field(default_factory=dict)
    total_statutory_deductions: Decimal = ZERO
    total_reliefs: Decimal = ZERO
    taxable_income: Decimal = ZERO


def consolidated_relief_allowance(income: Decimal, rates: RateTable) -> Decimal:
    rules = rates.reliefs
    if not rules.cra_enabled:
        return ZERO
    income = non_negative(income)
    floor = max(rules.cra_floor, income * rules.cra_floor_rate)
    return quantize(floor + income * rules.cra_gross_rate)


def rent_relief(annual_rent_paid: Decimal, rates: RateTable) -> Decimal:
    rules = rates.reliefs
    return quantize(min(non_negative(annual_rent_paid) * rules.rent_relief_rate, rules.rent_relief_cap))


def exempt_income(deductions: StatutoryDeductions, rates: RateTable) -> ExemptIncome:
    cap = rates.reliefs.employment_compensation_exempt_cap
    return ExemptIncome(
        employment_compensation=min(non_negative(deductions.employment_compensation), cap),
        gifts=non_negative(deductions.gifts_received),
        pension_benefits=non_negative(deductions.pension_benefits_received),
    )


def statutory_deductions(deductions: StatutoryDeductions, rates: RateTable) -> dict[str, Decimal]:
    caps = rates.reliefs.deduction_caps
    items = {}
    for cap_key, attr in STATUTORY_ITEMS:
        amount = non_negative(getattr(deductions, attr))
        cap = caps.get(cap_key)
        if cap is not None:
            amount = min(amount, quantize(cap))
        items[cap_key] = amount
    return items


def compute_reliefs(
    gross_income: Decimal,
    deductions: StatutoryDeductions | None,
    account_type: AccountType,
    rates: RateTable,
) -> ReliefResult:
    gross_income = non_negative(gross_income)
    if deductions is None:
        deductions = StatutoryDeductions.empty(rates.year)

    if AccountType(account_type) == AccountType.BUSINESS:
        return ReliefResult(
            year=rates.year,
            account_type=AccountType.BUSINESS,
            gross_income=gross_income,
            exemptions=ExemptIncome(),
            total_exempt_income=ZERO,
            income_after_exemptions=gross_income,
            consolidated_relief_allowance=ZERO,
            rent_relief=ZERO,
            statutory_deductions={cap_key: ZERO for cap_key, _ in STATUTORY_ITEMS},
            total_statutory_deductions=ZERO,
            total_reliefs=ZERO,
            taxable_income=gross_income,
        )

    exemptions = exempt_income(deductions, rates)
    income = max(gross_income - exemptions.total, ZERO)

    cra = consolidated_relief_allowance(income, rates)
    rent = rent_relief(deductions.annual_rent_paid, rates)
    items = statutory_deductions(deductions, rates)
    total_statutory = sum(items.values(), ZERO)
    total_reliefs = cra + rent + total_statutory

    return ReliefResult(
        year=rates.year,
        account_type=AccountType.INDIVIDUAL,
        gross_income=gross_income,
        exemptions=exemptions,
        total_exempt_income=exemptions.total,
        income_after_exemptions=income,
        consolidated_relief_allowance=cra,
        rent_relief=rent,
        statutory_deductions=items,
        total_statutory_deductions=total_statutory,
        total_reliefs=total_reliefs,
        taxable_income=max(income - total_reliefs, ZERO),
    )
