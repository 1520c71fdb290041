"""
Personal Income Tax (PIT) Calculator
Personal Income Tax Act, Sixth Schedule (to 2025);
Nigeria Tax Act 2025, Fourth Schedule (from 2026)

Marginal rates: each bracket's rate applies only to the slice of taxable
income inside that bracket. Brackets come from the rate table for the year,
so a change in the number or width of brackets needs no code change.

An earner whose gross income is at or below the minimum-wage equivalent
(₦840,000 a year) pays no PIT. The test is on gross income, not on taxable
income, so tax rises smoothly once reliefs bring income down to the threshold.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from taxkora.core.errors import InvalidRecordError
from taxkora.core.money import ZERO, percent, quantize, to_decimal
from taxkora.core.rate_tables import RateTable
from taxkora.core.tax_rules.reliefs import compute_reliefs
from taxkora.schemas.records import AccountType, StatutoryDeductions


@dataclass
class BracketBreakdown:
    bracket_floor: Decimal
    bracket_ceiling: Decimal | None
    rate: Decimal
    label: str
    taxable_in_bracket: Decimal
    tax_in_bracket: Decimal


@dataclass
class PITResult:
    year: int
    regime: str
    taxable_income: Decimal
    tax_liability: Decimal
    effective_rate: Decimal
    bracket_breakdown: list[BracketBreakdown] = field(default_factory=list)
    is_minimum_wage_exempt: bool = False
    gross_income: Decimal | None = None


class PITCalculator:
    """
    Deterministic Personal Income Tax calculator for Nigerian individuals.
    Rates are injected per tax year.
    """

    def __init__(self, rates: RateTable):
        self.rates = rates

    def calculate(self, taxable_income: Decimal, gross_income: Decimal | None = None) -> PITResult:
        """
        Tax on taxable income. Pass the earner's gross income to apply the
        minimum-wage exemption; without it the exemption is not considered.
        """
        taxable_income = quantize(taxable_income)
        if gross_income is not None:
            gross_income = quantize(gross_income)
        if taxable_income < 0:
            raise InvalidRecordError("Taxable income cannot be negative", taxable_income=str(taxable_income))

        if gross_income is not None and gross_income <= self.rates.minimum_wage_threshold:
            return PITResult(
                year=self.rates.year,
                regime=self.rates.regime,
                taxable_income=taxable_income,
                tax_liability=ZERO,
                effective_rate=ZERO,
                is_minimum_wage_exempt=True,
                gross_income=gross_income,
            )

        breakdown, tax = self._calculate_brackets(taxable_income)
        tax_liability = quantize(tax)

        return PITResult(
            year=self.rates.year,
            regime=self.rates.regime,
            taxable_income=taxable_income,
            tax_liability=tax_liability,
            effective_rate=percent(tax_liability / taxable_income) if taxable_income > 0 else ZERO,
            bracket_breakdown=breakdown,
            gross_income=gross_income,
        )

    def _calculate_brackets(self, taxable_income: Decimal) -> tuple[list[BracketBreakdown], Decimal]:
        breakdown = []
        total = Decimal("0")

        for bracket in self.rates.sorted_brackets():
            if taxable_income <= bracket.lower:
                break

            ceiling = taxable_income if bracket.upper is None else min(taxable_income, bracket.upper)
            slice_ = ceiling - bracket.lower
            tax = slice_ * bracket.rate
            total += tax

            breakdown.append(
                BracketBreakdown(
                    bracket_floor=quantize(bracket.lower),
                    bracket_ceiling=None if bracket.upper is None else quantize(bracket.upper),
                    rate=bracket.rate,
                    label=bracket.label,
                    taxable_in_bracket=quantize(slice_),
                    tax_in_bracket=quantize(tax),
                )
            )

        return breakdown, total

    def estimate_monthly_paye(
        self,
        monthly_gross: Decimal,
        deductions: StatutoryDeductions | None = None,
    ) -> dict:
        monthly_gross = quantize(monthly_gross)
        annual_gross = monthly_gross * 12
        reliefs = compute_reliefs(annual_gross, deductions, AccountType.INDIVIDUAL, self.rates)
        result = self.calculate(reliefs.taxable_income, gross_income=reliefs.income_after_exemptions)

        return {
            "monthly_gross": monthly_gross,
            "annual_gross": annual_gross,
            "total_reliefs": reliefs.total_reliefs,
            "taxable_income": reliefs.taxable_income,
            "annual_tax": result.tax_liability,
            "monthly_paye": quantize(result.tax_liability / 12),
            "effective_rate": percent(result.tax_liability / annual_gross) if annual_gross > 0 else ZERO,
        }


def compute_pit(taxable_income, rates: RateTable, gross_income=None) -> PITResult:
    gross = None if gross_income is None else to_decimal(gross_income)
    return PITCalculator(rates).calculate(to_decimal(taxable_income), gross_income=gross)


def estimate_monthly_paye(monthly_gross, deductions: StatutoryDeductions | None, rates: RateTable) -> dict:
    return PITCalculator(rates).estimate_monthly_paye(to_decimal(monthly_gross), deductions)
