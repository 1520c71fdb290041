"""
Company Income Tax (CIT) Calculator
Companies Income Tax Act (as amended by the Finance Acts);
Nigeria Tax Act 2025, Chapter 2, Part IX

CIT is a flat rate on assessable profit, with the rate chosen by annual
turnover band:
  - Small company (turnover ≤ ₦25M): 0%
  - Medium company (₦25M < turnover ≤ ₦100M): 20%
  - Upper-medium (₦100M < turnover ≤ ₦250M): 30%
  - Large company (turnover > ₦250M): 30%

A band's lower bound is exclusive and its upper bound inclusive, so a
turnover of exactly ₦25,000,000 is a small company.

A return is due every year, including from small companies at 0%.
"""

from dataclasses import dataclass
from decimal import Decimal

from taxkora.core.errors import InvalidRecordError
from taxkora.core.money import ZERO, percent, quantize, to_decimal
from taxkora.core.rate_tables import CITBand, RateTable


@dataclass
class CITResult:
    year: int
    annual_turnover: Decimal
    assessable_profit: Decimal
    company_size: str
    band_label: str
    cit_rate: Decimal
    cit_liability: Decimal
    effective_rate: Decimal
    filing_required: bool = True


class CITCalculator:
    """
    Deterministic Company Income Tax calculator for Nigerian companies.
    Bands are injected per tax year.
    """

    def __init__(self, rates: RateTable):
        self.rates = rates

    def classify_company(self, annual_turnover: Decimal) -> CITBand:
        return self.rates.cit_band(annual_turnover)

    def calculate(self, annual_turnover: Decimal, assessable_profit: Decimal) -> CITResult:
        annual_turnover = quantize(annual_turnover)
        assessable_profit = quantize(assessable_profit)
        if annual_turnover < 0:
            raise InvalidRecordError("Annual turnover cannot be negative", annual_turnover=str(annual_turnover))

        band = self.classify_company(annual_turnover)
        taxable_profit = max(assessable_profit, ZERO)
        cit_liability = quantize(taxable_profit * band.rate)
        effective_rate = percent(cit_liability / taxable_profit) if taxable_profit > 0 else ZERO

        return CITResult(
            year=self.rates.year,
            annual_turnover=annual_turnover,
            assessable_profit=assessable_profit,
            company_size=band.category,
            band_label=band.label,
            cit_rate=band.rate,
            cit_liability=cit_liability,
            effective_rate=effective_rate,
        )


def compute_cit(annual_turnover, assessable_profit, rates: RateTable) -> CITResult:
    return CITCalculator(rates).calculate(to_decimal(annual_turnover), to_decimal(assessable_profit))
