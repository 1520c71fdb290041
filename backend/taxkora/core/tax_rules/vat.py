"""
Value Added Tax (VAT) Calculator
Value Added Tax Act (as amended); Nigeria Tax Act 2025, Chapter 6

VAT Rate: 7.5% on taxable supplies

Returns are filed per calendar month and are due on the 21st of the
following month. For each (year, month) period:
  - Output VAT: non-exempt sales × rate
  - Input VAT: non-exempt purchases × rate
  - Net VAT payable: output − input, never below zero; excess input VAT
    is reported as a refund due

A transaction is exempt when it is flagged so or when its category is one
the rate table lists as exempt (medical, basic food, exports and so on).
Exempt transactions count towards volumes only.
VAT is recomputed from transaction amounts; stored vat_amount values are
not trusted.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable

from taxkora.core.errors import InvalidRecordError
from taxkora.core.money import ZERO, percent, quantize, to_decimal
from taxkora.core.rate_tables import RateTable
from taxkora.schemas.records import (
    VATFilingState,
    VATFilingStatus,
    VATTransaction,
    VATTransactionType,
)

VAT_FILING_DAY = 21
UNCATEGORISED = "uncategorised"


@dataclass
class VATCategoryBreakdown:
    category: str
    amount: Decimal
    vat: Decimal
    transaction_count: int = 0


@dataclass
class VATPeriodResult:
    year: int
    month: int
    vat_rate: Decimal
    taxable_output: Decimal
    taxable_input: Decimal
    exempt_output: Decimal
    exempt_input: Decimal
    output_vat: Decimal
    input_vat: Decimal
    net_vat_payable: Decimal
    refund_due: Decimal
    transaction_count: int = 0
    exempt_transaction_count: int = 0
    output_breakdown: list[VATCategoryBreakdown] = field(default_factory=list)
    input_breakdown: list[VATCategoryBreakdown] = field(default_factory=list)

    @property
    def period(self) -> tuple[int, int]:
        return (self.year, self.month)


@dataclass
class VATPeriodReport:
    result: VATPeriodResult
    status: VATFilingState
    due_date: date
    is_overdue: bool = False
    filed_date: date | None = None
    payment_date: date | None = None
    payment_reference: str | None = None
    payment_amount: Decimal | None = None


@dataclass
class VATAnnualResult:
    year: int
    periods: list[VATPeriodResult] = field(default_factory=list)
    total_output_vat: Decimal = ZERO
    total_input_vat: Decimal = ZERO
    total_net_vat_payable: Decimal = ZERO
    total_refund_due: Decimal = ZERO


class VATCalculator:
    """
    Deterministic VAT calculator for Nigerian businesses.
    The rate is injected per tax year.
    """

    def __init__(self, rates: RateTable):
        self.rates = rates

    def is_exempt(self, txn: VATTransaction) -> bool:
        return txn.is_exempt or txn.category in self.rates.vat_exempt_categories

    def calculate_period(self, transactions: Iterable[VATTransaction], year: int, month: int) -> VATPeriodResult:
        taxable = {VATTransactionType.OUTPUT: ZERO, VATTransactionType.INPUT: ZERO}
        by_category = {VATTransactionType.OUTPUT: defaultdict(list), VATTransactionType.INPUT: defaultdict(list)}
        exempt = {VATTransactionType.OUTPUT: ZERO, VATTransactionType.INPUT: ZERO}
        count = 0
        exempt_count = 0

        for txn in transactions:
            if txn.period != (year, month):
                raise InvalidRecordError(
                    f"VAT transaction for {txn.year}-{txn.month:02d} passed to period {year}-{month:02d}",
                    transaction_id=txn.id,
                    year=txn.year,
                    month=txn.month,
                )
            count += 1
            if self.is_exempt(txn):
                exempt_count += 1
                exempt[txn.transaction_type] += txn.amount
            else:
                taxable[txn.transaction_type] += txn.amount
                by_category[txn.transaction_type][txn.category or UNCATEGORISED].append(txn.amount)

        output_vat = quantize(taxable[VATTransactionType.OUTPUT] * self.rates.vat_rate)
        input_vat = quantize(taxable[VATTransactionType.INPUT] * self.rates.vat_rate)

        return VATPeriodResult(
            year=year,
            month=month,
            vat_rate=self.rates.vat_rate,
            taxable_output=taxable[VATTransactionType.OUTPUT],
            taxable_input=taxable[VATTransactionType.INPUT],
            exempt_output=exempt[VATTransactionType.OUTPUT],
            exempt_input=exempt[VATTransactionType.INPUT],
            output_vat=output_vat,
            input_vat=input_vat,
            net_vat_payable=max(output_vat - input_vat, ZERO),
            refund_due=max(input_vat - output_vat, ZERO),
            transaction_count=count,
            exempt_transaction_count=exempt_count,
            output_breakdown=self._breakdown(by_category[VATTransactionType.OUTPUT]),
            input_breakdown=self._breakdown(by_category[VATTransactionType.INPUT]),
        )

    def _breakdown(self, amounts_by_category: dict[str, list[Decimal]]) -> list[VATCategoryBreakdown]:
        breakdown = []
        for category in sorted(amounts_by_category):
            amounts = amounts_by_category[category]
            total = sum(amounts, ZERO)
            breakdown.append(
                VATCategoryBreakdown(
                    category=category,
                    amount=total,
                    vat=quantize(total * self.rates.vat_rate),
                    transaction_count=len(amounts),
                )
            )
        return breakdown

    def calculate_year(self, transactions: Iterable[VATTransaction], year: int) -> VATAnnualResult:
        periods = [
            self.calculate_period(txns, period_year, month)
            for (period_year, month), txns in group_by_period(transactions).items()
            if period_year == year
        ]
        return VATAnnualResult(
            year=year,
            periods=periods,
            total_output_vat=sum((p.output_vat for p in periods), ZERO),
            total_input_vat=sum((p.input_vat for p in periods), ZERO),
            total_net_vat_payable=sum((p.net_vat_payable for p in periods), ZERO),
            total_refund_due=sum((p.refund_due for p in periods), ZERO),
        )

    def calculate_simple(self, amount: Decimal) -> dict:
        amount = quantize(amount)
        vat_amount = quantize(amount * self.rates.vat_rate)
        return {
            "amount": amount,
            "vat_rate": percent(self.rates.vat_rate),
            "vat_amount": vat_amount,
            "total_with_vat": amount + vat_amount,
        }

    def extract_vat_from_inclusive(self, inclusive_amount: Decimal) -> dict:
        inclusive_amount = quantize(inclusive_amount)
        amount_before_vat = quantize(inclusive_amount / (1 + self.rates.vat_rate))
        return {
            "inclusive_amount": inclusive_amount,
            "amount_before_vat": amount_before_vat,
            "vat_amount": inclusive_amount - amount_before_vat,
            "vat_rate": percent(self.rates.vat_rate),
        }


def group_by_period(transactions: Iterable[VATTransaction]) -> dict[tuple[int, int], list[VATTransaction]]:
    """Group transactions by (year, month), the key filing statuses use. Keys come back sorted."""
    grouped = defaultdict(list)
    for txn in transactions:
        grouped[txn.period].append(txn)
    return {period: grouped[period] for period in sorted(grouped)}


def filing_deadline(year: int, month: int) -> date:
    if month == 12:
        return date(year + 1, 1, VAT_FILING_DAY)
    return date(year, month + 1, VAT_FILING_DAY)


def compute_vat_for_period(
    transactions: Iterable[VATTransaction], year: int, month: int, rates: RateTable
) -> VATPeriodResult:
    return VATCalculator(rates).calculate_period(transactions, year, month)


def build_period_reports(
    transactions: Iterable[VATTransaction],
    statuses: Iterable[VATFilingStatus],
    year: int,
    rates: RateTable,
    today: date | None = None,
) -> list[VATPeriodReport]:
    """
    Line up every period of the year that has transactions or a filing
    status with its status (pending when none is recorded). A pending period
    past its deadline is overdue.
    """
    today = today or date.today()
    calculator = VATCalculator(rates)
    grouped = group_by_period(transactions)
    by_period = {status.period: status for status in statuses if status.year == year}
    periods = sorted({p for p in grouped if p[0] == year} | set(by_period))

    reports = []
    for period_year, month in periods:
        result = calculator.calculate_period(grouped.get((period_year, month), []), period_year, month)
        status = by_period.get((period_year, month))
        state = status.status if status else VATFilingState.PENDING
        due_date = filing_deadline(period_year, month)
        reports.append(
            VATPeriodReport(
                result=result,
                status=state,
                due_date=due_date,
                is_overdue=state == VATFilingState.PENDING and today > due_date,
                filed_date=status.filed_date if status else None,
                payment_date=status.payment_date if status else None,
                payment_reference=status.payment_reference if status else None,
                payment_amount=status.payment_amount if status else None,
            )
        )
    return reports


def calculate_simple(amount, rates: RateTable) -> dict:
    return VATCalculator(rates).calculate_simple(to_decimal(amount))


def extract_vat_from_inclusive(inclusive_amount, rates: RateTable) -> dict:
    return VATCalculator(rates).extract_vat_from_inclusive(to_decimal(inclusive_amount))
