"""
Withholding Tax (WHT) Calculator
Companies Income Tax (Deduction of Tax at Source) Regulations;
Nigeria Tax Act 2025

WHT is deducted at source on certain payments. The rate depends on the
payment type and on whether the recipient is a company, an individual or a
non-resident:
  - Dividends, interest, royalties, rent, directors' fees: 10%
  - Professional, consulting, management, technical fees:
      10% (companies), 5% (individuals), 10% (non-residents)
  - Commissions: 5% (residents), 10% (non-residents)
  - Construction contracts: 5%

Amounts withheld are remitted by the 21st of the following month.
A combination missing from the rate table is a configuration error.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable

from taxkora.core.errors import InvalidRecordError
from taxkora.core.money import ZERO, quantize, to_decimal
from taxkora.core.rate_tables import RateTable
from taxkora.schemas.records import WHTTransaction

WHT_REMITTANCE_DAY = 21


@dataclass
class WHTLineItem:
    payment_type: str
    recipient_type: str
    gross_amount: Decimal
    wht_rate: Decimal
    wht_amount: Decimal
    net_amount: Decimal
    transaction_id: str | None = None
    recipient_name: str | None = None
    payment_date: date | None = None


@dataclass
class WHTBreakdown:
    key: str
    count: int = 0
    gross: Decimal = ZERO
    wht: Decimal = ZERO


@dataclass
class WHTSummary:
    year: int
    month: int | None
    remittance_deadline: date
    transaction_count: int
    total_gross: Decimal
    total_wht: Decimal
    total_net: Decimal
    by_payment_type: list[WHTBreakdown] = field(default_factory=list)
    by_recipient_type: list[WHTBreakdown] = field(default_factory=list)
    line_items: list[WHTLineItem] = field(default_factory=list)


class WHTCalculator:
    """
    Deterministic Withholding Tax calculator for Nigerian transactions.
    Rates are injected per tax year.
    """

    def __init__(self, rates: RateTable):
        self.rates = rates

    def get_rate(self, payment_type, recipient_type) -> Decimal:
        return self.rates.wht_rate(payment_type, recipient_type)

    def calculate_single(self, gross_amount: Decimal, payment_type, recipient_type) -> WHTLineItem:
        gross_amount = quantize(gross_amount)
        if gross_amount < 0:
            raise InvalidRecordError("Gross amount cannot be negative", gross_amount=str(gross_amount))

        rate = self.get_rate(payment_type, recipient_type)
        wht_amount = quantize(gross_amount * rate)

        return WHTLineItem(
            payment_type=getattr(payment_type, "value", payment_type),
            recipient_type=getattr(recipient_type, "value", recipient_type),
            gross_amount=gross_amount,
            wht_rate=rate,
            wht_amount=wht_amount,
            net_amount=gross_amount - wht_amount,
        )

    def calculate_transaction(self, txn: WHTTransaction) -> WHTLineItem:
        item = self.calculate_single(txn.gross_amount, txn.payment_type, txn.recipient_type)
        item.transaction_id = txn.id
        item.recipient_name = txn.recipient_name
        item.payment_date = txn.payment_date
        return item

    def summarize(self, transactions: Iterable[WHTTransaction], year: int, month: int | None = None) -> WHTSummary:
        selected = [
            txn for txn in transactions
            if txn.year == year and (month is None or txn.month == month)
        ]
        line_items = [self.calculate_transaction(txn) for txn in selected]

        total_gross = sum((item.gross_amount for item in line_items), ZERO)
        total_wht = sum((item.wht_amount for item in line_items), ZERO)

        return WHTSummary(
            year=year,
            month=month,
            remittance_deadline=remittance_deadline(year, month),
            transaction_count=len(line_items),
            total_gross=total_gross,
            total_wht=total_wht,
            total_net=total_gross - total_wht,
            by_payment_type=_breakdown(line_items, "payment_type"),
            by_recipient_type=_breakdown(line_items, "recipient_type"),
            line_items=line_items,
        )


def _breakdown(line_items: list[WHTLineItem], attr: str) -> list[WHTBreakdown]:
    groups = defaultdict(lambda: WHTBreakdown(key=""))
    for item in line_items:
        key = getattr(item, attr)
        entry = groups[key]
        entry.key = key
        entry.count += 1
        entry.gross += item.gross_amount
        entry.wht += item.wht_amount
    return [groups[key] for key in sorted(groups)]


def remittance_deadline(year: int, month: int | None = None) -> date:
    """21st of the following month; 21 January of the next year for an annual summary."""
    if month is None or month == 12:
        return date(year + 1, 1, WHT_REMITTANCE_DAY)
    return date(year, month + 1, WHT_REMITTANCE_DAY)


def compute_wht(gross_amount, payment_type, recipient_type, rates: RateTable) -> WHTLineItem:
    return WHTCalculator(rates).calculate_single(to_decimal(gross_amount), payment_type, recipient_type)


def summarize_wht(
    transactions: Iterable[WHTTransaction], year: int, rates: RateTable, month: int | None = None
) -> WHTSummary:
    return WHTCalculator(rates).summarize(transactions, year, month)
