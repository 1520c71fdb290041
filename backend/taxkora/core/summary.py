"""
Tax Computation Orchestrator
Composes the engines into a single liability summary for one user and one
tax year.

Order of evaluation:
  1. Load every record for the year (the only step that does I/O)
  2. Individuals: exemptions & reliefs → PIT
     Limited companies: profit → capital allowances → CIT
     Sole proprietors and partners: profit → capital allowances →
     personal reliefs → PIT
  3. VAT for each (year, month) period
  4. WHT withheld on payments made
  5. Payments, outstanding balance and unclaimed-relief advisories

Engine failures come back as a SummaryOutcome carrying a TaxError instead of
an exception, so a dashboard can decide how to degrade. A storage failure
while loading records is reported as DATA_UNAVAILABLE.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from taxkora.core.deductions import (
    Advisory,
    detect_deductions,
    eligible_deductions,
    missed_deduction_alerts,
)
from taxkora.core.errors import DataUnavailableError, TaxEngineError, TaxError
from taxkora.core.money import ZERO, quantize
from taxkora.core.rate_tables import RateTable, RateTableProvider
from taxkora.core.tax_rules.capital_allowance import (
    CapitalAllowanceResult,
    carry_forward_history,
    compute_capital_allowances,
)
from taxkora.core.tax_rules.cit import CITResult, compute_cit
from taxkora.core.tax_rules.pit import PITResult, compute_pit
from taxkora.core.tax_rules.reliefs import ReliefResult, compute_reliefs
from taxkora.core.tax_rules.vat import VATAnnualResult, VATCalculator
from taxkora.core.tax_rules.wht import WHTSummary, summarize_wht
from taxkora.data.repository import TaxDataRepository
from taxkora.schemas.records import (
    AccountType,
    BusinessEntityType,
    CapitalAsset,
    Expense,
    ExpenseCategory,
    IncomeCategory,
    IncomeRecord,
    StatutoryDeductions,
    TaxPayment,
    TaxPaymentStatus,
    VATTransaction,
    WHTTransaction,
)

logger = logging.getLogger(__name__)

# Personal spending that never reduces business profit
NON_DEDUCTIBLE_EXPENSES = frozenset({
    ExpenseCategory.FOOD,
    ExpenseCategory.PERSONAL_CARE,
    ExpenseCategory.CLOTHING,
    ExpenseCategory.ENTERTAINMENT,
    ExpenseCategory.SAVINGS,
    ExpenseCategory.DEBT_PAYMENT,
    ExpenseCategory.TAXES,
})


@dataclass(frozen=True)
class TaxYearSnapshot:
    user_id: str
    year: int
    account_type: AccountType
    entity_type: BusinessEntityType | None = None
    income: tuple[IncomeRecord, ...] = ()
    expenses: tuple[Expense, ...] = ()
    statutory_deductions: StatutoryDeductions | None = None
    capital_assets: tuple[CapitalAsset, ...] = ()
    vat_transactions: tuple[VATTransaction, ...] = ()
    wht_transactions: tuple[WHTTransaction, ...] = ()
    tax_payments: tuple[TaxPayment, ...] = ()
    prior_profits: dict[int, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class TaxSummary:
    year: int
    account_type: AccountType
    regime: str
    gross_income: Decimal
    total_expenses: Decimal
    total_reliefs: Decimal
    taxable_income: Decimal
    pit_or_cit_liability: Decimal
    vat_liability: Decimal
    wht_withheld: Decimal
    total_liability: Decimal
    potential_unclaimed_savings: Decimal
    exempt_income: Decimal = ZERO
    deductible_expenses: Decimal = ZERO
    capital_allowance_claimed: Decimal = ZERO
    vat_refund_due: Decimal = ZERO
    total_paid: Decimal = ZERO
    outstanding_balance: Decimal = ZERO
    reliefs: ReliefResult | None = None
    pit: PITResult | None = None
    cit: CITResult | None = None
    capital_allowances: CapitalAllowanceResult | None = None
    vat: VATAnnualResult | None = None
    wht: WHTSummary | None = None
    advisories: tuple[Advisory, ...] = ()
    entity_type: BusinessEntityType | None = None


@dataclass(frozen=True)
class SummaryOutcome:
    ok: bool
    summary: TaxSummary | None = None
    error: TaxError | None = None

    @classmethod
    def success(cls, summary: TaxSummary) -> "SummaryOutcome":
        return cls(ok=True, summary=summary)

    @classmethod
    def failure(cls, error: TaxError) -> "SummaryOutcome":
        return cls(ok=False, error=error)


def _total(records, attr: str = "amount") -> Decimal:
    return sum((getattr(r, attr) for r in records), ZERO)


def business_profit(income: list[IncomeRecord], expenses: list[Expense]) -> tuple[Decimal, Decimal]:
    """(deductible expenses, profit before capital allowances)"""
    deductible = _total(e for e in expenses if e.category not in NON_DEDUCTIBLE_EXPENSES)
    return deductible, _total(income) - deductible


def _with_exempt_income(
    deductions: StatutoryDeductions | None, income: list[IncomeRecord], year: int
) -> StatutoryDeductions:
    """Gifts and pension benefits booked as income are exempt even when the deductions form omits them."""
    deductions = deductions or StatutoryDeductions.empty(year)
    gifts = _total(r for r in income if r.category == IncomeCategory.GIFTS)
    pension = _total(r for r in income if r.category == IncomeCategory.PENSION)
    return deductions.model_copy(update={
        "gifts_received": max(deductions.gifts_received, gifts),
        "pension_benefits_received": max(deductions.pension_benefits_received, pension),
    })


def summarize_tax_year(snapshot: TaxYearSnapshot, rates: RateTable) -> TaxSummary:
    """Pure computation over an already-loaded snapshot."""
    year = snapshot.year
    income = [r for r in snapshot.income if r.year == year]
    expenses = [e for e in snapshot.expenses if e.year == year]
    gross_income = _total(income)
    total_expenses = _total(expenses)
    advisories: list[Advisory] = []

    entity_type = None
    if snapshot.account_type == AccountType.BUSINESS:
        entity_type = snapshot.entity_type or BusinessEntityType.LIMITED_COMPANY

    pit = cit = capital_allowances = None
    deductible = ZERO
    allowance_claimed = ZERO
    unclaimed = ZERO

    if snapshot.account_type == AccountType.INDIVIDUAL:
        deductions = _with_exempt_income(snapshot.statutory_deductions, income, year)
        reliefs = compute_reliefs(gross_income, deductions, AccountType.INDIVIDUAL, rates)
        pit = compute_pit(reliefs.taxable_income, rates, gross_income=reliefs.income_after_exemptions)
        liability = pit.tax_liability
        taxable_income = reliefs.taxable_income
        total_reliefs = reliefs.total_reliefs

        detected = detect_deductions(expenses, year)
        eligible = compute_reliefs(
            gross_income, eligible_deductions(detected, deductions, year), AccountType.INDIVIDUAL, rates
        )
        unclaimed = max(eligible.total_reliefs - reliefs.total_reliefs, ZERO)
        advisories.extend(missed_deduction_alerts(detected, snapshot.statutory_deductions))
    else:
        deductible, profit = business_profit(income, expenses)

        history = carry_forward_history(snapshot.capital_assets, snapshot.prior_profits, year, rates)
        brought_forward = history[-1].carried_forward if history else ZERO
        capital_allowances = compute_capital_allowances(
            snapshot.capital_assets, year, profit, rates, brought_forward=brought_forward
        )
        allowance_claimed = capital_allowances.allowance_claimed
        adjusted_profit = profit - allowance_claimed

        if entity_type.pays_pit:
            # Sole proprietors and partners: personal reliefs against adjusted profit, then PIT
            reliefs = compute_reliefs(
                max(adjusted_profit, ZERO), snapshot.statutory_deductions, AccountType.INDIVIDUAL, rates
            )
            pit = compute_pit(reliefs.taxable_income, rates, gross_income=reliefs.income_after_exemptions)
            liability = pit.tax_liability
            taxable_income = reliefs.taxable_income
            total_reliefs = reliefs.total_reliefs
            advisories.extend(missed_deduction_alerts([], snapshot.statutory_deductions))
        else:
            reliefs = compute_reliefs(gross_income, None, AccountType.BUSINESS, rates)
            cit = compute_cit(gross_income, adjusted_profit, rates)
            liability = cit.cit_liability
            taxable_income = max(cit.assessable_profit, ZERO)
            total_reliefs = ZERO

        if capital_allowances.carried_forward > 0:
            advisories.append(Advisory(
                code="capital_allowance_carried_forward",
                message="Capital allowances above 2/3 of assessable profit are carried forward to next year.",
                amount=capital_allowances.carried_forward,
            ))

    vat = VATCalculator(rates).calculate_year(snapshot.vat_transactions, year)
    wht = summarize_wht(snapshot.wht_transactions, year, rates)

    total_liability = liability + vat.total_net_vat_payable + wht.total_wht
    total_paid = _total(
        p for p in snapshot.tax_payments
        if p.year == year and p.status == TaxPaymentStatus.CONFIRMED
    )

    return TaxSummary(
        year=year,
        account_type=snapshot.account_type,
        entity_type=entity_type,
        regime=rates.regime,
        gross_income=gross_income,
        total_expenses=total_expenses,
        total_reliefs=total_reliefs,
        taxable_income=taxable_income,
        pit_or_cit_liability=liability,
        vat_liability=vat.total_net_vat_payable,
        wht_withheld=wht.total_wht,
        total_liability=total_liability,
        potential_unclaimed_savings=unclaimed,
        exempt_income=reliefs.total_exempt_income,
        deductible_expenses=deductible,
        capital_allowance_claimed=allowance_claimed,
        vat_refund_due=vat.total_refund_due,
        total_paid=total_paid,
        outstanding_balance=max(total_liability - total_paid, ZERO),
        reliefs=reliefs,
        pit=pit,
        cit=cit,
        capital_allowances=capital_allowances,
        vat=vat,
        wht=wht,
        advisories=tuple(advisories),
    )


class TaxComputationOrchestrator:
    """
    Loads a user's records for a tax year and runs the engines over them.
    Holds no per-user state; one instance can serve concurrent requests.
    """

    def __init__(self, repository: TaxDataRepository, rate_provider: RateTableProvider):
        self.repository = repository
        self.rate_provider = rate_provider

    def load_snapshot(
        self, user_id: str, year: int, entity_type: BusinessEntityType | None = None
    ) -> TaxYearSnapshot:
        repo = self.repository
        account_type = repo.fetch_account_type(user_id)
        if account_type == AccountType.BUSINESS:
            entity_type = entity_type or repo.fetch_business_entity_type(user_id)
        else:
            entity_type = None
        assets = tuple(a for a in repo.fetch_capital_assets(user_id) if a.year_acquired <= year)

        prior_profits = {}
        if account_type == AccountType.BUSINESS and assets:
            for prior in range(min(a.year_acquired for a in assets), year):
                _, profit = business_profit(repo.fetch_income(user_id, prior), repo.fetch_expenses(user_id, prior))
                prior_profits[prior] = profit

        return TaxYearSnapshot(
            user_id=user_id,
            year=year,
            account_type=account_type,
            entity_type=entity_type,
            income=tuple(repo.fetch_income(user_id, year)),
            expenses=tuple(repo.fetch_expenses(user_id, year)),
            statutory_deductions=repo.fetch_statutory_deductions(user_id, year),
            capital_assets=assets,
            vat_transactions=tuple(repo.fetch_vat_transactions(user_id, year)),
            wht_transactions=tuple(repo.fetch_wht_transactions(user_id, year)),
            tax_payments=tuple(repo.fetch_tax_payments(user_id, year)),
            prior_profits=prior_profits,
        )

    def _fetch_snapshot(
        self, user_id: str, year: int, entity_type: BusinessEntityType | None
    ) -> TaxYearSnapshot:
        try:
            return self.load_snapshot(user_id, year, entity_type)
        except TaxEngineError:
            raise
        except Exception as e:
            logger.exception("Loading tax records for user %s, %d failed", user_id, year)
            raise DataUnavailableError(f"Failed to load tax records: {str(e)}", year=year) from e

    def compute_tax_summary(
        self, user_id: str, year: int, entity_type: BusinessEntityType | None = None
    ) -> SummaryOutcome:
        try:
            rates = self.rate_provider.get(year)
            snapshot = self._fetch_snapshot(user_id, year, entity_type)
            summary = summarize_tax_year(snapshot, rates)
        except TaxEngineError as exc:
            logger.warning("Tax summary for user %s, %d failed: %s", user_id, year, exc.message)
            return SummaryOutcome.failure(TaxError.from_exception(exc))

        logger.info(
            "Tax summary for user %s, %d: liability %s, outstanding %s",
            user_id, year, summary.total_liability, summary.outstanding_balance,
        )
        return SummaryOutcome.success(summary)


def compute_tax_summary(
    user_id: str,
    year: int,
    repository: TaxDataRepository,
    rate_provider: RateTableProvider,
    entity_type: BusinessEntityType | None = None,
) -> SummaryOutcome:
    return TaxComputationOrchestrator(repository, rate_provider).compute_tax_summary(user_id, year, entity_type)


def build_advisor_context(summary: TaxSummary) -> dict:
    """Compact, JSON-ready view of a summary for the tax advisor prompt."""
    if summary.cit is None:
        income_tax = {
            "type": "PIT",
            "liability": str(summary.pit_or_cit_liability),
            "effective_rate": str(summary.pit.effective_rate) if summary.pit else "0.00",
            "minimum_wage_exempt": bool(summary.pit and summary.pit.is_minimum_wage_exempt),
        }
    else:
        income_tax = {
            "type": "CIT",
            "liability": str(summary.pit_or_cit_liability),
            "company_size": summary.cit.company_size,
            "rate": str(summary.cit.cit_rate),
        }

    return {
        "tax_year": summary.year,
        "account_type": summary.account_type.value,
        "entity_type": summary.entity_type.value if summary.entity_type else None,
        "tax_authority": summary.entity_type.tax_authority if summary.entity_type else "SIRS",
        "regime": summary.regime,
        "gross_income": str(summary.gross_income),
        "total_expenses": str(summary.total_expenses),
        "total_reliefs": str(summary.total_reliefs),
        "taxable_income": str(summary.taxable_income),
        "income_tax": income_tax,
        "vat_liability": str(summary.vat_liability),
        "wht_withheld": str(summary.wht_withheld),
        "total_liability": str(summary.total_liability),
        "total_paid": str(summary.total_paid),
        "outstanding_balance": str(summary.outstanding_balance),
        "potential_unclaimed_savings": str(quantize(summary.potential_unclaimed_savings)),
        "advisories": [advisory.message for advisory in summary.advisories],
    }
