"""
Tests for the tax computation orchestrator.
Records come from an in-memory repository; rates from the built-in tables.
"""

import json
from dataclasses import asdict
from datetime import date
from decimal import Decimal

import pytest

from factories import asset, expense, income, vat_txn, wht_txn
from taxkora.core.errors import ErrorCode, InvalidRecordError
from taxkora.core.rate_tables import RateTableProvider
from taxkora.core.summary import TaxComputationOrchestrator, build_advisor_context, compute_tax_summary
from taxkora.schemas.records import AccountType, BusinessEntityType, StatutoryDeductions, TaxPayment

USER = "user-1"


@pytest.fixture
def orchestrator(repo, provider):
    return TaxComputationOrchestrator(repo, provider)


def serialise(summary) -> str:
    return json.dumps(asdict(summary), default=str, sort_keys=True)


class TestIndividualSummary:
    @pytest.fixture(autouse=True)
    def records(self, repo):
        repo.add(USER, income(3_000_000, "salary"))
        repo.add(USER, StatutoryDeductions(
            year=2025, annual_rent_paid=Decimal("1000000"), pension_contribution=Decimal("200000")
        ))
        repo.add(USER, expense(1_200_000, "rent", description="Flat 4B annual rent"))
        repo.add(USER, wht_txn(1_000_000, "professional_fees", "individual"))
        repo.add(USER, TaxPayment(year=2025, amount=Decimal("100000"), payment_date=date(2025, 4, 1),
                                  payment_type="pit", status="confirmed"))
        repo.add(USER, TaxPayment(year=2025, amount=Decimal("50000"), payment_date=date(2025, 5, 1),
                                  payment_type="pit", status="pending"))

    def test_liability(self, orchestrator):
        outcome = orchestrator.compute_tax_summary(USER, 2025)
        assert outcome.ok is True
        summary = outcome.summary

        assert summary.gross_income == Decimal("3000000.00")
        assert summary.total_expenses == Decimal("1200000.00")
        assert summary.total_reliefs == Decimal("1200000.00")
        assert summary.taxable_income == Decimal("1800000.00")
        assert summary.pit_or_cit_liability == Decimal("266000.00")
        assert summary.vat_liability == 0
        assert summary.wht_withheld == Decimal("50000.00")
        assert summary.total_liability == Decimal("316000.00")

    def test_payments_and_balance(self, orchestrator):
        summary = orchestrator.compute_tax_summary(USER, 2025).summary
        assert summary.total_paid == Decimal("100000.00")
        assert summary.outstanding_balance == Decimal("216000.00")

    def test_unclaimed_rent_relief(self, orchestrator):
        # Rent expenses of 1.2M against 1M recorded: relief could be 240K, not 200K
        summary = orchestrator.compute_tax_summary(USER, 2025).summary
        assert summary.potential_unclaimed_savings == Decimal("40000.00")
        codes = {a.code: a.amount for a in summary.advisories}
        assert codes["unclaimed_rent_relief"] == Decimal("200000.00")
        assert "missing_statutory_deductions" not in codes

    def test_idempotent(self, orchestrator):
        first = orchestrator.compute_tax_summary(USER, 2025).summary
        second = orchestrator.compute_tax_summary(USER, 2025).summary
        assert first == second
        assert serialise(first) == serialise(second)

    def test_advisor_context(self, orchestrator):
        context = build_advisor_context(orchestrator.compute_tax_summary(USER, 2025).summary)
        assert context["tax_year"] == 2025
        assert context["income_tax"]["type"] == "PIT"
        assert context["total_liability"] == "316000.00"
        json.dumps(context)


class TestMissingContext:
    def test_missing_deductions_are_not_an_error(self, repo, orchestrator):
        repo.add(USER, income(3_000_000, "salary"))
        outcome = orchestrator.compute_tax_summary(USER, 2025)

        assert outcome.ok is True
        # CRA 800K only
        assert outcome.summary.taxable_income == Decimal("2200000.00")
        assert outcome.summary.pit_or_cit_liability == Decimal("350000.00")
        assert "missing_statutory_deductions" in {a.code for a in outcome.summary.advisories}

    def test_gifts_booked_as_income_are_exempt(self, repo, orchestrator):
        repo.add(USER, income(3_000_000, "salary"))
        repo.add(USER, income(500_000, "gifts"))
        summary = orchestrator.compute_tax_summary(USER, 2025).summary

        assert summary.gross_income == Decimal("3500000.00")
        assert summary.exempt_income == Decimal("500000.00")
        assert summary.taxable_income == Decimal("2200000.00")

    def test_other_years_ignored(self, repo, orchestrator):
        repo.add(USER, income(3_000_000, "salary", on=date(2024, 12, 31)))
        summary = orchestrator.compute_tax_summary(USER, 2025).summary
        assert summary.gross_income == 0
        assert summary.pit_or_cit_liability == 0

    def test_reliefs_down_to_minimum_wage_still_taxed(self, repo, orchestrator):
        repo.add(USER, income(2_200_000, "salary"))
        repo.add(USER, StatutoryDeductions(
            year=2025, annual_rent_paid=Decimal("2500000"), pension_contribution=Decimal("220000")
        ))
        summary = orchestrator.compute_tax_summary(USER, 2025).summary

        # CRA 640K + rent 500K + pension 220K
        assert summary.taxable_income == Decimal("840000.00")
        assert summary.pit.is_minimum_wage_exempt is False
        assert summary.pit_or_cit_liability == Decimal("90000.00")

    def test_minimum_wage_earner(self, repo, orchestrator):
        repo.add(USER, income(840_000, "wages"))
        summary = orchestrator.compute_tax_summary(USER, 2025).summary
        assert summary.pit.is_minimum_wage_exempt is True
        assert summary.pit_or_cit_liability == 0
        assert summary.entity_type is None


class TestBusinessSummary:
    @pytest.fixture(autouse=True)
    def business(self, repo):
        repo.account_types[USER] = AccountType.BUSINESS

    def test_profit_allowances_and_cit(self, repo, orchestrator):
        repo.add(USER, income(30_000_000, "sales"))
        repo.add(USER, expense(10_000_000, "salaries"))
        repo.add(USER, expense(1_000_000, "food"))
        repo.add(USER, asset(6_000_000, year=2025))
        repo.add(USER, vat_txn("output", 2_000_000, on=date(2025, 3, 10)))
        repo.add(USER, vat_txn("input", 800_000, on=date(2025, 3, 12)))
        repo.add(USER, vat_txn("input", 400_000, on=date(2025, 4, 2)))

        summary = orchestrator.compute_tax_summary(USER, 2025).summary

        assert summary.deductible_expenses == Decimal("10000000.00")
        assert summary.total_reliefs == 0
        assert summary.capital_allowance_claimed == Decimal("3000000.00")
        assert summary.cit.company_size == "medium"
        # (20M profit − 3M allowance) × 20%
        assert summary.pit_or_cit_liability == Decimal("3400000.00")
        assert summary.vat_liability == Decimal("90000.00")
        assert summary.vat_refund_due == Decimal("30000.00")
        assert summary.total_liability == Decimal("3490000.00")
        assert summary.potential_unclaimed_savings == 0

    def test_unabsorbed_allowances_brought_forward(self, repo, orchestrator):
        repo.add(USER, asset(30_000_000, year=2024))
        repo.add(USER, income(6_000_000, "sales", on=date(2024, 8, 1)))
        repo.add(USER, income(30_000_000, "sales", on=date(2025, 8, 1)))

        summary = orchestrator.compute_tax_summary(USER, 2025).summary
        allowances = summary.capital_allowances

        # 2024: 15M due, 4M absorbed
        assert allowances.brought_forward == Decimal("11000000.00")
        # 2025: 7.5M due + 11M b/f, all within the 20M cap
        assert allowances.allowance_claimed == Decimal("18500000.00")
        assert summary.pit_or_cit_liability == Decimal("2300000.00")

    def test_small_company_still_summarised(self, repo, orchestrator):
        repo.add(USER, income(20_000_000, "sales"))
        summary = orchestrator.compute_tax_summary(USER, 2025).summary
        assert summary.pit_or_cit_liability == 0
        assert summary.cit.filing_required is True
        assert summary.entity_type == BusinessEntityType.LIMITED_COMPANY


class TestSoleProprietorSummary:
    @pytest.fixture(autouse=True)
    def business(self, repo):
        repo.account_types[USER] = AccountType.BUSINESS
        repo.entity_types[USER] = BusinessEntityType.SOLE_PROPRIETORSHIP

    def test_pit_on_adjusted_profit(self, repo, orchestrator):
        repo.add(USER, income(12_000_000, "sales"))
        repo.add(USER, expense(2_000_000, "salaries"))
        repo.add(USER, asset(6_000_000, year=2025))
        repo.add(USER, StatutoryDeductions(year=2025, pension_contribution=Decimal("300000")))

        summary = orchestrator.compute_tax_summary(USER, 2025).summary

        assert summary.entity_type == BusinessEntityType.SOLE_PROPRIETORSHIP
        assert summary.cit is None
        assert summary.capital_allowance_claimed == Decimal("3000000.00")
        # 7M adjusted profit less CRA 1.6M and pension 300K
        assert summary.total_reliefs == Decimal("1900000.00")
        assert summary.taxable_income == Decimal("5100000.00")
        assert summary.pit_or_cit_liability == Decimal("1016000.00")
        assert summary.potential_unclaimed_savings == 0

    def test_advisor_context_reports_pit(self, repo, orchestrator):
        repo.add(USER, income(5_000_000, "services"))
        context = build_advisor_context(orchestrator.compute_tax_summary(USER, 2025).summary)
        assert context["income_tax"]["type"] == "PIT"
        assert context["entity_type"] == "sole_proprietorship"
        assert context["tax_authority"] == "SIRS"

    def test_missing_reliefs_flagged(self, repo, orchestrator):
        repo.add(USER, income(5_000_000, "services"))
        summary = orchestrator.compute_tax_summary(USER, 2025).summary
        assert "missing_statutory_deductions" in {a.code for a in summary.advisories}

    def test_entity_type_override(self, repo, orchestrator):
        repo.entity_types[USER] = BusinessEntityType.LIMITED_COMPANY
        repo.add(USER, income(20_000_000, "sales"))

        as_company = orchestrator.compute_tax_summary(USER, 2025).summary
        as_partnership = orchestrator.compute_tax_summary(
            USER, 2025, entity_type=BusinessEntityType.PARTNERSHIP
        ).summary

        assert as_company.pit_or_cit_liability == 0
        # CRA 4.2M, taxable 15.8M
        assert as_partnership.entity_type == BusinessEntityType.PARTNERSHIP
        assert as_partnership.pit_or_cit_liability == Decimal("3584000.00")


class TestFailures:
    def test_missing_rate_table(self, orchestrator):
        outcome = orchestrator.compute_tax_summary(USER, 2019)
        assert outcome.ok is False
        assert outcome.summary is None
        assert outcome.error.code == ErrorCode.RATE_TABLE_NOT_FOUND

    def test_invalid_record(self, repo, orchestrator):
        repo.fail_with = InvalidRecordError("Invalid expenses row e-9", table="expenses")
        outcome = orchestrator.compute_tax_summary(USER, 2025)
        assert outcome.ok is False
        assert outcome.error.code == ErrorCode.INVALID_INPUT
        assert outcome.error.details["table"] == "expenses"

    def test_storage_failure(self, repo, orchestrator):
        repo.fail_with = RuntimeError("connection reset by peer")
        outcome = orchestrator.compute_tax_summary(USER, 2025)
        assert outcome.ok is False
        assert outcome.error.code == ErrorCode.DATA_UNAVAILABLE
        assert "connection reset by peer" in outcome.error.message

    def test_unsupported_wht_category(self, repo, provider):
        rates = provider.get(2025)
        trimmed = rates.model_copy(update={"wht_rates": tuple(
            r for r in rates.wht_rates if r.payment_type != "royalties"
        )})
        repo.add(USER, wht_txn(100_000, "royalties", "company"))

        outcome = compute_tax_summary(USER, 2025, repo, RateTableProvider([trimmed]))

        assert outcome.ok is False
        assert outcome.error.code == ErrorCode.UNSUPPORTED_CATEGORY
