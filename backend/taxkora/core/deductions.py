"""
Deduction Detection
Scans expense records for payments that look like claimable reliefs and
flags the ones the user has not recorded against the tax year.

Detected types:
  - Rent relief (rent, lease, housing, ...)
  - Life insurance premiums
  - NHIS contributions
  - Pension contributions
  - NHF contributions
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Iterable

from taxkora.core.money import ZERO
from taxkora.schemas.records import Expense, ExpenseCategory, StatutoryDeductions


class DeductionType(str, Enum):
    RENT_RELIEF = "rent_relief"
    LIFE_INSURANCE = "life_insurance"
    GENERAL_INSURANCE = "general_insurance"
    NHIS_CONTRIBUTION = "nhis_contribution"
    PENSION_CONTRIBUTION = "pension_contribution"
    NHF_CONTRIBUTION = "nhf_contribution"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"


RENT_KEYWORDS = ["rent", "lease", "housing", "apartment", "accommodation", "tenancy"]
INSURANCE_KEYWORDS = ["insurance", "life insurance", "premium", "policy", "annuity"]
HEALTHCARE_KEYWORDS = ["health", "medical", "hospital", "nhis", "hmo", "health insurance"]
PENSION_KEYWORDS = ["pension", "retirement", "pfa", "rsa", "pencom"]
NHF_KEYWORDS = ["nhf", "housing fund", "national housing"]

# Which StatutoryDeductions field each detected type would be recorded under
DEDUCTION_FIELDS: dict[DeductionType, str] = {
    DeductionType.RENT_RELIEF: "annual_rent_paid",
    DeductionType.LIFE_INSURANCE: "life_insurance_premium",
    DeductionType.NHIS_CONTRIBUTION: "nhis_contribution",
    DeductionType.PENSION_CONTRIBUTION: "pension_contribution",
    DeductionType.NHF_CONTRIBUTION: "nhf_contribution",
}

_LABELS = {
    DeductionType.RENT_RELIEF: "Rent Relief",
    DeductionType.LIFE_INSURANCE: "Life Insurance Premium",
    DeductionType.GENERAL_INSURANCE: "Insurance",
    DeductionType.NHIS_CONTRIBUTION: "NHIS Contribution",
    DeductionType.PENSION_CONTRIBUTION: "Pension Contribution",
    DeductionType.NHF_CONTRIBUTION: "NHF Contribution",
}

_SUGGESTIONS = {
    DeductionType.RENT_RELIEF: "Upload rent receipt or lease agreement to claim 20% rent relief (max ₦500,000)",
    DeductionType.LIFE_INSURANCE: "Life insurance premiums are deductible. Upload premium receipt to claim.",
    DeductionType.GENERAL_INSURANCE: "If this is a life insurance or annuity premium, it may be deductible.",
    DeductionType.NHIS_CONTRIBUTION: "NHIS contributions are fully deductible. Upload contribution statement.",
    DeductionType.PENSION_CONTRIBUTION: "Pension contributions to registered PFAs are fully deductible.",
    DeductionType.NHF_CONTRIBUTION: "National Housing Fund contributions are tax-deductible.",
}


@dataclass
class DetectedDeduction:
    deduction_type: DeductionType
    label: str
    amount: Decimal
    confidence: Confidence
    suggestion: str
    expense_count: int = 1
    document_required: bool = True
    expense_ids: list[str] = field(default_factory=list)


@dataclass
class Advisory:
    code: str
    message: str
    amount: Decimal = ZERO


def _matches(text: str, keywords: list[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def _classify(expense: Expense) -> list[tuple[DeductionType, Confidence]]:
    text = f"{expense.description} {expense.vendor or ''}".lower()
    found = []

    rent_category = expense.category in (ExpenseCategory.RENT, ExpenseCategory.HOUSING)
    if rent_category or _matches(text, RENT_KEYWORDS):
        found.append((DeductionType.RENT_RELIEF, Confidence.HIGH if rent_category else Confidence.MEDIUM))

    if expense.category == ExpenseCategory.INSURANCE or _matches(text, INSURANCE_KEYWORDS):
        if "life" in text or "annuity" in text:
            found.append((DeductionType.LIFE_INSURANCE, Confidence.HIGH))
        else:
            found.append((DeductionType.GENERAL_INSURANCE, Confidence.MEDIUM))

    if expense.category == ExpenseCategory.HEALTHCARE or _matches(text, HEALTHCARE_KEYWORDS):
        if "nhis" in text or "hmo" in text:
            found.append((DeductionType.NHIS_CONTRIBUTION, Confidence.HIGH))

    if _matches(text, PENSION_KEYWORDS):
        found.append((DeductionType.PENSION_CONTRIBUTION, Confidence.HIGH))

    if _matches(text, NHF_KEYWORDS):
        found.append((DeductionType.NHF_CONTRIBUTION, Confidence.HIGH))

    return found


def detect_deductions(expenses: Iterable[Expense], year: int) -> list[DetectedDeduction]:
    """Aggregate deduction-like expenses for `year`, one entry per deduction type."""
    aggregated: dict[DeductionType, DetectedDeduction] = {}

    for expense in expenses:
        if expense.year != year:
            continue
        for deduction_type, confidence in _classify(expense):
            existing = aggregated.get(deduction_type)
            if existing is None:
                aggregated[deduction_type] = DetectedDeduction(
                    deduction_type=deduction_type,
                    label=_LABELS[deduction_type],
                    amount=expense.amount,
                    confidence=confidence,
                    suggestion=_SUGGESTIONS[deduction_type],
                    expense_ids=[expense.id] if expense.id else [],
                )
                continue
            existing.amount += expense.amount
            existing.expense_count += 1
            if expense.id:
                existing.expense_ids.append(expense.id)
            if confidence == Confidence.HIGH:
                existing.confidence = Confidence.HIGH

    return [aggregated[t] for t in DeductionType if t in aggregated]


def eligible_deductions(
    detected: Iterable[DetectedDeduction], recorded: StatutoryDeductions | None, year: int
) -> StatutoryDeductions:
    """The recorded deductions, raised to whatever the expenses suggest was paid."""
    recorded = recorded or StatutoryDeductions.empty(year)
    updates = {}
    for item in detected:
        attr = DEDUCTION_FIELDS.get(item.deduction_type)
        if attr is None:
            continue
        updates[attr] = max(getattr(recorded, attr), item.amount)
    return recorded.model_copy(update=updates)


def missed_deduction_alerts(
    detected: Iterable[DetectedDeduction], recorded: StatutoryDeductions | None
) -> list[Advisory]:
    alerts = []
    if recorded is None:
        alerts.append(Advisory(
            code="missing_statutory_deductions",
            message=(
                "No statutory deductions recorded for this year. Add pension, NHIS, NHF, "
                "rent and insurance payments to claim your reliefs."
            ),
        ))

    for item in detected:
        attr = DEDUCTION_FIELDS.get(item.deduction_type)
        if attr is None:
            continue
        already = getattr(recorded, attr) if recorded else ZERO
        if item.amount > already:
            alerts.append(Advisory(
                code=f"unclaimed_{item.deduction_type.value}",
                message=f"{item.label}: {item.expense_count} expense(s) not reflected in your deductions. {item.suggestion}",
                amount=item.amount - already,
            ))
    return alerts
