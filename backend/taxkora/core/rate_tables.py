"""
Rate Tables
Year-keyed, immutable rate data for every engine.

Built-in regimes:
  - 2023 to 2025: Personal Income Tax Act (as amended)
      Consolidated Relief Allowance: higher of ₦200,000 or 1% of gross, plus 20% of gross
      Brackets: 7%, 11%, 15%, 19%, 21%, 24%
  - 2026: Nigeria Tax Act 2025
      No CRA; first ₦800,000 at 0%, then 15%, 18%, 21%, 23%, 25%

Shared across both regimes:
  - Rent relief: 20% of annual rent paid, capped at ₦500,000
  - CIT bands: 0% (≤₦25M), 20% (≤₦100M), 30% (≤₦250M), 30% (above)
  - VAT: 7.5%; medical, basic food, educational, baby and agricultural
    supplies, exports, diplomatic and humanitarian goods are exempt
  - Capital allowances restricted to 2/3 of assessable profit

Further years (or corrections) are loaded from a JSON file so a change in
the law does not need a code change.
"""

import json
import logging
from decimal import Decimal
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_serializer, field_validator

from taxkora.core.errors import RateTableNotFoundError, UnsupportedCategoryError

logger = logging.getLogger(__name__)


MINIMUM_WAGE_ANNUAL = Decimal("840000")  # ₦70,000/month
CRA_FLOOR = Decimal("200000")
CRA_FLOOR_RATE = Decimal("0.01")
CRA_GROSS_RATE = Decimal("0.20")
RENT_RELIEF_RATE = Decimal("0.20")
RENT_RELIEF_CAP = Decimal("500000")
EMPLOYMENT_COMPENSATION_EXEMPT_CAP = Decimal("50000000")

# Keys for ReliefRules.deduction_caps. An item without a cap is deducted in full.
PENSION_CAP_KEY = "pension"
NHIS_CAP_KEY = "nhis"
NHF_CAP_KEY = "nhf"
HOUSING_LOAN_INTEREST_CAP_KEY = "housing_loan_interest"
LIFE_INSURANCE_CAP_KEY = "life_insurance"

SMALL_COMPANY_THRESHOLD = Decimal("25000000")
MEDIUM_COMPANY_THRESHOLD = Decimal("100000000")
UPPER_MEDIUM_THRESHOLD = Decimal("250000000")

VAT_RATE = Decimal("0.075")

# Supplies in these categories carry no VAT whatever the is_exempt flag says.
VAT_EXEMPT_CATEGORIES = (
    "medical_pharmaceutical",
    "basic_food_items",
    "books_educational",
    "baby_products",
    "agricultural_inputs",
    "exports",
    "diplomatic_purchases",
    "humanitarian_goods",
)


class AllowanceBasis(str, Enum):
    COST = "cost"  # annual rate applied to original cost
    RESIDUE = "residue"  # annual rate applied to cost less initial allowance


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class PITBracket(_Frozen):
    lower: Decimal
    upper: Decimal | None = None  # None: unbounded
    rate: Decimal
    label: str = ""


class CITBand(_Frozen):
    min_turnover: Decimal  # exclusive, except for the first band
    max_turnover: Decimal | None = None  # inclusive; None: unbounded
    rate: Decimal
    category: str
    label: str = ""


class WHTRate(_Frozen):
    payment_type: str
    recipient_type: str
    rate: Decimal


class CapitalAllowanceRate(_Frozen):
    category: str
    label: str = ""
    initial_rate: Decimal
    annual_rate: Decimal
    basis: AllowanceBasis = AllowanceBasis.COST


class ReliefRules(_Frozen):
    cra_enabled: bool = True
    cra_floor: Decimal = CRA_FLOOR
    cra_floor_rate: Decimal = CRA_FLOOR_RATE
    cra_gross_rate: Decimal = CRA_GROSS_RATE
    rent_relief_rate: Decimal = RENT_RELIEF_RATE
    rent_relief_cap: Decimal = RENT_RELIEF_CAP
    employment_compensation_exempt_cap: Decimal = EMPLOYMENT_COMPENSATION_EXEMPT_CAP
    deduction_caps: Mapping[str, Decimal] = Field(default_factory=dict, validate_default=True)

    @field_validator("deduction_caps", mode="after")
    @classmethod
    def _read_only_caps(cls, caps: Mapping[str, Decimal]) -> Mapping[str, Decimal]:
        return MappingProxyType(dict(caps))

    @field_serializer("deduction_caps")
    def _dump_caps(self, caps: Mapping[str, Decimal]) -> dict[str, Decimal]:
        return dict(caps)


class RateTable(_Frozen):
    year: int
    regime: str
    pit_brackets: tuple[PITBracket, ...] = Field(min_length=1)
    minimum_wage_threshold: Decimal = MINIMUM_WAGE_ANNUAL
    reliefs: ReliefRules = Field(default_factory=ReliefRules)
    cit_bands: tuple[CITBand, ...] = Field(min_length=1)
    vat_rate: Decimal = VAT_RATE
    vat_exempt_categories: tuple[str, ...] = VAT_EXEMPT_CATEGORIES
    wht_rates: tuple[WHTRate, ...]
    capital_allowance_rates: tuple[CapitalAllowanceRate, ...]
    capital_allowance_cap_numerator: int = 2
    capital_allowance_cap_denominator: int = 3

    def sorted_brackets(self) -> list[PITBracket]:
        return sorted(self.pit_brackets, key=lambda b: b.lower)

    def wht_rate(self, payment_type: str, recipient_type: str) -> Decimal:
        payment_type = getattr(payment_type, "value", payment_type)
        recipient_type = getattr(recipient_type, "value", recipient_type)
        for entry in self.wht_rates:
            if entry.payment_type == payment_type and entry.recipient_type == recipient_type:
                return entry.rate
        raise UnsupportedCategoryError(
            f"No WHT rate for payment type '{payment_type}' paid to '{recipient_type}' in {self.year}",
            payment_type=payment_type,
            recipient_type=recipient_type,
            year=self.year,
        )

    def allowance_rates(self, category: str) -> CapitalAllowanceRate:
        category = getattr(category, "value", category)
        for entry in self.capital_allowance_rates:
            if entry.category == category:
                return entry
        raise UnsupportedCategoryError(
            f"No capital allowance rates for asset category '{category}' in {self.year}",
            category=category,
            year=self.year,
        )

    def cit_band(self, annual_turnover: Decimal) -> CITBand:
        bands = sorted(self.cit_bands, key=lambda b: b.min_turnover)
        if annual_turnover <= bands[0].min_turnover:
            return bands[0]
        for band in bands:
            above_floor = annual_turnover > band.min_turnover
            below_ceiling = band.max_turnover is None or annual_turnover <= band.max_turnover
            if above_floor and below_ceiling:
                return band
        return bands[-1]


# ── Built-in tables ──

def _d(value: str) -> Decimal:
    return Decimal(value)


_PITA_BRACKETS = (
    PITBracket(lower=_d("0"), upper=_d("300000"), rate=_d("0.07"), label="First ₦300,000"),
    PITBracket(lower=_d("300000"), upper=_d("600000"), rate=_d("0.11"), label="Next ₦300,000"),
    PITBracket(lower=_d("600000"), upper=_d("1100000"), rate=_d("0.15"), label="Next ₦500,000"),
    PITBracket(lower=_d("1100000"), upper=_d("1600000"), rate=_d("0.19"), label="Next ₦500,000"),
    PITBracket(lower=_d("1600000"), upper=_d("3200000"), rate=_d("0.21"), label="Next ₦1,600,000"),
    PITBracket(lower=_d("3200000"), upper=None, rate=_d("0.24"), label="Above ₦3,200,000"),
)

_NTA_BRACKETS = (
    PITBracket(lower=_d("0"), upper=_d("800000"), rate=_d("0"), label="First ₦800,000"),
    PITBracket(lower=_d("800000"), upper=_d("3000000"), rate=_d("0.15"), label="₦800,001 - ₦3,000,000"),
    PITBracket(lower=_d("3000000"), upper=_d("12000000"), rate=_d("0.18"), label="₦3,000,001 - ₦12,000,000"),
    PITBracket(lower=_d("12000000"), upper=_d("25000000"), rate=_d("0.21"), label="₦12,000,001 - ₦25,000,000"),
    PITBracket(lower=_d("25000000"), upper=_d("50000000"), rate=_d("0.23"), label="₦25,000,001 - ₦50,000,000"),
    PITBracket(lower=_d("50000000"), upper=None, rate=_d("0.25"), label="Above ₦50,000,000"),
)

_CIT_BANDS = (
    CITBand(min_turnover=_d("0"), max_turnover=SMALL_COMPANY_THRESHOLD, rate=_d("0"),
            category="small", label="Small Company (≤₦25M)"),
    CITBand(min_turnover=SMALL_COMPANY_THRESHOLD, max_turnover=MEDIUM_COMPANY_THRESHOLD, rate=_d("0.20"),
            category="medium", label="Medium Company (₦25M - ₦100M)"),
    CITBand(min_turnover=MEDIUM_COMPANY_THRESHOLD, max_turnover=UPPER_MEDIUM_THRESHOLD, rate=_d("0.30"),
            category="upper-medium", label="Upper-Medium (₦100M - ₦250M)"),
    CITBand(min_turnover=UPPER_MEDIUM_THRESHOLD, max_turnover=None, rate=_d("0.30"),
            category="large", label="Large Company (>₦250M)"),
)

# (payment_type, company, individual, non_resident)
_WHT_SCHEDULE = [
    ("dividends", "0.10", "0.10", "0.10"),
    ("interest", "0.10", "0.10", "0.10"),
    ("royalties", "0.10", "0.10", "0.10"),
    ("rent", "0.10", "0.10", "0.10"),
    ("commissions", "0.05", "0.05", "0.10"),
    ("professional_fees", "0.10", "0.05", "0.10"),
    ("consulting_fees", "0.10", "0.05", "0.10"),
    ("management_fees", "0.10", "0.05", "0.10"),
    ("technical_fees", "0.10", "0.05", "0.10"),
    ("construction_contracts", "0.05", "0.05", "0.05"),
    ("directors_fees", "0.10", "0.10", "0.10"),
    ("other", "0.10", "0.05", "0.10"),
]

_WHT_RATES = tuple(
    WHTRate(payment_type=payment_type, recipient_type=recipient_type, rate=_d(rate))
    for payment_type, company, individual, non_resident in _WHT_SCHEDULE
    for recipient_type, rate in (
        ("company", company),
        ("individual", individual),
        ("non_resident", non_resident),
    )
)

_CAPITAL_ALLOWANCE_RATES = (
    CapitalAllowanceRate(category="plant_machinery", label="Plant & Machinery",
                         initial_rate=_d("0.50"), annual_rate=_d("0.25")),
    CapitalAllowanceRate(category="motor_vehicles", label="Motor Vehicles",
                         initial_rate=_d("0.50"), annual_rate=_d("0.25")),
    CapitalAllowanceRate(category="furniture_fittings", label="Furniture & Fittings",
                         initial_rate=_d("0.25"), annual_rate=_d("0.20")),
    CapitalAllowanceRate(category="buildings", label="Buildings",
                         initial_rate=_d("0.15"), annual_rate=_d("0.10")),
    CapitalAllowanceRate(category="computers_equipment", label="Computers & IT Equipment",
                         initial_rate=_d("0.50"), annual_rate=_d("0.25")),
    CapitalAllowanceRate(category="agricultural_equipment", label="Agricultural Equipment",
                         initial_rate=_d("0.95"), annual_rate=_d("0")),
    CapitalAllowanceRate(category="other", label="Other Assets",
                         initial_rate=_d("0.25"), annual_rate=_d("0.20")),
)


def _pita_table(year: int) -> RateTable:
    return RateTable(
        year=year,
        regime="Personal Income Tax Act",
        pit_brackets=_PITA_BRACKETS,
        reliefs=ReliefRules(cra_enabled=True),
        cit_bands=_CIT_BANDS,
        wht_rates=_WHT_RATES,
        capital_allowance_rates=_CAPITAL_ALLOWANCE_RATES,
    )


def _nta_table(year: int) -> RateTable:
    return RateTable(
        year=year,
        regime="Nigeria Tax Act 2025",
        pit_brackets=_NTA_BRACKETS,
        reliefs=ReliefRules(cra_enabled=False),
        cit_bands=_CIT_BANDS,
        wht_rates=_WHT_RATES,
        capital_allowance_rates=_CAPITAL_ALLOWANCE_RATES,
    )


BUILTIN_TABLES: tuple[RateTable, ...] = (
    _pita_table(2023),
    _pita_table(2024),
    _pita_table(2025),
    _nta_table(2026),
)

_table_list = TypeAdapter(list[RateTable])


def load_rate_tables(path: str | Path) -> list[RateTable]:
    """
    Read rate tables from a JSON file: either a list of tables or an object
    with a "tables" list. Amounts may be written as strings or numbers.
    """
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(raw, dict):
        raw = raw.get("tables", [])
    tables = _table_list.validate_python(raw)
    logger.info("Loaded %d rate table(s) from %s", len(tables), path)
    return tables


class RateTableProvider:
    """
    Supplies the rate table for a tax year. Never substitutes another year's
    table when the requested one is missing.
    """

    def __init__(self, tables: Iterable[RateTable] = BUILTIN_TABLES):
        self._tables = MappingProxyType({table.year: table for table in tables})

    @classmethod
    def from_settings(cls, rate_tables_file: str = "") -> "RateTableProvider":
        tables = {table.year: table for table in BUILTIN_TABLES}
        if rate_tables_file:
            for table in load_rate_tables(rate_tables_file):
                if table.year in tables:
                    logger.info("Rate table for %d overridden from %s", table.year, rate_tables_file)
                tables[table.year] = table
        return cls(tables.values())

    def get(self, year: int) -> RateTable:
        table = self._tables.get(year)
        if table is None:
            raise RateTableNotFoundError(
                f"No rate table configured for tax year {year}",
                year=year,
                available_years=self.years(),
            )
        return table

    def years(self) -> list[int]:
        return sorted(self._tables)
