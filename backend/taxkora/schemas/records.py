"""
Validated record types.
Rows from the data store are parsed into these immutable models before any
engine sees them. Amounts become kobo-precise Decimals; negative amounts,
missing categories and malformed dates are rejected here.
"""

import datetime as dt
import re
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from taxkora.core.money import quantize


class AccountType(str, Enum):
    INDIVIDUAL = "individual"
    BUSINESS = "business"

    @classmethod
    def _missing_(cls, value):
        # profiles.account_type stores "personal" for individuals
        if value == "personal":
            return cls.INDIVIDUAL
        return None


class BusinessEntityType(str, Enum):
    """
    Legal form of a business account. Sole proprietors and partners pay PIT
    on business profit to the state; limited companies pay CIT federally.
    """

    SOLE_PROPRIETORSHIP = "sole_proprietorship"
    PARTNERSHIP = "partnership"
    LIMITED_COMPANY = "limited_company"

    @property
    def pays_pit(self) -> bool:
        return self != BusinessEntityType.LIMITED_COMPANY

    @property
    def tax_authority(self) -> str:
        return "SIRS" if self.pays_pit else "FIRS"


class IncomeCategory(str, Enum):
    SALES = "sales"
    SERVICES = "services"
    CONSULTING = "consulting"
    COMMISSION = "commission"
    INTEREST = "interest"
    RENTAL = "rental"
    INVESTMENT = "investment"
    GRANTS = "grants"
    SALARY = "salary"
    WAGES = "wages"
    PENSION = "pension"
    DIVIDENDS = "dividends"
    GIFTS = "gifts"
    FREELANCE = "freelance"
    OTHER = "other"


class ExpenseCategory(str, Enum):
    OFFICE_SUPPLIES = "office_supplies"
    UTILITIES = "utilities"
    RENT = "rent"
    SALARIES = "salaries"
    MARKETING = "marketing"
    TRAVEL = "travel"
    PROFESSIONAL_SERVICES = "professional_services"
    INSURANCE = "insurance"
    EQUIPMENT = "equipment"
    MAINTENANCE = "maintenance"
    INVENTORY = "inventory"
    TAXES = "taxes"
    HOUSING = "housing"
    FOOD = "food"
    HEALTHCARE = "healthcare"
    EDUCATION = "education"
    ENTERTAINMENT = "entertainment"
    PERSONAL_CARE = "personal_care"
    CLOTHING = "clothing"
    TRANSPORTATION = "transportation"
    DEBT_PAYMENT = "debt_payment"
    SAVINGS = "savings"
    OTHER = "other"


class CapitalAssetCategory(str, Enum):
    PLANT_MACHINERY = "plant_machinery"
    MOTOR_VEHICLES = "motor_vehicles"
    FURNITURE_FITTINGS = "furniture_fittings"
    BUILDINGS = "buildings"
    COMPUTERS_EQUIPMENT = "computers_equipment"
    AGRICULTURAL_EQUIPMENT = "agricultural_equipment"
    OTHER = "other"


class VATTransactionType(str, Enum):
    OUTPUT = "output"
    INPUT = "input"


class VATFilingState(str, Enum):
    PENDING = "pending"
    FILED = "filed"
    PAID = "paid"


class WHTPaymentType(str, Enum):
    DIVIDENDS = "dividends"
    INTEREST = "interest"
    ROYALTIES = "royalties"
    RENT = "rent"
    COMMISSIONS = "commissions"
    PROFESSIONAL_FEES = "professional_fees"
    CONSULTING_FEES = "consulting_fees"
    MANAGEMENT_FEES = "management_fees"
    TECHNICAL_FEES = "technical_fees"
    CONSTRUCTION_CONTRACTS = "construction_contracts"
    DIRECTORS_FEES = "directors_fees"
    OTHER = "other"


class RecipientType(str, Enum):
    INDIVIDUAL = "individual"
    COMPANY = "company"
    NON_RESIDENT = "non_resident"

    @classmethod
    def _missing_(cls, value):
        if value == "corporate":
            return cls.COMPANY
        return None


class TaxPaymentType(str, Enum):
    PIT = "pit"
    CIT = "cit"
    VAT = "vat"
    WHT = "wht"
    OTHER = "other"


class TaxPaymentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


_CAMEL = re.compile(r"(?<!^)(?=[A-Z])")


def snake_case(value: str) -> str:
    """professionalFees -> professional_fees"""
    return _CAMEL.sub("_", value).lower()


class Record(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", use_enum_values=False)

    @field_validator("*", mode="after")
    @classmethod
    def _to_kobo(cls, value):
        if isinstance(value, Decimal):
            return quantize(value)
        return value


# ── Income & expenses ──

class IncomeRecord(Record):
    id: str | None = None
    category: IncomeCategory
    description: str = ""
    amount: Decimal = Field(..., ge=0)
    date: dt.date
    client_id: str | None = None
    invoice_id: str | None = None

    @property
    def year(self) -> int:
        return self.date.year


class Expense(Record):
    id: str | None = None
    category: ExpenseCategory
    description: str = ""
    amount: Decimal = Field(..., ge=0)
    date: dt.date
    vendor: str | None = None
    receipt_url: str | None = None

    @property
    def year(self) -> int:
        return self.date.year


# ── Statutory deductions ──

class StatutoryDeductions(Record):
    year: int
    pension_contribution: Decimal = Field(default=Decimal("0"), ge=0)
    nhis_contribution: Decimal = Field(default=Decimal("0"), ge=0)
    nhf_contribution: Decimal = Field(default=Decimal("0"), ge=0)
    housing_loan_interest: Decimal = Field(default=Decimal("0"), ge=0)
    life_insurance_premium: Decimal = Field(default=Decimal("0"), ge=0)
    annual_rent_paid: Decimal = Field(default=Decimal("0"), ge=0)
    employment_compensation: Decimal = Field(default=Decimal("0"), ge=0)
    gifts_received: Decimal = Field(default=Decimal("0"), ge=0)
    pension_benefits_received: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator(
        "pension_contribution", "nhis_contribution", "nhf_contribution",
        "housing_loan_interest", "life_insurance_premium", "annual_rent_paid",
        "employment_compensation", "gifts_received", "pension_benefits_received",
        mode="before",
    )
    @classmethod
    def _null_is_zero(cls, value):
        return Decimal("0") if value is None else value

    @classmethod
    def empty(cls, year: int) -> "StatutoryDeductions":
        return cls(year=year)


# ── Capital assets ──

class CapitalAsset(Record):
    id: str | None = None
    description: str = ""
    category: CapitalAssetCategory
    cost: Decimal = Field(..., gt=0)
    acquisition_date: dt.date
    year_acquired: int

    @model_validator(mode="before")
    @classmethod
    def _default_year(cls, data):
        if isinstance(data, dict) and data.get("year_acquired") is None and data.get("acquisition_date"):
            data = dict(data)
            data["year_acquired"] = dt.date.fromisoformat(str(data["acquisition_date"])[:10]).year
        return data


# ── VAT ──

class VATTransaction(Record):
    id: str | None = None
    transaction_type: VATTransactionType
    description: str = ""
    amount: Decimal = Field(..., ge=0)
    vat_amount: Decimal = Field(default=Decimal("0"), ge=0)
    category: str | None = None
    is_exempt: bool = False
    transaction_date: dt.date
    year: int
    month: int = Field(..., ge=1, le=12)

    @model_validator(mode="after")
    def _period_matches_date(self):
        if (self.transaction_date.year, self.transaction_date.month) != (self.year, self.month):
            raise ValueError(
                f"VAT period {self.year}-{self.month:02d} does not match transaction date "
                f"{self.transaction_date.isoformat()}"
            )
        return self

    @property
    def period(self) -> tuple[int, int]:
        return (self.year, self.month)


class VATFilingStatus(Record):
    id: str | None = None
    year: int
    month: int = Field(..., ge=1, le=12)
    status: VATFilingState = VATFilingState.PENDING
    filed_date: dt.date | None = None
    payment_date: dt.date | None = None
    payment_reference: str | None = None
    payment_amount: Decimal | None = Field(default=None, ge=0)
    notes: str | None = None

    @property
    def period(self) -> tuple[int, int]:
        return (self.year, self.month)


# ── WHT ──

class WHTTransaction(Record):
    id: str | None = None
    payment_type: WHTPaymentType
    recipient_type: RecipientType
    recipient_name: str
    recipient_tin: str | None = None
    gross_amount: Decimal = Field(..., ge=0)
    payment_date: dt.date
    description: str | None = None

    @field_validator("payment_type", mode="before")
    @classmethod
    def _payment_type_from_store(cls, value):
        # wht_payment_type is stored camelCased
        if isinstance(value, str):
            return snake_case(value)
        return value

    @field_validator("recipient_type", mode="before")
    @classmethod
    def _recipient_type_from_store(cls, value):
        return "company" if value == "corporate" else value

    @property
    def year(self) -> int:
        return self.payment_date.year

    @property
    def month(self) -> int:
        return self.payment_date.month


# ── Tax payments ──

class TaxPayment(Record):
    id: str | None = None
    year: int
    amount: Decimal = Field(..., ge=0)
    payment_date: dt.date
    payment_type: TaxPaymentType
    payment_reference: str | None = None
    payment_method: str | None = None
    status: TaxPaymentStatus = TaxPaymentStatus.PENDING
