"""
Tax calculation API routes.
Exposes the Taxkora tax engines and the per-user tax summary via REST endpoints.
"""

import logging
from decimal import Decimal

from fastapi import APIRouter, HTTPException, Depends, Query
from fastapi.encoders import jsonable_encoder

from taxkora.api.deps import (
    get_current_user_id,
    get_orchestrator,
    get_rate_provider,
    get_repository,
)
from taxkora.config import get_settings
from taxkora.core.errors import ErrorCode, TaxEngineError, TaxError
from taxkora.core.rate_tables import RateTable, RateTableProvider
from taxkora.core.summary import TaxComputationOrchestrator, build_advisor_context
from taxkora.core.tax_rules.capital_allowance import compute_capital_allowances
from taxkora.core.tax_rules.cit import compute_cit
from taxkora.core.tax_rules.pit import PITCalculator, compute_pit
from taxkora.core.tax_rules.reliefs import compute_reliefs
from taxkora.core.tax_rules.vat import VATCalculator, build_period_reports, compute_vat_for_period
from taxkora.core.tax_rules.wht import compute_wht
from taxkora.schemas.records import BusinessEntityType, VATFilingStatus
from taxkora.schemas.schemas import (
    CapitalAllowanceRequest,
    CITCalculateRequest,
    DeductionsInput,
    PAYEEstimateRequest,
    PITCalculateRequest,
    ReliefsCalculateRequest,
    VATCalculateRequest,
    VATFilingStatusUpdate,
    VATPeriodRequest,
    WHTCalculateRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()
settings = get_settings()

_STATUS_BY_CODE = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.UNSUPPORTED_CATEGORY: 400,
    ErrorCode.RATE_TABLE_NOT_FOUND: 404,
    ErrorCode.DATA_UNAVAILABLE: 503,
}

# Money goes out as strings so kobo precision survives JSON
_MONEY_ENCODER = {Decimal: str}


def _http_error(error: TaxError) -> HTTPException:
    return HTTPException(
        status_code=_STATUS_BY_CODE.get(error.code, 400),
        detail={"code": error.code.value, "message": error.message, **error.details},
    )


def _storage_error(action: str, exc: Exception) -> HTTPException:
    logger.exception(action)
    return _http_error(TaxError(code=ErrorCode.DATA_UNAVAILABLE, message=f"{action}: {str(exc)}"))


def _to_json(result):
    return jsonable_encoder(result, custom_encoder=_MONEY_ENCODER)


def _rates(provider: RateTableProvider, year: int | None) -> RateTable:
    return provider.get(year or settings.DEFAULT_TAX_YEAR)


@router.post("/reliefs/calculate")
async def calculate_reliefs(data: ReliefsCalculateRequest, provider=Depends(get_rate_provider)):
    """Calculate exemptions, CRA, rent relief and statutory deductions."""
    try:
        rates = _rates(provider, data.year)
        deductions = DeductionsInput.model_validate(data.model_dump()).to_record(rates.year)
        result = compute_reliefs(data.gross_income, deductions, data.account_type, rates)
        return _to_json(result)
    except TaxEngineError as e:
        raise _http_error(TaxError.from_exception(e))


@router.post("/pit/calculate")
async def calculate_pit(data: PITCalculateRequest, provider=Depends(get_rate_provider)):
    """Calculate Personal Income Tax on taxable income. Send gross_income to apply the minimum-wage exemption."""
    try:
        result = compute_pit(data.taxable_income, _rates(provider, data.year), gross_income=data.gross_income)
        return _to_json(result)
    except TaxEngineError as e:
        raise _http_error(TaxError.from_exception(e))


@router.post("/paye/estimate")
async def estimate_paye(data: PAYEEstimateRequest, provider=Depends(get_rate_provider)):
    """Estimate monthly PAYE deduction from salary. Deductions are annual amounts."""
    try:
        rates = _rates(provider, data.year)
        deductions = DeductionsInput.model_validate(data.model_dump()).to_record(rates.year)
        return _to_json(PITCalculator(rates).estimate_monthly_paye(data.monthly_gross, deductions))
    except TaxEngineError as e:
        raise _http_error(TaxError.from_exception(e))


@router.post("/cit/calculate")
async def calculate_cit(data: CITCalculateRequest, provider=Depends(get_rate_provider)):
    """Calculate Company Income Tax by turnover band."""
    try:
        result = compute_cit(data.annual_turnover, data.assessable_profit, _rates(provider, data.year))
        return _to_json(result)
    except TaxEngineError as e:
        raise _http_error(TaxError.from_exception(e))


@router.post("/vat/calculate")
async def calculate_vat(data: VATCalculateRequest, provider=Depends(get_rate_provider)):
    """Calculate VAT on a single amount, or extract it from a VAT-inclusive amount."""
    try:
        calculator = VATCalculator(_rates(provider, data.year))
        if data.is_inclusive:
            return _to_json(calculator.extract_vat_from_inclusive(data.amount))
        return _to_json(calculator.calculate_simple(data.amount))
    except TaxEngineError as e:
        raise _http_error(TaxError.from_exception(e))


@router.post("/vat/period")
async def calculate_vat_period(data: VATPeriodRequest, provider=Depends(get_rate_provider)):
    """Net output against input VAT for one filing period."""
    try:
        result = compute_vat_for_period(data.transactions, data.year, data.month, _rates(provider, data.year))
        return _to_json(result)
    except TaxEngineError as e:
        raise _http_error(TaxError.from_exception(e))


@router.post("/wht/calculate")
async def calculate_wht(data: WHTCalculateRequest, provider=Depends(get_rate_provider)):
    """Calculate Withholding Tax on a payment."""
    try:
        result = compute_wht(data.gross_amount, data.payment_type, data.recipient_type, _rates(provider, data.year))
        return _to_json(result)
    except TaxEngineError as e:
        raise _http_error(TaxError.from_exception(e))


@router.post("/capital-allowance/calculate")
async def calculate_capital_allowance(data: CapitalAllowanceRequest, provider=Depends(get_rate_provider)):
    """Capital allowances for a set of assets, restricted to 2/3 of assessable profit."""
    try:
        result = compute_capital_allowances(
            data.assets,
            data.year,
            data.assessable_profit,
            _rates(provider, data.year),
            brought_forward=data.brought_forward,
        )
        return _to_json(result)
    except TaxEngineError as e:
        raise _http_error(TaxError.from_exception(e))


@router.get("/rates/{year}")
async def get_rates(year: int, provider=Depends(get_rate_provider)):
    """The rate table in force for a tax year."""
    try:
        return provider.get(year).model_dump(mode="json")
    except TaxEngineError as e:
        raise _http_error(TaxError.from_exception(e))


@router.get("/summary/{year}")
async def get_tax_summary(
    year: int,
    entity_type: BusinessEntityType | None = Query(default=None),
    user_id: str = Depends(get_current_user_id),
    orchestrator: TaxComputationOrchestrator = Depends(get_orchestrator),
):
    """
    Full tax position for the current user and year. Business accounts may
    pass entity_type to see the position under another legal form.
    """
    outcome = orchestrator.compute_tax_summary(user_id, year, entity_type)
    if not outcome.ok:
        raise _http_error(outcome.error)
    return {
        "summary": _to_json(outcome.summary),
        "advisor_context": build_advisor_context(outcome.summary),
    }


@router.get("/vat/periods/{year}")
async def get_vat_periods(
    year: int,
    user_id: str = Depends(get_current_user_id),
    repository=Depends(get_repository),
    provider=Depends(get_rate_provider),
):
    """Computed VAT for each period of the year alongside its filing status."""
    try:
        reports = build_period_reports(
            repository.fetch_vat_transactions(user_id, year),
            repository.fetch_vat_filing_statuses(user_id, year),
            year,
            provider.get(year),
        )
        return {"year": year, "periods": _to_json(reports)}
    except TaxEngineError as e:
        raise _http_error(TaxError.from_exception(e))
    except Exception as e:
        raise _storage_error("Failed to load VAT periods", e)


@router.put("/vat/filing-status/{year}/{month}")
async def update_vat_filing_status(
    year: int,
    month: int,
    data: VATFilingStatusUpdate,
    user_id: str = Depends(get_current_user_id),
    repository=Depends(get_repository),
):
    """Record that a VAT period has been filed or paid."""
    if not 1 <= month <= 12:
        raise HTTPException(status_code=422, detail="Month must be between 1 and 12")
    status = VATFilingStatus(year=year, month=month, **data.model_dump())
    try:
        saved = repository.save_vat_filing_status(user_id, status)
    except TaxEngineError as e:
        raise _http_error(TaxError.from_exception(e))
    except Exception as e:
        raise _storage_error("Failed to save VAT filing status", e)
    return saved.model_dump(mode="json")


@router.put("/deductions/{year}")
async def update_statutory_deductions(
    year: int,
    data: DeductionsInput,
    user_id: str = Depends(get_current_user_id),
    repository=Depends(get_repository),
):
    """Create or replace the statutory deductions for a tax year."""
    try:
        saved = repository.save_statutory_deductions(user_id, data.to_record(year))
    except TaxEngineError as e:
        raise _http_error(TaxError.from_exception(e))
    except Exception as e:
        raise _storage_error("Failed to save statutory deductions", e)
    return saved.model_dump(mode="json")
