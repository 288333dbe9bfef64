"""
Tax Estimator - API Router

REST endpoints for the personal income tax estimate:
- Module status and parameter tables
- Stateless calculation (document in, outcome out)
- Depreciation schedules
- Stored documents per financial year, with editing operations
- JSON / CSV export, JSON import, timesheet CSV import

All calculation endpoints return deterministic JSON responses.
"""

import logging
from typing import Optional, Dict, Any

from fastapi import APIRouter, Depends, Query, Request, Response, status
from pydantic import BaseModel, ConfigDict, Field

from config import get_settings
from services.estimator import editor
from services.estimator.depreciation import depreciation_schedule, parse_date
from services.estimator.errors import TaxEstimatorError
from services.estimator.exchange import (
    export_csv,
    export_filename,
    export_json,
    import_json,
    import_timesheet,
)
from services.estimator.models import (
    DepreciationMethod,
    Document,
    FilingStatus,
    PHIAgeBracket,
    WfhMethod,
)
from services.estimator.outcome import calculate_tax_outcome
from services.estimator.parameters import (
    get_tax_parameters,
    normalise_financial_year,
    supported_financial_years,
)
from services.estimator.store import DocumentStore, get_document_store, merge_document
from utils.validation_errors import (
    raise_estimator_error,
    raise_invalid_parameter,
    raise_missing_parameter,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tax", tags=["Tax Estimator"])


# ==================== REQUEST MODELS ====================

class DepreciationScheduleRequest(BaseModel):
    """Request model for a depreciation schedule."""
    description: str = Field(default="", description="Asset description")
    cost: float = Field(..., gt=0, description="Purchase cost")
    purchase_date: str = Field(..., description="Purchase date (YYYY-MM-DD or DD/MM/YYYY)")
    effective_life_years: Optional[float] = Field(default=None, gt=0, description="Effective life; omit to claim immediately")
    work_percentage: float = Field(default=100, ge=0, le=100, description="Work use %")
    method: DepreciationMethod = Field(default=DepreciationMethod.STRAIGHT_LINE, description="straight_line or declining_balance")
    financial_year: Optional[str] = Field(default=None, description="Year whose low-value threshold applies")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "description": "Laptop",
            "cost": 3000,
            "purchase_date": "2024-07-01",
            "effective_life_years": 2,
            "work_percentage": 80,
            "method": "declining_balance"
        }
    })


class PaygIncomeRequest(BaseModel):
    """Request model for a PAYG income source."""
    source_name: str = Field(..., description="Employer or payer name")
    gross_salary: float = Field(..., description="Gross salary for the year")
    tax_withheld: float = Field(default=0, ge=0, description="PAYG tax withheld")


class OtherIncomeRequest(BaseModel):
    """Request model for other income (replaces existing values)."""
    bank_interest: float = Field(default=0, ge=0)
    dividends_unfranked: float = Field(default=0, ge=0)
    dividends_franked: float = Field(default=0, ge=0)
    franking_credits: float = Field(default=0, ge=0)
    net_capital_gains: float = Field(default=0, ge=0)


class ExpenseRequest(BaseModel):
    """Request model for a general work-related expense."""
    description: str = Field(..., description="What was purchased")
    date: str = Field(..., description="Purchase date")
    cost: float = Field(..., description="Cost including GST")
    category: str = Field(default="", description="Expense category")
    work_percentage: float = Field(default=100, ge=0, le=100, description="Work use %")
    is_depreciable: bool = Field(default=False, description="Depreciate over effective life instead of claiming immediately")
    effective_life_years: Optional[float] = Field(default=None, gt=0)
    depreciation_method: DepreciationMethod = Field(default=DepreciationMethod.STRAIGHT_LINE)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "description": "Office chair",
            "date": "2024-09-15",
            "cost": 450,
            "category": "equipment",
            "work_percentage": 100,
            "is_depreciable": True,
            "effective_life_years": 10
        }
    })


class WfhHoursRequest(BaseModel):
    """Request model for a day of work-from-home time."""
    date: str = Field(..., description="Date worked from home")
    minutes: float = Field(..., description="Minutes worked")


class WfhMethodRequest(BaseModel):
    method: WfhMethod


class WfhActualCostsRequest(BaseModel):
    """Request model for WFH actual cost details (assets are managed separately)."""
    office_area: float = Field(default=0, ge=0, description="Office floor area (sqm)")
    total_home_area: float = Field(default=0, ge=0, description="Total home floor area (sqm)")
    electricity_cost: float = Field(default=0, ge=0)
    gas_cost: float = Field(default=0, ge=0)
    internet_cost: float = Field(default=0, ge=0)
    internet_work_percent: float = Field(default=0, ge=0, le=100)
    phone_cost: float = Field(default=0, ge=0, description="Work portion of phone costs")
    stationery_cost: float = Field(default=0, ge=0)


class WfhAssetRequest(BaseModel):
    """Request model for a depreciating WFH asset."""
    description: str = Field(..., description="Asset description")
    date: str = Field(..., description="Purchase date")
    cost: float = Field(..., description="Purchase cost")
    effective_life_years: float = Field(..., gt=0, description="Effective life in years")
    work_percentage: float = Field(default=100, ge=0, le=100)
    depreciation_method: DepreciationMethod = Field(default=DepreciationMethod.STRAIGHT_LINE)


class TaxpayerDetailsRequest(BaseModel):
    """Request model for taxpayer details; only the fields sent are changed."""
    filing_status: Optional[FilingStatus] = None
    medicare_exemption: Optional[bool] = None
    medicare_exempt_days: Optional[int] = Field(default=None, ge=0, le=365)
    has_private_hospital_cover: Optional[bool] = None
    reportable_fringe_benefits: Optional[float] = Field(default=None, ge=0)
    personal_super_contribution: Optional[float] = Field(default=None, ge=0)
    spouse_income: Optional[float] = Field(default=None, ge=0)
    dependent_children: Optional[int] = Field(default=None, ge=0)
    phi_age_bracket: Optional[PHIAgeBracket] = None
    phi_premiums: Optional[Dict[str, float]] = Field(default=None, description="Premiums paid per rebate period")
    phi_rebate_received: Optional[float] = Field(default=None, ge=0)


# ==================== HELPERS ====================

def _year(financial_year: str) -> str:
    try:
        return normalise_financial_year(financial_year)
    except TaxEstimatorError as e:
        raise_estimator_error(e)


def _edit(store: DocumentStore, financial_year: str, operation, *args, **kwargs) -> Dict[str, Any]:
    """Load, apply an editing operation, save; returns the saved document."""
    year = _year(financial_year)
    try:
        document = operation(store.load(year), *args, **kwargs)
    except TaxEstimatorError as e:
        raise_estimator_error(e)
    return store.save(document).to_json_dict()


async def _body_text(request: Request) -> str:
    body = await request.body()
    if not body.strip():
        raise_missing_parameter("body", "Request body is empty")
    return body.decode("utf-8-sig", errors="replace")


# ==================== STATUS ENDPOINTS ====================

@router.get("/status")
async def get_status():
    """
    Get status of the tax estimator.

    Returns the default financial year, WFH rate and available methods.
    """
    settings = get_settings()
    try:
        params = get_tax_parameters(settings.FINANCIAL_YEAR)
    except TaxEstimatorError as e:
        raise_estimator_error(e)

    return {
        "module": "tax_estimator",
        "status": "operational",
        "financial_year": params.financial_year,
        "supported_financial_years": supported_financial_years(),
        "wfh_methods": [method.value for method in WfhMethod],
        "wfh_fixed_rate_per_hour": float(params.wfh_fixed_rate_per_hour),
        "depreciation_methods": [method.value for method in DepreciationMethod],
        "low_value_write_off_threshold": (
            float(params.low_value_write_off_threshold)
            if params.low_value_write_off_threshold is not None else None
        ),
    }


@router.get("/parameters/{financial_year}")
async def get_parameters(financial_year: str):
    """Tax parameter table for a financial year (brackets, offsets, levies, rebates)."""
    try:
        params = get_tax_parameters(financial_year)
    except TaxEstimatorError as e:
        raise_estimator_error(e)
    return params.model_dump(mode="json")


# ==================== CALCULATION ENDPOINTS ====================

@router.post("/calculate")
async def calculate(document: Document):
    """
    Calculate the tax outcome for a document.

    The document's userSettings.financialYear selects the parameter table.
    Returns taxable income, tax, levies, offsets and the refund (positive)
    or amount owing (negative).
    """
    try:
        outcome = calculate_tax_outcome(document)
    except TaxEstimatorError as e:
        raise_estimator_error(e)
    return outcome.to_dict()


@router.post("/depreciation/schedule")
async def get_depreciation_schedule(request: DepreciationScheduleRequest):
    """
    Project depreciation deductions from purchase to the end of effective life.

    **Methods:**
    - `straight_line`: cost ÷ effective life each year
    - `declining_balance`: opening value × 200% ÷ effective life

    Items without an effective life, or at or below the low-value threshold
    of the given financial year, are claimed immediately.
    """
    if parse_date(request.purchase_date) is None:
        raise_invalid_parameter("purchase_date", "Purchase date must be YYYY-MM-DD or DD/MM/YYYY", request.purchase_date)

    threshold = None
    if request.financial_year:
        try:
            threshold = get_tax_parameters(request.financial_year).low_value_write_off_threshold
        except TaxEstimatorError as e:
            raise_estimator_error(e)

    schedule = depreciation_schedule(
        cost=request.cost,
        work_percentage=request.work_percentage,
        effective_life_years=request.effective_life_years,
        purchase_date=request.purchase_date,
        method=request.method,
        low_value_threshold=threshold,
    )
    result = schedule.to_dict()
    result["description"] = request.description
    return result


# ==================== DOCUMENT ENDPOINTS ====================

@router.get("/documents/{financial_year}")
async def get_document(financial_year: str, store: DocumentStore = Depends(get_document_store)):
    """Stored document for the year (an empty document if nothing is saved)."""
    return store.load(_year(financial_year)).to_json_dict()


@router.put("/documents/{financial_year}")
async def save_document(
    financial_year: str,
    payload: Dict[str, Any],
    store: DocumentStore = Depends(get_document_store),
):
    """Replace the stored document. Missing sections are filled with defaults."""
    year = _year(financial_year)
    try:
        document = merge_document(payload, year)
    except TaxEstimatorError as e:
        raise_estimator_error(e)
    return store.save(document).to_json_dict()


@router.delete("/documents/{financial_year}")
async def clear_document(financial_year: str, store: DocumentStore = Depends(get_document_store)):
    """Clear all data for the year."""
    year = _year(financial_year)
    return {"financial_year": year, "cleared": store.clear(year)}


@router.get("/documents/{financial_year}/outcome")
async def get_document_outcome(financial_year: str, store: DocumentStore = Depends(get_document_store)):
    """Tax outcome for the stored document."""
    document = store.load(_year(financial_year))
    try:
        outcome = calculate_tax_outcome(document)
    except TaxEstimatorError as e:
        raise_estimator_error(e)
    return outcome.to_dict()


# ==================== EDITING ENDPOINTS ====================

@router.post("/documents/{financial_year}/income/payg", status_code=status.HTTP_201_CREATED)
async def add_payg_income(
    financial_year: str,
    request: PaygIncomeRequest,
    store: DocumentStore = Depends(get_document_store),
):
    return _edit(
        store, financial_year, editor.add_payg_income,
        request.source_name, request.gross_salary, request.tax_withheld,
    )


@router.delete("/documents/{financial_year}/income/payg/{record_id}")
async def remove_payg_income(financial_year: str, record_id: str, store: DocumentStore = Depends(get_document_store)):
    return _edit(store, financial_year, editor.remove_payg_income, record_id)


@router.put("/documents/{financial_year}/income/other")
async def update_other_income(
    financial_year: str,
    request: OtherIncomeRequest,
    store: DocumentStore = Depends(get_document_store),
):
    return _edit(store, financial_year, editor.update_other_income, **request.model_dump())


@router.post("/documents/{financial_year}/expenses", status_code=status.HTTP_201_CREATED)
async def add_general_expense(
    financial_year: str,
    request: ExpenseRequest,
    store: DocumentStore = Depends(get_document_store),
):
    return _edit(store, financial_year, editor.add_general_expense, **request.model_dump())


@router.delete("/documents/{financial_year}/expenses/{record_id}")
async def remove_general_expense(financial_year: str, record_id: str, store: DocumentStore = Depends(get_document_store)):
    return _edit(store, financial_year, editor.remove_general_expense, record_id)


@router.post("/documents/{financial_year}/wfh/hours", status_code=status.HTTP_201_CREATED)
async def add_wfh_hours(
    financial_year: str,
    request: WfhHoursRequest,
    store: DocumentStore = Depends(get_document_store),
):
    return _edit(store, financial_year, editor.add_wfh_hours, request.date, request.minutes)


@router.delete("/documents/{financial_year}/wfh/hours/{entry_id}")
async def remove_wfh_hours(financial_year: str, entry_id: str, store: DocumentStore = Depends(get_document_store)):
    return _edit(store, financial_year, editor.remove_wfh_hours, entry_id)


@router.put("/documents/{financial_year}/wfh/method")
async def set_wfh_method(
    financial_year: str,
    request: WfhMethodRequest,
    store: DocumentStore = Depends(get_document_store),
):
    return _edit(store, financial_year, editor.set_wfh_method, request.method)


@router.put("/documents/{financial_year}/wfh/actual-costs")
async def update_wfh_actual_costs(
    financial_year: str,
    request: WfhActualCostsRequest,
    store: DocumentStore = Depends(get_document_store),
):
    return _edit(store, financial_year, editor.update_wfh_actual_costs, **request.model_dump())


@router.post("/documents/{financial_year}/wfh/assets", status_code=status.HTTP_201_CREATED)
async def add_wfh_asset(
    financial_year: str,
    request: WfhAssetRequest,
    store: DocumentStore = Depends(get_document_store),
):
    return _edit(store, financial_year, editor.add_wfh_asset, **request.model_dump())


@router.delete("/documents/{financial_year}/wfh/assets/{asset_id}")
async def remove_wfh_asset(financial_year: str, asset_id: str, store: DocumentStore = Depends(get_document_store)):
    return _edit(store, financial_year, editor.remove_wfh_asset, asset_id)


@router.put("/documents/{financial_year}/taxpayer")
async def update_taxpayer_details(
    financial_year: str,
    request: TaxpayerDetailsRequest,
    store: DocumentStore = Depends(get_document_store),
):
    return _edit(
        store, financial_year, editor.update_taxpayer_details,
        **request.model_dump(exclude_none=True),
    )


# ==================== IMPORT / EXPORT ENDPOINTS ====================

@router.get("/documents/{financial_year}/export")
async def export_document(
    financial_year: str,
    format: str = Query(default="json", pattern="^(json|csv)$", description="json or csv"),
    store: DocumentStore = Depends(get_document_store),
):
    """Download the stored document as JSON or CSV."""
    year = _year(financial_year)
    document = store.load(year)

    if format == "csv":
        content, media_type = export_csv(document), "text/csv"
    else:
        content, media_type = export_json(document), "application/json"

    filename = export_filename(year, format)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/documents/{financial_year}/import")
async def import_document(
    financial_year: str,
    request: Request,
    store: DocumentStore = Depends(get_document_store),
):
    """
    Replace the stored document with a previously exported JSON file.

    The body must contain userSettings, income, generalExpenses and wfh.
    """
    year = _year(financial_year)
    try:
        document = import_json(await _body_text(request), financial_year=year)
    except TaxEstimatorError as e:
        raise_estimator_error(e)

    logger.info(f"Imported tax document for {year}")
    return store.save(document).to_json_dict()


@router.post("/documents/{financial_year}/timesheet")
async def import_document_timesheet(
    financial_year: str,
    request: Request,
    store: DocumentStore = Depends(get_document_store),
):
    """
    Add WFH hours from a timesheet CSV (request body is the CSV text).

    Needs a Date column and one of Minutes, Hours or Duration (H:MM).
    Dates already in the log are skipped.
    """
    year = _year(financial_year)
    try:
        document, result = import_timesheet(store.load(year), await _body_text(request))
    except TaxEstimatorError as e:
        raise_estimator_error(e)

    if result.imported:
        store.save(document)

    response = result.to_dict()
    response["total_minutes"] = document.wfh.total_minutes
    return response
