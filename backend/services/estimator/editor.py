"""
Tax Estimator - Document Editing

Every operation takes a Document and returns a new Document; nothing is
modified in place. Submissions that can't become a valid record raise
DocumentFormatError with the offending parameter.
"""

import time
import uuid
from typing import Any, List, Optional

from services.estimator.depreciation import parse_date
from services.estimator.errors import DocumentFormatError
from services.estimator.models import (
    DepreciationMethod,
    Document,
    ExpenseRecord,
    IncomeRecord,
    OtherIncome,
    TaxpayerDetails,
    WfhActualCostDetails,
    WfhAssetRecord,
    WfhHoursLogEntry,
    WfhMethod,
    coerce_amount,
)


def generate_id(prefix: str) -> str:
    """Unique id for a new record, e.g. 'payg_1719792000000_3f2a9c1b0'."""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _require_date(value: Any, parameter: str = "date") -> str:
    parsed = parse_date(value)
    if parsed is None:
        raise DocumentFormatError(f"A valid {parameter} is required", parameter=parameter)
    return parsed.isoformat()


def _require_positive(value: Any, parameter: str) -> float:
    amount = coerce_amount(value)
    if amount <= 0:
        raise DocumentFormatError(f"{parameter} must be greater than 0", parameter=parameter)
    return amount


def _require_text(value: Optional[str], parameter: str) -> str:
    text = (value or "").strip()
    if not text:
        raise DocumentFormatError(f"{parameter} is required", parameter=parameter)
    return text


def _without(records: List[Any], record_id: str) -> List[Any]:
    return [record for record in records if record.id != record_id]


# ==================== INCOME ====================

def add_payg_income(document: Document, source_name: str, gross_salary: Any, tax_withheld: Any = 0) -> Document:
    record = IncomeRecord(
        id=generate_id("payg"),
        source_name=_require_text(source_name, "source_name"),
        gross_salary=_require_positive(gross_salary, "gross_salary"),
        tax_withheld=tax_withheld,
    )
    income = document.income.model_copy(update={"payg": [*document.income.payg, record]})
    return document.model_copy(update={"income": income})


def remove_payg_income(document: Document, record_id: str) -> Document:
    income = document.income.model_copy(update={"payg": _without(document.income.payg, record_id)})
    return document.model_copy(update={"income": income})


def update_other_income(document: Document, **values: Any) -> Document:
    """Replace other income wholesale; omitted fields become 0."""
    income = document.income.model_copy(update={"other": OtherIncome.model_validate(values)})
    return document.model_copy(update={"income": income})


# ==================== GENERAL EXPENSES ====================

def _line_item(
    record_class,
    prefix: str,
    description: str,
    date: Any,
    cost: Any,
    work_percentage: Any,
    is_depreciable: bool,
    effective_life_years: Any,
    depreciation_method: Any,
    category: str = "",
):
    if is_depreciable and coerce_amount(effective_life_years) <= 0:
        raise DocumentFormatError(
            "Please enter an effective life for depreciable assets",
            parameter="effective_life_years",
        )
    return record_class(
        id=generate_id(prefix),
        description=_require_text(description, "description"),
        date=_require_date(date),
        cost=_require_positive(cost, "cost"),
        category=category,
        work_percentage=work_percentage,
        is_depreciable=is_depreciable,
        effective_life_years=effective_life_years if is_depreciable else None,
        depreciation_method=DepreciationMethod(depreciation_method),
    )


def add_general_expense(
    document: Document,
    description: str,
    date: Any,
    cost: Any,
    category: str = "",
    work_percentage: Any = 100,
    is_depreciable: bool = False,
    effective_life_years: Any = None,
    depreciation_method: Any = DepreciationMethod.STRAIGHT_LINE,
) -> Document:
    expense = _line_item(
        ExpenseRecord, "exp", description, date, cost, work_percentage,
        is_depreciable, effective_life_years, depreciation_method, category,
    )
    return document.model_copy(update={"general_expenses": [*document.general_expenses, expense]})


def remove_general_expense(document: Document, record_id: str) -> Document:
    return document.model_copy(update={"general_expenses": _without(document.general_expenses, record_id)})


# ==================== WORK FROM HOME ====================

def _with_hours_log(document: Document, log: List[WfhHoursLogEntry]) -> Document:
    wfh = document.wfh.model_copy(update={
        "hours_log": log,
        "total_minutes": sum(entry.minutes for entry in log),
    })
    return document.model_copy(update={"wfh": wfh})


def add_wfh_hours(document: Document, date: Any, minutes: Any) -> Document:
    entry = WfhHoursLogEntry(
        id=generate_id("wfh"),
        date=_require_date(date),
        minutes=_require_positive(minutes, "minutes"),
    )
    return _with_hours_log(document, [*document.wfh.hours_log, entry])


def add_wfh_log_entries(document: Document, entries: List[WfhHoursLogEntry]) -> Document:
    return _with_hours_log(document, [*document.wfh.hours_log, *entries])


def remove_wfh_hours(document: Document, entry_id: str) -> Document:
    return _with_hours_log(document, _without(document.wfh.hours_log, entry_id))


def set_wfh_method(document: Document, method: Any) -> Document:
    wfh = document.wfh.model_copy(update={"method": WfhMethod(method)})
    return document.model_copy(update={"wfh": wfh})


def _with_actual_cost_details(document: Document, details: WfhActualCostDetails) -> Document:
    wfh = document.wfh.model_copy(update={"actual_cost_details": details})
    return document.model_copy(update={"wfh": wfh})


def update_wfh_actual_costs(document: Document, **values: Any) -> Document:
    """Replace floor areas and running costs; assets are kept."""
    values.pop("assets", None)
    details = WfhActualCostDetails.model_validate({
        **values,
        "assets": document.wfh.actual_cost_details.assets,
    })
    return _with_actual_cost_details(document, details)


def add_wfh_asset(
    document: Document,
    description: str,
    date: Any,
    cost: Any,
    effective_life_years: Any,
    work_percentage: Any = 100,
    depreciation_method: Any = DepreciationMethod.STRAIGHT_LINE,
) -> Document:
    asset = _line_item(
        WfhAssetRecord, "wfh_asset", description, date, cost, work_percentage,
        True, effective_life_years, depreciation_method,
    )
    details = document.wfh.actual_cost_details
    return _with_actual_cost_details(
        document, details.model_copy(update={"assets": [*details.assets, asset]})
    )


def remove_wfh_asset(document: Document, asset_id: str) -> Document:
    details = document.wfh.actual_cost_details
    return _with_actual_cost_details(
        document, details.model_copy(update={"assets": _without(details.assets, asset_id)})
    )


# ==================== TAXPAYER ====================

def update_taxpayer_details(document: Document, **values: Any) -> Document:
    """Update selected taxpayer fields, given by attribute name."""
    current = document.taxpayer_details.model_dump()
    details = TaxpayerDetails.model_validate({**current, **values})
    return document.model_copy(update={"taxpayer_details": details})
