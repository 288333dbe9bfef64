"""
Tax Estimator - Package Init

Exports the estimator components for use by routers and other services.
"""

from services.estimator.errors import (
    TaxEstimatorError,
    TaxConfigurationError,
    DocumentFormatError,
)

from services.estimator.models import (
    # Enums
    FilingStatus,
    WfhMethod,
    DepreciationMethod,
    PHIAgeBracket,
    DEFAULT_FINANCIAL_YEAR,

    # Document
    IncomeRecord,
    OtherIncome,
    IncomeData,
    ExpenseRecord,
    WfhAssetRecord,
    WfhHoursLogEntry,
    WfhActualCostDetails,
    WfhData,
    TaxpayerDetails,
    UserSettings,
    Document,
)

from services.estimator.parameters import (
    TaxParameters,
    TAX_PARAMETERS_2024_25,
    get_tax_parameters,
    supported_financial_years,
    normalise_financial_year,
    financial_year_bounds,
)

from services.estimator.depreciation import (
    depreciation_for_year,
    depreciation_schedule,
    item_depreciation_schedule,
    DepreciationSchedule,
)

from services.estimator.income import (
    total_assessable_income,
    total_tax_withheld,
)

from services.estimator.deductions import (
    DeductionBreakdown,
    deduction_breakdown,
    total_deductions,
)

from services.estimator.outcome import (
    TaxOutcome,
    calculate_tax_outcome,
)

from services.estimator.store import (
    DocumentStore,
    default_document,
    merge_document,
    get_document_store,
)

from services.estimator.exchange import (
    TimesheetImportResult,
    export_json,
    export_csv,
    export_filename,
    import_json,
    import_timesheet,
)

__all__ = [
    # Errors
    "TaxEstimatorError",
    "TaxConfigurationError",
    "DocumentFormatError",

    # Models
    "FilingStatus",
    "WfhMethod",
    "DepreciationMethod",
    "PHIAgeBracket",
    "DEFAULT_FINANCIAL_YEAR",
    "IncomeRecord",
    "OtherIncome",
    "IncomeData",
    "ExpenseRecord",
    "WfhAssetRecord",
    "WfhHoursLogEntry",
    "WfhActualCostDetails",
    "WfhData",
    "TaxpayerDetails",
    "UserSettings",
    "Document",

    # Parameters
    "TaxParameters",
    "TAX_PARAMETERS_2024_25",
    "get_tax_parameters",
    "supported_financial_years",
    "normalise_financial_year",
    "financial_year_bounds",

    # Engine
    "depreciation_for_year",
    "depreciation_schedule",
    "item_depreciation_schedule",
    "DepreciationSchedule",
    "total_assessable_income",
    "total_tax_withheld",
    "DeductionBreakdown",
    "deduction_breakdown",
    "total_deductions",
    "TaxOutcome",
    "calculate_tax_outcome",

    # Storage / exchange
    "DocumentStore",
    "default_document",
    "merge_document",
    "get_document_store",
    "TimesheetImportResult",
    "export_json",
    "export_csv",
    "export_filename",
    "import_json",
    "import_timesheet",
]
