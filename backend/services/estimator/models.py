"""
Tax Estimator - Document Models

The user's data document and its parts:
- IncomeRecord / OtherIncome: PAYG income sources and investment income
- ExpenseRecord: general work-related expenses (optionally depreciable)
- WfhHoursLogEntry / WfhActualCostDetails / WfhAssetRecord: work from home
- TaxpayerDetails: filing status, Medicare, private health insurance
- Document: root aggregate, one per financial year

JSON keys are camelCase (the persisted layout); attributes are snake_case.
Every numeric field is normalised once on the way in: missing, null,
non-numeric and negative values become 0, percentages are clamped to 0-100,
unknown or null enum and flag values take the field default and list
entries that are not records are dropped. One bad field never invalidates
the document.
Documents are frozen - editing produces a new Document.
"""

import math
from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel


DEFAULT_FINANCIAL_YEAR = "2024-2025"


# ==================== ENUMS ====================

class FilingStatus(str, Enum):
    """Medicare / MLS filing status"""
    SINGLE = "single"
    FAMILY = "family"


class WfhMethod(str, Enum):
    """Work from home deduction methods"""
    FIXED_RATE = "fixed_rate"
    ACTUAL_COST = "actual_cost"


class DepreciationMethod(str, Enum):
    """Depreciation methods for capital items"""
    STRAIGHT_LINE = "straight_line"
    DECLINING_BALANCE = "declining_balance"


class PHIAgeBracket(str, Enum):
    """Age brackets used by the private health insurance rebate tables"""
    UNDER_65 = "under65"
    AGE_65_TO_69 = "65to69"
    AGE_70_PLUS = "70plus"


# ==================== NORMALISATION ====================

def _to_number(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(str(value).strip().replace(",", "")) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def coerce_amount(value: Any) -> float:
    """Coerce to a non-negative number; anything unusable becomes 0."""
    return max(0.0, _to_number(value))


def coerce_percentage(value: Any) -> float:
    """Coerce to a percentage in [0, 100]."""
    return min(100.0, coerce_amount(value))


def coerce_count(value: Any) -> int:
    return int(coerce_amount(value))


def coerce_exempt_days(value: Any) -> int:
    return min(365, coerce_count(value))


def coerce_optional_life(value: Any) -> Optional[float]:
    number = coerce_amount(value)
    return number if number > 0 else None


def coerce_date_string(value: Any) -> Optional[str]:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def coerce_text(value: Any) -> str:
    return "" if value is None else str(value).strip()


_TRUE_TEXT = {"true", "yes", "y", "1", "on"}
_FALSE_TEXT = {"false", "no", "n", "0", "off"}


def flag_or(default: bool):
    """Coerce to bool; null and unreadable values become the default."""
    def coerce(value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)) and not math.isnan(value):
            return bool(value)
        if isinstance(value, str):
            text = value.strip().lower()
            if text in _TRUE_TEXT:
                return True
            if text in _FALSE_TEXT:
                return False
        return default
    return coerce


def enum_or(enum_class, default):
    """Coerce to a member of enum_class; null and unknown values become the default."""
    def coerce(value: Any):
        if isinstance(value, enum_class):
            return value
        try:
            return enum_class(str(value).strip().lower())
        except ValueError:
            return default
    return coerce


def coerce_records(value: Any) -> List[Any]:
    """Keep the usable records of a list; anything else becomes an empty list."""
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, (dict, BaseModel))]


def coerce_premiums(value: Any) -> Dict[str, Any]:
    if not isinstance(value, dict):
        return {}
    return {str(key): amount for key, amount in value.items()}


Amount = Annotated[float, BeforeValidator(coerce_amount)]
Percentage = Annotated[float, BeforeValidator(coerce_percentage)]
Count = Annotated[int, BeforeValidator(coerce_count)]
ExemptDays = Annotated[int, BeforeValidator(coerce_exempt_days)]
EffectiveLife = Annotated[Optional[float], BeforeValidator(coerce_optional_life)]
DateString = Annotated[Optional[str], BeforeValidator(coerce_date_string)]
Text = Annotated[str, BeforeValidator(coerce_text)]
Flag = Annotated[bool, BeforeValidator(flag_or(False))]
FilingStatusField = Annotated[FilingStatus, BeforeValidator(enum_or(FilingStatus, FilingStatus.SINGLE))]
WfhMethodField = Annotated[WfhMethod, BeforeValidator(enum_or(WfhMethod, WfhMethod.FIXED_RATE))]
DepreciationMethodField = Annotated[
    DepreciationMethod,
    BeforeValidator(enum_or(DepreciationMethod, DepreciationMethod.STRAIGHT_LINE)),
]
PHIAgeBracketField = Annotated[PHIAgeBracket, BeforeValidator(enum_or(PHIAgeBracket, PHIAgeBracket.UNDER_65))]
Premiums = Annotated[Dict[str, Amount], BeforeValidator(coerce_premiums)]


class DocumentModel(BaseModel):
    """Base for all document parts: camelCase JSON, frozen, unknown keys ignored."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ==================== INCOME ====================

class IncomeRecord(DocumentModel):
    """One PAYG employment income source"""
    id: Text = ""
    source_name: Text = ""
    gross_salary: Amount = 0
    tax_withheld: Amount = 0


class OtherIncome(DocumentModel):
    """Investment and other income - replaced wholesale on update"""
    bank_interest: Amount = 0
    dividends_unfranked: Amount = 0
    dividends_franked: Amount = 0
    franking_credits: Amount = 0
    net_capital_gains: Amount = 0


class IncomeData(DocumentModel):
    payg: Annotated[List[IncomeRecord], BeforeValidator(coerce_records)] = Field(default_factory=list)
    other: OtherIncome = Field(default_factory=OtherIncome)


# ==================== EXPENSES ====================

class ExpenseRecord(DocumentModel):
    """General work-related expense.

    effective_life_years and depreciation_method only matter when
    is_depreciable is set; otherwise the work portion is claimed in full.
    """
    id: Text = ""
    description: Text = ""
    date: DateString = None
    cost: Amount = 0
    category: Text = ""
    work_percentage: Percentage = 0
    is_depreciable: Flag = False
    effective_life_years: EffectiveLife = None
    depreciation_method: DepreciationMethodField = DepreciationMethod.STRAIGHT_LINE

    @property
    def depreciable_life(self) -> Optional[float]:
        """Effective life when the item is depreciated, None for immediate claims"""
        return self.effective_life_years if self.is_depreciable else None


class WfhAssetRecord(ExpenseRecord):
    """Asset used for the WFH actual cost method"""
    work_percentage: Percentage = 100
    is_depreciable: Annotated[bool, BeforeValidator(flag_or(True))] = True


# ==================== WORK FROM HOME ====================

class WfhHoursLogEntry(DocumentModel):
    """One day's work-from-home time"""
    id: Text = ""
    date: DateString = None
    minutes: Amount = 0


class WfhActualCostDetails(DocumentModel):
    office_area: Amount = 0
    total_home_area: Amount = 0
    electricity_cost: Amount = 0
    gas_cost: Amount = 0
    internet_cost: Amount = 0
    internet_work_percent: Percentage = 0
    phone_cost: Amount = 0
    stationery_cost: Amount = 0
    assets: Annotated[List[WfhAssetRecord], BeforeValidator(coerce_records)] = Field(default_factory=list)


class WfhData(DocumentModel):
    method: WfhMethodField = WfhMethod.FIXED_RATE
    hours_log: Annotated[List[WfhHoursLogEntry], BeforeValidator(coerce_records)] = Field(default_factory=list)
    total_minutes: Amount = 0
    actual_cost_details: WfhActualCostDetails = Field(default_factory=WfhActualCostDetails)


# ==================== TAXPAYER ====================

class TaxpayerDetails(DocumentModel):
    """Demographic details driving levy, surcharge and rebate calculations"""
    filing_status: FilingStatusField = FilingStatus.SINGLE
    medicare_exemption: Flag = False
    medicare_exempt_days: ExemptDays = 0
    has_private_hospital_cover: Flag = False
    reportable_fringe_benefits: Amount = 0
    personal_super_contribution: Amount = 0
    spouse_income: Amount = 0
    dependent_children: Count = 0
    phi_age_bracket: PHIAgeBracketField = PHIAgeBracket.UNDER_65
    # Premiums paid keyed by rebate sub-period, e.g. "2024-07-01_2025-03-31"
    phi_premiums: Premiums = Field(default_factory=dict)
    phi_rebate_received: Amount = 0

    @property
    def is_family(self) -> bool:
        return self.filing_status == FilingStatus.FAMILY


# ==================== DOCUMENT ====================

class UserSettings(DocumentModel):
    current_section: Text = "dashboard-section"
    financial_year: Text = DEFAULT_FINANCIAL_YEAR


class Document(DocumentModel):
    """Root aggregate: everything the user has entered for one financial year"""
    user_settings: UserSettings = Field(default_factory=UserSettings)
    taxpayer_details: TaxpayerDetails = Field(default_factory=TaxpayerDetails)
    income: IncomeData = Field(default_factory=IncomeData)
    general_expenses: Annotated[List[ExpenseRecord], BeforeValidator(coerce_records)] = Field(default_factory=list)
    wfh: WfhData = Field(default_factory=WfhData)

    @property
    def financial_year(self) -> str:
        return self.user_settings.financial_year or DEFAULT_FINANCIAL_YEAR
