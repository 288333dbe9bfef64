"""
Tax Estimator - Document Storage

File-based storage for user documents, one JSON file holding
{financial_year: document}. Stored documents are merged over the current
default layout on load, so documents written by older versions pick up new
fields (and hour-based WFH records are converted to minutes).
"""

import copy
import hashlib
import json
import logging
import threading
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

from pydantic import ValidationError

from services.estimator.errors import DocumentFormatError
from services.estimator.models import Document, coerce_amount
from services.estimator.parameters import normalise_financial_year

logger = logging.getLogger(__name__)

STORE_FILE = "documents.json"

# Thread lock for file writes
_write_lock = threading.Lock()


def default_document(financial_year: str) -> Dict[str, Any]:
    """Empty document in its persisted (camelCase) layout."""
    return {
        "userSettings": {
            "currentSection": "dashboard-section",
            "financialYear": financial_year,
        },
        "taxpayerDetails": {
            "filingStatus": "single",
            "medicareExemption": False,
            "medicareExemptDays": 0,
            "hasPrivateHospitalCover": False,
            "reportableFringeBenefits": 0,
            "personalSuperContribution": 0,
            "spouseIncome": 0,
            "dependentChildren": 0,
            "phiAgeBracket": "under65",
            "phiPremiums": {},
            "phiRebateReceived": 0,
        },
        "income": {
            "payg": [],
            "other": {
                "bankInterest": 0,
                "dividendsUnfranked": 0,
                "dividendsFranked": 0,
                "frankingCredits": 0,
                "netCapitalGains": 0,
            },
        },
        "generalExpenses": [],
        "wfh": {
            "method": "fixed_rate",
            "hoursLog": [],
            "totalMinutes": 0,
            "actualCostDetails": {
                "officeArea": 0,
                "totalHomeArea": 0,
                "electricityCost": 0,
                "gasCost": 0,
                "internetCost": 0,
                "internetWorkPercent": 0,
                "phoneCost": 0,
                "stationeryCost": 0,
                "assets": [],
            },
        },
    }


def _section(stored: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = stored.get(key)
    return value if isinstance(value, dict) else {}


def _hours_to_minutes(value: Any) -> float:
    try:
        return float(value) * 60
    except (TypeError, ValueError):
        return 0


def _backfill_life(items: Any) -> List[Any]:
    if not isinstance(items, list):
        return []
    result = []
    for item in items:
        if isinstance(item, dict) and "effectiveLifeYears" not in item and "effectiveLife" in item:
            item = {**item, "effectiveLifeYears": item["effectiveLife"]}
        result.append(item)
    return result


def _backfill_wfh(wfh: Dict[str, Any]) -> Dict[str, Any]:
    """Convert hour-based WFH records to minutes."""
    entries = wfh.get("hoursLog")
    log = []
    for entry in entries if isinstance(entries, list) else []:
        if isinstance(entry, dict) and "minutes" not in entry and "hours" in entry:
            entry = {**entry, "minutes": _hours_to_minutes(entry["hours"])}
        log.append(entry)
    wfh["hoursLog"] = log

    if "totalMinutes" not in wfh:
        if "totalHours" in wfh:
            wfh["totalMinutes"] = _hours_to_minutes(wfh["totalHours"])
        else:
            wfh["totalMinutes"] = sum(
                coerce_amount(entry.get("minutes")) for entry in log if isinstance(entry, dict)
            )
    return wfh


def merge_stored_data(stored: Dict[str, Any], financial_year: str) -> Dict[str, Any]:
    """Deep-merge stored data over the default layout (dict in, dict out)."""
    defaults = default_document(financial_year)
    stored = copy.deepcopy(stored)

    income = _section(stored, "income")
    wfh = _section(stored, "wfh")

    merged = {**defaults, **stored}
    merged["userSettings"] = {
        **defaults["userSettings"],
        **_section(stored, "userSettings"),
        "financialYear": financial_year,
    }
    merged["taxpayerDetails"] = {**defaults["taxpayerDetails"], **_section(stored, "taxpayerDetails")}
    merged["income"] = {
        **defaults["income"],
        **income,
        "other": {**defaults["income"]["other"], **_section(income, "other")},
    }
    if not isinstance(merged["income"].get("payg"), list):
        merged["income"]["payg"] = []
    merged["generalExpenses"] = _backfill_life(stored.get("generalExpenses", []))

    merged["wfh"] = {
        **defaults["wfh"],
        **_backfill_wfh(dict(wfh)),
        "actualCostDetails": {
            **defaults["wfh"]["actualCostDetails"],
            **_section(wfh, "actualCostDetails"),
        },
    }
    merged["wfh"]["actualCostDetails"]["assets"] = _backfill_life(
        merged["wfh"]["actualCostDetails"].get("assets", [])
    )
    return merged


def merge_document(stored: Dict[str, Any], financial_year: str) -> Document:
    """
    Bring a stored (possibly older) document up to the current layout.

    Raises DocumentFormatError if the merged data still isn't a valid document.
    """
    merged = merge_stored_data(stored, financial_year)
    try:
        return Document.model_validate(merged)
    except ValidationError as e:
        raise DocumentFormatError(f"Invalid document data: {e.errors()[0].get('msg', str(e))}") from e


class DocumentStore:
    """JSON file store keyed by financial year"""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.file_path = self.data_dir / STORE_FILE
        self._ensure_file_exists()

    def _ensure_file_exists(self):
        self.data_dir.mkdir(parents=True, exist_ok=True)
        if not self.file_path.exists():
            self._save_all({})

    def _keep_unreadable(self, name: str, content: str) -> Path:
        """Copy data that could not be read next to the store before a save replaces it."""
        digest = hashlib.sha1(content.encode("utf-8")).hexdigest()[:12]
        backup = self.data_dir / f"unreadable-{name}-{digest}.json"
        if not backup.exists():
            backup.write_text(content, encoding="utf-8")
            logger.error(f"Unreadable data kept in {backup}")
        return backup

    def _load_all(self) -> Dict[str, Any]:
        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                content = f.read()
        except OSError as e:
            logger.error(f"Error loading {self.file_path}: {e}")
            return {}
        try:
            data = json.loads(content)
        except ValueError as e:
            logger.error(f"Error loading {self.file_path}: {e}")
            data = None
        if not isinstance(data, dict):
            if content.strip():
                self._keep_unreadable("documents", content)
            return {}
        return data

    def _save_all(self, documents: Dict[str, Any]):
        with _write_lock:
            with open(self.file_path, "w", encoding="utf-8") as f:
                json.dump(documents, f, indent=2, default=str)

    def load(self, financial_year: str) -> Document:
        """
        Stored document for the year, or an empty one if missing or unreadable.

        Unreadable data is copied to an unreadable-*.json file first, so a
        later save never loses it.
        """
        year = normalise_financial_year(financial_year)
        stored = self._load_all().get(year)
        if not isinstance(stored, dict):
            return Document.model_validate(default_document(year))
        try:
            return merge_document(stored, year)
        except DocumentFormatError as e:
            logger.error(f"Could not load saved data for {year}, starting with a clean slate: {e}")
            self._keep_unreadable(year, json.dumps(stored, indent=2, default=str))
            return Document.model_validate(default_document(year))

    def save(self, document: Document) -> Document:
        year = normalise_financial_year(document.financial_year)
        documents = self._load_all()
        documents[year] = document.to_json_dict()
        self._save_all(documents)
        logger.info(f"Saved tax document for {year}")
        return document

    def clear(self, financial_year: str) -> bool:
        """Remove the document for a year. Returns False if nothing was stored."""
        year = normalise_financial_year(financial_year)
        documents = self._load_all()
        if year not in documents:
            return False
        del documents[year]
        self._save_all(documents)
        logger.info(f"Cleared tax document for {year}")
        return True

    def financial_years(self) -> List[str]:
        return sorted(self._load_all())


@lru_cache()
def get_document_store() -> DocumentStore:
    """Store under the configured data directory (created on first use)."""
    from config import get_settings
    return DocumentStore(Path(get_settings().DATA_DIR))
