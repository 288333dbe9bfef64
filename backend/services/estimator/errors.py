"""
Tax Estimator - Exceptions
"""

from typing import Optional


class TaxEstimatorError(Exception):
    """Base class for estimator errors"""

    def __init__(self, message: str, parameter: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.parameter = parameter


class TaxConfigurationError(TaxEstimatorError):
    """Tax parameters are missing or inconsistent (unknown year, tier, age bracket...)"""


class DocumentFormatError(TaxEstimatorError):
    """Imported or submitted data cannot be turned into a valid document"""
