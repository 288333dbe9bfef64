"""
Structured Validation Error Utilities

Provides standardized error responses for validation failures.
Helps UI distinguish between validation errors and connectivity issues.

Error Response Format:
{
    "error": "missing_parameter" | "invalid_parameter" | "validation_error" | "configuration_error",
    "parameter": "financial_year",
    "message": "No tax parameters configured for financial year 2019-2020"
}
"""

from fastapi import HTTPException, status
from typing import Optional, Any

from services.estimator.errors import DocumentFormatError, TaxConfigurationError, TaxEstimatorError


class ValidationErrorResponse:
    """Structured validation error response builder."""

    @staticmethod
    def missing_parameter(parameter: str, message: Optional[str] = None) -> dict:
        """
        Create a missing parameter error response.

        Args:
            parameter: Name of the missing parameter
            message: Optional custom message

        Returns:
            Structured error dict
        """
        return {
            "error": "missing_parameter",
            "parameter": parameter,
            "message": message or f"{parameter} is required"
        }

    @staticmethod
    def invalid_parameter(parameter: Optional[str], message: str, value: Optional[Any] = None) -> dict:
        """
        Create an invalid parameter error response.

        Args:
            parameter: Name of the invalid parameter
            message: Description of the validation error
            value: The invalid value (optional, for debugging)

        Returns:
            Structured error dict
        """
        response = {
            "error": "invalid_parameter",
            "parameter": parameter,
            "message": message
        }
        if value is not None:
            response["received_value"] = str(value)[:100]  # Truncate for safety
        return response

    @staticmethod
    def validation_error(message: str, details: Optional[dict] = None) -> dict:
        """
        Create a general validation error response.

        Args:
            message: Description of the validation error
            details: Additional error details

        Returns:
            Structured error dict
        """
        response = {
            "error": "validation_error",
            "parameter": None,
            "message": message
        }
        if details:
            response["details"] = details
        return response

    @staticmethod
    def configuration_error(parameter: Optional[str], message: str) -> dict:
        """Tax parameters for the request are missing or inconsistent."""
        return {
            "error": "configuration_error",
            "parameter": parameter,
            "message": message
        }


def raise_missing_parameter(parameter: str, message: Optional[str] = None):
    """
    Raise HTTPException with structured missing parameter error.

    Raises:
        HTTPException with 422 status and structured error body
    """
    raise HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=ValidationErrorResponse.missing_parameter(parameter, message)
    )


def raise_invalid_parameter(parameter: str, message: str, value: Optional[Any] = None):
    """
    Raise HTTPException with structured invalid parameter error.

    Raises:
        HTTPException with 400 status and structured error body
    """
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=ValidationErrorResponse.invalid_parameter(parameter, message, value)
    )


def raise_estimator_error(exc: TaxEstimatorError):
    """
    Map an estimator error to an HTTPException.

    TaxConfigurationError -> 422 configuration_error
    DocumentFormatError   -> 400 invalid_parameter (or validation_error without a parameter)
    """
    if isinstance(exc, TaxConfigurationError):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=ValidationErrorResponse.configuration_error(exc.parameter, exc.message)
        ) from exc

    if isinstance(exc, DocumentFormatError) and exc.parameter is None:
        detail = ValidationErrorResponse.validation_error(exc.message)
    else:
        detail = ValidationErrorResponse.invalid_parameter(exc.parameter, exc.message)
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail) from exc
