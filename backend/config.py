"""
Tax Estimator - Configuration Management

Centralized configuration for environment variables, CORS, and deployment settings.
- Environment-specific settings (dev/staging/prod)
- Financial year and document storage location
- Secure defaults
"""

from typing import List
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
import logging

from services.estimator.errors import TaxConfigurationError
from services.estimator.models import DEFAULT_FINANCIAL_YEAR
from services.estimator.parameters import normalise_financial_year, supported_financial_years

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Uses pydantic-settings for validation and type coercion.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ==================== ENVIRONMENT ====================
    ENVIRONMENT: str = Field(
        default="development",
        description="Runtime environment: development, staging, production"
    )
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (auto-enabled in development)"
    )

    # ==================== TAX ====================
    FINANCIAL_YEAR: str = Field(
        default=DEFAULT_FINANCIAL_YEAR,
        description="Financial year used when none is given, e.g. 2024-2025"
    )

    # ==================== STORAGE ====================
    DATA_DIR: str = Field(
        default="data",
        description="Directory holding the document store"
    )

    # ==================== CORS ====================
    CORS_ORIGINS: str = Field(
        default="",
        description="Comma-separated list of allowed origins"
    )

    # ==================== OBSERVABILITY ====================
    SENTRY_DSN: str = Field(
        default="",
        description="Sentry DSN for error tracking"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR"
    )

    # ==================== API ====================
    API_TITLE: str = Field(
        default="Personal Income Tax Estimator API",
        description="API title for OpenAPI docs"
    )
    API_VERSION: str = Field(
        default="1.0.0",
        description="API version"
    )

    # ==================== COMPUTED PROPERTIES ====================

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    @property
    def cors_origins_list(self) -> List[str]:
        """
        Parse CORS_ORIGINS into a list with environment-aware defaults.

        Production: Only specified origins
        Development/Staging: Include localhost origins
        """
        if self.CORS_ORIGINS and self.CORS_ORIGINS != "*":
            origins = [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]
        else:
            origins = []

        dev_origins = [
            "http://localhost:3000",
            "http://localhost:5173",
            "http://localhost:8000",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ]

        all_origins = set(origins)
        if not self.is_production:
            all_origins.update(dev_origins)

        return sorted(all_origins)

    @property
    def debug_enabled(self) -> bool:
        """Enable debug in development or when explicitly set"""
        return self.DEBUG or self.is_development

    @property
    def financial_year(self) -> str:
        return normalise_financial_year(self.FINANCIAL_YEAR)

    def validate_production_config(self) -> List[str]:
        """
        Validate configuration for deployment.
        Returns list of validation errors.
        """
        errors = []

        try:
            year = normalise_financial_year(self.FINANCIAL_YEAR)
        except TaxConfigurationError as e:
            errors.append(e.message)
        else:
            if year not in supported_financial_years():
                errors.append(f"FINANCIAL_YEAR {year} has no tax parameters configured")

        if not self.DATA_DIR:
            errors.append("DATA_DIR is required")

        if self.is_production:
            if self.CORS_ORIGINS == "*":
                errors.append("CORS_ORIGINS cannot be '*' in production")

            if self.DEBUG:
                errors.append("DEBUG should be False in production")

        return errors


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Settings are loaded once and cached for the application lifetime.
    """
    settings = Settings()

    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug: {settings.debug_enabled}")
    logger.info(f"Financial year: {settings.FINANCIAL_YEAR}")

    if settings.is_production:
        errors = settings.validate_production_config()
        if errors:
            for error in errors:
                logger.error(f"Configuration error: {error}")
            raise ValueError(f"Production configuration invalid: {', '.join(errors)}")

    return settings


# ==================== CORS CONFIGURATION ====================

def get_cors_config() -> dict:
    """
    Get CORS middleware configuration.

    Returns configuration dict for CORSMiddleware.
    """
    settings = get_settings()

    return {
        "allow_origins": settings.cors_origins_list,
        "allow_credentials": True,
        "allow_methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        "allow_headers": [
            "Content-Type",
            "Accept",
            "Origin",
            "X-Requested-With",
            "X-Request-ID",
        ],
        "expose_headers": [
            "X-Request-ID",
            "X-Process-Time",
            "Content-Disposition",
        ],
        "max_age": 600,  # Cache preflight for 10 minutes
    }


# ==================== ENVIRONMENT VALIDATION ====================

def validate_environment() -> dict:
    """
    Validate environment variables.

    Returns a status dict with validation results.
    """
    settings = get_settings()

    status = {
        "valid": True,
        "environment": settings.ENVIRONMENT,
        "errors": [],
        "warnings": [],
        "variables": {}
    }

    status["variables"]["FINANCIAL_YEAR"] = settings.FINANCIAL_YEAR
    status["variables"]["DATA_DIR"] = "✓ Set" if settings.DATA_DIR else "✗ Not set"

    optional_vars = [
        ("SENTRY_DSN", settings.SENTRY_DSN, "Error tracking disabled"),
        ("CORS_ORIGINS", settings.CORS_ORIGINS, "Only development origins allowed"),
    ]

    for name, value, warning in optional_vars:
        if not value:
            status["warnings"].append(warning)
            status["variables"][name] = "⚠ Not set"
        else:
            status["variables"][name] = "✓ Set"

    errors = settings.validate_production_config()
    if errors:
        status["errors"].extend(errors)
        status["valid"] = False

    return status
