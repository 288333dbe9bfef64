from fastapi import FastAPI, APIRouter, Request
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
from starlette.middleware.cors import CORSMiddleware
import time
from pathlib import Path
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import traceback

# Load environment variables first
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# Import configuration
from config import get_settings, get_cors_config, validate_environment

# Import logging and error tracking
from logging_config import setup_logging, get_logger, set_request_context, clear_request_context
from sentry_integration import init_sentry, capture_exception, set_tag

from routers import tax_estimator_router
from services.estimator.store import get_document_store

# Get settings
settings = get_settings()

# Configure structured logging
# Use JSON format in production, plain text in development
setup_logging(
    level=settings.LOG_LEVEL,
    json_format=settings.is_production,
    service_name="tax-estimator"
)
logger = get_logger(__name__)

# Initialize Sentry error tracking
if settings.SENTRY_DSN:
    if init_sentry(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        release=settings.API_VERSION,
        traces_sample_rate=0.1 if settings.is_production else 0.0,
    ):
        set_tag("financial_year", settings.FINANCIAL_YEAR)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    # Startup
    logger.info("=" * 60)
    logger.info("Starting Personal Income Tax Estimator API...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug Mode: {settings.debug_enabled}")
    logger.info(f"Financial Year: {settings.FINANCIAL_YEAR}")
    logger.info("=" * 60)

    env_status = validate_environment()
    if not env_status["valid"]:
        for error in env_status["errors"]:
            logger.error(f"Configuration Error: {error}")
        if settings.is_production:
            raise RuntimeError("Cannot start in production with invalid configuration")

    for warning in env_status.get("warnings", []):
        logger.warning(f"Configuration Warning: {warning}")

    store = get_document_store()
    logger.info(f"Document store: {store.file_path}")
    logger.info("Tax Estimator API started successfully")

    yield

    # Shutdown
    logger.info("Shutting down Tax Estimator API...")


# Create the main app
app = FastAPI(
    title=settings.API_TITLE,
    description="""
    Personal income tax estimator for Australian individual taxpayers.

    ## Features

    ### Tax Estimator (/api/tax)
    - Outcome: taxable income, gross tax, Medicare levy and surcharge,
      LITO, franking credits, private health insurance rebate
    - Deductions: general expenses, work from home (fixed rate or actual
      cost), personal super contributions
    - Depreciation schedules (straight line / declining balance)
    - Documents per financial year with JSON / CSV export and import
    - Timesheet CSV import for work-from-home hours
    """,
    version=settings.API_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug_enabled else None,
    redoc_url="/api/redoc" if settings.debug_enabled else None,
)

# Create a router with the /api prefix
api_router = APIRouter(prefix="/api")


# ==================== HEALTH CHECK ENDPOINTS ====================

@api_router.get("/", tags=["Health"])
async def root():
    """Basic health check - returns 200 if service is running"""
    return {
        "message": "Personal Income Tax Estimator API",
        "status": "healthy",
        "version": settings.API_VERSION,
        "environment": settings.ENVIRONMENT,
    }


@api_router.get("/health", tags=["Health"])
async def health_check():
    """
    Detailed health check for load balancers and uptime monitors.

    Returns:
    - 200: All systems operational
    - 503: Document store or configuration unavailable
    """
    health_status = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.API_VERSION,
        "environment": settings.ENVIRONMENT,
        "checks": {}
    }

    try:
        store = get_document_store()
        health_status["checks"]["document_store"] = {
            "status": "available",
            "financial_years": len(store.financial_years()),
        }
    except OSError as e:
        logger.error(f"Document store health check failed: {e}")
        health_status["status"] = "unhealthy"
        health_status["checks"]["document_store"] = {
            "status": "unavailable",
            "error": str(e)
        }

    env_status = validate_environment()
    health_status["checks"]["configuration"] = {
        "status": "valid" if env_status["valid"] else "invalid",
        "warnings": len(env_status.get("warnings", [])),
        "errors": len(env_status.get("errors", []))
    }
    if not env_status["valid"]:
        health_status["status"] = "unhealthy"

    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@api_router.get("/health/live", tags=["Health"])
async def liveness_check():
    """
    Kubernetes liveness probe.
    Returns 200 if the process is running (doesn't check dependencies).
    """
    return {"status": "alive", "timestamp": datetime.now(timezone.utc).isoformat()}


@api_router.get("/config/status", tags=["Health"])
async def config_status():
    """
    Configuration status check (non-sensitive).
    Useful for debugging deployment issues.
    """
    env_status = validate_environment()

    return {
        "environment": settings.ENVIRONMENT,
        "debug": settings.debug_enabled,
        "financial_year": settings.FINANCIAL_YEAR,
        "cors_origins_count": len(settings.cors_origins_list),
        "configuration_valid": env_status["valid"],
        "warnings": env_status.get("warnings", []),
        "variables": env_status.get("variables", {}),
        # Don't expose actual errors in production
        "errors": env_status.get("errors", []) if not settings.is_production else ["Hidden in production"]
    }


api_router.include_router(tax_estimator_router)

# Include the main router in the app
app.include_router(api_router)

# ==================== MIDDLEWARE ====================

# CORS middleware with production-safe configuration
cors_config = get_cors_config()
app.add_middleware(
    CORSMiddleware,
    **cors_config
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing information"""
    start_time = time.time()

    request_id = request.headers.get("X-Request-ID", f"req-{int(start_time * 1000)}")
    set_request_context(request_id)

    if settings.debug_enabled:
        logger.debug(f"[{request_id}] {request.method} {request.url.path}")

    try:
        response = await call_next(request)

        process_time = time.time() - start_time

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(round(process_time * 1000, 2))

        if settings.debug_enabled or response.status_code >= 400:
            logger.info(f"[{request_id}] {request.method} {request.url.path} -> {response.status_code} ({process_time:.3f}s)")

        return response
    except Exception as e:
        logger.error(f"[{request_id}] Request failed: {str(e)}")
        raise
    finally:
        clear_request_context()


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions"""
    logger.error(f"Unhandled exception: {exc}")
    if settings.debug_enabled:
        logger.error(traceback.format_exc())

    capture_exception(exc, path=request.url.path, method=request.method)

    # Don't expose internal errors in production
    if settings.is_production:
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"}
        )
    else:
        return JSONResponse(
            status_code=500,
            content={
                "detail": str(exc),
                "type": type(exc).__name__,
                "traceback": traceback.format_exc() if settings.debug_enabled else None
            }
        )
