from .tax_estimator import router as tax_estimator_router

__all__ = [
    'tax_estimator_router',
]
