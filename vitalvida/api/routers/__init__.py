"""
API Routers
FastAPI route handlers for different endpoints.
"""

from .admin import router as admin_router
from .agents import router as agents_router
from .allocations import router as allocations_router
from .compliance import router as compliance_router
from .deductions import router as deductions_router
from .health import router as health_router
from .thresholds import router as thresholds_router

__all__ = [
    "health_router",
    "agents_router",
    "allocations_router",
    "compliance_router",
    "thresholds_router",
    "deductions_router",
    "admin_router",
]
