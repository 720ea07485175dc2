"""API v1 router aggregator.

All v1 endpoint routers are included here.
"""

from fastapi import APIRouter

from presswire.api.v1 import (
    admin,
    analytics,
    discounts,
    manage,
    payments,
    press_releases,
    verification,
)

router = APIRouter()

# =============================================================================
# Publishing flow
# =============================================================================

router.include_router(
    verification.router, prefix="/verification", tags=["verification"]
)
router.include_router(
    press_releases.router, prefix="/press-releases", tags=["press-releases"]
)
router.include_router(manage.router, prefix="/manage", tags=["manage"])

# =============================================================================
# Commerce
# =============================================================================

router.include_router(payments.router, prefix="/payments", tags=["payments"])
router.include_router(discounts.router, prefix="/discounts", tags=["discounts"])

# =============================================================================
# Admin and analytics
# =============================================================================

router.include_router(admin.router, prefix="/admin", tags=["admin"])
router.include_router(analytics.router, prefix="/analytics", tags=["analytics"])
