"""
API v1 router setup
Organized into: public (customer token or none), dashboard (JWT) and webhook routes
"""
from fastapi import APIRouter

from appointease.api.v1.dashboard import appointments, availability
from appointease.api.v1.public import bookings, slots
from appointease.api.v1.webhooks import payments

api_v1_router = APIRouter()

# ============================================================================
# PUBLIC ROUTES (no authentication, or customer access token)
# ============================================================================
api_v1_router.include_router(
    slots.router,
    prefix="/public",
    tags=["Public"]
)

api_v1_router.include_router(
    bookings.router,
    prefix="/public",
    tags=["Public"]
)

# ============================================================================
# DASHBOARD ROUTES (JWT authentication required)
# ============================================================================
api_v1_router.include_router(
    availability.router,
    prefix="/dashboard",
    tags=["Dashboard"]
)

api_v1_router.include_router(
    appointments.router,
    prefix="/dashboard",
    tags=["Dashboard"]
)

# ============================================================================
# WEBHOOK ROUTES (shared secret)
# ============================================================================
api_v1_router.include_router(
    payments.router,
    # No prefix needed - payments.router already has "/webhooks" prefix
    tags=["Webhooks"]
)


# ============================================================================
# ROOT ENDPOINT - API Info
# ============================================================================
@api_v1_router.get("/", tags=["Info"])
async def api_info():
    """
    API information and available endpoints.
    Shows the structure of all API routes organized by authentication type.
    """
    return {
        "version": "1.0",
        "authentication": {
            "public": "None for slot listing; X-Customer-Token header for bookings",
            "dashboard": "JWT Bearer token with a business_id claim",
            "webhooks": "X-Webhook-Secret shared secret"
        }
    }
