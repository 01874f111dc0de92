from fastapi import APIRouter

from splitpay.features.checkout.routes import router as checkout_router
from splitpay.features.fx.routes import router as fx_router
from splitpay.features.health.routes import router as health_router

api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(checkout_router, tags=["checkout"])
api_router.include_router(fx_router, tags=["fx"])
