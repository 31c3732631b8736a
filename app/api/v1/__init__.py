from fastapi import APIRouter

from app.api.v1.routers import deal_status, deals, health

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(deals.router)
api_router.include_router(deal_status.router)

__all__ = ["api_router"]
