"""API 라우터 패키지"""
from routers.auth import router as auth_router
from routers.challenges import router as challenges_router
from routers.participations import router as participations_router
from routers.trades import router as trades_router
from routers.payments import router as payments_router
from routers.activities import router as activities_router
from routers.market import router as market_router

__all__ = [
    "auth_router",
    "challenges_router",
    "participations_router",
    "trades_router",
    "payments_router",
    "activities_router",
    "market_router",
]
