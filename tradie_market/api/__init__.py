from fastapi import APIRouter

from tradie_market.api.routers import applications, credits, jobs


def create_api_router(prefix: str = "") -> APIRouter:
    router = APIRouter(prefix=prefix)
    router.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
    router.include_router(applications.router, prefix="/applications", tags=["applications"])
    router.include_router(credits.router, prefix="/credits", tags=["credits"])
    return router


__all__ = [
    "create_api_router",
]
