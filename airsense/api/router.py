from fastapi import APIRouter

from airsense.api.routes import live, report, session, storage

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(live.router, tags=["live"])
api_router.include_router(report.router, tags=["report"])
api_router.include_router(storage.router, tags=["storage"])
api_router.include_router(session.router, tags=["session"])


@api_router.get("/health", tags=["meta"])
def health() -> dict[str, str]:
    return {"status": "ok"}
