from fastapi import APIRouter

from app.api.routes import activity, auth, reports

api_router = APIRouter()
api_router.include_router(auth.router)
api_router.include_router(reports.router)
api_router.include_router(activity.router)
