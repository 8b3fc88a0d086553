from fastapi import APIRouter

from app.modules.auth import router as auth_router
from app.modules.join_requests import router as join_requests_router
from app.modules.schools import router as schools_router

api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["Authentication"])

api_router.include_router(schools_router, prefix="/school", tags=["Schools"])

api_router.include_router(
    join_requests_router, prefix="/school-join-requests", tags=["School Join Requests"]
)
