"""API v1 router."""
from fastapi import APIRouter

from app.api.v1 import lesson_runner

api_router = APIRouter()

api_router.include_router(lesson_runner.router, prefix="/runner", tags=["Lesson Runner"])
