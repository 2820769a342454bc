# server/api/v1/router.py
from fastapi import APIRouter
from .endpoints import health, assistant, schedule

api_router = APIRouter()
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(assistant.router, prefix="/assistant", tags=["assistant"])
api_router.include_router(schedule.router, prefix="/schedule", tags=["schedule"])
