# server/api/v1/endpoints/health.py
from fastapi import APIRouter, Request
from datetime import datetime

router = APIRouter()

@router.get("/")
async def health_check(request: Request):
    """Basic health check endpoint"""
    registry = getattr(request.app.state, "registry", None)
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "service": "AquaMind Irrigation Backend",
        "agents": registry.list_agents() if registry else [],
    }
