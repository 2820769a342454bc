# server/api/v1/endpoints/schedule.py
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import Field

from agents.planner.models import PlanRequest
from agents.schedule.models import CamelModel, SystemStatus
from api.v1.errors import get_agent, http_error, status_for

router = APIRouter()

class CancelEventRequest(CamelModel):
    day: str = Field(..., description="YYYY-MM-DD")
    index: int = Field(..., ge=0, description="Position of the event within the day")

class StatusUpdate(CamelModel):
    status: SystemStatus

def _dump(model):
    return model.model_dump(by_alias=True, mode="json")

@router.get("")
async def get_schedule(request: Request):
    """Active plan, revision, pending suggestion and local time"""
    planner = get_agent(request, "planner")
    snapshot = await planner.manager.snapshot()
    return _dump(snapshot)

@router.post("/generate")
async def generate_schedule(request: Request, body: Optional[PlanRequest] = None):
    """
    Generate a fresh 7-day plan

    Fetches the forecast for the site's postal code, asks the generation
    backend for a plan and makes it active. On failure the previous plan is
    kept and the error kind decides the status code.
    """
    planner = get_agent(request, "planner")
    response = await planner.execute(body or PlanRequest())
    if not response.success:
        raise HTTPException(
            status_code=status_for(response.error_kind),
            detail={"kind": response.error_kind, "message": response.message, "retryable": response.retryable},
        )
    return _dump(response)

@router.post("/proactive-check")
async def proactive_check(request: Request):
    """Compare the latest forecast with the one the plan assumed"""
    planner = get_agent(request, "planner")
    try:
        result = await planner.check_proactive()
        return _dump(result)
    except Exception as e:
        raise http_error(e)

@router.post("/candidates/{candidate_id}/accept")
async def accept_candidate(candidate_id: str, request: Request):
    planner = get_agent(request, "planner")
    try:
        plan = await planner.manager.accept_candidate(candidate_id)
        return {"success": True, "revision": planner.manager.revision, "plan": _dump(plan)}
    except Exception as e:
        raise http_error(e)

@router.post("/candidates/{candidate_id}/decline")
async def decline_candidate(candidate_id: str, request: Request):
    planner = get_agent(request, "planner")
    try:
        await planner.manager.decline_candidate(candidate_id)
        return {"success": True, "revision": planner.manager.revision}
    except Exception as e:
        raise http_error(e)

@router.post("/events/cancel")
async def toggle_event(body: CancelEventRequest, request: Request):
    """Cancel an upcoming event, or restore a canceled one"""
    planner = get_agent(request, "planner")
    try:
        plan = await planner.manager.toggle_cancellation(body.day, body.index, user=planner.settings.current_user)
        return {"success": True, "revision": planner.manager.revision, "plan": _dump(plan)}
    except Exception as e:
        raise http_error(e)

@router.get("/usage")
async def water_usage(request: Request):
    planner = get_agent(request, "planner")
    try:
        return _dump(await planner.manager.usage())
    except Exception as e:
        raise http_error(e)

@router.put("/status")
async def set_status(body: StatusUpdate, request: Request):
    planner = get_agent(request, "planner")
    status = await planner.manager.set_system_status(body.status)
    return {"success": True, "systemStatus": status.value}

@router.get("/health")
async def schedule_health(request: Request):
    try:
        planner = get_agent(request, "planner")
        return await planner.health_check()
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Health check failed: {str(e)}")
