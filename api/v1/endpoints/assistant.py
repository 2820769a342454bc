# server/api/v1/endpoints/assistant.py
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from agents.assistant.models import ActionRequest, ChatRequest
from api.v1.errors import get_agent, http_error, status_for

router = APIRouter()

@router.post("/chat")
async def chat(body: ChatRequest, request: Request):
    """
    Send a chat message to the assistant

    Device commands ("start zone 2 for 15 minutes") are executed directly or
    held for confirmation; anything else is answered or applied to the plan by
    the planner. Failures come back as a chat turn with an ``error`` block.
    """
    assistant = get_agent(request, "assistant")
    response = await assistant.execute(body)

    payload = response.model_dump(by_alias=True, mode="json")
    if response.error:
        return JSONResponse(status_code=status_for(response.error.kind), content=payload)
    return payload

@router.post("/confirm")
async def confirm_action(body: ActionRequest, request: Request):
    """Execute a command that was waiting for confirmation"""
    assistant = get_agent(request, "assistant")
    try:
        response = await assistant.confirm(body.message_id)
        return response.model_dump(by_alias=True, mode="json")
    except Exception as e:
        raise http_error(e)

@router.post("/cancel")
async def cancel_action(body: ActionRequest, request: Request):
    """Discard a command that was waiting for confirmation"""
    assistant = get_agent(request, "assistant")
    try:
        response = assistant.cancel(body.message_id)
        return response.model_dump(by_alias=True, mode="json")
    except Exception as e:
        raise http_error(e)

@router.delete("/sessions/{session_id}")
async def clear_session(session_id: str, request: Request):
    assistant = get_agent(request, "assistant")
    assistant.clear_session(session_id)
    return {"success": True, "sessionId": session_id}

@router.get("/health")
async def assistant_health(request: Request):
    try:
        assistant = get_agent(request, "assistant")
        return await assistant.health_check()
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Health check failed: {str(e)}")
