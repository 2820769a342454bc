# server/api/v1/errors.py
from fastapi import HTTPException, Request

from agents.base import BaseAgent
from core.exceptions import AquaMindError, user_message

# error kind -> HTTP status
ERROR_STATUS = {
    "validation": 422,
    "state": 409,
    "timing": 409,
    "network": 503,
    "schema": 502,
    "location": 404,
    "external": 502,
    "config": 500,
}

def status_for(kind: str) -> int:
    return ERROR_STATUS.get(kind, 500)

def http_error(error: Exception) -> HTTPException:
    """Translate a domain error into an HTTPException with a structured detail"""
    if isinstance(error, HTTPException):
        return error
    if isinstance(error, AquaMindError):
        return HTTPException(
            status_code=status_for(error.kind),
            detail={"kind": error.kind, "message": user_message(error), "retryable": error.retryable},
        )
    return HTTPException(status_code=500, detail=f"Error processing request: {str(error)}")

def get_agent(request: Request, name: str) -> BaseAgent:
    agent = request.app.state.registry.get(name)
    if not agent:
        raise HTTPException(status_code=500, detail=f"{name.capitalize()} agent not available")
    return agent
