# server/api/app.py
"""
FastAPI application factory
"""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.v1.errors import status_for
from api.v1.router import api_router
from core.config import get_settings
from core.exceptions import AquaMindError, user_message

logger = logging.getLogger(__name__)

def create_app(lifespan=None) -> FastAPI:
    """Create FastAPI application; agents are expected on ``app.state.registry``"""
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="Weather-aware 7-day watering plans and chat control of the sprinkler controller",
        debug=settings.debug,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    @app.exception_handler(AquaMindError)
    async def domain_error_handler(request: Request, exc: AquaMindError):
        logger.warning(f"{request.method} {request.url.path} failed ({exc.kind}): {exc}")
        return JSONResponse(
            status_code=status_for(exc.kind),
            content={"detail": {"kind": exc.kind, "message": user_message(exc), "retryable": exc.retryable}},
        )

    app.include_router(api_router, prefix="/api")

    @app.get("/")
    async def root():
        registry = getattr(app.state, "registry", None)
        return {
            "service": settings.api_title,
            "version": settings.api_version,
            "status": "healthy",
            "agents": registry.list_agents() if registry else [],
        }

    return app
