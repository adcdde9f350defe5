import logging
from typing import Any, Dict

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.internal_auth import router as internal_auth_router
from app.api.inventory import router as inventory_router
from app.api.knowledge import public_router as articles_router
from app.api.knowledge import router as knowledge_router
from app.api.public_auth import router as public_auth_router
from app.api.reports import router as reports_router
from app.api.tickets import router as tickets_router
from app.core.config import get_settings
from app.core.database import db_manager, initialize_database
from app.core.logging import setup_logging
from app.core.rate_limit import RateLimiter, RateLimitMiddleware, RateLimitRule
from app.db.session import get_db

settings = get_settings()
logger = logging.getLogger(__name__)


def _error_body(detail: Any) -> Dict[str, Any]:
    """Render an HTTPException detail as ``{"error": ..., "details": ...}``."""
    if isinstance(detail, dict):
        details = {k: v for k, v in detail.items() if k != "message"}
        body: Dict[str, Any] = {"error": str(detail.get("message", "Request failed"))}
        if details:
            body["details"] = details
        return body
    return {"error": str(detail)}


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)

    app = FastAPI(
        title=settings.APP_NAME,
        description="""
        ## Portal TI - Helpdesk and Equipment Inventory API

        IT helpdesk for employees plus the equipment custody registry of the IT team.

        ### Features
        - **Public ticket intake** with email-based access tokens
        - **Ticket triage** with status, priority, assignment, messages and SLA tracking
        - **Knowledge base** of information articles
        - **Equipment inventory** with responsibility terms and movement history
        - **Reports** on ticket volume, SLA compliance and technician performance

        ### Authentication
        Employees send `x-user-token` (from `/api/public-auth/access`).
        IT staff send `Authorization: Bearer <jwt>` (from `/api/internal-auth/login`).

        ### Authorization
        - **Admin**: Full system access
        - **IT staff**: Tickets, knowledge base and inventory
        - **Manager**: Read access to tickets and inventory, reports
        """,
        version="1.0.0",
        openapi_tags=[
            {"name": "public-auth", "description": "Employee access tokens"},
            {"name": "internal-auth", "description": "Staff login and user management"},
            {"name": "tickets", "description": "Ticket intake, triage and messages"},
            {"name": "inventory", "description": "Equipment registry, custody and alerts"},
            {"name": "reports", "description": "Ticket statistics and export"},
            {"name": "knowledge", "description": "Information articles"},
            {"name": "infra", "description": "Health check"},
        ],
    )

    # Rate limiting (off in dev)
    app.add_middleware(
        RateLimitMiddleware,
        rate_limiter=RateLimiter(RateLimitRule(settings.RATE_LIMIT_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS)),
        enabled=settings.ENV != "dev",
    )

    # CORS
    allowed_origins = settings.CORS_ORIGINS if getattr(settings, "CORS_ORIGINS", None) else ["http://localhost:3000"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(public_auth_router)
    app.include_router(internal_auth_router)
    app.include_router(tickets_router)
    app.include_router(inventory_router)
    app.include_router(reports_router)
    app.include_router(articles_router)
    app.include_router(knowledge_router)

    # Healthcheck
    @app.get("/health", tags=["infra"])
    async def health(session: AsyncSession = Depends(get_db)):
        database = await db_manager.check_database_health(session)
        return {
            "status": "ok" if database["status"] != "unhealthy" else "error",
            "env": settings.ENV,
            "database": database,
        }

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        status_code = exc.status_code or 500
        if status_code >= 500:
            logger.error("HTTP %s at %s %s: %s", status_code, request.method, request.url.path, exc.detail)
        return JSONResponse(status_code=status_code, content=_error_body(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        details = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
                "message": err.get("msg", ""),
            }
            for err in exc.errors()
        ]
        return JSONResponse(status_code=400, content={"error": "Invalid data", "details": details})

    # Global exception handler to log internal server errors
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "Unhandled exception", extra={
                "method": request.method,
                "path": request.url.path,
            }
        )
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.on_event("startup")
    async def startup_event():
        await initialize_database()

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("app.main:app", host=settings.APP_HOST, port=settings.APP_PORT, reload=settings.ENV == "dev")
