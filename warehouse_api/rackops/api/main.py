from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List
from uuid import uuid4

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi import WebSocket, WebSocketDisconnect
from jose import JWTError

from rackops.core.settings import get_app_settings
from rackops.core.security import decode_token
from rackops.core.logging import configure_logging, correlation_id_var, user_id_var
from rackops.db.run_migrations import main as run_alembic
from rackops.db.seed import seed_all
from rackops.schemas.common import ErrorInfo, ErrorResponse, MessageResponse
from rackops.services.errors import ProcessError
from rackops.services.realtime import WATCHED_TABLES, broadcast_manager

# Routers
from rackops.api.routes.auth import router as auth_router
from rackops.api.routes.labels import router as labels_router
from rackops.api.routes.picking import router as picking_router
from rackops.api.routes.supply import router as supply_router
from rackops.api.routes.partner_supply import router as partner_supply_router
from rackops.api.routes.kobetsu import router as kobetsu_router
from rackops.api.routes.inventory import router as inventory_router
from rackops.api.routes.master_data import router as masterdata_router
from rackops.api.routes.activity_log import router as activity_router
from rackops.api.routes.reports import router as reports_router

# Configure structured logging once at import
configure_logging()
logger = logging.getLogger(__name__)

settings = get_app_settings()

openapi_tags = [
    {"name": "Health", "description": "Liveness probe."},
    {"name": "Auth", "description": "Current operator resolved from the platform token."},
    {"name": "Labels", "description": "Part label parsing and BOM verification."},
    {"name": "Picking", "description": "Kanban picking sessions."},
    {"name": "Supply", "description": "Supply (put-away) sessions."},
    {"name": "Big Part Supply", "description": "Supply of big parts to their partner racks."},
    {"name": "Kobetsu", "description": "Kobetsu (manual single-item) picking sessions."},
    {"name": "Inventory", "description": "Rack inventory, stock ledger, adjustments, reconciliation."},
    {"name": "Master Data", "description": "BOM master and partner racks."},
    {"name": "Activity Log", "description": "Audit trail."},
    {"name": "Reports", "description": "CSV/XLSX exports of inventory, BOM master and the stock ledger."},
    {
        "name": "WebSocket",
        "description": "WebSocket usage, endpoints, and connection details.",
    },
]

app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    openapi_tags=openapi_tags,
)

# CORS - avoid wildcard with credentials
cors_allow_credentials = settings.CORS_ALLOW_CREDENTIALS
if settings.CORS_ORIGINS == ["*"] and cors_allow_credentials:
    logger.warning("CORS_ALLOW_CREDENTIALS=True with '*' origins is not permitted; disabling credentials.")
    cors_allow_credentials = False

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=cors_allow_credentials,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """
    Enrich request context with a correlation_id for logging and error responses.
    Adds 'X-Correlation-ID' to every response.
    """
    corr = request.headers.get("X-Correlation-ID") or request.headers.get("X-Request-ID") or str(uuid4())
    token_corr = correlation_id_var.set(corr)
    token_user = user_id_var.set(None)
    request.state.correlation_id = corr

    logger.info("Incoming request %s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
    finally:
        correlation_id_var.reset(token_corr)
        user_id_var.reset(token_user)

    response.headers["X-Correlation-ID"] = corr
    return response


def _build_error_response(
    request: Request,
    status_code: int,
    error_type: str,
    message: str,
    details: Any | None = None,
) -> JSONResponse:
    """Build a standardized ErrorResponse JSONResponse."""
    ts = datetime.now(tz=timezone.utc)
    corr = getattr(request.state, "correlation_id", None)
    err = ErrorResponse(
        status=status_code,
        error=ErrorInfo(type=error_type, message=message, details=details),
        correlation_id=corr,
        path=request.url.path,
        method=request.method,
        timestamp=ts,
    )
    return JSONResponse(status_code=status_code, content=err.model_dump(mode="json"))


@app.exception_handler(ProcessError)
async def process_exception_handler(request: Request, exc: ProcessError):
    """
    Render a rejected process step. The alert title is error.message and the
    description, when present, is error.details.description.
    """
    logger.info("%s rejected: %s", request.url.path, exc)
    return _build_error_response(
        request=request,
        status_code=exc.status_code,
        error_type=exc.error_type,
        message=exc.title,
        details={"description": exc.description} if exc.description else None,
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Global handler for HTTPException to produce a standardized error envelope.
    """
    detail = exc.detail if isinstance(exc.detail, str) else "HTTP Error"
    response = _build_error_response(
        request=request,
        status_code=exc.status_code,
        error_type="http_error",
        message=str(detail),
        details=None if isinstance(exc.detail, str) else exc.detail,
    )
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Global handler for request validation errors with a standard structure.
    """
    return _build_error_response(
        request=request,
        status_code=422,
        error_type="validation_error",
        message="Request validation failed",
        details=exc.errors(),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Catch-all handler to avoid leaking stack traces and to return a structured error.
    """
    logger.exception("Unhandled error processing request")
    return _build_error_response(
        request=request,
        status_code=500,
        error_type="internal_error",
        message="An unexpected error occurred",
        details=None,
    )


@app.on_event("startup")
async def on_startup() -> None:
    """
    Run migrations and optional seeding on service startup.

    This ensures the database schema is up to date. Seeding is opt-in via settings.
    """
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        try:
            logger.info("Running Alembic migrations: upgrade head")
            # env.py drives its own event loop, so run it off this one.
            await asyncio.to_thread(run_alembic, ["upgrade", "head"])
            logger.info("Migrations completed.")
        except Exception as exc:
            # Startup continues; requests will fail with store errors until the database is reachable.
            logger.exception("Migration step failed: %s", exc)

    if settings.AUTO_SEED:
        try:
            logger.info("Running database seeding...")
            await seed_all()
            logger.info("Seeding completed.")
        except Exception as exc:
            logger.exception("Seeding step failed: %s", exc)


# Build API v1 router and include sub-routers
api_v1 = APIRouter(prefix="/api/v1")


# PUBLIC_INTERFACE
@api_v1.get(
    "/health",
    response_model=MessageResponse,
    summary="Health Check",
    tags=["Health"],
)
def health_check() -> MessageResponse:
    """
    Basic liveness health check endpoint.

    Returns:
        MessageResponse: Simple confirmation that the service is running.
    """
    return MessageResponse(message="Healthy")


# PUBLIC_INTERFACE
@api_v1.get(
    "/websocket-info",
    response_model=Dict[str, Any],
    summary="WebSocket Usage Information",
    description="Connection details for the table change feed.",
    tags=["WebSocket"],
)
def websocket_info() -> Dict[str, Any]:
    """
    Describe how to connect to the change feed.

    Returns:
        JSON object with usage notes, query params and message format.
    """
    return {
        "usage": (
            "Connect with a valid platform JWT as a 'token' query parameter. "
            "Pass 'tables' as a comma-separated subset of the watched tables (default: all). "
            "Message format is JSON with fields: { type: '<table>.<INSERT|UPDATE>', payload: object, "
            "at: ISO-8601, user_id?: string, channel?: string }."
        ),
        "security": {
            "token": "JWT must contain 'sub' (user id).",
        },
        "endpoints": [
            {
                "path": "/ws/changes",
                "summary": "Committed changes of inventory, ledger and audit tables (server push).",
                "query": ["token", "tables?"],
                "tables": list(WATCHED_TABLES),
                "messages": {
                    "client_to_server": ["ping"],
                    "server_to_client": [f"{t}.INSERT" for t in WATCHED_TABLES] + ["rack_inventory.UPDATE"],
                },
            }
        ],
        "notes": (
            "Notifications are best-effort and sent after commit; they refresh displays only. "
            "WebSocket endpoints are not represented in OpenAPI schema; refer to this endpoint for usage."
        ),
    }


api_v1.include_router(auth_router)
api_v1.include_router(labels_router)
api_v1.include_router(picking_router)
api_v1.include_router(supply_router)
api_v1.include_router(partner_supply_router)
api_v1.include_router(kobetsu_router)
api_v1.include_router(inventory_router)
api_v1.include_router(masterdata_router)
api_v1.include_router(activity_router)
api_v1.include_router(reports_router)

# Attach api_v1 to app
app.include_router(api_v1)


def _requested_tables(raw: str | None) -> List[str]:
    if not raw:
        return list(WATCHED_TABLES)
    wanted = [t.strip() for t in raw.split(",") if t.strip()]
    return [t for t in wanted if t in WATCHED_TABLES]


async def _validate_ws_and_get_user(websocket: WebSocket) -> str:
    """
    Validate an accepted WebSocket by its 'token' query param.

    Returns:
        user_id
    Raises:
        WebSocketDisconnect if invalid (after closing with 4401).
    """
    token = websocket.query_params.get("token")
    claims: Dict[str, Any] = {}
    if token:
        try:
            claims = decode_token(token)
        except JWTError:
            claims = {}

    user_id = claims.get("sub")
    if not user_id:
        await websocket.close(code=4401)
        raise WebSocketDisconnect(code=4401)
    return str(user_id)


# PUBLIC_INTERFACE
@app.websocket("/ws/changes")
async def ws_changes(websocket: WebSocket):
    """
    WebSocket endpoint for committed table changes.

    Security:
      - Query param 'token' must be a valid JWT.
    Query Parameters:
      - tables: optional comma-separated subset of the watched tables
    Messages:
      - Server -> Client: '<table>.<INSERT|UPDATE>' envelopes with the row as payload.
      - Client -> Server: optional 'ping' keepalive; other messages are ignored.
    """
    await websocket.accept()
    try:
        user_id = await _validate_ws_and_get_user(websocket)
    except WebSocketDisconnect:
        return

    tables = _requested_tables(websocket.query_params.get("tables"))
    if not tables:
        await websocket.close(code=4400)
        return

    topics = [broadcast_manager.table_topic(t) for t in tables]
    for topic in topics:
        await broadcast_manager.connect(topic, websocket)
    logger.info("Change feed opened by %s for %s", user_id, ", ".join(tables))

    try:
        while True:
            msg = await websocket.receive_text()
            if msg and msg.lower() == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        for topic in topics:
            await broadcast_manager.disconnect(topic, websocket)
    except Exception:
        logger.exception("Error on ws_changes connection")
        for topic in topics:
            await broadcast_manager.disconnect(topic, websocket)
        await websocket.close()
