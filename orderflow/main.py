"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import Depends, FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError

from orderflow.api.routes import get_state, router
from orderflow.api.websocket import handle_websocket_audience
from orderflow.config import get_settings
from orderflow.errors import OrderflowError
from orderflow.state.manager import StateManager, get_state_manager
from orderflow.utils.logging import get_logger, setup_logging
from orderflow.workflow.notifications import KITCHEN_AUDIENCE, MANAGER_AUDIENCE

# Setup logging first
setup_logging()
logger = get_logger(__name__)

AUDIENCE_PREFIXES = ("staff-", "user-")
FIXED_AUDIENCES = (MANAGER_AUDIENCE, KITCHEN_AUDIENCE)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    logger.info("application_starting")

    state_manager = await get_state_manager()
    logger.info("state_manager_initialized")

    yield

    # Shutdown
    logger.info("application_shutting_down")
    await state_manager.disconnect()


app = FastAPI(
    title="Order Lifecycle & Kitchen Task Orchestrator",
    description="Order state machine, kitchen task queue and payment webhooks for hospitality food ordering",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(OrderflowError)
async def orderflow_error_handler(request: Request, exc: OrderflowError) -> JSONResponse:
    """Map typed workflow errors to their HTTP status."""
    logger.info(
        "request_rejected",
        path=request.url.path,
        error=exc.code,
        status_code=exc.status_code,
        message=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health")
async def health_check(state_manager: StateManager = Depends(get_state)) -> JSONResponse:
    """Health check endpoint."""
    try:
        redis_ok = await state_manager.ping()
    except (RedisError, OSError) as e:
        logger.warning("health_check_redis_unavailable", error=str(e))
        redis_ok = False

    return JSONResponse(
        status_code=200 if redis_ok else 503,
        content={
            "status": "healthy" if redis_ok else "degraded",
            "service": "orderflow",
            "redis": "ok" if redis_ok else "unavailable",
        },
    )


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "message": "Order Lifecycle & Kitchen Task Orchestrator API",
        "docs": "/docs",
        "health": "/health",
    }


app.include_router(router, prefix="/api/v1", tags=["api"])


@app.websocket("/ws/{audience}")
async def websocket_endpoint(websocket: WebSocket, audience: str) -> None:
    """WebSocket endpoint for dashboard notifications."""
    if audience in FIXED_AUDIENCES or (
        audience.startswith(AUDIENCE_PREFIXES) and audience.split("-", 1)[1]
    ):
        await handle_websocket_audience(websocket, audience)
    else:
        await websocket.close(code=1003, reason="Unknown audience")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "orderflow.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.environment == "development",
    )
