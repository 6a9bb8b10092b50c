"""
PPOB Chat Backend - FastAPI Application

Conversational storefront for prepaid digital products (pulsa, PLN tokens,
game vouchers, e-wallet top-ups). Chat commands are parsed by Claude on
Bedrock, priced against the local catalog or the reseller price list, paid
through a hosted checkout and fulfilled via the reseller once the payment
webhook arrives.
"""
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Optional
import logging

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .db.init_db import engine, initialize_database
from .dependencies import ServiceContainer, get_container
from .exceptions import PPOBError
from .services.bedrock_service import get_bedrock_service
from .services.scheduler import shutdown_scheduler, start_scheduler
from .api.admin import router as admin_router
from .api.chat import router as chat_router
from .api.products import router as products_router
from .api.transactions import router as transactions_router
from .api.webhooks import router as webhooks_router


logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def _start_optional(component: str, start: Callable[[], Any]) -> None:
    """Start a component that the service can run without in demo mode."""
    try:
        start()
        logger.info(f"{component} started")
    except Exception as e:
        logger.error(f"Failed to start {component}: {e}")
        if not settings.demo_mode:
            raise
        logger.warning(f"Continuing without {component} in demo mode")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: schema, seed catalog, first reseller sync, Bedrock client, sync timer.
    Shutdown: stop the timer, close upstream HTTP clients.
    """
    logger.info(f"Starting PPOB chat backend (demo_mode={settings.demo_mode}, catalog={settings.catalog_backend})")

    await initialize_database(engine)
    container = get_container()

    await container.catalog_sync.ensure_seeded()
    # an unreachable reseller leaves the seeded catalog in place
    result = await container.catalog_sync.sync()
    logger.info(f"Initial catalog sync: synced={result.synced_count}, total={result.total_count}")

    _start_optional("Bedrock client", get_bedrock_service)
    _start_optional("catalog sync timer", start_scheduler)

    yield

    logger.info("Shutting down PPOB chat backend...")
    shutdown_scheduler(wait=True)
    await container.aclose()


app = FastAPI(
    title="PPOB Chat API",
    description="Chat-driven storefront for prepaid digital products",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(status_code: int, error_code: str, message: str,
                    details: Optional[Dict[str, Any]] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error_code": error_code, "message": message, "details": details or {}},
    )


@app.exception_handler(PPOBError)
async def ppob_error_handler(request: Request, exc: PPOBError):
    """Status code comes from the exception class: 404 unknown transaction, 5xx upstream, else 400."""
    logger.warning(f"{request.method} {request.url.path}: {exc.error_code} - {exc.message}")
    return _error_response(exc.status_code, exc.error_code, exc.message, exc.details)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    logger.warning(f"{request.method} {request.url.path}: validation error - {exc}")
    return _error_response(400, "validation_error", str(exc))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    """
    Anything unhandled becomes a 500. Webhook callers see the 500 and
    redeliver, which the guarded transitions make safe.
    """
    logger.error(f"{request.method} {request.url.path}: unexpected error - {exc}", exc_info=True)
    details = {"error_type": type(exc).__name__} if settings.demo_mode else None
    return _error_response(500, "internal_error", "An unexpected error occurred", details)


@app.get("/api/health")
async def health_check(container: ServiceContainer = Depends(get_container)):
    return {
        "status": "healthy",
        "version": VERSION,
        "demo_mode": settings.demo_mode,
        "catalog_backend": settings.catalog_backend,
        "catalog_size": await container.catalog.count(),
    }


app.include_router(products_router, prefix="/api", tags=["Products"])
app.include_router(chat_router, prefix="/api", tags=["Chat"])
app.include_router(transactions_router, prefix="/api", tags=["Transactions"])
app.include_router(webhooks_router, prefix="/api", tags=["Webhooks"])
app.include_router(admin_router, prefix="/api", tags=["Admin"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "ppob_chat.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.demo_mode,
        log_level=settings.log_level.lower()
    )
