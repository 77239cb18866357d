"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.config import settings
from app.database import SessionLocal
from app.events import event_bus
from app.rate_limiter import limiter
from app.schemas.common import ErrorResponse
from app.services.balance_snapshot_listener import BalanceSnapshotListener
from app.services.repositories import DuplicateError, NotFoundError
from app.services.shared.http_client import HTTPClientError

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    listener = BalanceSnapshotListener(SessionLocal)
    listener.register(event_bus)
    logger.info("Balance snapshot listener registered")
    yield
    listener.unregister(event_bus)


# Create FastAPI app
app = FastAPI(
    title="Balance Ledger API",
    description="Multi-currency account balances and daily balance history",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Add rate limiter to app state and exception handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(request: Request, status_code: int, error: str, message: str) -> JSONResponse:
    body = ErrorResponse(error=error, message=message, path=request.url.path)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return _error_response(request, status.HTTP_404_NOT_FOUND, "NotFound", str(exc))


@app.exception_handler(DuplicateError)
async def duplicate_handler(request: Request, exc: DuplicateError) -> JSONResponse:
    return _error_response(request, status.HTTP_409_CONFLICT, "Duplicate", str(exc))


@app.exception_handler(HTTPClientError)
async def upstream_error_handler(request: Request, exc: HTTPClientError) -> JSONResponse:
    logger.error(f"Upstream request failed on {request.url.path}: {exc}")
    return _error_response(
        request, status.HTTP_502_BAD_GATEWAY, "UpstreamError", "External data source unavailable"
    )


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Balance Ledger API", "version": "0.1.0", "status": "running"}


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


# Import and include routers
from app.routers import balance_snapshots, crypto, exchange_rates, jobs  # noqa: E402

app.include_router(balance_snapshots.router)
app.include_router(exchange_rates.router)
app.include_router(crypto.router)
app.include_router(jobs.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)
