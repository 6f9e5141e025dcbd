import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.api.deps import engine
from app.api.routers.bookings import router as bookings_router
from app.api.routers.rate_limits import router as rate_limits_router
from app.api.routers.search import router as search_router
from app.config import get_settings
from app.domain.errors import DatabaseError, DomainError
from app.infrastructure.db.tables import metadata

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Cache table only exists in SQL mode
    if not get_settings().use_in_memory:
        async with engine.begin() as conn:
            await conn.run_sync(metadata.create_all)
    yield
    # Cleanup
    await engine.dispose()

app = FastAPI(
    title="ETG Booking Gateway",
    version="0.1.0",
    lifespan=lifespan
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    """Normalized error envelope for every domain / upstream failure."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    log = logger.warning if exc.http_status < 500 else logger.error
    log(
        "Request failed",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
            "error_code": exc.code,
            "category": exc.category.value,
        }
    )
    headers = {"X-Request-ID": request_id}
    if exc.retry_after is not None:
        headers["Retry-After"] = str(exc.retry_after)
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_envelope(request_id),
        headers=headers,
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error", exc_info=exc, extra={"path": request.url.path})
    error = DatabaseError("Database operation failed", code="DATABASE_ERROR", details={"error_type": type(exc).__name__})
    return await domain_error_handler(request, error)


# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler to prevent stack trace exposure to clients.
    All unhandled exceptions are logged internally and return a generic error message.
    """
    error_id = str(uuid.uuid4())

    # Log the full error with context for internal debugging
    logger.error(
        "Unhandled exception occurred",
        exc_info=exc,
        extra={
            "error_id": error_id,
            "path": request.url.path,
            "method": request.method,
            "client_host": request.client.host if request.client else None,
        }
    )

    # Return a generic error to the client without exposing internal details
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "detail": "Internal server error",
            "error_id": error_id,
            "message": "An unexpected error occurred. Please contact support with the error_id if the issue persists."
        }
    )


app.include_router(search_router, prefix="/api/v1", tags=["Search"])
app.include_router(bookings_router, prefix="/api/v1", tags=["Bookings"])
app.include_router(rate_limits_router, prefix="/api/v1", tags=["Rate limits"])
