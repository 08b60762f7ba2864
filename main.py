# Essential imports
import time
from fastapi import FastAPI, Request, status, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from routers import auth, orders
from contextlib import asynccontextmanager

# Import all models so every table is registered on Base.metadata
import models

# Rate limiter imports
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from middleware.rate_limiter import limiter

# Logging imports
from core.logging_config import setup_logging
from middleware import RequestIDMiddleware, get_request_id
from core.config import settings
from core.database import ConnectionPool
from core.exceptions import AppError, ConnectError, PoolExhaustedError
from utils.logger import get_logger

# CORS imports
from fastapi.middleware.cors import CORSMiddleware

# Initialize logging
setup_logging(
    log_level=settings.LOG_LEVEL,
    log_dir=settings.LOG_DIR
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    pool = ConnectionPool.from_settings(settings)

    # Fail fast: an unreachable store is a fatal startup error, not a retry target
    try:
        pool.verify()
        pool.create_schema()
    except ConnectError as exc:
        logger.critical(
            "Database connection failed",
            extra={"event": "startup", "error": exc.message}
        )
        pool.dispose()
        raise SystemExit(1)

    app.state.pool = pool
    logger.info("Application startup complete", extra={"event": "startup", "pool_size": pool.size})
    yield
    pool.dispose()
    logger.info("Application shutting down", extra={"event": "shutdown"})


app = FastAPI(
    title="E-Commerce API",
    description="Backend API for e-commerce order placement",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# HTTP Request Logging Middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every HTTP request with method, path, status code and duration.
    """
    start_time = time.time()

    response = await call_next(request)

    duration = (time.time() - start_time) * 1000
    client_ip = request.client.host if request.client else "unknown"

    logger.info(
        f'{client_ip} - "{request.method} {request.url.path} HTTP/1.1" {response.status_code}',
        extra={
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(duration, 2),
            "client_ip": client_ip
        }
    )

    return response


# Added last so it wraps the logging middleware and every record carries the ID
app.add_middleware(RequestIDMiddleware)


# Health check
@app.get("/health")
async def health_check():
    logger.debug("Health check requested")
    return {"status": "Healthy"}


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """
    Map core failures to their status class. This is the only place an
    AppError becomes an HTTP response.
    """
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        exc.message,
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": exc.error_type,
            "status_code": exc.status_code,
            "request_id": get_request_id(request)
        }
    )

    headers = None
    if isinstance(exc, PoolExhaustedError):
        headers = {"Retry-After": str(exc.retry_after)}

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error_type": exc.error_type, **exc.extra()},
        headers=headers
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Log unhandled exceptions with their stack trace and return a generic 500
    without exposing internals.
    """
    if isinstance(exc, (HTTPException, RequestValidationError)):
        raise exc

    logger.error(
        f"Unhandled exception: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "request_id": get_request_id(request)
        },
        exc_info=True
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )


# Including routers
app.include_router(auth.router)
app.include_router(orders.router)


# Add rate limiter to the app
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
