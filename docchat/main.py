# docchat/main.py
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
import time
import uuid

from docchat.api.auth import TOKEN_OWNERS
from docchat.api import routes
from docchat.api.routes import router
from docchat.config import LOG_LEVEL, QDRANT_URL
from docchat.errors import DocChatError, INTERNAL_ERROR_MESSAGE
from docchat.observability.logger import setup_logging, get_logger
from docchat.observability.metrics import metrics_tracker
from docchat.observability.posthog_client import posthog_client

# Initialize logging FIRST
setup_logging(log_level=LOG_LEVEL)
logger = get_logger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="DocChat API",
    description="Owner-scoped document chat with retrieval-augmented answers",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def error_response(status_code: int, message: str, request_id: str) -> JSONResponse:

    return JSONResponse(
        status_code=status_code,
        content={"error": message},
        headers={"X-Request-ID": request_id},
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every request with latency and record request metrics.
    """

    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    logger.info(
        "request_started",
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None
        }
    )

    start_time = time.time()

    try:

        response = await call_next(request)

    except Exception as e:

        latency = time.time() - start_time

        metrics_tracker.record_failure()

        logger.error(
            "request_failed",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "latency_seconds": round(latency, 3),
                "error": str(e),
                "error_type": type(e).__name__
            },
            exc_info=True
        )

        raise

    latency = time.time() - start_time

    if response.status_code >= 500:
        metrics_tracker.record_failure()
    else:
        metrics_tracker.record_success(latency)

    response.headers["X-Request-ID"] = request_id

    logger.info(
        "request_completed",
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "latency_seconds": round(latency, 3)
        }
    )

    return response


# Include API routes
app.include_router(router)


@app.on_event("startup")
async def startup_event():

    routes.document_registry.load()

    logger.info(
        "application_startup",
        extra={"version": "1.0.0", "qdrant_url": QDRANT_URL}
    )

    if not TOKEN_OWNERS:

        logger.warning(
            "no_api_tokens",
            extra={
                "warning_detail":
                "API_TOKENS not set. Every authenticated route will return 401."
            }
        )


@app.on_event("shutdown")
async def shutdown_event():

    posthog_client.shutdown()

    logger.info("application_shutdown")


# ============================================================
# ERROR HANDLERS
# ============================================================

@app.exception_handler(DocChatError)
async def docchat_exception_handler(request: Request, exc: DocChatError):

    request_id = getattr(request.state, "request_id", "unknown")

    log = logger.warning if exc.status_code < 500 else logger.error

    log(
        "request_error",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "status_code": exc.status_code,
            "error": str(exc),
            "error_type": type(exc).__name__
        }
    )

    if exc.status_code >= 500:
        posthog_client.track_error(
            distinct_id=getattr(request.state, "owner_id", request_id),
            error_type=type(exc).__name__,
            error_message=exc.message,
            endpoint=request.url.path,
        )

    return error_response(exc.status_code, exc.public_message, request_id)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):

    request_id = getattr(request.state, "request_id", "unknown")

    logger.warning(
        "request_invalid",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "errors": exc.errors(),
        }
    )

    return error_response(
        status.HTTP_400_BAD_REQUEST,
        "Invalid request body",
        request_id,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):

    request_id = getattr(request.state, "request_id", "unknown")

    return error_response(exc.status_code, str(exc.detail), request_id)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):

    request_id = getattr(request.state, "request_id", "unknown")

    logger.error(
        "unhandled_exception",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "error": str(exc),
            "error_type": type(exc).__name__
        },
        exc_info=True
    )

    posthog_client.track_error(
        distinct_id=getattr(request.state, "owner_id", request_id),
        error_type=type(exc).__name__,
        error_message=str(exc),
        endpoint=request.url.path,
    )

    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        INTERNAL_ERROR_MESSAGE,
        request_id,
    )


@app.get("/")
async def root():

    return {
        "message": "DocChat API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "metrics": "/metrics"
    }
