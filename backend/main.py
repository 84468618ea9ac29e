from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from sqlalchemy import text
import logging
from api import engagement, notifications, photos, profiles, realtime, social, user
from middleware.security import SecurityHeadersMiddleware, RequestLoggingMiddleware
from services.config import app_config
from services.db import SessionLocal, engine
from services.errors import SocialError, UpstreamUnavailableError
from services.security import security_config, SecurityUtils

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: log the active configuration, release the pool on shutdown."""
    logger.info("Starting Photo Social API")
    logger.info(f"  - Storage backend: {app_config.storage_backend}")
    logger.info(f"  - Hotness scorer: {app_config.hotness_scorer}")
    logger.info(f"  - Feed page size: {app_config.feed_default_page_size} (max {app_config.feed_max_page_size})")
    logger.info(f"  - Security headers: {security_config.enable_security_headers}")
    logger.info(f"  - JWT algorithm: {security_config.jwt_algorithm}")

    yield

    await engine.dispose()
    logger.info("Photo Social API shutdown complete")

app = FastAPI(
    title="Photo Social API",
    description="Photo sharing with feeds, friends, follows, ratings and comments",
    version=APP_VERSION,
    lifespan=lifespan
)

# Order matters - last added is executed first
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)

# Include API routers
app.include_router(user.router, prefix="/api/users", tags=["users"])
app.include_router(profiles.router, prefix="/api/profiles", tags=["profiles"])
app.include_router(photos.router, prefix="/api", tags=["photos"])
app.include_router(engagement.router, prefix="/api", tags=["engagement"])
app.include_router(social.router, prefix="/api", tags=["social"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["notifications"])
app.include_router(realtime.router, prefix="/api/realtime", tags=["realtime"])

if app_config.storage_backend == "local":
    app.mount(app_config.media_base_url, StaticFiles(directory=app_config.storage_path, check_dir=False),
              name="media")

def _now() -> str:
    return datetime.now(timezone.utc).isoformat()

@app.get("/")
def root():
    """Root endpoint with basic application information."""
    return {
        "message": "Photo Social API",
        "version": APP_VERSION,
        "docs": "/docs",
        "status": "operational"
    }

@app.get("/health")
def health_check():
    """Health check endpoint for load balancers and monitoring."""
    return {
        "status": "healthy",
        "timestamp": _now(),
        "version": APP_VERSION,
        "config": {
            "storage_backend": app_config.storage_backend,
            "hotness_scorer": app_config.hotness_scorer,
            "security_headers": security_config.enable_security_headers
        }
    }

@app.get("/health/ready")
async def readiness_check():
    """Readiness probe: the relational store must answer."""
    try:
        async with SessionLocal() as db:
            await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "not_ready",
                "timestamp": _now(),
                "error": "Database connection failed"
            }
        )
    return {
        "status": "ready",
        "timestamp": _now(),
        "checks": {"database": "healthy"}
    }

@app.get("/health/live")
def liveness_check():
    """Liveness probe for container orchestration."""
    return {
        "status": "alive",
        "timestamp": _now()
    }

@app.exception_handler(SocialError)
async def social_error_handler(request: Request, exc: SocialError):
    """Translate domain errors into responses the client can tell apart by ``code``."""
    headers = {}
    if exc.status_code == 401:
        headers["WWW-Authenticate"] = "Bearer"
    if isinstance(exc, UpstreamUnavailableError):
        headers["Retry-After"] = str(exc.retry_after)

    if exc.status_code in (401, 403):
        SecurityUtils.log_security_event(
            exc.code,
            {
                "path": request.url.path,
                "method": request.method,
                "message": exc.message
            },
            client_ip=SecurityUtils.get_client_ip(request)
        )

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "code": exc.code},
        headers=headers
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors with security logging."""
    errors = [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    SecurityUtils.log_security_event(
        "request_validation_error",
        {
            "path": request.url.path,
            "method": request.method,
            "errors": errors
        },
        client_ip=SecurityUtils.get_client_ip(request)
    )

    return JSONResponse(
        status_code=422,
        content={"error": "Invalid request format", "code": "invalid_input", "details": errors}
    )

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions with security logging."""
    if exc.status_code in [400, 401, 403]:
        SecurityUtils.log_security_event(
            "http_exception",
            {
                "status_code": exc.status_code,
                "path": request.url.path,
                "method": request.method
            },
            client_ip=SecurityUtils.get_client_ip(request)
        )

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail if hasattr(exc, 'detail') else "Request failed"},
        headers=getattr(exc, "headers", None)
    )
