"""
Campus Marketplace Backend API - Main Application
"""
import logging
import os
import sys
import traceback
import uuid
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from app.config import settings
from app.api.v1 import api_router
from app.core.exceptions import MarketplaceError
from app.core.rate_limit import limiter
from app.database import init_db

# Configure logging
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Peer-to-peer marketplace for university students",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    redirect_slashes=False
)

# Initialize rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(MarketplaceError)
async def marketplace_exception_handler(request: Request, exc: MarketplaceError):
    """Render service-layer errors with their status code and field detail"""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    """Render request body/query validation failures like service validation errors"""
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({"field": ".".join(loc) or "__root__", "message": err.get("msg", "Invalid value")})

    return JSONResponse(
        status_code=400,
        content={
            "detail": ", ".join(f"{e['field']}: {e['message']}" for e in errors) or "Invalid input",
            "type": "ValidationError",
            "errors": errors
        }
    )


# Global exception handler for unhandled exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler that:
    - In DEBUG mode: returns detailed error info for development
    - In PRODUCTION mode: returns generic error message, logs details server-side
    """
    # Generate a unique error ID for tracking
    error_id = str(uuid.uuid4())[:8]

    # Always log the full error on the server
    logger.error(
        f"[ERROR_ID: {error_id}] Unhandled exception on {request.method} {request.url.path}",
        exc_info=True
    )

    if settings.DEBUG:
        return JSONResponse(
            status_code=500,
            content={
                "detail": str(exc),
                "error_id": error_id,
                "type": type(exc).__name__,
                "path": str(request.url.path),
                "traceback": traceback.format_exc()
            }
        )
    else:
        return JSONResponse(
            status_code=500,
            content={
                "detail": "An internal server error occurred. Please try again later.",
                "error_id": error_id
            }
        )


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """Initialize database and scheduler on startup"""
    print("=" * 70)
    print("[STARTUP] Starting Campus Marketplace API...")
    print("=" * 70)

    # Start background scheduler
    from app.scheduler import start_scheduler
    start_scheduler()

    if not os.path.exists(".env"):
        print("[WARNING] No .env file found, using environment variables only")

    if settings.DATABASE_CLIENT == "sqlite":
        print(f"[DATABASE] sqlite:{settings.SQLITE_PATH}")
    else:
        print(f"[DATABASE] {settings.DATABASE_HOST}:{settings.DATABASE_PORT}/{settings.DATABASE_NAME}")
    print(f"[DEBUG] Debug mode: {settings.DEBUG}")
    print(f"[IMAGES] Image host: {settings.IMAGE_HOST_BASE_URL}")
    print(f"[EMAIL] SMTP enabled: {settings.SMTP_ENABLED}")

    # Initialize database tables
    try:
        init_db()
        print("[OK] Database initialized successfully")
    except Exception as e:
        print(f"[ERROR] Database initialization failed: {e}")
        sys.exit(1)

    print("=" * 70)
    print(f"[API] Running at: http://{settings.HOST}:{settings.PORT}")
    print(f"[DOCS] API Docs: http://{settings.HOST}:{settings.PORT}/docs")
    print(f"[DOCS] ReDoc: http://{settings.HOST}:{settings.PORT}/redoc")
    print("=" * 70)


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown"""
    print("[SHUTDOWN] Shutting down Campus Marketplace API...")

    # Stop background scheduler
    from app.scheduler import stop_scheduler
    stop_scheduler()

    from app.services.image_host_service import image_host_service
    await image_host_service.close()


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "campus-marketplace-api",
        "version": "1.0.0"
    }


# Include API routes
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "message": "Welcome to Campus Marketplace API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "features": [
            "University-scoped listings",
            "Buyer/seller messaging",
            "Offline transaction tracking",
            "Reviews and reputation",
            "In-app notifications"
        ]
    }


if __name__ == "__main__":
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="Campus Marketplace Backend API")
    parser.add_argument(
        "--no-reload",
        action="store_true",
        help="Disable auto-reload on file changes"
    )
    args = parser.parse_args()

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=not args.no_reload
    )
