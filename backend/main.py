"""
FastAPI Main Application
TheVideoPool Backend - subscription video pool for DJs and VJs
"""
import logging
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from core.config import settings
from core.database import init_db
from core.logging_config import setup_logging
from api import (
    auth,
    videos,
    categories,
    memberships,
    users,
    downloads,
    streaming,
    library,
    search,
    recommendations,
    email,
    analytics,
    admin,
    notifications,
    moderation,
    api_keys,
    bulk_upload,
)

setup_logging()
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Backend API for TheVideoPool: premium video loops, downloads and campaigns for DJs and VJs",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Startup event
@app.on_event("startup")
async def startup_event():
    """Initialize database on startup"""
    logger.info("🚀 Starting TheVideoPool API...")
    init_db()
    logger.info(f"✅ API running on {settings.API_URL}")


# Health check endpoint
@app.get("/")
async def root():
    return {
        "message": "Welcome to TheVideoPool API",
        "version": "1.0.0",
        "status": "healthy",
        "docs": f"{settings.API_URL}/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring"""
    return {"status": "ok", "service": "backend-api"}


# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(videos.router, prefix="/api/videos", tags=["Videos"])
app.include_router(categories.router, prefix="/api/categories", tags=["Categories"])
app.include_router(memberships.router, prefix="/api/memberships", tags=["Memberships"])
app.include_router(users.router, prefix="/api/user", tags=["User"])
app.include_router(downloads.router, prefix="/api/downloads", tags=["Downloads"])
app.include_router(streaming.router, prefix="/api", tags=["Secure Streaming"])
app.include_router(library.favorites_router, prefix="/api/favorites", tags=["Favorites"])
app.include_router(library.playlists_router, prefix="/api/playlists", tags=["Playlists"])
app.include_router(search.router, prefix="/api/search", tags=["Search"])
app.include_router(recommendations.router, prefix="/api/recommendations", tags=["Recommendations"])
app.include_router(email.admin_router, prefix="/api/admin/email", tags=["Email Marketing"])
app.include_router(email.public_router, prefix="/api/email", tags=["Email"])
app.include_router(analytics.router, prefix="/api/admin", tags=["Analytics"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])
app.include_router(notifications.ws_router)
app.include_router(moderation.router, prefix="/api/admin/moderation", tags=["Moderation"])
app.include_router(moderation.claims_router, prefix="/api/copyright", tags=["Copyright"])
app.include_router(api_keys.router, prefix="/api/keys", tags=["API Keys"])
app.include_router(api_keys.v1_router, prefix="/api/v1", tags=["Public API"])
app.include_router(bulk_upload.router, prefix="/api/admin/bulk-upload", tags=["Bulk Upload"])


# Validation errors are reported as 400 with one message per field
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part != "body"),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Validation error", "errors": errors},
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"❌ Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENV != "production",
        log_level=settings.LOG_LEVEL.lower(),
    )
