"""
Civic Console - FastAPI Application Entry Point

Backend for the municipal admin/supervisor console: administrators start
work on citizen reports, supervisors assign workers and complete them, and
completion can be gated by an image classifier.

DESIGN PRINCIPLES:
- Roles come from explicit role records, never from defaults
- Every transition is checked against one state machine
- Mutations answer with the stored record, not a guess
- Notifications and audit logs never block a transition
"""

import logging
import sys
import traceback
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from civic_console.core.errors import ConsoleError
from civic_console.core.settings import settings
from civic_console.config.firebase import initialize_firestore
from civic_console.routes import admin, auth, health, reports, supervisor


logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Admin and supervisor console API for citizen issue reports",
    debug=settings.DEBUG
)


@app.exception_handler(ConsoleError)
async def console_error_handler(request: Request, exc: ConsoleError):
    """Expected failures carry their own status code and a user-facing message."""
    logger.warning(f"{request.method} {request.url.path} → {exc.status_code} {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Global exception handler to catch ALL exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch all unhandled exceptions and log them with full traceback."""
    sys.stderr.write("=" * 80 + "\n")
    sys.stderr.write("🔥 GLOBAL EXCEPTION HANDLER CAUGHT EXCEPTION\n")
    sys.stderr.write(f"Path: {request.url.path}\n")
    sys.stderr.write(f"Method: {request.method}\n")
    sys.stderr.write("=" * 80 + "\n")
    sys.stderr.write(traceback.format_exc())
    sys.stderr.write("=" * 80 + "\n")
    sys.stderr.flush()

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"Internal server error: {str(exc)}", "error": "backend_error"}
    )


# Pydantic validation error handler
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Catch request validation errors and log them."""
    logger.warning(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_encoder(exc.errors()), "error": "validation_failed"}
    )


# CORS configuration - origins come from settings, never "*"
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Application lifecycle events
@app.on_event("startup")
async def startup_event():
    """
    Initialize services on application startup.
    Currently: Firebase Admin + Firestore connection
    """
    print(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    print(f"   ML-gated resolution: {settings.ML_GATED_RESOLUTION}")
    print(f"   Role failure policy: {settings.ROLE_FAILURE_POLICY}")

    try:
        initialize_firestore()
    except Exception as e:
        print(f"Warning: Firestore initialization failed: {e}")
        print("   The app will start but database operations may fail.")


@app.on_event("shutdown")
async def shutdown_event():
    """
    Cleanup on application shutdown.
    """
    print(f"Shutting down {settings.APP_NAME}")


# Include routers
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(admin.router)
app.include_router(supervisor.router)
app.include_router(reports.router)


# Root endpoint
@app.get("/")
async def root():
    """
    Root endpoint - API information.
    """
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "health": "/health",
    }
