from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import time
import logging
from app.core.config import settings
from app.core.errors import HaamanException
from app.core.database import engine, Base, AsyncSessionLocal
from app.api import wallet, services, beneficiaries, referrals, profiles, store, webhooks, admin
from app.services.config_service import ConfigService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info(f"Starting {settings.app_name}...")

    try:
        # Import all models so they register on Base.metadata
        from .database_model import profile, transaction, beneficiary, admin_setting, store as store_models, referral_reward  # noqa: F401

        logger.info("Creating database tables...")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        async with AsyncSessionLocal() as db:
            await ConfigService(db).ensure_defaults()

        logger.info("Database tables created successfully")

    except Exception as e:
        logger.error(f"Failed to create database tables: {e}")
        raise

    yield

    logger.info(f"Shutting down {settings.app_name}...")
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description="Wallet, bill payment, store and referral backend for Haaman Network",
    version=settings.version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_HOSTS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request timing middleware
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time to response headers."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response


# Global exception handler
@app.exception_handler(HaamanException)
async def haaman_exception_handler(request: Request, exc: HaamanException):
    """Handle application exceptions."""
    body = {
        "error": exc.error_code,
        "message": exc.detail,
        "timestamp": time.time()
    }
    reference = getattr(exc, "reference", None)
    if reference:
        body["reference"] = reference
    return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "error": "INTERNAL_SERVER_ERROR",
            "message": "An internal server error occurred",
            "timestamp": time.time()
        }
    )


# Include API routers
app.include_router(wallet.router, prefix="/api/v1")
app.include_router(services.router, prefix="/api/v1")
app.include_router(beneficiaries.router, prefix="/api/v1")
app.include_router(referrals.router, prefix="/api/v1")
app.include_router(profiles.router, prefix="/api/v1")
app.include_router(store.router, prefix="/api/v1")
app.include_router(webhooks.router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "version": settings.version,
        "environment": settings.environment
    }


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.version,
        "docs_url": "/docs",
        "health_check": "/health",
        "api_prefix": "/api/v1"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True if settings.environment == "development" else False,
        log_level="info"
    )
