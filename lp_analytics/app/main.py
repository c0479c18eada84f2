from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from lp_analytics.core.config import settings
from lp_analytics.core.errors import LPAnalyticsError
from lp_analytics.core.logging_config import setup_logging
from lp_analytics.app.api.v1 import user
from lp_analytics.app.api.v1.user import close_user_data_service

# Setup logging
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info("Starting LP Analytics API")
    yield
    logger.info("Shutting down LP Analytics API")
    await close_user_data_service()

app = FastAPI(
    title="LP Analytics API",
    description="Liquidity provider returns and liquidity history",
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LPAnalyticsError)
async def lp_analytics_exception_handler(request: Request, exc: LPAnalyticsError):
    logger.error(f"Error on {request.url.path}: {exc.details}")
    return JSONResponse(
        status_code=503,
        content=exc.to_response(include_details=not settings.is_production).model_dump(mode="json"),
    )


# Routes
app.include_router(user.router, prefix="/api/v1", tags=["user"])

@app.get("/")
async def root():
    return {
        "status": "operational",
        "service": "LP Analytics API",
        "version": "0.1.0"
    }

@app.get("/health")
async def health():
    return {"status": "healthy"}
