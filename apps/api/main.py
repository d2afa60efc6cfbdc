"""
Blog2Visuals Credits API - FastAPI Backend
Credit ledger, export debit and payment verification endpoints.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import payment_provider_configured, settings, validate_security_settings
from database import engine, Base
import models  # noqa: F401
from routers import health, accounts, credits, payments
from services.errors import BillingError

logging.basicConfig(
    level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting Blog2Visuals Credits API...")
    validate_security_settings()
    if not payment_provider_configured():
        logger.warning("Razorpay credentials not configured; checkout and verification will fail.")
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database schema verified.")
        except Exception as e:
            logger.warning("Database bootstrap skipped: %s", e)
    yield
    await engine.dispose()
    logger.info("Shutting down API...")


app = FastAPI(
    title="Blog2Visuals Credits API",
    description="Export credits, checkout orders and payment verification",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BillingError)
async def billing_error_handler(request: Request, exc: BillingError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(accounts.router, prefix="/accounts", tags=["Accounts"])
app.include_router(credits.router, prefix="/credits", tags=["Credits"])
app.include_router(payments.router, prefix="/payments", tags=["Payments"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Blog2Visuals Credits API",
        "version": "0.1.0",
        "status": "running"
    }
