"""
Ledgerbook Backend: customer receivables for a small trading business.

ARCHITECTURE:
- FastAPI routers: thin HTTP layer, translate domain errors
- Services: business rules (invoices, payments, FIFO allocation, ledger)
- SQLite/PostgreSQL via SQLAlchemy: source of truth for all state

MONEY MODEL:
- Every money movement posts a ledger entry for the customer
- Stored running balances are recomputed after every change
- Opening balances are paid down through payment applications, never edited
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from ledgerbook.api.routes import (
    customers,
    discounts,
    invoices,
    ledger,
    payments,
    products,
    reports,
    search,
)
from ledgerbook.api.routes import settings as settings_routes
from ledgerbook.core.config import settings
from ledgerbook.core.exceptions import BusinessError
from ledgerbook.db.init_db import init_db

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and the company settings row on startup."""
    logger.info("[*] Initializing database...")
    init_db()
    logger.info("[OK] Database initialized")
    yield
    logger.info("[*] Shutting down")


app = FastAPI(
    title="Ledgerbook API",
    description="Customers, invoices, payments and the running customer ledger.",
    version="0.1.0",
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# SECURITY: Restrict CORS to specific methods and headers (not wildcards)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Accept",
        "Origin",
    ],
    max_age=600,
    expose_headers=["Content-Type"],
)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    error = BusinessError.server_error(exc)
    return JSONResponse(status_code=error.status_code, content={"detail": error.detail})


@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


app.include_router(customers.router, prefix="/customers", tags=["customers"])
app.include_router(invoices.router, prefix="/invoices", tags=["invoices"])
app.include_router(payments.router, prefix="/payments", tags=["payments"])
app.include_router(discounts.router, prefix="/discounts", tags=["discounts"])
app.include_router(ledger.router, prefix="/ledger", tags=["ledger"])
app.include_router(reports.router, prefix="/reports", tags=["reports"])
app.include_router(search.router, prefix="/search", tags=["search"])
app.include_router(products.router, prefix="/products", tags=["products"])
app.include_router(settings_routes.router, prefix="/settings", tags=["settings"])


@app.get("/health")
def health():
    return {"status": "ok", "environment": settings.ENVIRONMENT}
