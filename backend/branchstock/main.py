"""
BranchStock - Main FastAPI Application
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from branchstock.config import settings
from branchstock.database import create_tables
from branchstock.exceptions import BranchStockError

logger = logging.getLogger(__name__)

logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logging.getLogger("branchstock").setLevel(settings.LOG_LEVEL.upper())

API_PREFIX = "/api/inventory"

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Multi-branch inventory: stock ledger, purchases, transfers and stock requests",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BranchStockError)
async def branchstock_error_handler(request: Request, exc: BranchStockError):
    if exc.http_status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if exc.http_status == 401 else None
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict(), headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and query params use the same envelope as domain validation errors."""
    errors = [
        {"field": ".".join(str(part) for part in err.get("loc", ())), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "code": "VALIDATION_ERROR",
            "message": errors[0]["message"] if errors else "Invalid request",
            "details": {"errors": errors},
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "code": "INTERNAL_ERROR", "message": "Internal server error", "details": {}},
    )


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "version": settings.APP_VERSION}


@app.on_event("startup")
def ensure_schema():
    """Create missing tables so a fresh database is usable straight away."""
    try:
        create_tables()
    except Exception as e:
        logger.exception("Schema creation failed: %s", e)


# Import and include routers
from branchstock.api import (  # noqa: E402
    adjustments_router,
    directory_router,
    movements_router,
    purchases_router,
    requests_router,
    stock_router,
    transfers_router,
)

app.include_router(purchases_router, prefix=API_PREFIX, tags=["Purchases"])
app.include_router(transfers_router, prefix=API_PREFIX, tags=["Transfers"])
app.include_router(requests_router, prefix=API_PREFIX, tags=["Stock Requests"])
app.include_router(movements_router, prefix=API_PREFIX, tags=["Stock Movements"])
app.include_router(adjustments_router, prefix=API_PREFIX, tags=["Adjustments"])
app.include_router(stock_router, prefix=API_PREFIX, tags=["Stock"])
app.include_router(directory_router, prefix=API_PREFIX, tags=["Branches & Suppliers"])
