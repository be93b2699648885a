# app/main.py
"""
FastAPI application entry point.
Includes request timing, domain + global error handlers, and all routers.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from app.routers import rfid, devices, api_keys, health
from app.database import create_tables
from app.config import settings
from app.services.rate_limiter import ScanRateLimiter
from app.utils.exceptions import RFIDTrackingError
from app.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="TagSakay RFID Terminal API",
    description="Device-authenticated RFID scan ingestion with entry/exit inference.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# One limiter per application instance; tests reset it between runs
app.state.scan_rate_limiter = ScanRateLimiter()

# ── CORS (admin dashboard runs on another origin) ───────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Domain Error Handler ─────────────────────────────────────────────────────
@app.exception_handler(RFIDTrackingError)
async def domain_exception_handler(request: Request, exc: RFIDTrackingError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message},
        headers=getattr(exc, "headers", None),
    )


# ── Global Exception Handler ─────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(rfid.router,     prefix="/api", tags=["RFID"])
app.include_router(devices.router,  prefix="/api", tags=["Devices"])
app.include_router(api_keys.router, prefix="/api", tags=["API Keys"])
app.include_router(health.router,   prefix="/api", tags=["Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 TagSakay backend starting up...")
    create_tables()
    logger.info("✅ Database tables ready")
    logger.info(f"🌐 Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 TagSakay backend shutting down...")
