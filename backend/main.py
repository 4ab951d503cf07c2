from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn
import logging
from contextlib import asynccontextmanager

from biometric_attendance.core.config import settings
from biometric_attendance.core.database import init_db
from biometric_attendance.api.v1 import devices
from biometric_attendance.tasks import DeviceSyncScheduler

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Initialize database
    await init_db()

    scheduler = None
    if settings.AUTO_SYNC_ENABLED:
        scheduler = DeviceSyncScheduler()
        await scheduler.start()

    yield

    if scheduler:
        await scheduler.stop()


app = FastAPI(
    title="Biometric Attendance Ingestion API",
    description="Device attendance ingestion and reconciliation",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=[
        "authorization", "content-type",
        "x-device-id", "x-device-secret", "x-nonce", "x-timestamp",
    ],
)

# Include API routers
app.include_router(devices.router, prefix="/api/v1/devices", tags=["devices"])


@app.get("/")
async def root():
    return {"message": "Biometric Attendance Ingestion API", "status": "running"}


@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": "1.0.0"}


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "status_code": exc.status_code}
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    logger.error(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "status_code": 500}
    )


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info" if not settings.DEBUG else "debug"
    )
