"""
FastAPI entrypoint for the CrowdQR backend application.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from crowdqr.core.config import settings
from crowdqr.core.exceptions import DomainError, ErrorCode, StoreUnavailableError
from crowdqr.core.utils import format_error
from crowdqr.api.router import api_router
from crowdqr.db.session import init_db
from crowdqr.services.broadcast_service import EventBroadcaster

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )
    init_db()
    app.state.broadcaster = EventBroadcaster()
    logger.info(f"{settings.APP_NAME} started")
    yield
    app.state.broadcaster.close()
    logger.info(f"{settings.APP_NAME} stopped")


app = FastAPI(
    title="CrowdQR API",
    description="Backend API for live song requests and voting",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    return JSONResponse(
        status_code=exc.status_code,
        content=format_error(exc.message, {"code": exc.code.value})
    )


@app.exception_handler(OperationalError)
async def store_unavailable_handler(request: Request, exc: OperationalError):
    logger.error(f"Database unavailable while handling {request.url.path}: {exc}")
    error = StoreUnavailableError()
    return JSONResponse(
        status_code=error.status_code,
        content=format_error(error.message, {"code": ErrorCode.STORE_UNAVAILABLE.value})
    )


# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"message": "CrowdQR API is running"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("crowdqr.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
