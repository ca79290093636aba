"""
Storehub - Main FastAPI Application

Single entry point for the admin console API, the public loyalty
endpoints and the marketplace OAuth callbacks.
Deployed as one Vercel serverless function.
"""
import sys
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Vercel runs this file from api/, the package lives one level up
_base_path = Path(__file__).parent.parent
if str(_base_path) not in sys.path:
    sys.path.insert(0, str(_base_path))

from storehub.config import get_app_url
from storehub.errors import ERROR_INVALID_REQUEST, StorehubError, http_error_from
from storehub.logging import get_logger
from storehub.routers import (
    facebook_callback_router,
    facebook_router,
    loyalty_router,
    shopee_callback_router,
    shopee_router,
    tiktok_callback_router,
    tiktok_router,
)
from storehub.routers.deps import shutdown_services
from storehub.services.database import close_database, init_database

logger = get_logger(__name__)


# ==================== FASTAPI APP ====================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    # Startup
    try:
        await init_database()
    except ValueError as e:
        logger.error("Database not initialized: %s", e)
    yield
    # Shutdown
    await shutdown_services()
    await close_database()


app = FastAPI(
    title="Storehub",
    description="Shop admin console API: marketplace connections, orders and loyalty",
    version="1.0.0",
    lifespan=lifespan,
)

# Admin console and customer shop are served from APP_URL
app.add_middleware(
    CORSMiddleware,
    allow_origins=[get_app_url()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed input is a 400 naming the offending fields."""
    fields = [
        {"field": ".".join(str(part) for part in err["loc"] if part != "body"), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": ERROR_INVALID_REQUEST, "errors": fields})


@app.exception_handler(StorehubError)
async def storehub_exception_handler(request: Request, exc: StorehubError):
    error = http_error_from(exc)
    if error.status_code >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, error.detail)
    return JSONResponse(status_code=error.status_code, content={"detail": error.detail})


app.include_router(shopee_router)
app.include_router(shopee_callback_router)
app.include_router(tiktok_router)
app.include_router(tiktok_callback_router)
app.include_router(facebook_router)
app.include_router(facebook_callback_router)
app.include_router(loyalty_router)


@app.get("/api/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok", "service": "storehub"}
