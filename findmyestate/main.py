"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from findmyestate.api.routes import admin, auth, favorites, health, properties
from findmyestate.core.config import settings
from findmyestate.core.errors import EstateError
from findmyestate.core.logging import setup_logging

setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle: scheduler management."""
    from findmyestate.services.scheduler import start_scheduler, stop_scheduler
    start_scheduler()
    yield
    stop_scheduler()


app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    lifespan=lifespan,
)

_cors_origins = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://localhost:8080",
]
if "*" in settings.allowed_origins_list:
    _cors_origins_final = ["*"]
else:
    _cors_origins_final = _cors_origins + [
        o for o in settings.allowed_origins_list if o not in _cors_origins
    ]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins_final,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


@app.exception_handler(EstateError)
async def estate_error_handler(request: Request, exc: EstateError) -> JSONResponse:
    """Render domain errors as {"detail": message, "errors": [...]}."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "errors": exc.errors},
    )


app.include_router(health.router)
app.include_router(auth.router, prefix="/api")
app.include_router(properties.router, prefix="/api")
app.include_router(favorites.router, prefix="/api")
app.include_router(admin.router, prefix="/api")

# Uploaded listing images / receipts, served at the URLs public_url() hands out
if settings.storage_public_base_url.startswith("/"):
    _storage_root = Path(settings.storage_dir)
    if not _storage_root.is_absolute():
        _storage_root = Path.cwd() / _storage_root
    _storage_root.mkdir(parents=True, exist_ok=True)
    app.mount(
        settings.storage_public_base_url.rstrip("/"),
        StaticFiles(directory=str(_storage_root)),
        name="storage",
    )


@app.get("/")
async def root() -> dict[str, str]:
    return {"name": settings.app_name, "status": "running"}
