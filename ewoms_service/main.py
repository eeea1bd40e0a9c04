"""
e-woms backend service - admin panel and front-end user API
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
import logging
import os
import sys

from .cache import close_redis
from .config import settings
from .db import init_db
from .errors import register_exception_handlers
from .middleware.jwt_middleware import JWTMiddleware
from .routes import admin_rbac, admin_system, admin_user, backend_user, health, ip_manage, support, upload


def setup_logging() -> None:
    handlers = [logging.StreamHandler(sys.stdout)]
    file_error = None
    try:
        os.makedirs(settings.LOG_DIR, exist_ok=True)
        handlers.append(logging.FileHandler(os.path.join(settings.LOG_DIR, "app.log"), encoding="utf-8"))
    except OSError as e:
        file_error = e

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s:%(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
    )
    if file_error:
        logging.getLogger(__name__).warning("[Logging] file logging disabled: %s", file_error)


setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Create tables and seed data on startup, release Redis on shutdown"""
    init_db()
    logger.info("%s %s started, run mode %s", settings.APP_NAME, settings.APP_VERSION, settings.RUN_MODE)
    yield
    close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    description="Admin panel and front-end user API",
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/swagger" if settings.is_dev_mode else None,
    redoc_url=None,
    openapi_url="/openapi.json" if settings.is_dev_mode else None,
)

# Added first so it runs inside CORS
app.add_middleware(JWTMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["Authorization", "Content-Length"],
)

register_exception_handlers(app)

app.include_router(admin_user.router)
app.include_router(admin_rbac.router)
app.include_router(admin_system.router)
app.include_router(backend_user.router)
app.include_router(support.router)
app.include_router(upload.router)
app.include_router(ip_manage.router)
app.include_router(health.router)

os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
app.mount("/static/upload", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
    }
