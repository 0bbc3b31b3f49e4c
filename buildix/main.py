import logging
import os
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load env from buildix/.env before settings are read
package_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(package_dir, ".env"))

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from buildix.core.config import settings, validate_config
from buildix.core.database import create_all_tables
from buildix.core.logging import configure_logging
from buildix.core.middleware.request_id import RequestIdMiddleware
from buildix.core.errors import (
    AppError,
    UsageLimitError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
    usage_limit_handler,
)
from buildix.features.usage.bypass import configure_bypass
from buildix.api import admin, billing, exports, health, metrics, usage

configure_logging(settings.ENV)
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("buildix")
    logger.info("Starting Buildix usage service...")
    app.state.startup_time = time.time()
    configure_bypass(settings.bypass_identities())
    create_all_tables()
    try:
        yield
    finally:
        logger.info("Stopping Buildix usage service...")


app = FastAPI(title="Buildix - Usage & Plans", lifespan=lifespan)

app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(UsageLimitError, usage_limit_handler)
app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(usage.router)
app.include_router(exports.router)
app.include_router(billing.router)
app.include_router(admin.router)
app.include_router(admin.public_router)
app.include_router(health.root_router)
app.include_router(metrics.router)
