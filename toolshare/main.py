"""
ASGI application for the tool rental marketplace.
Run with ``uvicorn toolshare.main:app``.
"""

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
from pydantic import ValidationError as PydanticValidationError
import logging

from toolshare.config import settings
from toolshare.database import create_tables, test_database_connection, close_db_connection
from toolshare.routers import (
    auth_router,
    listings_router,
    reservations_router,
    messages_router,
    listing_review_router,
    user_review_router,
    users_router,
    search_router,
)
from toolshare.utils.exceptions import APIException
from toolshare.services.error_handler import ErrorHandlerService
from toolshare.middleware import RequestLoggingMiddleware

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Largest multipart body: a full set of photos plus form fields
MAX_REQUEST_SIZE = settings.max_image_size * settings.max_images_per_listing + 1024 * 1024


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Check the database on startup; create tables outside production."""
    logger.info(f"{settings.app_name} {settings.app_version} starting ({settings.environment})")

    if not await test_database_connection():
        logger.error("Database unreachable at startup")
    elif not settings.is_production:
        await create_tables()

    yield

    await close_db_connection()
    logger.info(f"{settings.app_name} stopped")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description=(
        "Peer-to-peer tool rental: listings with photos and tags, date-range "
        "reservations, polled buyer/seller messaging and rated reviews. "
        "Authenticate with `POST /auth/login` and send `Authorization: Bearer <token>`."
    ),
    openapi_tags=[
        {"name": "Authentication", "description": "Registration and token issuance"},
        {"name": "Users", "description": "Profiles and profile photos"},
        {"name": "Search", "description": "Keyword, category and tag search"},
        {"name": "Listings", "description": "Tool listings with photos and tags"},
        {"name": "Reservations", "description": "Booking listings for a date range"},
        {"name": "Messaging", "description": "Conversations and polled messages"},
        {"name": "Reviews", "description": "Listing and user reviews"},
        {"name": "Health", "description": "Liveness and database checks"},
    ],
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Processing-Time"],
)
app.add_middleware(
    RequestLoggingMiddleware,
    max_request_size=MAX_REQUEST_SIZE,
    enable_request_logging=settings.debug,
)

for router in (
    auth_router,
    listings_router,
    reservations_router,
    messages_router,
    listing_review_router,
    user_review_router,
    users_router,
    search_router,
):
    app.include_router(router, prefix=settings.api_prefix)

# Photos written by the local object store
app.mount("/media", StaticFiles(directory=settings.upload_dir, check_dir=False), name="media")


def _register(exc_class, handle):
    async def handler(request: Request, exc):
        return handle(exc, request)

    app.add_exception_handler(exc_class, handler)


_register(APIException, ErrorHandlerService.handle_api_exception)
_register(RequestValidationError, ErrorHandlerService.handle_validation_error)
_register(PydanticValidationError, ErrorHandlerService.handle_validation_error)
_register(SQLAlchemyError, ErrorHandlerService.handle_database_error)
# Starlette's class so unmatched routes get the same body shape
_register(StarletteHTTPException, ErrorHandlerService.handle_http_exception)
_register(Exception, ErrorHandlerService.handle_unexpected_error)


@app.get("/", tags=["Health"])
async def root():
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "status": "healthy",
        "api_prefix": settings.api_prefix,
        "docs": app.docs_url,
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Readiness check; 503 when the database does not answer."""
    if not await test_database_connection():
        raise HTTPException(status_code=503, detail="Database connection failed")
    return {"status": "healthy", "database": "connected", "version": settings.app_version}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "toolshare.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
