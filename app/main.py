import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from app.api.responses import error
from app.api.routers import activities, admin, auth, files
from app.core.config import get_settings
from app.core.exceptions import ErrorCode, ServiceError
from app.core.logging_config import configure_logging
from app.core.rate_limit import limiter
from app.db.base import Base
from app.db.session import engine
from app.services.auth_service import ensure_admin_exists

settings = get_settings()

configure_logging()
logger = logging.getLogger(__name__)

docs_url = "/docs" if settings.enable_docs else None
redoc_url = "/redoc" if settings.enable_docs else None
openapi_url = "/openapi.json" if settings.enable_docs else None

app = FastAPI(title=settings.app_name, version="0.1.0", docs_url=docs_url, redoc_url=redoc_url, openapi_url=openapi_url)
app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)

app.include_router(auth.router)
app.include_router(files.router)
app.include_router(activities.router)
app.include_router(admin.router)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return error(exc.status_code, exc.code, exc.message, **exc.meta)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    logger.warning(f"Rate limit {exc.detail} exceeded by {request.client.host if request.client else 'unknown'} on {request.url.path}")
    return error(status.HTTP_429_TOO_MANY_REQUESTS, ErrorCode.RATE_LIMIT_EXCEEDED)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return error(status.HTTP_400_BAD_REQUEST, ErrorCode.VALIDATION_ERROR, "Validation failed", details=exc.errors())


@app.get("/health")
def health():
    return {"status": "ok"}


@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
    # Seed an admin for local/dev when configured
    from app.db.session import SessionLocal

    db = SessionLocal()
    try:
        ensure_admin_exists(db)
    finally:
        db.close()
    logger.info(f"{settings.app_name} started")
