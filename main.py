import logging

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config import get_settings
from core.exceptions import AppError
from db.collections import ensure_indexes
from db.connection import get_db
from services.accounts import seed_admin
from services.background_jobs import shutdown_scheduler, start_scheduler
from utils.logging import configure_logging

# Routers
from routers.admin_route import router as admin_router
from routers.auth_route import router as auth_router
from routers.book_route import router as book_router
from routers.case_route import router as case_router
from routers.chat_route import router as chat_router
from routers.content_route import router as content_router
from routers.note_route import router as note_router
from routers.payment_route import router as payment_router
from routers.subscription_route import router as subscription_router

settings = get_settings()

# Logging Configuration
configure_logging(settings.log_level)
logger = logging.getLogger("voice_of_law")


# Lifespan Events (Startup/Shutdown)
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting up {settings.app_name} ({settings.environment})...")
    db = get_db()
    await ensure_indexes(db)
    await seed_admin(db, settings.admin_email, settings.admin_password)
    if settings.enable_scheduler:
        start_scheduler(db)
    yield
    shutdown_scheduler()
    logger.info(f"Shutting down {settings.app_name}...")


# FastAPI App Setup
app = FastAPI(
    title=settings.app_name,
    description="Legal practice management and legal assistant API.",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=settings.docs_url,
    redoc_url=settings.redoc_url,
)

# Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


# Routers
api = settings.api_prefix
app.include_router(auth_router, prefix=f"{api}/auth", tags=["Authentication"])
app.include_router(subscription_router, prefix=f"{api}/subscription", tags=["Subscription"])
app.include_router(payment_router, prefix=f"{api}/pay", tags=["Payments"])
app.include_router(admin_router, prefix=f"{api}/admin", tags=["Admin"])
app.include_router(case_router, prefix=api)
app.include_router(note_router, prefix=f"{api}/standalone/notes", tags=["Notes"])
app.include_router(book_router, prefix=f"{api}/books", tags=["Books"])
app.include_router(content_router, prefix=api, tags=["Content"])
app.include_router(chat_router, prefix=f"{api}/chatbot")


# Health & Root Endpoints
@app.get("/health", tags=["System"], summary="Health Check")
async def health_check():
    """Check if the API is healthy and running."""
    return {"status": "ok"}


@app.get("/", tags=["Root"], summary="API Root")
async def root():
    """Welcome message and basic info."""
    return {"message": f"Welcome to {settings.app_name}"}
