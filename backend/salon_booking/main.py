"""
FastAPI application
Salon booking scheduler
"""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.sessions import SessionMiddleware

from .admin import setup_admin
from .config import get_settings
from .database import engine, init_db
from .errors import BookingError
from .routes.appointments import router as appointments_router
from .routes.availability import router as availability_router

settings = get_settings()
logger = logging.getLogger(__name__)


def configure_logging(level: str = None):
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )


configure_logging()

app = FastAPI(
    title="Salon Booking API",
    description="Availability, free slots and appointments",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.DEBUG else [settings.SITE_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Session Middleware (admin panel login)
app.add_middleware(SessionMiddleware, secret_key=settings.SECRET_KEY)

app.include_router(appointments_router)
app.include_router(availability_router)

setup_admin(app, engine)


@app.on_event("startup")
def initialize_database() -> None:
    try:
        init_db()
    except SQLAlchemyError:
        logger.exception("Database initialization failed. Check DATABASE_URL.")


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error_type": exc.error_type}
    )


@app.get("/health")
def health_check():
    return {"status": "ok", "environment": settings.ENVIRONMENT}
