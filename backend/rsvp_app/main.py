"""FastAPI application entry point."""
import logging
import time
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from rsvp_app.config import settings
from rsvp_app.database import Base, SessionLocal, engine, session_scope
from rsvp_app.errors import DomainError, StorageError, ValidationError
from rsvp_app.routers import auth, events, rsvp
from rsvp_app.security import hash_password
from rsvp_app.services.mirror import AttendanceMirror

# Import all models so Base.metadata knows about them
from rsvp_app.models.user import User, UserRole    # noqa: F401
from rsvp_app.models.event import Event            # noqa: F401
from rsvp_app.models.rsvp import RSVP, GuestRSVP   # noqa: F401

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()

app = FastAPI(
    title="Event RSVP",
    description="Event planning and RSVP service with a git-backed attendance mirror",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(events.router, prefix="/api/events", tags=["Events"])
app.include_router(rsvp.router, prefix="/api/rsvp", tags=["RSVP"])


@app.exception_handler(DomainError)
def domain_error_handler(request: Request, exc: DomainError):
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg")}
        for err in exc.errors()
    ]
    error = ValidationError("Invalid request", details=jsonable_encoder(details))
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(SQLAlchemyError)
def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    error = StorageError()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def seed_admin() -> None:
    """Create the default administrator if it does not exist yet."""
    with session_scope() as db:
        if db.query(User).filter(User.username == settings.ADMIN_USERNAME).first():
            return
        db.add(User(
            username=settings.ADMIN_USERNAME,
            email=settings.ADMIN_EMAIL,
            password_hash=hash_password(settings.ADMIN_PASSWORD),
            role=UserRole.admin,
        ))
    logger.warning("Default admin user created (username: %s); change its password", settings.ADMIN_USERNAME)


@app.on_event("startup")
def on_startup():
    """Create tables (SQLite dev mode), seed the admin and start the mirror."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)
    try:
        seed_admin()
    except SQLAlchemyError:
        logger.exception("Could not seed the default admin user")
    app.state.mirror = AttendanceMirror.from_settings(settings, SessionLocal)
    logger.info("Environment: %s, mirror repository: %s", settings.ENVIRONMENT, app.state.mirror.repo_path)


@app.on_event("shutdown")
def on_shutdown():
    mirror = getattr(app.state, "mirror", None)
    if mirror is not None:
        mirror.shutdown()


@app.get("/api/health")
def health_check():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.ENVIRONMENT,
        "uptime": round(time.monotonic() - STARTED_AT, 3),
    }
