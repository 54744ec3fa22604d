import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError

from app.core.config import settings
from app.core.database import engine, health_check_db
from app.core.error_handlers import (
    general_exception_handler,
    integrity_exception_handler,
    validation_exception_handler,
)
from app.core.logging import setup_logging
from app.api.v1 import (
    auth_router,
    users_router,
    students_router,
    documents_router,
    teachers_router,
    batches_router,
    attendance_router,
    enrollment_router,
    payments_router,
    finance_router,
    prospects_router,
    notifications_router,
)

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.PROJECT_NAME} ({settings.ENVIRONMENT})")
    if settings.auth_disabled:
        logger.warning(f"Authentication disabled, acting as dev profile '{settings.DEV_PROFILE}'")
    yield
    engine.dispose()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    lifespan=lifespan,
)


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    logger.info(
        f"{request.method} {request.url.path} {response.status_code} - {process_time:.3f}s"
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)

app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(IntegrityError, integrity_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

api = settings.API_PREFIX

# Include Routers
app.include_router(auth_router, prefix=f"{api}/auth", tags=["Auth"])
app.include_router(users_router, prefix=f"{api}/users", tags=["Users"])
app.include_router(students_router, prefix=f"{api}/students", tags=["Students"])
app.include_router(documents_router, prefix=api, tags=["Documents"])
app.include_router(teachers_router, prefix=f"{api}/teachers", tags=["Teachers"])
app.include_router(batches_router, prefix=api, tags=["Batches"])
app.include_router(attendance_router, prefix=f"{api}/attendance", tags=["Attendance"])
app.include_router(enrollment_router, prefix=api, tags=["Enrollment"])
app.include_router(payments_router, prefix=f"{api}/payments", tags=["Payments"])
app.include_router(finance_router, prefix=f"{api}/finance", tags=["Finance"])
app.include_router(prospects_router, prefix=f"{api}/prospects", tags=["Prospects"])
app.include_router(
    notifications_router, prefix=f"{api}/notifications", tags=["Notifications"]
)


@app.get("/health")
def health() -> dict:
    db_ok = health_check_db()
    return {"status": "ok" if db_ok else "degraded", "database": db_ok}


@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.PROJECT_NAME}"}
