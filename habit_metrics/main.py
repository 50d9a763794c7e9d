from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy import text

from habit_metrics.db.base import get_db
from habit_metrics.core.config import settings
from habit_metrics.core.logging import configure_logging
from habit_metrics.routers import habits as habits_router
from habit_metrics.routers import entries as entries_router
from habit_metrics.routers import metrics as metrics_router
from habit_metrics.routers import insights as insights_router
from habit_metrics.services.recalculation import shutdown_executor
from habit_metrics.core.errors import (
    HabitMetricsException,
    habit_metrics_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

configure_logging(settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    shutdown_executor(wait=True)


app = FastAPI(
    title="Habit Metrics API",
    description=(
        "**Habit metrics and streak engine**\n\n"
        "Stores habit entries, recomputes cached metrics (streaks, goal progress, "
        "windowed averages, profile totals) in the background after every change, "
        "and gates prediction insights on data readiness.\n\n"
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(HabitMetricsException, habit_metrics_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(habits_router.router)
app.include_router(entries_router.router)
app.include_router(metrics_router.router)
app.include_router(insights_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable. Returns HTTP 503 if the DB is down.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except SQLAlchemyError:
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {"status": "ok", "db": "ok", "env": settings.APP_ENV}
