import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from meddelivery.config import settings
from meddelivery.db import Database
from meddelivery.directory import (
    PatientDirectory,
    PostgresPatientDirectory,
    PostgresUserDirectory,
    UserDirectory,
)
from meddelivery.errors import (
    ConcurrentModification,
    CreationNotAllowed,
    DeliveryError,
    InvalidAssignment,
    InvalidDistance,
    InvalidTransition,
    NotFound,
    UnknownStatus,
)
from meddelivery.metrics import get_metrics_bytes, get_metrics_content_type
from meddelivery.orchestrator import OrderLifecycle
from meddelivery.routes import fees, orders

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)

# Checked in order: UnknownStatus before its base InvalidTransition.
# NotFound covers orders, users and patients
ERROR_STATUS: list[tuple[type[DeliveryError], int]] = [
    (NotFound, 404),
    (UnknownStatus, 422),
    (InvalidTransition, 409),
    (ConcurrentModification, 409),
    (InvalidAssignment, 422),
    (InvalidDistance, 422),
    (CreationNotAllowed, 403),
]


def status_for(exc: DeliveryError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 400


async def delivery_error_handler(request: Request, exc: DeliveryError) -> JSONResponse:
    return JSONResponse(
        status_code=status_for(exc),
        content={"error": exc.code, "detail": str(exc)},
    )


def create_app(
    database: Database | None = None,
    users: UserDirectory | None = None,
    patients: PatientDirectory | None = None,
) -> FastAPI:
    """
    Without a database the app connects to settings.database_url on startup and owns
    the pool; a database passed in is left open on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = database or await Database.connect()
        app.state.lifecycle = OrderLifecycle(
            db,
            users or PostgresUserDirectory(db.pool),
            patients or PostgresPatientDirectory(db.pool),
        )
        yield
        if database is None:
            await db.close()
            logger.info("Database pool closed.")

    app = FastAPI(title="Medication Delivery", lifespan=lifespan)
    app.add_exception_handler(DeliveryError, delivery_error_handler)
    app.include_router(orders.router)
    app.include_router(fees.router)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.get("/metrics")
    async def metrics() -> Response:
        """Prometheus scrape endpoint: order creations, transitions, rejections, fees."""
        return Response(
            content=get_metrics_bytes(),
            media_type=get_metrics_content_type(),
        )

    return app


app = create_app()
