# Internal API responsible for saving device registrations to the database.
# Not exposed to external traffic — only the Statistics API calls this service.
# It is the only writer of the device_registrations table.

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import psycopg2.errors
import uvicorn
from fastapi import FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shared_models.database import get_db_connection, init_schema
from shared_models.device_types import VALID_DEVICE_TYPES
from shared_models.entities import REGISTRATION_COLUMNS, DeviceRegistration
from shared_models.logging_config import configure_logging
from shared_models.schemas import RegistrationPayload, RegistrationResponse

configure_logging()
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration — all values come from environment variables, never hardcoded
# ---------------------------------------------------------------------------

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8081"))

# Create the table and indexes on startup (local runs without an init script)
DB_INIT_SCHEMA = os.getenv("DB_INIT_SCHEMA", "false").lower() in ("1", "true", "yes")

INTERNAL_SERVICE_HEADER = "X-Internal-Service"

# ---------------------------------------------------------------------------
# App initialization
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    if DB_INIT_SCHEMA:
        init_schema()
    yield


# Create the FastAPI app with metadata shown in the auto-generated /docs page
app = FastAPI(
    title="Device Registration API",
    description="Internal API for registering devices in the database",
    version="1.0.0",
    lifespan=lifespan
)

# ---------------------------------------------------------------------------
# Request model (Pydantic validates incoming JSON automatically)
# ---------------------------------------------------------------------------


class RegisterRequest(RegistrationPayload):
    """Body expected by POST /Device/register"""


def bad_request():
    return JSONResponse(
        status_code=400,
        content=RegistrationResponse.bad_request().model_dump()
    )


def internal_error():
    return JSONResponse(
        status_code=500,
        content=RegistrationResponse.internal_error().model_dump()
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Wrong types, missing body or malformed JSON get the same 400 as bad input
    logger.warning("Rejected malformed registration request")
    return bad_request()

# ---------------------------------------------------------------------------
# Upsert
# ---------------------------------------------------------------------------


def find_registration(cursor, user_key, device_type) -> Optional[DeviceRegistration]:
    """Locks the existing row for this pair, if any, until commit."""
    cursor.execute(
        f"SELECT {REGISTRATION_COLUMNS} FROM device_registrations "
        "WHERE user_key = %s AND device_type = %s FOR UPDATE",
        (user_key, device_type)
    )
    row = cursor.fetchone()
    return DeviceRegistration.from_row(row) if row else None


def touch_registration(cursor, registration: DeviceRegistration) -> DeviceRegistration:
    # created_at is never written here; updated_at never goes below it
    cursor.execute(
        "UPDATE device_registrations SET updated_at = GREATEST(now(), created_at) "
        f"WHERE id = %s RETURNING {REGISTRATION_COLUMNS}",
        (registration.id,)
    )
    return DeviceRegistration.from_row(cursor.fetchone())


def insert_registration(cursor, user_key, device_type) -> DeviceRegistration:
    # id, created_at and updated_at come from the column defaults
    cursor.execute(
        "INSERT INTO device_registrations (user_key, device_type) "
        f"VALUES (%s, %s) RETURNING {REGISTRATION_COLUMNS}",
        (user_key, device_type)
    )
    return DeviceRegistration.from_row(cursor.fetchone())


def upsert_registration(conn, user_key, device_type):
    """
    Inserts the (user_key, device_type) pair or refreshes its updated_at.
    Runs inside the caller's transaction; the caller commits or rolls back.

    Returns:
        (registration, created) — created is False when an existing row was touched
    """
    cursor = conn.cursor()

    existing = find_registration(cursor, user_key, device_type)
    if existing:
        logger.debug("Updating existing registration for user and device type")
        return touch_registration(cursor, existing), False

    logger.debug("Creating new registration for user and device type")
    return insert_registration(cursor, user_key, device_type), True

# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/health")
def health_check():
    """
    Simple health check. Kubernetes uses this to know if the pod is alive.
    """
    return {"status": "ok", "service": "device-registration-api"}


@app.post("/Device/register")
def register_device(
    request: RegisterRequest,
    x_internal_service: Optional[str] = Header(None, alias=INTERNAL_SERVICE_HEADER)
):
    """
    Inserts or touches a device registration.
    This is an internal endpoint — only the Statistics API should call it,
    never external clients.

    Returns:
        200 — {"statusCode": 200} registration created or refreshed
        400 — {"statusCode": 400} invalid input, or a concurrent insert won the race
        500 — {"statusCode": 500} any other database error
    """
    logger.info(
        f"Received device registration request for device type: {request.deviceType} "
        f"from service: {x_internal_service}"
    )

    # The header is advisory: log its absence but keep serving
    if not x_internal_service or not x_internal_service.strip():
        logger.warning("Device registration request without internal service header")

    # Reject blank/oversized userKey and unknown device types before touching the store
    if not request.is_valid():
        logger.warning(f"Device registration attempt with invalid input (device type: {request.deviceType})")
        return bad_request()

    body = request.as_body()

    conn = None
    try:
        conn = get_db_connection()
        registration, created = upsert_registration(conn, body["userKey"], body["deviceType"])
        conn.commit()

        logger.info(
            f"Successfully {'created' if created else 'refreshed'} registration. "
            f"ID: {registration.id}, Device Type: {registration.device_type}"
        )
        return RegistrationResponse.success().model_dump()

    except psycopg2.errors.UniqueViolation as e:
        # Another request inserted the same pair between our SELECT and INSERT
        if conn:
            conn.rollback()
        logger.warning(f"Data integrity violation during device registration: {e.pgerror}")
        return bad_request()

    except Exception:
        if conn:
            conn.rollback()
        logger.exception("Error registering device")
        return internal_error()

    finally:
        if conn:
            conn.close()


def run():
    """Serves the app with uvicorn on HOST:PORT (default 0.0.0.0:8081)."""
    uvicorn.run(app, host=HOST, port=PORT)


if __name__ == "__main__":
    run()
