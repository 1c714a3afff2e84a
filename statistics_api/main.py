# Public-facing API that receives login events and returns device statistics.
# This service is the entry point for external traffic.
# It calls the Device Registration API internally to persist data and only
# ever reads from the database itself.

import logging
import os
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shared_models.database import get_db_connection
from shared_models.device_types import VALID_DEVICE_TYPES, is_valid_device_type
from shared_models.logging_config import configure_logging
from shared_models.schemas import LoginResponse, RegistrationPayload, StatisticsResponse

configure_logging()
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App initialization
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Statistics API",
    description="Public API for logging authentication events and retrieving device statistics",
    version="1.0.0"
)

# ---------------------------------------------------------------------------
# Configuration — all values come from environment variables, never hardcoded
# ---------------------------------------------------------------------------

DEVICE_API_URL = os.getenv("DEVICE_API_URL", "http://localhost:8081")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8080"))

# Identifies this service to the Device Registration API
INTERNAL_SERVICE_HEADER = "X-Internal-Service"
INTERNAL_SERVICE_NAME = "statistics-api"

# 10s to connect, 30s for everything else
DEVICE_API_TIMEOUT = httpx.Timeout(30.0, connect=10.0)

# ---------------------------------------------------------------------------
# Request model
# ---------------------------------------------------------------------------


class AuthLogRequest(RegistrationPayload):
    """Body expected by POST /Log/auth"""


def login_response(status_code: int):
    """JSON reply whose statusCode always equals the HTTP status."""
    return JSONResponse(
        status_code=status_code,
        content=LoginResponse.for_status(status_code).model_dump()
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Wrong types, missing body or malformed JSON never reach the internal service
    logger.warning("Rejected malformed login request")
    return login_response(400)

# ---------------------------------------------------------------------------
# Helper: Device Registration API client
# ---------------------------------------------------------------------------


def get_http_client():
    """A fresh async client per call, with the internal hop's timeouts."""
    return httpx.AsyncClient(timeout=DEVICE_API_TIMEOUT)


def interpret_registration_response(response) -> int:
    """
    Maps the Device Registration API reply onto 200, 400 or 500.

    A body statusCode of 200 only counts on a 2xx reply. A body of 400 or
    500 is taken as is. Otherwise a 2xx reply with a missing or malformed
    body is a bad request, and anything else is a transport failure.
    """
    try:
        body = response.json()
    except ValueError:
        body = None

    status_code = body.get("statusCode") if isinstance(body, dict) else None
    if not isinstance(status_code, int):
        status_code = None

    if status_code == 200 and response.is_success:
        return 200
    if status_code == 400:
        return 400
    if status_code == 500:
        # Storage failure on the internal side stays a 500 (see DESIGN.md, open questions)
        return 500

    if response.is_success:
        logger.error(f"Device Registration API returned an unusable body (HTTP {response.status_code})")
        return 400

    logger.error(f"Device Registration API failed with HTTP {response.status_code}")
    return 500


async def forward_registration(payload: dict) -> int:
    """
    Sends the registration to the internal service.
    Exactly one POST per call; no retries.
    """
    url = f"{DEVICE_API_URL}/Device/register"
    headers = {
        INTERNAL_SERVICE_HEADER: INTERNAL_SERVICE_NAME,
        "Content-Type": "application/json",
    }

    try:
        # httpx is an async HTTP client — forwards the request to the internal service
        async with get_http_client() as client:
            logger.debug(f"Calling Device Registration API at: {url}")
            response = await client.post(url, json=payload, headers=headers)

    except httpx.HTTPError as e:
        # Connection refused, DNS failure, timeouts
        logger.error(f"Could not reach Device Registration API: {type(e).__name__}")
        return 500

    return interpret_registration_response(response)

# ---------------------------------------------------------------------------
# Helper: statistics query
# ---------------------------------------------------------------------------


def count_registrations(device_type: str) -> int:
    """Number of distinct users registered with the given device type."""
    conn = None
    try:
        conn = get_db_connection()
        cursor = conn.cursor()

        # Parameterized query — %s placeholder prevents SQL injection
        cursor.execute(
            "SELECT COUNT(*) FROM device_registrations WHERE device_type = %s",
            (device_type,)
        )
        return cursor.fetchone()[0]

    finally:
        if conn:
            conn.close()

# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/health")
def health_check():
    """
    Simple health check. Kubernetes uses this to know if the pod is alive.
    """
    return {"status": "ok", "service": "statistics-api"}


@app.post("/Log/auth")
async def log_auth(request: AuthLogRequest):
    """
    Main endpoint. Receives a login event, validates it, then calls the
    Device Registration API to save the record.

    Returns:
        200 — {"statusCode": 200, "message": "success"}
        400 — {"statusCode": 400, "message": "bad_request"} invalid input or rejected by the internal service
        500 — {"statusCode": 500, "message": "internal_error"} internal service unreachable or unexpected error
    """
    logger.info(f"Received login request for device type: {request.deviceType}")

    if not request.is_valid():
        logger.warning(f"Login attempt with invalid input (device type: {request.deviceType})")
        return login_response(400)

    try:
        status_code = await forward_registration(request.as_body())

    except Exception:
        logger.exception("Unexpected error processing login")
        return login_response(500)

    if status_code == 200:
        logger.info(f"Successfully processed login for device type: {request.deviceType}")
    return login_response(status_code)


@app.get("/Log/auth/statistics")
def get_statistics(deviceType: Optional[str] = Query(None, description="Device type to filter by")):
    """
    Returns how many users registered the given device type.
    Expects a deviceType query param (iOS, Android, Watch or TV).

    Returns:
        200 — {"deviceType": "...", "count": N}
        200 — {"deviceType": "...", "count": -1} missing or unknown device type
        500 — {"deviceType": "...", "count": -1} database error
    """
    logger.info(f"Received statistics request for device type: {deviceType}")

    if not is_valid_device_type(deviceType):
        logger.warning(f"Statistics request with invalid device type: {deviceType}")
        return StatisticsResponse.error(deviceType).model_dump()

    try:
        count = count_registrations(deviceType)

    except Exception:
        logger.exception(f"Error retrieving statistics for device type {deviceType}")
        return JSONResponse(
            status_code=500,
            content=StatisticsResponse.error(deviceType).model_dump()
        )

    logger.info(f"Found {count} registrations for device type: {deviceType}")
    return StatisticsResponse(deviceType=deviceType, count=count).model_dump()


def run():
    """Serves the app with uvicorn on HOST:PORT (default 0.0.0.0:8080)."""
    uvicorn.run(app, host=HOST, port=PORT)


if __name__ == "__main__":
    run()
