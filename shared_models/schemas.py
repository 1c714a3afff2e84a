# Request and response bodies exchanged by the two services.
# Field names are camelCase because they are the JSON contract.

from typing import Optional

from pydantic import BaseModel

from shared_models.device_types import is_valid_device_type

MAX_USER_KEY_LENGTH = 255

# ---------------------------------------------------------------------------
# User key validation
# ---------------------------------------------------------------------------


def is_valid_user_key(user_key) -> bool:
    """
    Present, not only whitespace, and 1-255 characters long as sent.
    The key is opaque: it is never trimmed or rewritten.
    """
    if not isinstance(user_key, str) or not user_key.strip():
        return False
    return 1 <= len(user_key) <= MAX_USER_KEY_LENGTH

# ---------------------------------------------------------------------------
# Request model
# ---------------------------------------------------------------------------


class RegistrationPayload(BaseModel):
    """
    Body of POST /Log/auth and POST /Device/register.

    Both fields are optional at the model level so that a missing field is
    reported through the same 400 body as any other invalid input.
    Unknown fields are ignored.
    """
    userKey: Optional[str] = None
    deviceType: Optional[str] = None

    def is_valid(self) -> bool:
        return is_valid_user_key(self.userKey) and is_valid_device_type(self.deviceType)

    def as_body(self) -> dict:
        """JSON body forwarded to, and stored by, the registration service."""
        return {"userKey": self.userKey, "deviceType": self.deviceType}

# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    """Body returned by POST /Log/auth"""
    statusCode: int
    message: str

    @classmethod
    def success(cls):
        return cls(statusCode=200, message="success")

    @classmethod
    def bad_request(cls):
        return cls(statusCode=400, message="bad_request")

    @classmethod
    def internal_error(cls):
        return cls(statusCode=500, message="internal_error")

    @classmethod
    def for_status(cls, status_code: int):
        if status_code == 200:
            return cls.success()
        if status_code == 400:
            return cls.bad_request()
        return cls.internal_error()


class RegistrationResponse(BaseModel):
    """Body returned by POST /Device/register"""
    statusCode: int

    @classmethod
    def success(cls):
        return cls(statusCode=200)

    @classmethod
    def bad_request(cls):
        return cls(statusCode=400)

    @classmethod
    def internal_error(cls):
        return cls(statusCode=500)


class StatisticsResponse(BaseModel):
    """
    Body returned by GET /Log/auth/statistics.
    A count of -1 means the device type was invalid or the query failed.
    """
    deviceType: Optional[str] = None
    count: int

    @classmethod
    def error(cls, device_type: Optional[str]):
        return cls(deviceType=device_type, count=-1)
