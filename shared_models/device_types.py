# Device types accepted by both services.
# The same enumeration guards the login path, the statistics path and the
# internal registration endpoint.

from enum import Enum


class DeviceType(str, Enum):
    IOS = "iOS"
    ANDROID = "Android"
    WATCH = "Watch"
    TV = "TV"


VALID_DEVICE_TYPES = frozenset(device_type.value for device_type in DeviceType)


def is_valid_device_type(value) -> bool:
    """
    True only for an exact, case-sensitive match against one of the
    allowed literals. None, blanks and non-strings are rejected.
    """
    return isinstance(value, str) and value in VALID_DEVICE_TYPES
