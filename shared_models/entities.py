# Row of the device_registrations table.

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

# Column order used by every SELECT / RETURNING that builds a DeviceRegistration
REGISTRATION_COLUMNS = "id, user_key, device_type, created_at, updated_at"


@dataclass(eq=False)
class DeviceRegistration:
    """
    One (user, device type) pair seen at least once.

    Two registrations are equal when they share user_key and device_type;
    the database id and the timestamps do not take part in equality.
    """
    user_key: str
    device_type: str
    id: Optional[int] = None
    created_at: Optional[datetime] = field(default=None)
    updated_at: Optional[datetime] = field(default=None)

    @classmethod
    def from_row(cls, row):
        """Builds a record from a row selected with REGISTRATION_COLUMNS."""
        registration_id, user_key, device_type, created_at, updated_at = row
        return cls(
            user_key=user_key,
            device_type=device_type,
            id=registration_id,
            created_at=created_at,
            updated_at=updated_at,
        )

    def __eq__(self, other):
        if not isinstance(other, DeviceRegistration):
            return NotImplemented
        return (self.user_key, self.device_type) == (other.user_key, other.device_type)

    def __hash__(self):
        return hash((self.user_key, self.device_type))

    def __repr__(self):
        # user_key stays out of logs and reprs
        return (
            f"DeviceRegistration(id={self.id}, device_type={self.device_type!r}, "
            f"created_at={self.created_at}, updated_at={self.updated_at})"
        )
