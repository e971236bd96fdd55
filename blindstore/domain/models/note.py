"""Domain models for stored notes. Pure business semantics, no ORM or infrastructure."""

from dataclasses import dataclass
from datetime import datetime, timedelta

DEFAULT_CRYPTO_VERSION = "v1"
EXPIRE_WINDOW_DAYS = 30


@dataclass(frozen=True)
class Note:
    """
    Immutable encrypted payload. ciphertext and hmac are opaque base64 text, stored and
    returned unmodified. Only existence changes over time (present, tombstoned, absent).
    """

    id: str
    ciphertext: str
    hmac: str
    insert_time: datetime
    expire_time: datetime
    crypto_version: str = DEFAULT_CRYPTO_VERSION

    @property
    def size_bytes(self) -> int:
        return len(self.ciphertext) + len(self.hmac)

    def is_expired(self, now: datetime) -> bool:
        return self.expire_time <= now


@dataclass(frozen=True)
class Tombstone:
    """Marker that a note existed and was purged on expiry. Never updated."""

    id: str
    deleted_at: datetime


def compute_expire_time(insert_time: datetime, window_days: int = EXPIRE_WINDOW_DAYS) -> datetime:
    return insert_time + timedelta(days=window_days)
