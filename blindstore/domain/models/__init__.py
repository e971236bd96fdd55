"""Domain models. Pure business entities."""

from blindstore.domain.models.note import (
    DEFAULT_CRYPTO_VERSION,
    EXPIRE_WINDOW_DAYS,
    Note,
    Tombstone,
    compute_expire_time,
)

__all__ = [
    "DEFAULT_CRYPTO_VERSION",
    "EXPIRE_WINDOW_DAYS",
    "Note",
    "Tombstone",
    "compute_expire_time",
]
