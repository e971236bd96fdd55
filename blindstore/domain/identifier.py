"""Note identifier codec: 12 random hex characters followed by a 4-character CRC-16 checksum. Pure functions, no I/O."""

import re
import secrets

ID_LENGTH = 16
RANDOM_LENGTH = 12
CHECKSUM_LENGTH = ID_LENGTH - RANDOM_LENGTH

_HEX_ID = re.compile(r"^[0-9a-f]{16}$")


def _build_crc16_table() -> tuple[int, ...]:
    # CRC-16/ARC: reflected polynomial 0xA001, initial value 0
    table = []
    for byte in range(256):
        crc = byte
        for _ in range(8):
            crc = (crc >> 1) ^ 0xA001 if crc & 1 else crc >> 1
        table.append(crc)
    return tuple(table)


_CRC16_TABLE = _build_crc16_table()


def crc16(data: bytes) -> int:
    """CRC-16/ARC of data as an unsigned 16-bit integer."""
    crc = 0
    for byte in data:
        crc = (crc >> 8) ^ _CRC16_TABLE[(crc ^ byte) & 0xFF]
    return crc


def checksum(random_part: str) -> str:
    """Checksum suffix for a random prefix: 4 zero-padded lowercase hex digits."""
    return format(crc16(random_part.encode("ascii")), "04x")


def generate_note_id() -> str:
    """Return a fresh identifier. The random prefix comes from the OS CSPRNG."""
    random_part = secrets.token_hex(RANDOM_LENGTH // 2)
    return random_part + checksum(random_part)


def is_valid_note_id(value: object) -> bool:
    """
    True if value is 16 lowercase hex characters whose last 4 are the checksum of the first 12.
    Rejects wrong length, non-hex characters and checksum mismatch without touching storage.
    """
    if not isinstance(value, str) or not _HEX_ID.match(value):
        return False
    return checksum(value[:RANDOM_LENGTH]) == value[RANDOM_LENGTH:]
