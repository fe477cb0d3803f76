"""Decode a Windows "digital product id" record into a product key.

The key lives in a 15-byte little-endian integer at offset 52 of the record.
It is converted to base 24 by repeated long division, one symbol per pass,
least significant symbol first.  Records written by Windows 8 and later carry
an extra ``N`` marker whose position is given by the last remainder.

Decoding works on an owned copy of the record; the caller's buffer is never
touched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence, Union

LOGGER = logging.getLogger(__name__)

KEY_ALPHABET = "BCDFGHJKMPQRTVWXY2346789"
KEY_OFFSET = 52
KEY_LENGTH = 15
FLAG_INDEX = 66
RECORD_MIN_LENGTH = 67
KEY_SYMBOLS = 25
MARKER = "N"

Record = Union[bytes, bytearray, memoryview, Sequence[int]]


class InvalidRecordError(ValueError):
    pass


@dataclass(frozen=True)
class DecodedKey:
    digits: str            # raw output: 25 symbols, or 26 with the marker
    extended: bool         # record uses the Windows 8+ layout
    last_remainder: int    # remainder of the final division pass (0..23)

    @property
    def text(self) -> str:
        return format_key(self.digits)

    @property
    def formatted(self) -> bool:
        return len(self.digits) == KEY_SYMBOLS + 1


def is_extended(flag_byte: int) -> int:
    return (flag_byte // 6) & 1


def patch_flag(flag_byte: int, extended: int) -> int:
    """Clear bit 3 of the flag byte; set bit 2 only when ``extended & 2``."""
    patched = flag_byte & 0xF7
    if extended & 2:
        patched |= 0x04
    return patched


def _working_copy(record: Record) -> bytearray:
    # bytearray(int) builds a zero buffer and bytearray(str) needs an encoding
    if isinstance(record, (int, str)):
        raise InvalidRecordError(f"Product id record is not a byte sequence: {type(record).__name__}")
    try:
        data = bytearray(record)
    except (TypeError, ValueError) as exc:
        raise InvalidRecordError(f"Product id record is not a byte sequence: {exc}") from exc
    if len(data) < RECORD_MIN_LENGTH:
        raise InvalidRecordError(
            f"Product id record too short: {len(data)} bytes, need at least {RECORD_MIN_LENGTH}"
        )
    return data


def decode_record(record: Record) -> DecodedKey:
    """Run the base-24 conversion and return the undivided result.

    Raises InvalidRecordError when the record is shorter than 67 bytes.
    """
    data = _working_copy(record)
    extended = is_extended(data[FLAG_INDEX])
    data[FLAG_INDEX] = patch_flag(data[FLAG_INDEX], extended)

    window = data[KEY_OFFSET:KEY_OFFSET + KEY_LENGTH]
    symbols = []
    current = 0
    for _ in range(KEY_SYMBOLS):
        current = 0
        for j in range(KEY_LENGTH - 1, -1, -1):
            current = current * 256 + window[j]
            window[j] = current // 24
            current = current % 24
        symbols.insert(0, KEY_ALPHABET[current])
    last_remainder = current

    digits = "".join(symbols)
    if extended == 1:
        # Positional insert; a text replace could hit a repeated run of symbols.
        if last_remainder == 0:
            digits = MARKER + digits
        else:
            pos = 1 + last_remainder
            digits = digits[:pos] + MARKER + digits[pos:]

    LOGGER.debug("Decoded product id | extended=%s last_remainder=%d length=%d",
                 bool(extended), last_remainder, len(digits))
    return DecodedKey(digits=digits, extended=bool(extended), last_remainder=last_remainder)


def format_key(digits: str) -> str:
    """Group a 26-symbol result as 5-5-5-5-5, skipping slot 0.

    Any other length comes back unchanged, including a 25-symbol legacy key.
    """
    if len(digits) != KEY_SYMBOLS + 1:
        return digits
    return "-".join(digits[i:i + 5] for i in range(1, KEY_SYMBOLS + 1, 5))


def decode(record: Record) -> str:
    return decode_record(record).text
