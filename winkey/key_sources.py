"""Where product id records come from, and what ends up on screen.

Records are fetched once per request by the caller and handed to the decoder
as plain bytes.  Nothing here is cached.

Sources:

* binary dumps of the ``DigitalProductId`` value
* text exports (``reg export`` output or a plain hex string)
* the live registry on Windows, through ``winreg``

``resolve_display_key`` decides between the decoded key and the masked
partial key reported by the licensing service.
"""

from __future__ import annotations

import logging
import platform
import re
import string
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from winkey.product_key import decode_record

LOGGER = logging.getLogger(__name__)

REGISTRY_KEY = r"SOFTWARE\Microsoft\Windows NT\CurrentVersion"
DEFAULT_VALUE_NAME = "DigitalProductId"
MASK_GROUP = "XXXXX"

SOURCE_DECODED = "decoded"
SOURCE_PARTIAL = "partial"
SOURCE_UNAVAILABLE = "unavailable"

_HEX_CHARS = set(string.hexdigits)
_HEX_TYPE = r"hex(?:\([0-9a-fA-F]+\))?:"
_BARE_PREFIX = re.compile(r"^\s*" + _HEX_TYPE, re.M)
_NAMED_VALUE = re.compile(r'^\s*"[^"]*"\s*=', re.M)


class RecordSourceError(Exception):
    pass


@dataclass(frozen=True)
class KeyResolution:
    key: str
    source: str
    formatted: bool = False
    extended: bool = False
    last_remainder: Optional[int] = None
    digits: str = ""       # undivided decoder output, empty unless decoded

    def as_dict(self) -> dict:
        return {
            "key": self.key,
            "source": self.source,
            "formatted": self.formatted,
            "extended": self.extended,
            "last_remainder": self.last_remainder,
        }


def parse_hex_record(text: str, value_name: str = DEFAULT_VALUE_NAME) -> bytes:
    """Parse a hex dump into bytes.

    Accepts ``a4 00 00 00``, ``a4000000`` and the ``hex:a4,00,...`` form
    written by ``reg export`` (including ``\\`` line continuations).  When the
    text holds named values (``"Name"=...``) only ``value_name`` is read;
    an export without it raises RecordSourceError.
    """
    if not text or not text.strip():
        raise RecordSourceError("Empty hex record")
    if _NAMED_VALUE.search(text):
        named = re.compile(r'^\s*"' + re.escape(value_name) + r'"\s*=\s*' + _HEX_TYPE, re.M | re.I)
        match = named.search(text)
        if not match:
            raise RecordSourceError(f"Binary value {value_name} not found in registry export")
    else:
        match = _BARE_PREFIX.search(text)
    body = text[match.end():] if match else text
    if match:
        # Stop at the next value in the export
        lines = []
        for line in body.splitlines():
            lines.append(line)
            if not line.rstrip().endswith("\\"):
                break
        body = "\n".join(lines)
    cleaned = re.sub(r"[\s,\\]+", "", body)
    if cleaned.lower().startswith("0x"):
        cleaned = cleaned[2:]
    if not cleaned or len(cleaned) % 2 or not set(cleaned) <= _HEX_CHARS:
        raise RecordSourceError("Record text is not a valid hex byte sequence")
    return bytes.fromhex(cleaned)


def _as_text(raw: bytes) -> Optional[str]:
    # reg export writes UTF-16 with a BOM
    encoding = "utf-16" if raw.startswith((b"\xff\xfe", b"\xfe\xff")) else "utf-8-sig"
    try:
        text = raw.decode(encoding)
    except UnicodeDecodeError:
        return None
    if text.strip() and all(ch.isprintable() or ch.isspace() for ch in text):
        return text
    return None


def read_record_file(path, value_name: str = DEFAULT_VALUE_NAME) -> bytes:
    path = Path(path)
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise RecordSourceError(f"Cannot read record file {path}: {exc}") from exc
    text = _as_text(raw)
    if text is not None:
        LOGGER.debug("Record file %s looks like a text export", path)
        return parse_hex_record(text, value_name)
    LOGGER.debug("Read %d bytes from %s", len(raw), path)
    return raw


def read_record_registry(value_name: str = DEFAULT_VALUE_NAME) -> Optional[bytes]:
    """Read the record from HKLM. Returns None off Windows or when absent."""
    if platform.system() != "Windows":
        LOGGER.debug("Registry lookup skipped: not running on Windows")
        return None
    import winreg

    try:
        with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, REGISTRY_KEY, 0,
                            winreg.KEY_READ | winreg.KEY_WOW64_64KEY) as key:
            value, value_type = winreg.QueryValueEx(key, value_name)
    except FileNotFoundError:
        LOGGER.info("Registry value %s not found", value_name)
        return None
    except OSError as exc:
        raise RecordSourceError(f"Cannot read registry value {value_name}: {exc}") from exc
    if value_type != winreg.REG_BINARY:
        raise RecordSourceError(f"Registry value {value_name} is not binary (type {value_type})")
    return bytes(value)


def mask_partial_key(partial_key: str) -> str:
    partial = (partial_key or "").strip().upper()
    return "-".join([MASK_GROUP] * 4 + [partial])


def resolve_display_key(record: Optional[bytes], partial_key: Optional[str] = None) -> KeyResolution:
    """Pick the string to show for the product key.

    The decoded record wins.  Without a record the masked partial key is used.
    A record that fails to decode is an error; it is not hidden behind the
    partial key.
    """
    if record is not None:
        decoded = decode_record(record)
        return KeyResolution(
            key=decoded.text,
            source=SOURCE_DECODED,
            formatted=decoded.formatted,
            extended=decoded.extended,
            last_remainder=decoded.last_remainder,
            digits=decoded.digits,
        )
    if partial_key and partial_key.strip():
        return KeyResolution(key=mask_partial_key(partial_key), source=SOURCE_PARTIAL)
    return KeyResolution(key="", source=SOURCE_UNAVAILABLE)


def load_record(settings: dict, file_path=None, hex_text=None, use_registry=None) -> Optional[bytes]:
    """Fetch the record from the first configured source.

    Explicit arguments win over settings. With nothing explicit, the
    ``record_file`` setting is tried before the registry.
    """
    value_name = settings.get("registry_value") or DEFAULT_VALUE_NAME
    if hex_text:
        return parse_hex_record(hex_text, value_name)
    if file_path:
        return read_record_file(file_path, value_name)
    if use_registry:
        return read_record_registry(value_name)
    configured = settings.get("record_file")
    if configured:
        return read_record_file(configured, value_name)
    return read_record_registry(value_name)
