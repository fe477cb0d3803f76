import logging
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SCRIPTS_DIR = ROOT / "scripts"
for p in (ROOT, SCRIPTS_DIR):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))

from winkey import core  # noqa: E402
from winkey.product_key import FLAG_INDEX, KEY_OFFSET, RECORD_MIN_LENGTH  # noqa: E402


@pytest.fixture
def make_record():
    def _make(window=None, flag=0, length=RECORD_MIN_LENGTH, fill=0):
        rec = bytearray([fill] * length)
        if window:
            rec[KEY_OFFSET:KEY_OFFSET + len(window)] = bytes(window)
        rec[FLAG_INDEX] = flag
        return bytes(rec)
    return _make


@pytest.fixture(autouse=True)
def isolated_paths(tmp_path, monkeypatch):
    monkeypatch.setattr(core, "CONFIG_PATH", tmp_path / "settings.json")
    monkeypatch.setattr(core, "LOG_DIR", tmp_path / "logs")
    yield
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
