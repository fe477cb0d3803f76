import sys
import uuid
import logging
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from winkey import core  # noqa: E402
from winkey.logging_utils import setup_logging  # noqa: E402


def setup_cli_logging(debug: bool = False, session_id: str | None = None) -> logging.Logger:
    """Initialize logging for standalone CLI scripts.

    - Reuses the app's logging_utils.setup_logging so CLI runs land in the same logs.
    - Console output goes to stderr; stdout is left for the script's result.
    """
    session = (session_id or str(uuid.uuid4())[:8])
    settings = {'debug': bool(debug)}
    logger = setup_logging(settings, session, log_dir=core.LOG_DIR, console_stream=sys.stderr)
    logger.debug('CLI logger initialized | session=%s', session)
    return logger
