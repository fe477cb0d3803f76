import io
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

from winkey import core


class SessionFilter(logging.Filter):
    def __init__(self, session):
        super().__init__()
        self.session = session

    def filter(self, record):
        record.session = self.session
        return True


class StreamToLogger(io.TextIOBase):
    def __init__(self, logger, level):
        self.logger = logger
        self.level = level
        self._buf = ""

    def write(self, b):
        s = str(b)
        self._buf += s
        while "\n" in self._buf:
            line, self._buf = self._buf.split("\n", 1)
            if line.strip():
                self.logger.log(self.level, line)
        return len(s)

    def flush(self):
        if self._buf.strip():
            self.logger.log(self.level, self._buf.strip())
        self._buf = ""


def setup_logging(settings: dict, session_id: str, log_dir: Optional[Path] = None,
                  console_stream=None, capture_stdio: bool = False) -> logging.Logger:
    log_level = logging.DEBUG if settings.get("debug") else logging.INFO
    log_dir = Path(log_dir) if log_dir else core.LOG_DIR

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    for h in list(root_logger.handlers):
        root_logger.removeHandler(h)
        h.close()

    sess_filter = SessionFilter(session_id)

    console_fmt = logging.Formatter("[%(levelname)s] %(message)s")
    file_fmt = logging.Formatter("%(asctime)s [%(levelname)s] [%(name)s] %(module)s:%(lineno)d | %(message)s | session=%(session)s")

    # Console
    sh = logging.StreamHandler(console_stream or sys.stderr)
    sh.setLevel(log_level)
    sh.setFormatter(console_fmt)
    sh.addFilter(sess_filter)
    root_logger.addHandler(sh)

    # latest.log
    log_dir.mkdir(parents=True, exist_ok=True)
    lh = logging.FileHandler(log_dir / "latest.log", mode='w', encoding='utf-8')
    lh.setLevel(logging.DEBUG)
    lh.setFormatter(file_fmt)
    lh.addFilter(sess_filter)
    root_logger.addHandler(lh)

    # debug.log (rotating)
    rh = logging.handlers.RotatingFileHandler(log_dir / "debug.log", maxBytes=1_000_000, backupCount=5, encoding='utf-8')
    rh.setLevel(logging.DEBUG)
    rh.setFormatter(file_fmt)
    rh.addFilter(sess_filter)
    root_logger.addHandler(rh)

    logging.captureWarnings(True)

    # print() from the GUI ends up in the log files
    if capture_stdio:
        sys.stdout = StreamToLogger(logging.getLogger("stdout"), logging.INFO)
        sys.stderr = StreamToLogger(logging.getLogger("stderr"), logging.ERROR)

    app_logger = logging.getLogger(core.APP_NAME)
    app_logger.setLevel(log_level)
    app_logger.log(log_level, "Logger initialized | debug=%s | session=%s", settings.get("debug"), session_id)
    return app_logger
