import sys
import uuid

from PySide6.QtWidgets import QApplication

from winkey.logging_utils import setup_logging
from winkey.settings_store import load_settings


def main():
    settings = load_settings()
    session_id = str(uuid.uuid4())[:8]
    setup_logging(settings, session_id, capture_stdio=True)

    # Imported after logging so widget import warnings are captured
    from winkey.ui.key_window import KeyWindow

    app = QApplication.instance() or QApplication(sys.argv)
    win = KeyWindow(settings)
    win.show()
    win.refresh()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
