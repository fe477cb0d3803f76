from pathlib import Path

# Core paths
ROOT = Path(__file__).resolve().parents[1]
LOG_DIR = ROOT / "logs"
CONFIG_PATH = ROOT / "winkey" / "settings.json"

APP_NAME = "WinKey"
