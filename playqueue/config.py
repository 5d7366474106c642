"""Module 1 — Config & Constants"""
import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root (one level up from playqueue/)
_ROOT = Path(__file__).parent.parent
load_dotenv(_ROOT / ".env")

# ─── Paths ────────────────────────────────────────────────────────────────────
ROOT_DIR = _ROOT
OUTPUT_DIR = ROOT_DIR / os.getenv("OUTPUT_DIR", "output")
ERRORS_LOG = OUTPUT_DIR / "errors.log"
LIBRARY_FILE = Path(os.getenv("LIBRARY_FILE", str(ROOT_DIR / "library.json")))

# ─── External services ────────────────────────────────────────────────────────
API_HOST = os.getenv("API_HOST", "http://localhost:8000/api").rstrip("/")
API_TOKEN = os.getenv("API_TOKEN", "")
API_TIMEOUT = float(os.getenv("API_TIMEOUT", "15"))

# ─── Playback ─────────────────────────────────────────────────────────────────
SAMPLE_INTERVAL = float(os.getenv("SAMPLE_INTERVAL", "5"))          # media seconds between progress pushes
LOOKAHEAD_THRESHOLD = float(os.getenv("LOOKAHEAD_THRESHOLD", "10"))  # enqueue next when fewer seconds remain
PLAYER_TICK = float(os.getenv("PLAYER_TICK", "0.25"))
# e.g. "ffplay -nodisp -autoexit -loglevel quiet" or "mpv --no-video". Empty = silent clock only.
PLAYER_COMMAND = os.getenv("PLAYER_COMMAND", "").strip()

APP_VERSION = "0.3.0"

# ─── Web server ──────────────────────────────────────────────────────────────
WEB_PORT = int(os.getenv("WEB_PORT", "8888"))

# ─── Dev mode ─────────────────────────────────────────────────────────────────
DEV_MODE = os.getenv("DEV_MODE", "1").strip() in ("1", "true", "yes")
