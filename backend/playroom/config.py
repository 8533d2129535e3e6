import os
from pathlib import Path


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    # Socket.IO: empty means pick per platform (see server.create_app)
    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "").strip()

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Storage: leaderboards and content pools live here as JSON files
    DATA_DIR = os.environ.get("DATA_DIR", str(Path(__file__).resolve().parents[2] / "data"))
    STATS_DEBOUNCE_SEC = float(os.environ.get("STATS_DEBOUNCE_SEC", "5"))
    LEADERBOARD_SIZE = int(os.environ.get("LEADERBOARD_SIZE", "20"))

    # Rooms
    ROOM_SWEEP_INTERVAL_SEC = int(os.environ.get("ROOM_SWEEP_INTERVAL_SEC", "60"))

    # Games
    DRAWGUESS_MIN_PLAYERS = int(os.environ.get("DRAWGUESS_MIN_PLAYERS", "2"))
    DRAWGUESS_ROUND_TIME_SEC = int(os.environ.get("DRAWGUESS_ROUND_TIME_SEC", "80"))
    TIMELINE_CARDS_TO_WIN = int(os.environ.get("TIMELINE_CARDS_TO_WIN", "10"))
    SHED_BOT_DELAY_SEC = float(os.environ.get("SHED_BOT_DELAY_SEC", "1.5"))
