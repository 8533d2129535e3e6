from __future__ import annotations

import atexit
import logging
import sys
from pathlib import Path

from flask import Flask, send_from_directory
from flask_cors import CORS
from flask_socketio import SocketIO
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import Config
from .core.scheduler import Scheduler, SocketIOScheduler
from .hub import GameHub
from .realtime.handlers import register_socketio_handlers
from .routes.health import bp as health_bp
from .routes.leaderboard import bp as leaderboard_bp
from .routes.rooms import bp as rooms_bp
from .routes.words import bp as words_bp

logger = logging.getLogger(__name__)


def _pick_async_mode(configured: str) -> str:
    if configured:
        return configured
    # Default choice:
    # - Windows: threading (eventlet has known compatibility issues on newer Python)
    # - Python >= 3.13: threading (safer default)
    # - Otherwise: eventlet
    if sys.platform.startswith("win") or sys.version_info >= (3, 13):
        return "threading"
    return "eventlet"


def create_app(config_class: type = Config, scheduler: Scheduler | None = None) -> tuple[Flask, SocketIO]:
    dist_dir = Path(__file__).resolve().parents[2] / "frontend" / "dist"

    static_folder = str(dist_dir) if dist_dir.exists() else None
    static_url_path = "/" if dist_dir.exists() else None

    app = Flask(
        __name__,
        static_folder=static_folder,
        static_url_path=static_url_path,
    )
    app.config.from_object(config_class)
    logging.getLogger("playroom").setLevel(str(app.config.get("LOG_LEVEL", "INFO")).upper())

    if app.config.get("TRUST_PROXY_HEADERS", False):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    cors_origins = app.config.get("CORS_ORIGINS", "*")
    CORS(app, resources={r"/api/*": {"origins": cors_origins}})

    socketio = SocketIO(
        app,
        cors_allowed_origins=cors_origins,
        async_mode=_pick_async_mode(app.config.get("SOCKETIO_ASYNC_MODE", "")),
    )

    hub = GameHub.from_config(app.config, scheduler or SocketIOScheduler(socketio))
    app.extensions["playroom"] = hub

    app.register_blueprint(health_bp, url_prefix="/api")
    app.register_blueprint(rooms_bp, url_prefix="/api")
    app.register_blueprint(leaderboard_bp, url_prefix="/api")
    app.register_blueprint(words_bp, url_prefix="/api")

    register_socketio_handlers(socketio, hub)

    interval = app.config.get("ROOM_SWEEP_INTERVAL_SEC", 0)
    if interval and interval > 0:
        hub.start_sweepers(interval)
    # Pending leaderboard writes are flushed on the way out.
    atexit.register(hub.shutdown)

    logger.info("playroom ready (async_mode=%s, data_dir=%s)", socketio.async_mode, app.config["DATA_DIR"])

    if dist_dir.exists():
        @app.get("/")
        def index():
            return send_from_directory(dist_dir, "index.html")

        @app.get("/<path:path>")
        def static_proxy(path: str):
            file_path = dist_dir / path
            if file_path.exists() and file_path.is_file():
                return send_from_directory(dist_dir, path)
            return send_from_directory(dist_dir, "index.html")

    return app, socketio
