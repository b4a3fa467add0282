"""
Flask application factory for cubox-tidy.
Sets up: Config, CORS, the plugin on its host loop, API blueprint, and health endpoint.
"""

from __future__ import annotations

import atexit
import os
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from flask import Flask, jsonify
from flask_cors import CORS
from loguru import logger

from cubox_tidy.config import get_config, AppConfig
from cubox_tidy.events import HostLoop

if TYPE_CHECKING:
    from cubox_tidy.plugin import CuboxPlugin


def create_app(config_object: AppConfig | None = None, plugin: Optional["CuboxPlugin"] = None) -> Flask:
    """
    Flask application factory.
    """
    # The plugin imports cubox_tidy.app.notify, so import it lazily
    from cubox_tidy.plugin import build_plugin

    cfg = config_object or get_config()
    app = Flask(__name__)

    # Core config
    app.config.update(
        SECRET_KEY=cfg.web.secret_key,
        MAX_CONTENT_LENGTH=cfg.web.max_content_length,
        JSON_SORT_KEYS=False,
    )

    # CORS for dev
    CORS(app, resources={r"/api/*": {"origins": "*"}})

    # All note mutations run on the host loop thread
    host = HostLoop().start()
    plugin = plugin or build_plugin(cfg)
    host.run(_load(plugin))
    app.extensions["cubox_tidy"] = {"plugin": plugin, "host": host, "config": cfg}
    atexit.register(host.stop)

    # Register API blueprint
    from .api import api_bp  # defer import until app exists
    app.register_blueprint(api_bp, url_prefix="/api")

    # Health endpoint
    @app.get("/health")
    def health():
        return jsonify(
            {
                "status": "ok",
                "time": datetime.now(timezone.utc).isoformat(),
                "model": cfg.llm.model,
                "vault": str(plugin.vault.root),
            }
        )

    logger.info(f"App initialized. Health at /health. model={cfg.llm.model} vault={plugin.vault.root}")

    return app


async def _load(plugin: "CuboxPlugin") -> None:
    plugin.on_load()


# Convenience for running via `flask run`
# Only create the app automatically when invoked by Flask CLI or explicitly requested.
if os.getenv("FLASK_RUN_FROM_CLI") == "true" or os.getenv("CREATE_FLASK_APP", "").lower() == "true":
    app = create_app()
else:
    app = None
