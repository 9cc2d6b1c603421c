"""
VibeSync Flask application.
Shared Spotify listening sessions: one host plays, everyone queues and votes.
"""

import os
import logging

from flask import Flask, jsonify

from vibesync.routes.auth import auth_bp
from vibesync.routes.playback import playback_bp
from vibesync.routes.search import search_bp
from vibesync.routes.session import session_bp
from vibesync.routes.sync import sync_bp
from vibesync.utils import config

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_app(overrides=None):
    """Build the app; overrides are applied on top of the environment config"""
    app = Flask(__name__)
    config.init_app(app, overrides)

    app.register_blueprint(session_bp, url_prefix="/api")
    app.register_blueprint(playback_bp, url_prefix="/api")
    app.register_blueprint(sync_bp, url_prefix="/api")
    app.register_blueprint(search_bp, url_prefix="/api")
    app.register_blueprint(auth_bp, url_prefix="/api")

    @app.after_request
    def add_cors_headers(response):
        """Open CORS for every route; Flask answers OPTIONS with 200 on its own"""
        response.headers["Access-Control-Allow-Credentials"] = "true"
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET,OPTIONS,POST,PUT,DELETE"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
        return response

    @app.route("/health")
    def health():
        return jsonify({"status": "ok"})

    logger.info(f"VibeSync ready (session store: {app.config['SESSION_STORE']})")
    return app


app = create_app()


if __name__ == "__main__":
    port = int(os.getenv("PORT", 5000))
    app.run(host="0.0.0.0", port=port, debug=os.getenv("FLASK_ENV") == "development", threaded=True)
