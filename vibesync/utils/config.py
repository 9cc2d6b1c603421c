"""
Configuration module for VibeSync.
Handles app configuration, session store selection, and Redis client setup.
"""

import os
import logging
from urllib.parse import urlparse

import redis
from dotenv import load_dotenv

from vibesync.utils.store import MemorySessionStore, RedisSessionStore

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

SESSION_TTL = 24 * 60 * 60  # 24 hours in seconds


def get_redis_url():
    """Get Redis URL with SSL settings for hosted Redis"""
    redis_url = os.getenv("REDIS_URL")

    if redis_url and redis_url.startswith("rediss://") and "ssl_cert_reqs" not in redis_url:
        return redis_url + "?ssl_cert_reqs=none"
    elif redis_url:
        return redis_url
    else:
        # Local fallback
        return "redis://localhost:6379/0"


def create_redis_client(redis_url=None):
    """Create a Redis client from a redis:// or rediss:// URL"""
    parsed = urlparse(redis_url or get_redis_url())
    db = parsed.path.lstrip("/") or "0"

    client = redis.Redis(
        host=parsed.hostname or "localhost",
        port=parsed.port or 6379,
        db=int(db),
        password=parsed.password,
        ssl=parsed.scheme == "rediss",
        ssl_cert_reqs=None,
        decode_responses=True,
        socket_connect_timeout=3,
        socket_timeout=3,
        retry_on_timeout=False
    )
    logger.info(f"Redis client configured for {parsed.hostname}:{parsed.port or 6379}")
    return client


def default_config():
    """Build the default configuration from environment variables"""
    site_url = os.getenv("SITE_URL", "http://127.0.0.1:5000").rstrip("/")

    return {
        "SPOTIFY_CLIENT_ID": os.getenv("SPOTIFY_CLIENT_ID"),
        "SPOTIFY_CLIENT_SECRET": os.getenv("SPOTIFY_CLIENT_SECRET"),
        "SPOTIFY_REDIRECT_URI": os.getenv("SPOTIFY_REDIRECT_URI", f"{site_url}/api/callback"),
        "FRONTEND_URL": os.getenv("FRONTEND_URL", os.getenv("SITE_URL", "http://localhost:3000")),
        "SESSION_STORE": os.getenv("VIBESYNC_SESSION_STORE", "memory"),
        "REDIS_URL": get_redis_url(),
        "SESSION_TTL": int(os.getenv("VIBESYNC_SESSION_TTL", SESSION_TTL)),
        "SESSION_CACHE_THRESHOLD": 1000,
        "SPOTIFY_TIMEOUT": (3, 10),
        "FANOUT_MAX_WORKERS": int(os.getenv("VIBESYNC_FANOUT_WORKERS", 8)),
    }


def create_session_store(config):
    """Pick the session store backend named by SESSION_STORE"""
    backend = (config.get("SESSION_STORE") or "memory").lower()

    if backend == "redis":
        logger.info("Using Redis for session storage")
        return RedisSessionStore(
            create_redis_client(config.get("REDIS_URL")),
            default_ttl=config["SESSION_TTL"]
        )
    if backend == "memory":
        logger.info("Using in-process memory for session storage")
        return MemorySessionStore(
            default_ttl=config["SESSION_TTL"],
            threshold=config.get("SESSION_CACHE_THRESHOLD", 1000)
        )

    raise ValueError(f"Unknown session store backend: {backend}")


def init_app(app, overrides=None):
    """Initialize Flask app configuration and attach the session store"""
    app.config.update(default_config())
    if overrides:
        app.config.update(overrides)

    app.session_store = create_session_store(app.config)

    logger.info("Configuration and session store initialized successfully")
    return app.session_store
