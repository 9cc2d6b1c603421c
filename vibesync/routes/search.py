"""
Music search routes for VibeSync.
"""

import logging
from flask import Blueprint, current_app, request, jsonify

from vibesync.api.spotify import DEFAULT_TIMEOUT, search_tracks
from vibesync.utils.errors import require_fields
from vibesync.utils.http import handle_errors

logger = logging.getLogger(__name__)

search_bp = Blueprint('search', __name__)

MAX_LIMIT = 50


@search_bp.route("/search", methods=["GET", "POST"])
@handle_errors("Search failed")
def search_music():
    """Search for tracks using the caller's Spotify token"""
    if request.method != "GET":
        return jsonify({"error": "Method not allowed"}), 405

    params = {
        "query": request.args.get('query', '').strip(),
        "token": request.args.get('token'),
    }
    require_fields(params, 'query', 'token')

    limit = request.args.get('limit', 20, type=int)
    limit = max(1, min(limit, MAX_LIMIT))  # Limit to prevent abuse

    tracks = search_tracks(
        params['query'],
        params['token'],
        limit=limit,
        timeout=current_app.config.get('SPOTIFY_TIMEOUT', DEFAULT_TIMEOUT)
    )
    logger.info(f"Search returned {len(tracks)} tracks")
    return jsonify({"tracks": tracks})
