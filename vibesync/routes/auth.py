"""
Authentication routes for VibeSync.
Thin wrapper over Spotify's authorization-code flow; tokens are handed to the
frontend and never kept on the server.
"""

import logging
from urllib.parse import urlencode

import requests
from flask import Blueprint, current_app, request, redirect, jsonify
from spotipy.oauth2 import SpotifyOauthError

from vibesync.api.spotify import DEFAULT_TIMEOUT, create_oauth
from vibesync.utils.errors import UnknownActionError, ValidationError, VibeSyncError, require_fields
from vibesync.utils.http import get_request_data, handle_errors

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)


def get_oauth():
    """OAuth helper built from app config, or a 500 when credentials are missing"""
    client_id = current_app.config.get("SPOTIFY_CLIENT_ID")
    client_secret = current_app.config.get("SPOTIFY_CLIENT_SECRET")

    if not client_id or not client_secret:
        raise VibeSyncError(
            "Server configuration error",
            status_code=500,
            payload={
                "message": "Spotify credentials not configured. Set SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET.",
                "hasClientId": bool(client_id),
                "hasClientSecret": bool(client_secret),
            }
        )

    return create_oauth(
        client_id,
        client_secret,
        current_app.config["SPOTIFY_REDIRECT_URI"],
        timeout=current_app.config.get("SPOTIFY_TIMEOUT", DEFAULT_TIMEOUT)
    )


def login(oauth):
    """Redirect to Spotify authorization"""
    return redirect(oauth.get_authorize_url())


def callback(oauth, code):
    """Exchange the authorization code and hand the tokens to the frontend"""
    if request.args.get('error'):
        raise ValidationError("Authorization denied", payload={"details": request.args.get('error')})
    if not code:
        raise ValidationError("No code provided", payload={"field": "code"})

    try:
        token_info = oauth.get_access_token(code, as_dict=True, check_cache=False)
    except (SpotifyOauthError, requests.RequestException) as e:
        logger.error(f"Token exchange failed: {e}")
        raise ValidationError("Failed to get token", payload={"details": str(e)}) from e

    if not token_info or not token_info.get("access_token"):
        raise ValidationError("Failed to get token", payload={"details": token_info})

    query = urlencode({
        "token": token_info["access_token"],
        "refresh": token_info.get("refresh_token") or "",
    })
    frontend_url = current_app.config["FRONTEND_URL"].rstrip("/")
    logger.info("Token exchange succeeded, redirecting to frontend")
    return redirect(f"{frontend_url}?{query}")


def refresh(oauth):
    """Swap a refresh token for a new access token"""
    data = get_request_data()
    require_fields(data, 'refresh_token')

    try:
        token_info = oauth.refresh_access_token(data['refresh_token'])
    except (SpotifyOauthError, requests.RequestException) as e:
        logger.error(f"Token refresh failed: {e}")
        raise VibeSyncError("Token refresh failed", status_code=500, payload={"details": str(e)}) from e

    return jsonify(token_info)


@auth_bp.route("/auth", methods=["GET", "POST"])
@handle_errors("Authentication failed")
def auth_api():
    """Spotify OAuth flow"""
    action = request.args.get('action')
    code = request.args.get('code')
    oauth = get_oauth()

    if action == 'login':
        return login(oauth)
    if action == 'callback' or code:
        return callback(oauth, code)
    if action == 'refresh':
        return refresh(oauth)

    raise UnknownActionError(action)


@auth_bp.route("/callback")
@handle_errors("Authentication failed")
def spotify_callback():
    """Redirect URI registered with Spotify"""
    return callback(get_oauth(), request.args.get('code'))
