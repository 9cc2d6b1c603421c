"""
Spotify Web API integration for VibeSync.
Every call maps one logical action to exactly one HTTP request, made with the
bearer token the caller supplied.
"""

import logging

import requests
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.oauth2 import SpotifyOAuth

from vibesync.utils.errors import UpstreamError

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.spotify.com/v1"
DEFAULT_TIMEOUT = (3, 10)

SCOPES = [
    "user-read-private",
    "user-read-email",
    "user-modify-playback-state",
    "user-read-playback-state",
    "user-read-currently-playing",
    "streaming",
    "playlist-read-private",
    "playlist-read-collaborative",
]

# Shared connection pool for every outbound call
SESSION = requests.Session()
SESSION.headers.update({"User-Agent": "VibeSync/1.0"})


def spotify_request(endpoint, access_token, method="GET", params=None, data=None, timeout=DEFAULT_TIMEOUT):
    """
    Make one Spotify API request and return the raw response.
    Transport failures are raised as UpstreamError with status 500; HTTP error
    statuses are left for the caller to interpret.
    """
    url = f"{API_BASE_URL}/{endpoint.lstrip('/')}"
    headers = {
        "Authorization": f"Bearer {access_token}",
        "Content-Type": "application/json",
    }

    try:
        return SESSION.request(
            method=method,
            url=url,
            headers=headers,
            params=params,
            json=data,
            timeout=timeout
        )
    except requests.RequestException as e:
        logger.error(f"Spotify {method} {endpoint} failed: {e}")
        raise UpstreamError(f"Could not reach Spotify: {e}", status_code=500) from e


def extract_error_message(response):
    """Pull a readable message out of a Spotify error response"""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"Spotify returned {response.status_code}"

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return error.get("message") or error.get("reason") or str(error)
        if error:
            return body.get("error_description") or str(error)
    return str(body)


def raise_for_status(response):
    """Pass a non-2xx Spotify status through as an UpstreamError"""
    if response.status_code >= 400:
        message = extract_error_message(response)
        logger.warning(f"Spotify returned {response.status_code}: {message}")
        raise UpstreamError(message, status_code=response.status_code)
    return response


def json_or_empty(response):
    """Body of a successful response, or {} for No Content"""
    if response.status_code == 204 or not response.content:
        return {}
    return response.json()


# Player

def start_playback(access_token, uris=None, position_ms=None, device_id=None, timeout=DEFAULT_TIMEOUT):
    """Play the given URIs, or resume when none are given"""
    body = {}
    if uris:
        body["uris"] = uris
    if position_ms is not None:
        body["position_ms"] = position_ms
    params = {"device_id": device_id} if device_id else None
    return spotify_request("me/player/play", access_token, "PUT", params=params,
                           data=body or None, timeout=timeout)


def pause_playback(access_token, device_id=None, timeout=DEFAULT_TIMEOUT):
    params = {"device_id": device_id} if device_id else None
    return spotify_request("me/player/pause", access_token, "PUT", params=params, timeout=timeout)


def skip_next(access_token, timeout=DEFAULT_TIMEOUT):
    return spotify_request("me/player/next", access_token, "POST", timeout=timeout)


def skip_previous(access_token, timeout=DEFAULT_TIMEOUT):
    return spotify_request("me/player/previous", access_token, "POST", timeout=timeout)


def seek(access_token, position_ms, timeout=DEFAULT_TIMEOUT):
    return spotify_request("me/player/seek", access_token, "PUT",
                           params={"position_ms": int(position_ms)}, timeout=timeout)


def set_volume(access_token, volume_percent, device_id=None, timeout=DEFAULT_TIMEOUT):
    params = {"volume_percent": volume_percent}
    if device_id:
        params["device_id"] = device_id
    return spotify_request("me/player/volume", access_token, "PUT", params=params, timeout=timeout)


def add_to_queue(access_token, uri, device_id=None, timeout=DEFAULT_TIMEOUT):
    params = {"uri": uri}
    if device_id:
        params["device_id"] = device_id
    return spotify_request("me/player/queue", access_token, "POST", params=params, timeout=timeout)


def get_currently_playing(access_token, timeout=DEFAULT_TIMEOUT):
    return spotify_request("me/player/currently-playing", access_token, timeout=timeout)


def get_devices(access_token, timeout=DEFAULT_TIMEOUT):
    return spotify_request("me/player/devices", access_token, timeout=timeout)


def format_current(data):
    """Flatten a currently-playing payload for clients"""
    item = data.get("item") or {}
    images = (item.get("album") or {}).get("images") or []
    return {
        "isPlaying": data.get("is_playing", False),
        "track": {
            "id": item.get("id"),
            "name": item.get("name"),
            "artists": ", ".join(a["name"] for a in item.get("artists", [])),
            "albumArt": images[0]["url"] if images else None,
            "duration": item.get("duration_ms"),
            "progress": data.get("progress_ms"),
        }
    }


# Search

def search_tracks(query, access_token, limit=20, timeout=DEFAULT_TIMEOUT):
    """Search tracks and reshape them for the client"""
    params = {"q": query, "type": "track", "limit": limit}
    response = raise_for_status(spotify_request("search", access_token, params=params, timeout=timeout))

    items = response.json().get("tracks", {}).get("items", [])
    return [format_track(track) for track in items if track]


def format_track(track):
    images = track.get("album", {}).get("images") or []
    return {
        "id": track["id"],
        "name": track["name"],
        "artists": ", ".join(artist["name"] for artist in track.get("artists", [])),
        "album": track.get("album", {}).get("name"),
        "albumArt": images[0]["url"] if images else None,
        "duration": track.get("duration_ms"),
        "uri": track["uri"],
        "previewUrl": track.get("preview_url"),
    }


# OAuth

def create_oauth(client_id, client_secret, redirect_uri, timeout=DEFAULT_TIMEOUT):
    """Authorization-code helper; tokens are handed to the client, never cached on disk"""
    return SpotifyOAuth(
        client_id=client_id,
        client_secret=client_secret,
        redirect_uri=redirect_uri,
        scope=" ".join(SCOPES),
        show_dialog=True,
        open_browser=False,
        cache_handler=MemoryCacheHandler(),
        requests_timeout=timeout
    )
