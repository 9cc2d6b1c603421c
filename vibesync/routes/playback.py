"""
Playback control routes for VibeSync.
Proxies one player action per request to Spotify with the caller's token.
"""

import logging
from flask import Blueprint, current_app, request, jsonify

from vibesync.api import spotify
from vibesync.utils.errors import AuthenticationError, UnknownActionError, require_fields
from vibesync.utils.http import get_request_data, handle_errors

logger = logging.getLogger(__name__)

playback_bp = Blueprint('playback', __name__)

MUTATIONS = ('play', 'pause', 'next', 'previous', 'volume', 'queue')


def clamp_volume(value):
    try:
        volume = int(value)
    except (TypeError, ValueError):
        volume = 50
    return max(0, min(100, volume))


def send_action(action, token, data, device_id, timeout):
    """Issue the Spotify call for a player mutation"""
    if action == 'play':
        return spotify.start_playback(token, uris=data.get('uris'), position_ms=data.get('position_ms'),
                                      device_id=device_id, timeout=timeout)
    if action == 'pause':
        return spotify.pause_playback(token, device_id=device_id, timeout=timeout)
    if action == 'next':
        return spotify.skip_next(token, timeout=timeout)
    if action == 'previous':
        return spotify.skip_previous(token, timeout=timeout)
    if action == 'volume':
        volume = clamp_volume(data.get('volume_percent', 50))
        return spotify.set_volume(token, volume, device_id=device_id, timeout=timeout)
    if action == 'queue':
        require_fields(data, 'uri')
        return spotify.add_to_queue(token, data['uri'], device_id=device_id, timeout=timeout)
    raise UnknownActionError(action)


@playback_bp.route("/playback", methods=["GET", "POST", "PUT"])
@handle_errors("Playback control failed")
def playback_api():
    """Control Spotify playback for the token holder"""
    action = request.args.get('action')
    token = request.args.get('token')
    device_id = request.args.get('device_id')
    timeout = current_app.config.get('SPOTIFY_TIMEOUT', spotify.DEFAULT_TIMEOUT)
    logger.info(f"Playback API: action={action}, method={request.method}")

    if not token:
        raise AuthenticationError("Token required")
    if not action:
        raise UnknownActionError()

    if action == 'current':
        response = spotify.get_currently_playing(token, timeout=timeout)
        if response.status_code == 204:
            return jsonify({"isPlaying": False, "track": None})
        spotify.raise_for_status(response)
        return jsonify(spotify.format_current(response.json()))

    if action == 'devices':
        response = spotify.raise_for_status(spotify.get_devices(token, timeout=timeout))
        return jsonify(spotify.json_or_empty(response))

    if action not in MUTATIONS:
        raise UnknownActionError(action)

    # Player mutations answer 204 No Content on success
    response = send_action(action, token, get_request_data(), device_id, timeout)
    spotify.raise_for_status(response)
    return jsonify({"success": True})
