"""
Synchronized playback routes for VibeSync.
Sends the same player action to every participant's token at once.
"""

import logging
from flask import Blueprint, current_app, request, jsonify

from vibesync.api import fanout, spotify
from vibesync.utils.errors import UnknownActionError, ValidationError, require_fields
from vibesync.utils.http import get_request_data, handle_errors

logger = logging.getLogger(__name__)

sync_bp = Blueprint('sync', __name__)


def play_sync(data, timeout):
    """Play the same track on every device from the same position"""
    require_fields(data, 'trackUri')
    uri = data['trackUri']
    position = data.get('position') or 0
    return "Synced playback to", lambda token: spotify.start_playback(
        token, uris=[uri], position_ms=position, timeout=timeout)


def pause_sync(data, timeout):
    return "Paused", lambda token: spotify.pause_playback(token, timeout=timeout)


def resume_sync(data, timeout):
    return "Resumed", lambda token: spotify.start_playback(token, timeout=timeout)


def seek_sync(data, timeout):
    require_fields(data, 'position')
    position = data['position']
    return "Synced position on", lambda token: spotify.seek(token, position, timeout=timeout)


def skip_sync(data, timeout):
    return "Skipped on", lambda token: spotify.skip_next(token, timeout=timeout)


BROADCASTS = {
    'play-sync': play_sync,
    'pause-sync': pause_sync,
    'resume-sync': resume_sync,
    'seek-sync': seek_sync,
    'skip-sync': skip_sync,
}


@sync_bp.route("/sync", methods=["POST", "PUT"])
@handle_errors("Sync operation failed")
def sync_api():
    """Fan a player action out to all participants"""
    action = request.args.get('action')
    data = get_request_data()
    tokens = data.get('tokens')

    if not isinstance(tokens, list):
        raise ValidationError("Tokens array required", payload={"field": "tokens"})

    timeout = current_app.config.get('SPOTIFY_TIMEOUT', spotify.DEFAULT_TIMEOUT)
    max_workers = current_app.config.get('FANOUT_MAX_WORKERS', 8)
    logger.info(f"Sync API: action={action}, tokens count={len(tokens)}")

    if action == 'get-states':
        states = fanout.collect_states(tokens, timeout=timeout, max_workers=max_workers)
        drift = fanout.measure_drift(states)
        return jsonify({
            "success": fanout.count_successes(states) > 0,
            "states": states,
            "syncQuality": fanout.sync_quality(drift),
            "driftMs": drift
        })

    build = BROADCASTS.get(action)
    if build is None:
        raise UnknownActionError(action)

    verb, call = build(data, timeout)
    results = fanout.broadcast(tokens, call, max_workers=max_workers)
    successes = fanout.count_successes(results)
    logger.info(f"{action}: {successes}/{len(tokens)} devices succeeded")

    return jsonify({
        "success": successes > 0,
        "results": results,
        "message": f"{verb} {successes}/{len(tokens)} devices"
    })
