"""
Session API routes for VibeSync.
One endpoint; the `action` query parameter selects the handler.

Every handler loads the whole session record, changes it in memory and
writes the whole record back. Two requests for the same code can therefore
overwrite each other's changes; clients poll and see the last write.
"""

import logging
from flask import Blueprint, current_app, request, jsonify

from vibesync.models import session_models as sessions
from vibesync.utils.errors import NotFoundError, UnknownActionError, require_fields
from vibesync.utils.http import get_request_data, handle_errors

logger = logging.getLogger(__name__)

session_bp = Blueprint('session', __name__)


def get_store():
    return current_app.session_store


def load_session(code):
    """Fetch a session or raise NotFoundError"""
    session = get_store().get(code)
    if session is None:
        raise NotFoundError("Session not found")
    return session


def save_session(session):
    get_store().set(session['code'], session)


def session_code(data):
    """Session code from the body, falling back to the query string"""
    code = data.get('code') or request.args.get('code')
    return code.strip().upper() if isinstance(code, str) and code.strip() else None


def create(data):
    """Create a new session (host only)"""
    require_fields(data, 'hostToken')

    code = sessions.generate_session_code()
    session = sessions.new_session(
        code,
        data['hostToken'],
        host_name=data.get('hostName'),
        host_id=data.get('hostId')
    )
    save_session(session)
    logger.info(f"Session created: {code}")

    return {
        'session': {
            'code': code,
            'hostName': session['hostName'],
            'queueLength': 0,
            'guestCount': 0
        }
    }


def join(data):
    """Join as a guest; rejoining with the same id refreshes name and token"""
    code = data['code']
    logger.info(f"Join attempt: code={code}, hasToken={bool(data.get('guestToken'))}")

    session = get_store().get(code)
    if session is None:
        raise NotFoundError(
            "Session not found",
            payload={'hint': 'The session may have expired. Please ask the host to create a new session.'}
        )

    sessions.upsert_guest(
        session,
        guest_id=data.get('guestId'),
        name=data.get('guestName'),
        token=data.get('guestToken')
    )
    save_session(session)

    return {'session': sessions.public_view(session)}


def get(data):
    """Polling read; expired reactions are pruned on the way"""
    session = load_session(data['code'])

    # Only write back when something was pruned
    if sessions.prune_reactions(session):
        save_session(session)

    return {'session': sessions.public_view(session, extended=True)}


def get_all_tokens(data):
    """Tokens for synchronized playback: host first, then guests in join order"""
    session = load_session(data['code'])

    tokens = sessions.collect_tokens(session)
    missing = sessions.guests_without_tokens(session)
    logger.info(f"Tokens for sync in {session['code']}: {len(tokens)} "
                f"({len(missing)} guests without a token)")

    return {
        'tokens': tokens,
        'participantCount': len(tokens),
        'guestsWithoutTokens': missing
    }


def add_track(data):
    require_fields(data, 'track')
    session = load_session(data['code'])

    sessions.add_track(session, data['track'], added_by=data.get('addedBy'),
                       added_by_id=data.get('addedById'))
    save_session(session)

    return {'queue': session['queue']}


def vote(data):
    require_fields(data, 'trackId')
    session = load_session(data['code'])

    sessions.toggle_vote(session, data['trackId'], voter_id=data.get('voterId'))
    save_session(session)

    return {'queue': session['queue']}


def remove_track(data):
    require_fields(data, 'trackId')
    session = load_session(data['code'])

    sessions.remove_track(
        session,
        data['trackId'],
        requester_id=data.get('requesterId'),
        is_host=bool(data.get('isHost'))
    )
    save_session(session)

    return {'queue': session['queue']}


def update_track(data):
    """Set the track that just started playing (play-now flow)"""
    session = load_session(data['code'])

    sessions.update_current_track(session, data.get('track'))
    save_session(session)

    return {
        'currentTrack': session['currentTrack'],
        'history': session['history'][-sessions.HISTORY_VIEW_LIMIT:]
    }


def play_next(data):
    """Advance the queue; returns every token so the caller can fan out playback"""
    session = load_session(data['code'])

    track = sessions.play_next(session)
    tokens = sessions.collect_tokens(session)
    save_session(session)
    logger.info(f"Session {session['code']} now playing {track.get('id')} ({len(tokens)} tokens)")

    return {
        'track': track,
        'queue': session['queue'],
        'tokens': tokens,
        'history': session['history'][-sessions.HISTORY_VIEW_LIMIT:]
    }


def history(data):
    session = load_session(data['code'])
    return {
        'history': session.get('history', []),
        'currentTrack': session.get('currentTrack')
    }


def react(data):
    require_fields(data, 'emoji')
    session = load_session(data['code'])

    reactions = sessions.add_reaction(session, data['emoji'], user_name=data.get('userName'),
                                      user_id=data.get('userId'))
    save_session(session)

    return {'reactions': reactions}


def update_token(data):
    """Store a refreshed token; a vanished session or guest is not an error"""
    require_fields(data, 'newToken')
    session = get_store().get(data['code'])

    if session is None:
        logger.info(f"Token update for non-existent session {data['code']} - ignoring")
        return {'message': 'Session not found, token not updated'}

    # oderId is accepted for older clients
    participant_id = data.get('userId') or data.get('oderId')
    if not sessions.update_token(session, data['newToken'], participant_id=participant_id,
                                 is_host=bool(data.get('isHost'))):
        logger.info(f"Guest {participant_id} not found for token update - may have left")
        return {}

    save_session(session)
    return {}


def request_play(data):
    """Guest asks the host to play a song"""
    require_fields(data, 'track')
    session = load_session(data['code'])

    pending = sessions.add_play_request(session, data['track'], requested_by=data.get('requestedBy'),
                                        requested_by_id=data.get('requestedById'))
    save_session(session)

    return {'message': 'Request sent to host', 'requests': pending}


def clear_request(data):
    session = load_session(data['code'])

    pending = sessions.clear_play_request(session, data.get('trackId'))
    save_session(session)

    return {'requests': pending}


def update_settings(data):
    require_fields(data, 'settings')
    session = load_session(data['code'])

    settings = sessions.update_settings(session, data['settings'])
    save_session(session)

    return {'settings': settings}


def end(data):
    """End the session (host only); the code becomes free for reuse"""
    deleted = get_store().delete(data['code'])
    logger.info(f"Session end {data['code']}: deleted={deleted}")

    return {
        'success': deleted,
        'message': 'Session ended' if deleted else 'Session not found'
    }


def leave(data):
    """Guest leaves; leaving an ended session succeeds"""
    session = get_store().get(data['code'])
    if session is None:
        return {'message': 'Session already ended'}

    guest_count = sessions.remove_guest(session, data.get('guestId'))
    save_session(session)

    return {'guestCount': guest_count}


ACTIONS = {
    'create': create,
    'join': join,
    'get': get,
    'get-all-tokens': get_all_tokens,
    'addTrack': add_track,
    'vote': vote,
    'removeTrack': remove_track,
    'update-track': update_track,
    'playNext': play_next,
    'history': history,
    'react': react,
    'update-token': update_token,
    'request-play': request_play,
    'clear-request': clear_request,
    'updateSettings': update_settings,
    'end': end,
    'leave': leave,
}


@session_bp.route("/session", methods=["GET", "POST", "PUT", "DELETE"])
@handle_errors("Session operation failed")
def session_api():
    """Dispatch a session action"""
    action = request.args.get('action')
    logger.info(f"Session API: action={action}")

    handler = ACTIONS.get(action)
    if handler is None:
        raise UnknownActionError(action)

    data = get_request_data()
    if action != 'create':
        data['code'] = session_code(data)
        require_fields(data, 'code')

    result = {'success': True}
    result.update(handler(data))
    return jsonify(result)
