"""
Listening session record and its operations.

A session is a plain dict (camelCase keys, the same shape that is stored and
sent to clients). The functions here change a record in memory and raise
VibeSync errors; loading and saving is left to the caller.
"""

import random
import time

from vibesync.utils.errors import AuthorizationError, NotFoundError, ValidationError

__all__ = [
    'CODE_ALPHABET', 'CODE_LENGTH', 'HISTORY_LIMIT', 'HISTORY_VIEW_LIMIT', 'REACTION_LIMIT', 'REACTION_TTL_MS',
    'now_ms', 'generate_session_code', 'new_session', 'public_view', 'touch',
    'upsert_guest', 'remove_guest', 'collect_tokens', 'guests_without_tokens',
    'add_track', 'toggle_vote', 'remove_track', 'push_history', 'update_current_track',
    'play_next', 'add_reaction', 'prune_reactions', 'update_token', 'add_play_request',
    'clear_play_request', 'update_settings'
]

# Uppercase alphanumerics without I, O, 0 and 1
CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
CODE_LENGTH = 6

HISTORY_LIMIT = 50
HISTORY_VIEW_LIMIT = 10
REACTION_LIMIT = 20
REACTION_TTL_MS = 5000

DEFAULT_SETTINGS = {
    'allowVoting': True,
    'allowGuestRemove': False,
    'autoPlay': True,
    'syncPlayback': True
}

_rng = random.SystemRandom()


def now_ms():
    """Current wall-clock time in epoch milliseconds"""
    return int(time.time() * 1000)


def generate_session_code():
    """Draw a random session code; codes are not reserved after a session ends"""
    return ''.join(_rng.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def new_session(code, host_token, host_name=None, host_id=None):
    """Build an empty session record"""
    created = now_ms()
    return {
        'code': code,
        'hostId': host_id,
        'hostName': host_name or 'Host',
        'hostToken': host_token,
        'queue': [],
        'guests': [],
        'history': [],
        'reactions': [],
        'playRequests': [],
        'currentTrack': None,
        'isPlaying': False,
        'createdAt': created,
        'lastActivity': created,
        'settings': dict(DEFAULT_SETTINGS)
    }


def touch(session):
    session['lastActivity'] = max(now_ms(), session.get('lastActivity') or 0)


def public_view(session, extended=False):
    """Client-facing projection; never includes any bearer token"""
    view = {
        'code': session['code'],
        'hostName': session.get('hostName'),
        'queue': session.get('queue', []),
        'guests': [{'id': g['id'], 'name': g.get('name')} for g in session.get('guests', [])],
        'history': session.get('history', [])[-HISTORY_VIEW_LIMIT:],
        'currentTrack': session.get('currentTrack'),
        'isPlaying': session.get('isPlaying', False),
        'settings': session.get('settings', dict(DEFAULT_SETTINGS))
    }
    if extended:
        view['reactions'] = session.get('reactions', [])
        view['playRequests'] = session.get('playRequests', [])
        view['lastActivity'] = session.get('lastActivity')
    return view


# Guests

def upsert_guest(session, guest_id=None, name=None, token=None):
    """Insert a guest, or merge into the existing one with the same id"""
    guests = session.setdefault('guests', [])
    guest_id = guest_id or f"guest_{now_ms()}"

    guest = {
        'id': guest_id,
        'name': name or f"Guest {len(guests) + 1}",
        'token': token,
        'joinedAt': now_ms()
    }

    for index, existing in enumerate(guests):
        if existing['id'] == guest_id:
            merged = dict(existing)
            merged.update(guest)
            if not name:
                merged['name'] = existing.get('name') or guest['name']
            guests[index] = merged
            touch(session)
            return merged

    guests.append(guest)
    touch(session)
    return guest


def remove_guest(session, guest_id):
    session['guests'] = [g for g in session.get('guests', []) if g['id'] != guest_id]
    touch(session)
    return len(session['guests'])


def collect_tokens(session):
    """Host token first, then every guest holding a token, in join order"""
    tokens = []
    if session.get('hostToken'):
        tokens.append(session['hostToken'])
    tokens.extend(g['token'] for g in session.get('guests', []) if g.get('token'))
    return tokens


def guests_without_tokens(session):
    return [g.get('name') for g in session.get('guests', []) if not g.get('token')]


# Queue

def _find_track(session, track_id):
    for index, item in enumerate(session.get('queue', [])):
        if item.get('id') == track_id:
            return index, item
    return -1, None


def add_track(session, track, added_by=None, added_by_id=None):
    """Append a track; the adder's vote is counted automatically"""
    if not isinstance(track, dict) or not track.get('id'):
        raise ValidationError("Track with an id required", payload={'field': 'track'})

    _, existing = _find_track(session, track['id'])
    if existing is not None:
        raise ValidationError("Track already in queue")

    item = dict(track)
    item.update({
        'addedBy': added_by or 'Guest',
        'addedById': added_by_id,
        'addedAt': now_ms(),
        'votes': 1,
        'votedBy': [added_by_id or added_by or 'Guest']
    })
    session.setdefault('queue', []).append(item)
    touch(session)
    return item


def toggle_vote(session, track_id, voter_id=None):
    """Add a vote, or retract it if this voter already voted, then re-sort"""
    if not session.get('settings', {}).get('allowVoting', True):
        raise AuthorizationError("Voting disabled")

    _, item = _find_track(session, track_id)
    if item is None:
        raise NotFoundError("Track not found in queue")

    voter = voter_id or 'anonymous'
    voted_by = item.setdefault('votedBy', [])

    if voter in voted_by:
        item['votes'] = max(0, (item.get('votes') or 0) - 1)
        item['votedBy'] = [v for v in voted_by if v != voter]
    else:
        item['votes'] = (item.get('votes') or 0) + 1
        voted_by.append(voter)

    # list.sort is stable, ties keep their previous order
    session['queue'].sort(key=lambda t: t.get('votes') or 0, reverse=True)
    touch(session)
    return item


def remove_track(session, track_id, requester_id=None, is_host=False):
    """Host, the adder, or anyone when allowGuestRemove is on"""
    index, item = _find_track(session, track_id)
    if item is None:
        raise NotFoundError("Track not found")

    allow_guest_remove = session.get('settings', {}).get('allowGuestRemove', False)
    is_owner = requester_id is not None and item.get('addedById') == requester_id
    if not (is_host or is_owner or allow_guest_remove):
        raise AuthorizationError("Not authorized to remove this track")

    del session['queue'][index]
    touch(session)
    return item


# Playback state

def push_history(session, track):
    history = session.setdefault('history', [])
    played = dict(track)
    played['playedAt'] = now_ms()
    history.append(played)
    if len(history) > HISTORY_LIMIT:
        session['history'] = history[-HISTORY_LIMIT:]


def update_current_track(session, track):
    """Record which track started playing; the previous one goes to history"""
    if track is not None and (not isinstance(track, dict) or not track.get('id')):
        raise ValidationError("Track with an id required", payload={'field': 'track'})

    current = session.get('currentTrack')
    if current and current.get('id') != (track or {}).get('id'):
        push_history(session, current)

    session['currentTrack'] = track
    session['isPlaying'] = bool(track)
    touch(session)
    return track


def play_next(session):
    """Pop the head of the queue and make it the current track"""
    queue = session.get('queue', [])
    if not queue:
        raise ValidationError("Queue is empty")

    if session.get('currentTrack'):
        push_history(session, session['currentTrack'])

    next_track = queue.pop(0)
    session['currentTrack'] = next_track
    session['isPlaying'] = True
    touch(session)
    return next_track


# Reactions and requests

def add_reaction(session, emoji, user_name=None, user_id=None):
    reactions = session.setdefault('reactions', [])
    reactions.append({
        'emoji': emoji,
        'userName': user_name or 'Anonymous',
        'userId': user_id,
        'timestamp': now_ms()
    })
    if len(reactions) > REACTION_LIMIT:
        session['reactions'] = reactions[-REACTION_LIMIT:]
    touch(session)
    return session['reactions']


def prune_reactions(session, now=None):
    """Drop reactions older than five seconds; returns how many were dropped"""
    now = now if now is not None else now_ms()
    reactions = session.get('reactions', [])
    kept = [r for r in reactions if now - r.get('timestamp', 0) < REACTION_TTL_MS]
    session['reactions'] = kept
    return len(reactions) - len(kept)


def update_token(session, new_token, participant_id=None, is_host=False):
    """Store a refreshed token; returns False when the guest is gone"""
    if is_host:
        session['hostToken'] = new_token
        touch(session)
        return True

    for guest in session.get('guests', []):
        if guest['id'] == participant_id:
            guest['token'] = new_token
            touch(session)
            return True
    return False


def add_play_request(session, track, requested_by=None, requested_by_id=None):
    if not isinstance(track, dict) or not track.get('id'):
        raise ValidationError("Track with an id required", payload={'field': 'track'})

    pending = session.setdefault('playRequests', [])
    if any(r['track'].get('id') == track['id'] for r in pending):
        raise ValidationError("Song already requested")

    pending.append({
        'track': track,
        'requestedBy': requested_by or 'Guest',
        'requestedById': requested_by_id,
        'requestedAt': now_ms()
    })
    touch(session)
    return pending


def clear_play_request(session, track_id):
    """Accepting and dismissing a request both remove it"""
    session['playRequests'] = [
        r for r in session.get('playRequests', []) if r['track'].get('id') != track_id
    ]
    return session['playRequests']


def update_settings(session, settings):
    if not isinstance(settings, dict):
        raise ValidationError("Settings must be an object", payload={'field': 'settings'})

    merged = dict(DEFAULT_SETTINGS)
    merged.update(session.get('settings', {}))
    for key, value in settings.items():
        if key in DEFAULT_SETTINGS and not isinstance(value, bool):
            raise ValidationError(f"Setting {key} must be true or false", payload={'field': key})

    merged.update({k: v for k, v in settings.items() if k in DEFAULT_SETTINGS})
    session['settings'] = merged
    touch(session)
    return merged
