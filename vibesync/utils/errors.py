"""
Error types for VibeSync.
Every error carries the HTTP status it should be reported with.
"""


class VibeSyncError(Exception):
    """Base error rendered as a JSON error body"""

    status_code = 500

    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload or {}

    def to_dict(self):
        data = {"error": self.message}
        data.update(self.payload)
        return data


class ValidationError(VibeSyncError):
    status_code = 400


class UnknownActionError(VibeSyncError):
    status_code = 400

    def __init__(self, action=None):
        super().__init__("Invalid action", payload={"action": action} if action else None)


class AuthenticationError(VibeSyncError):
    status_code = 401


class AuthorizationError(VibeSyncError):
    status_code = 403


class NotFoundError(VibeSyncError):
    status_code = 404


class StorageError(VibeSyncError):
    status_code = 500


class UpstreamError(VibeSyncError):
    """Spotify answered with a non-2xx status, or could not be reached"""

    status_code = 500


FIELD_LABELS = {
    "code": "Session code",
    "hostToken": "Host token",
    "track": "Track",
    "trackId": "Track ID",
    "emoji": "Emoji",
    "newToken": "New token",
    "settings": "Settings",
    "trackUri": "Track URI",
    "uri": "Track URI",
    "position": "Position",
    "query": "Query",
    "token": "Token",
    "refresh_token": "Refresh token",
}


def require_fields(data, *fields):
    """Raise ValidationError naming the first missing field"""
    for field in fields:
        if data.get(field) in (None, ""):
            label = FIELD_LABELS.get(field, field)
            raise ValidationError(f"{label} required", payload={"field": field})
