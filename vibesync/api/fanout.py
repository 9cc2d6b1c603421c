"""
Best-effort fan-out of one player action across many bearer tokens.

Every token gets its own request, all in flight at once. One token failing
never stops the others, and the batch returns once every token has been
tried. Nothing here makes the devices converge; it only reports what each
token's request did.
"""

import logging
from concurrent.futures import ThreadPoolExecutor

from vibesync.api.spotify import extract_error_message, get_currently_playing
from vibesync.utils.errors import VibeSyncError

logger = logging.getLogger(__name__)

EXCELLENT_DRIFT_MS = 1000
GOOD_DRIFT_MS = 3000


def response_result(response):
    """Per-token outcome of a Spotify player call"""
    success = 200 <= response.status_code < 300
    return {
        "success": success,
        "status": response.status_code,
        "error": None if success else extract_error_message(response),
    }


def broadcast(tokens, call, max_workers=8, on_result=response_result):
    """
    Run call(token) for every token concurrently.
    Returns one result per token, in token order. Exceptions are captured as
    {"success": False, "error": ...} for that token only.
    """
    if not tokens:
        return []

    def attempt(index, token):
        try:
            return on_result(call(token))
        except VibeSyncError as e:
            logger.warning(f"Fan-out target {index} failed: {e.message}")
            return {"success": False, "status": e.status_code, "error": e.message}
        except Exception as e:
            logger.exception(f"Fan-out target {index} raised unexpectedly")
            return {"success": False, "status": None, "error": str(e)}

    workers = max(1, min(max_workers, len(tokens)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(attempt, index, token) for index, token in enumerate(tokens)]
        return [future.result() for future in futures]


def count_successes(results):
    return sum(1 for r in results if r.get("success"))


def state_result(response):
    """Playback snapshot for drift measurement"""
    if response.status_code == 204:
        return {"success": True, "status": 204, "playing": False}
    if response.status_code >= 400:
        return {"success": False, "status": response.status_code,
                "error": extract_error_message(response)}

    data = response.json()
    item = data.get("item") or {}
    return {
        "success": True,
        "status": response.status_code,
        "playing": data.get("is_playing", False),
        "trackId": item.get("id"),
        "trackName": item.get("name"),
        "position": data.get("progress_ms"),
        "timestamp": data.get("timestamp"),
    }


def collect_states(tokens, timeout=None, max_workers=8):
    """Snapshot currently-playing state for every token"""
    kwargs = {"timeout": timeout} if timeout else {}
    states = broadcast(
        tokens,
        lambda token: get_currently_playing(token, **kwargs),
        max_workers=max_workers,
        on_result=state_result
    )
    for index, state in enumerate(states):
        state["user"] = index
    return states


def measure_drift(states):
    """Spread between the furthest-ahead and furthest-behind positions"""
    positions = [s["position"] for s in states if s.get("position") is not None]
    if not positions:
        return 0
    return max(positions) - min(positions)


def sync_quality(drift_ms):
    if drift_ms < EXCELLENT_DRIFT_MS:
        return "excellent"
    if drift_ms < GOOD_DRIFT_MS:
        return "good"
    return "poor"
