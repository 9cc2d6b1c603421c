"""
Sync endpoint tests with Spotify mocked out.
"""

import json
from unittest.mock import patch

import requests

from vibesync.api import spotify


def post_sync(client, action, body):
    response = client.post(f'/api/sync?action={action}', json=body)
    return response.status_code, json.loads(response.data)


class TestSyncValidation:

    def test_tokens_required(self, client):
        status, data = post_sync(client, 'pause-sync', {})
        assert status == 400
        assert data['error'] == 'Tokens array required'

    def test_tokens_must_be_list(self, client):
        status, _ = post_sync(client, 'pause-sync', {'tokens': 'tok1'})
        assert status == 400

    def test_unknown_action(self, client):
        status, data = post_sync(client, 'dance-sync', {'tokens': ['a']})
        assert status == 400
        assert data['error'] == 'Invalid action'

    def test_play_sync_needs_track(self, client):
        status, data = post_sync(client, 'play-sync', {'tokens': ['a']})
        assert status == 400
        assert data['error'] == 'Track URI required'

    def test_seek_sync_needs_position(self, client):
        status, data = post_sync(client, 'seek-sync', {'tokens': ['a']})
        assert status == 400
        assert data['error'] == 'Position required'


class TestSyncActions:
    """One request per token, partial success is success"""

    def test_play_sync_sends_uri_and_position(self, client, make_response):
        with patch.object(spotify.SESSION, 'request', return_value=make_response(204)) as request:
            status, data = post_sync(client, 'play-sync', {
                'tokens': ['a', 'b'],
                'trackUri': 'spotify:track:t1',
                'position': 1500
            })
        assert status == 200
        assert data['success'] is True
        assert data['message'] == 'Synced playback to 2/2 devices'
        assert request.call_count == 2
        for call in request.call_args_list:
            assert call.kwargs['method'] == 'PUT'
            assert call.kwargs['url'].endswith('/me/player/play')
            assert call.kwargs['json'] == {'uris': ['spotify:track:t1'], 'position_ms': 1500}
        sent_tokens = sorted(c.kwargs['headers']['Authorization'] for c in request.call_args_list)
        assert sent_tokens == ['Bearer a', 'Bearer b']

    def test_partial_failure_is_batch_success(self, client, make_response):
        """One failing device does not fail the batch"""
        def respond(method, url, headers, **kwargs):
            if headers['Authorization'] == 'Bearer bad':
                return make_response(404, {'error': {'status': 404, 'message': 'Player command failed: No active device found'}})
            return make_response(204)

        with patch.object(spotify.SESSION, 'request', side_effect=respond):
            status, data = post_sync(client, 'pause-sync', {'tokens': ['good', 'bad', 'good2']})
        assert status == 200
        assert data['success'] is True
        assert len(data['results']) == 3
        assert data['results'][1] == {
            'success': False,
            'status': 404,
            'error': 'Player command failed: No active device found'
        }
        assert data['message'] == 'Paused 2/3 devices'

    def test_all_fail_still_reports_each_token(self, client):
        """Network errors are captured per token"""
        with patch.object(spotify.SESSION, 'request', side_effect=requests.ConnectionError("offline")):
            status, data = post_sync(client, 'skip-sync', {'tokens': ['a', 'b', 'c']})
        assert status == 200
        assert data['success'] is False
        assert len(data['results']) == 3
        assert all(r['success'] is False for r in data['results'])
        assert data['message'] == 'Skipped on 0/3 devices'

    def test_seek_sync_position_zero_allowed(self, client, make_response):
        with patch.object(spotify.SESSION, 'request', return_value=make_response(204)) as request:
            status, data = post_sync(client, 'seek-sync', {'tokens': ['a'], 'position': 0})
        assert status == 200
        assert request.call_args.kwargs['params'] == {'position_ms': 0}

    def test_resume_sync_sends_no_body(self, client, make_response):
        with patch.object(spotify.SESSION, 'request', return_value=make_response(204)) as request:
            status, data = post_sync(client, 'resume-sync', {'tokens': ['a']})
        assert status == 200
        assert request.call_args.kwargs['json'] is None
        assert data['message'] == 'Resumed 1/1 devices'

    def test_empty_token_list(self, client):
        status, data = post_sync(client, 'pause-sync', {'tokens': []})
        assert status == 200
        assert data['success'] is False
        assert data['results'] == []


class TestGetStates:
    """Drift across devices"""

    def test_drift_and_quality(self, client, make_response):
        bodies = {
            'Bearer a': make_response(200, {'is_playing': True, 'progress_ms': 10000, 'item': {'id': 't1', 'name': 'S'}}),
            'Bearer b': make_response(200, {'is_playing': True, 'progress_ms': 11500, 'item': {'id': 't1', 'name': 'S'}}),
            'Bearer c': make_response(204),
        }
        with patch.object(spotify.SESSION, 'request', side_effect=lambda **kw: bodies[kw['headers']['Authorization']]):
            status, data = post_sync(client, 'get-states', {'tokens': ['a', 'b', 'c']})
        assert status == 200
        assert data['driftMs'] == 1500
        assert data['syncQuality'] == 'good'
        assert [s['user'] for s in data['states']] == [0, 1, 2]
        assert data['states'][2]['playing'] is False
        assert data['success'] is True
