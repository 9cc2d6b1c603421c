import os
import json

import pytest
import requests

# Set test environment before importing app
os.environ['VIBESYNC_SESSION_STORE'] = 'memory'
os.environ['SPOTIFY_CLIENT_ID'] = 'test-client-id'
os.environ['SPOTIFY_CLIENT_SECRET'] = 'test-client-secret'
os.environ['SPOTIFY_REDIRECT_URI'] = 'http://127.0.0.1:5000/api/callback'
os.environ['FRONTEND_URL'] = 'http://localhost:3000'

from app import create_app


@pytest.fixture
def app():
    """Fresh app with an empty in-memory session store"""
    app = create_app({
        'TESTING': True,
        'SESSION_STORE': 'memory',
        'SPOTIFY_CLIENT_ID': 'test-client-id',
        'SPOTIFY_CLIENT_SECRET': 'test-client-secret',
    })
    return app


@pytest.fixture
def client(app):
    """Create a test client"""
    with app.test_client() as client:
        yield client


@pytest.fixture
def make_response():
    """Build a real requests.Response with the given status and JSON body"""
    def _make(status_code=200, body=None):
        response = requests.Response()
        response.status_code = status_code
        response.encoding = 'utf-8'
        response._content = json.dumps(body).encode('utf-8') if body is not None else b''
        return response
    return _make


@pytest.fixture
def call_session(client):
    """POST a session action and return (status, json)"""
    def _call(action, body=None, query=None):
        url = f'/api/session?action={action}'
        if query:
            url += '&' + '&'.join(f'{k}={v}' for k, v in query.items())
        response = client.post(url, json=body or {})
        return response.status_code, json.loads(response.data)
    return _call


@pytest.fixture
def session_code(call_session):
    """Code of a freshly created session hosted with token host-token"""
    status, data = call_session('create', {'hostToken': 'host-token', 'hostName': 'DJ', 'hostId': 'host-1'})
    assert status == 200
    return data['session']['code']
