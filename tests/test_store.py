"""
Tests for the session store backends.
"""

import json
import time

import pytest
import redis
from unittest.mock import MagicMock, patch

from vibesync.utils import config
from vibesync.utils.errors import StorageError
from vibesync.utils.store import MemorySessionStore, RedisSessionStore, session_key


class TestSessionKey:

    def test_codes_are_uppercased(self):
        """Lookups ignore case"""
        assert session_key('abc234') == 'vibesync:session:ABC234'
        assert session_key(' ABC234 ') == 'vibesync:session:ABC234'


class TestMemorySessionStore:
    """Tests for the in-process store"""

    @pytest.fixture
    def store(self):
        return MemorySessionStore(default_ttl=60)

    def test_set_and_get(self, store):
        store.set('ABC234', {'code': 'ABC234', 'queue': []})
        assert store.get('abc234') == {'code': 'ABC234', 'queue': []}

    def test_get_returns_copy(self, store):
        """Changing a loaded record does not change the stored one"""
        store.set('ABC234', {'code': 'ABC234', 'queue': []})
        loaded = store.get('ABC234')
        loaded['queue'].append('t1')
        assert store.get('ABC234')['queue'] == []

    def test_get_missing(self, store):
        assert store.get('ZZZZZZ') is None
        assert store.get(None) is None

    def test_delete(self, store):
        store.set('ABC234', {'code': 'ABC234'})
        assert store.delete('abc234') is True
        assert store.get('ABC234') is None
        assert store.delete('ABC234') is False

    def test_records_expire_by_age(self):
        """A record older than its ttl is gone"""
        store = MemorySessionStore(default_ttl=1)
        store.set('ABC234', {'code': 'ABC234'})
        time.sleep(1.1)
        assert store.get('ABC234') is None

    def test_full_store_keeps_live_sessions(self):
        """Going past the threshold never evicts a session that has not expired"""
        store = MemorySessionStore(default_ttl=60, threshold=3)
        codes = [f'AAAAA{c}' for c in 'BCDEFG']
        for code in codes:
            store.set(code, {'code': code})
        assert [code for code in codes if store.get(code) is None] == []

    def test_full_store_sweeps_expired_sessions(self):
        store = MemorySessionStore(default_ttl=60, threshold=2)
        store.set('OLDONE', {'code': 'OLDONE'}, ttl=1)
        store.set('OLDTWO', {'code': 'OLDTWO'}, ttl=1)
        store.set('LIVE22', {'code': 'LIVE22'})
        time.sleep(1.1)
        store.set('NEW234', {'code': 'NEW234'})
        assert session_key('OLDONE') not in store.cache._cache
        assert session_key('OLDTWO') not in store.cache._cache
        assert store.get('LIVE22') == {'code': 'LIVE22'}
        assert store.get('NEW234') == {'code': 'NEW234'}


class TestRedisSessionStore:
    """Tests for the Redis store with a mocked client"""

    @pytest.fixture
    def client(self):
        return MagicMock()

    @pytest.fixture
    def store(self, client):
        return RedisSessionStore(client, default_ttl=86400)

    def test_set_uses_setex_with_ttl(self, store, client):
        store.set('abc234', {'code': 'ABC234'})
        client.setex.assert_called_once_with('vibesync:session:ABC234', 86400, json.dumps({'code': 'ABC234'}))

    def test_set_with_custom_ttl(self, store, client):
        store.set('ABC234', {'code': 'ABC234'}, ttl=30)
        assert client.setex.call_args[0][1] == 30

    def test_get_decodes_json(self, store, client):
        client.get.return_value = json.dumps({'code': 'ABC234', 'queue': []})
        assert store.get('abc234') == {'code': 'ABC234', 'queue': []}
        client.get.assert_called_once_with('vibesync:session:ABC234')

    def test_get_missing(self, store, client):
        client.get.return_value = None
        assert store.get('ABC234') is None

    def test_delete_reports_whether_removed(self, store, client):
        client.delete.return_value = 1
        assert store.delete('ABC234') is True
        client.delete.return_value = 0
        assert store.delete('ABC234') is False

    def test_redis_failure_becomes_storage_error(self, store, client):
        """Connection problems surface as StorageError"""
        client.get.side_effect = redis.ConnectionError("down")
        with pytest.raises(StorageError):
            store.get('ABC234')

        client.setex.side_effect = redis.TimeoutError("slow")
        with pytest.raises(StorageError):
            store.set('ABC234', {'code': 'ABC234'})

    def test_corrupt_record(self, store, client):
        client.get.return_value = "{not json"
        with pytest.raises(StorageError):
            store.get('ABC234')


class TestStoreSelection:
    """The backend is chosen by configuration"""

    def test_memory_backend(self):
        store = config.create_session_store({'SESSION_STORE': 'memory', 'SESSION_TTL': 100})
        assert isinstance(store, MemorySessionStore)
        assert store.default_ttl == 100

    def test_redis_backend(self):
        fake_client = MagicMock()
        with patch.object(config, 'create_redis_client', return_value=fake_client) as factory:
            store = config.create_session_store({
                'SESSION_STORE': 'redis',
                'SESSION_TTL': 100,
                'REDIS_URL': 'redis://cache:6380/2'
            })
        factory.assert_called_once_with('redis://cache:6380/2')
        assert isinstance(store, RedisSessionStore)
        assert store.client is fake_client

    def test_redis_client_from_url(self):
        with patch.object(config.redis, 'Redis') as redis_cls:
            config.create_redis_client('rediss://:pw@cache.example:6380/3')
        kwargs = redis_cls.call_args.kwargs
        assert kwargs['host'] == 'cache.example'
        assert kwargs['port'] == 6380
        assert kwargs['db'] == 3
        assert kwargs['password'] == 'pw'
        assert kwargs['ssl'] is True
        assert kwargs['decode_responses'] is True

    def test_rediss_url_gets_cert_option(self, monkeypatch):
        monkeypatch.setenv('REDIS_URL', 'rediss://cache.example:6380')
        assert config.get_redis_url() == 'rediss://cache.example:6380?ssl_cert_reqs=none'
        monkeypatch.delenv('REDIS_URL')
        assert config.get_redis_url() == 'redis://localhost:6379/0'
