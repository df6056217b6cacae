"""
Integration tests for security features.

This module tests the security mechanisms of the identity service including
rate limiting, input validation, audit logging, and configuration checks.
"""

import logging

import pytest

import config
import utils.security_utils as security_utils
from app import create_app
from config import Config, TestingConfig, get_config
from db.database import db
from utils.security_utils import (
    RateLimiter,
    normalize_email,
    validate_directory_path,
    validate_email,
    validate_password,
)

from conftest import ALICE_EMAIL, ALICE_PASSWORD, register_test_user


class RateLimitedConfig(TestingConfig):
    TESTING = False
    RATE_LIMIT_ENABLED = True


class TestRateLimiting:
    """Tests for the authentication rate limiter."""

    def test_rate_limiter_counts_per_identifier(self):
        limiter = RateLimiter(max_requests=2, window_seconds=60)
        assert limiter.is_allowed('1.2.3.4')
        assert limiter.is_allowed('1.2.3.4')
        assert not limiter.is_allowed('1.2.3.4')
        assert limiter.is_allowed('5.6.7.8')

    def test_rate_limiter_window_expires(self, monkeypatch):
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        now = [1000.0]
        monkeypatch.setattr(security_utils.time, 'time', lambda: now[0])
        assert limiter.is_allowed('ip')
        assert not limiter.is_allowed('ip')
        now[0] += 61
        assert limiter.is_allowed('ip')

    def test_rate_limiter_forgets_idle_identifiers(self, monkeypatch):
        now = [1000.0]
        monkeypatch.setattr(security_utils.time, 'time', lambda: now[0])
        limiter = RateLimiter(max_requests=5, window_seconds=60)
        assert limiter.is_allowed('10.0.0.1')
        assert limiter.is_allowed('10.0.0.2')
        assert set(limiter.requests) == {'10.0.0.1', '10.0.0.2'}

        now[0] += 61
        assert limiter.is_allowed('10.0.0.3')

        assert set(limiter.requests) == {'10.0.0.3'}

    def test_auth_endpoints_are_rate_limited(self, monkeypatch):
        monkeypatch.setattr(security_utils, 'auth_rate_limiter', RateLimiter(max_requests=2, window_seconds=60))
        app = create_app(RateLimitedConfig)
        client = app.test_client()
        payload = {'email': 'ghost@example.com', 'password': ALICE_PASSWORD}

        try:
            assert client.post('/api/auth/login', json=payload).status_code == 401
            assert client.post('/api/auth/login', json=payload).status_code == 401
            rv = client.post('/api/auth/login', json=payload)
            assert rv.status_code == 429
            assert rv.get_json() == {
                'status': 'error',
                'code': 'RATE_LIMIT_EXCEEDED',
                'message': 'Rate limit exceeded. Please try again later.',
            }
        finally:
            with app.app_context():
                db.drop_all()

    def test_rate_limit_skipped_in_testing(self, client, monkeypatch):
        monkeypatch.setattr(security_utils, 'auth_rate_limiter', RateLimiter(max_requests=1, window_seconds=60))
        payload = {'email': 'ghost@example.com', 'password': ALICE_PASSWORD}
        for _ in range(3):
            assert client.post('/api/auth/login', json=payload).status_code == 401


class TestInputValidation:

    @pytest.mark.parametrize('email', ['alice@example.com', 'a.b+tag@sub.example.org'])
    def test_valid_emails(self, email):
        assert validate_email(email) == (True, None)

    @pytest.mark.parametrize('email', ['', None, 'alice', 'alice@', '@example.com', 'a@b', 'x' * 250 + '@example.com'])
    def test_invalid_emails(self, email):
        valid, error = validate_email(email)
        assert not valid
        assert error

    def test_normalize_email(self):
        assert normalize_email('  Alice@Example.COM ') == 'alice@example.com'

    @pytest.mark.parametrize('password,valid', [
        ('Passw0rd123!', True),
        ('abcdefghijk1', True),
        ('abcdefghij1', False),
        ('abcdefghijklm', False),
        ('1234567890123', False),
        ('a1' * 65, False),
        (None, False),
    ])
    def test_password_policy(self, password, valid):
        assert validate_password(password)[0] is valid

    def test_directory_path(self):
        assert validate_directory_path('/home/alice/notes') == (True, None)
        assert not validate_directory_path('')[0]
        assert not validate_directory_path('a' * 5000)[0]
        assert not validate_directory_path('bad\x00path')[0]


class TestAuditLogging:

    def test_registration_is_audited(self, client, caplog):
        with caplog.at_level(logging.INFO, logger='audit'):
            register_test_user(client)
        assert any('user.registration' in record.getMessage() for record in caplog.records)

    def test_failed_login_is_audited(self, client, caplog):
        register_test_user(client)
        with caplog.at_level(logging.INFO, logger='audit'):
            client.post('/api/auth/login', json={'email': ALICE_EMAIL, 'password': 'Wr0ngPassword!'})
        assert any('user.login.failure' in record.getMessage() for record in caplog.records)

    def test_self_heal_is_audited(self, client, credentials, caplog):
        register_test_user(client)
        record = credentials.get(ALICE_EMAIL)
        credentials.store.put(ALICE_EMAIL, record._replace(secret_envelope=b'\x00' * 60).to_json())

        with caplog.at_level(logging.INFO, logger='audit'):
            client.post('/api/auth/login', json={'email': ALICE_EMAIL, 'password': ALICE_PASSWORD})

        messages = [record.getMessage() for record in caplog.records]
        assert any('envelope.self_heal' in message for message in messages)
        assert not any(ALICE_PASSWORD in message for message in messages)


class TestConfiguration:

    def test_get_config_testing(self):
        assert get_config('testing') is TestingConfig

    def test_low_iteration_count_rejected(self):
        class WeakConfig(Config):
            ENVELOPE_PBKDF2_ITERATIONS = 1000

        with pytest.raises(ValueError):
            WeakConfig.validate()

    def test_short_secret_rejected(self):
        class ShortSecretConfig(Config):
            SECRET_KEY = 'short'

        with pytest.raises(ValueError):
            ShortSecretConfig.validate()

    def test_generated_secret_key_is_reported(self, caplog):
        class UnsetSecretConfig(TestingConfig):
            SECRET_KEY = config._GENERATED_SECRET_KEY

        with caplog.at_level(logging.WARNING):
            app = create_app(UnsetSecretConfig)
        try:
            assert any('SECRET_KEY is not set' in r.getMessage() for r in caplog.records)
        finally:
            with app.app_context():
                db.drop_all()

    def test_configured_secret_key_is_not_reported(self, caplog):
        with caplog.at_level(logging.WARNING):
            app = create_app(TestingConfig)
        try:
            assert not any('SECRET_KEY is not set' in r.getMessage() for r in caplog.records)
        finally:
            with app.app_context():
                db.drop_all()
