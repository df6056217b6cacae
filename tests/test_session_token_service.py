"""
Tests for session token issue, verification, refresh and revocation.
"""

from datetime import timedelta

import jwt
import pytest

from db.database import db
from db.kv_store import TOKEN_BLACKLIST_NAMESPACE, KeyValueStore
from models.kv_entry import KvEntry
from models.timestamps import ensure_aware, utcnow
from services.session_token_service import SessionTokenService
from utils.crypto_utils import fingerprint_token
from utils.error_handling import AuthenticationError

ACCOUNT_UUID = '5f0c7a4e-2b1d-4a8e-9c3f-1e2d3c4b5a69'
EMAIL = 'alice@example.com'


class TestIssueAndVerify:

    def test_issue_and_verify(self, tokens):
        token = tokens.issue(ACCOUNT_UUID, EMAIL)
        claims = tokens.verify(token)

        assert claims.uuid == ACCOUNT_UUID
        assert claims.email == EMAIL
        lifetime = claims.expires_at - claims.issued_at
        assert timedelta(days=89) < lifetime <= timedelta(days=90)

    def test_tokens_issued_together_are_distinct(self, tokens):
        assert tokens.issue(ACCOUNT_UUID, EMAIL) != tokens.issue(ACCOUNT_UUID, EMAIL)

    def test_verify_rejects_garbage(self, tokens):
        assert tokens.verify(None) is None
        assert tokens.verify('') is None
        assert tokens.verify('not.a.jwt') is None

    def test_verify_rejects_other_signing_key(self, tokens):
        other = SessionTokenService(b'x' * 32, KeyValueStore(TOKEN_BLACKLIST_NAMESPACE))
        assert tokens.verify(other.issue(ACCOUNT_UUID, EMAIL)) is None

    def test_verify_rejects_expired_token(self, tokens):
        issued_long_ago = SessionTokenService(
            tokens.signing_key,
            tokens.blacklist,
            clock=lambda: utcnow() - timedelta(days=91),
        )
        assert tokens.verify(issued_long_ago.issue(ACCOUNT_UUID, EMAIL)) is None

    def test_expiry_follows_the_service_clock(self, tokens):
        token = tokens.issue(ACCOUNT_UUID, EMAIL)
        later = SessionTokenService(
            tokens.signing_key,
            tokens.blacklist,
            clock=lambda: utcnow() + timedelta(days=91),
        )
        assert tokens.verify(token) is not None
        assert later.verify(token) is None

    def test_token_from_a_skewed_clock_verifies_under_that_clock(self, tokens):
        skewed = SessionTokenService(
            tokens.signing_key,
            tokens.blacklist,
            clock=lambda: utcnow() - timedelta(days=91),
        )
        claims = skewed.verify(skewed.issue(ACCOUNT_UUID, EMAIL))
        assert claims is not None
        assert claims.uuid == ACCOUNT_UUID

    def test_verify_rejects_malformed_claims(self, tokens):
        now = utcnow()
        token = jwt.encode(
            {'uuid': 42, 'email': EMAIL, 'iat': now, 'exp': now + timedelta(days=1)},
            tokens.signing_key,
            algorithm='HS256',
        )
        assert tokens.verify(token) is None

    def test_verify_rejects_token_without_expiry(self, tokens):
        token = jwt.encode({'uuid': ACCOUNT_UUID, 'email': EMAIL, 'iat': utcnow()}, tokens.signing_key, algorithm='HS256')
        assert tokens.verify(token) is None


class TestRevocation:

    def test_revoke_and_is_revoked(self, tokens):
        token = tokens.issue(ACCOUNT_UUID, EMAIL)
        assert not tokens.is_revoked(token)
        tokens.revoke(token, reason='logout')
        assert tokens.is_revoked(token)

    def test_revoke_is_idempotent(self, tokens):
        token = tokens.issue(ACCOUNT_UUID, EMAIL)
        tokens.revoke(token, reason='logout')
        tokens.revoke(token, reason='logout')
        assert tokens.is_revoked(token)

    def test_revoked_token_fails_authenticate_despite_valid_signature(self, tokens):
        token = tokens.issue(ACCOUNT_UUID, EMAIL)
        tokens.revoke(token)
        assert tokens.verify(token) is not None
        with pytest.raises(AuthenticationError):
            tokens.authenticate(token)

    def test_blacklist_entry_outlives_the_token(self, tokens):
        token = tokens.issue(ACCOUNT_UUID, EMAIL)
        tokens.revoke(token)

        entry = db.session.get(KvEntry, (TOKEN_BLACKLIST_NAMESPACE, fingerprint_token(token)))
        assert entry is not None
        assert ensure_aware(entry.expires_at) >= tokens.verify(token).expires_at

    def test_blacklist_keeps_at_least_default_ttl_for_expired_tokens(self, tokens):
        issued_long_ago = SessionTokenService(
            tokens.signing_key,
            tokens.blacklist,
            clock=lambda: utcnow() - timedelta(days=91),
        )
        token = issued_long_ago.issue(ACCOUNT_UUID, EMAIL)
        tokens.revoke(token)

        entry = db.session.get(KvEntry, (TOKEN_BLACKLIST_NAMESPACE, fingerprint_token(token)))
        assert ensure_aware(entry.expires_at) > utcnow() + timedelta(hours=23)

    def test_blacklist_stores_fingerprint_not_token(self, tokens):
        token = tokens.issue(ACCOUNT_UUID, EMAIL)
        tokens.revoke(token)
        assert db.session.get(KvEntry, (TOKEN_BLACKLIST_NAMESPACE, token)) is None


class TestRefresh:

    def test_refresh_issues_new_token_for_same_account(self, tokens):
        token = tokens.issue(ACCOUNT_UUID, EMAIL)
        new_token, old_claims = tokens.refresh(token)

        assert new_token != token
        assert old_claims.uuid == ACCOUNT_UUID
        new_claims = tokens.authenticate(new_token)
        assert (new_claims.uuid, new_claims.email) == (ACCOUNT_UUID, EMAIL)

    def test_refresh_revokes_old_token(self, tokens):
        token = tokens.issue(ACCOUNT_UUID, EMAIL)
        tokens.refresh(token)
        with pytest.raises(AuthenticationError):
            tokens.refresh(token)

    def test_refresh_just_revoked_token_fails(self, tokens):
        token = tokens.issue(ACCOUNT_UUID, EMAIL)
        tokens.revoke(token, reason='logout')
        with pytest.raises(AuthenticationError):
            tokens.refresh(token)

    @pytest.mark.parametrize('token', [None, '', 'garbage'])
    def test_refresh_rejects_missing_or_invalid(self, tokens, token):
        with pytest.raises(AuthenticationError):
            tokens.refresh(token)
