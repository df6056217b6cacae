"""
Tests for password reset token issue and consumption.
"""

from datetime import timedelta

import pytest

from db.kv_store import PASSWORD_RESET_NAMESPACE, KeyValueStore
from models.timestamps import utcnow
from services.password_reset_service import PasswordResetService
from utils.error_handling import (
    AuthenticationError,
    ResourceNotFoundError,
    TokenExpiredError,
    ValidationError,
)

from conftest import ALICE_EMAIL, ALICE_PASSWORD

NEW_PASSWORD = 'Fresh1Password'


@pytest.fixture
def alice(credentials):
    return credentials.register(ALICE_EMAIL, ALICE_PASSWORD)


def test_request_reset_for_unknown_email_returns_nothing(resets):
    assert resets.request_reset('ghost@example.com') is None


def test_request_reset_creates_token(resets, alice):
    reset = resets.request_reset(ALICE_EMAIL)
    assert reset.email == ALICE_EMAIL
    assert reset.expires_at - reset.created_at == timedelta(hours=24)
    assert resets.store.get(reset.token) is not None


def test_consume_reset_rotates_password(resets, credentials, alice):
    reset = resets.request_reset(ALICE_EMAIL)

    record = resets.consume_reset(reset.token, NEW_PASSWORD)

    assert (record.uuid, record.email) == (alice.uuid, ALICE_EMAIL)
    credentials.authenticate(ALICE_EMAIL, NEW_PASSWORD)
    with pytest.raises(AuthenticationError):
        credentials.authenticate(ALICE_EMAIL, ALICE_PASSWORD)


def test_reset_token_is_single_use(resets, alice):
    reset = resets.request_reset(ALICE_EMAIL)
    resets.consume_reset(reset.token, NEW_PASSWORD)

    with pytest.raises(ResourceNotFoundError):
        resets.consume_reset(reset.token, 'Another1Password')


def test_expired_reset_token_fails_and_is_deleted(resets, credentials, alice):
    reset = resets.request_reset(ALICE_EMAIL)
    late_clock = lambda: utcnow() + timedelta(hours=24, minutes=30)
    late_store = KeyValueStore(PASSWORD_RESET_NAMESPACE, clock=late_clock)
    late = PasswordResetService(late_store, credentials, clock=late_clock)

    with pytest.raises(TokenExpiredError) as exc_info:
        late.consume_reset(reset.token, NEW_PASSWORD)

    assert exc_info.value.error_code == 'EXPIRED'
    assert late_store.get(reset.token) is None
    assert resets.store.get(reset.token) is None
    credentials.authenticate(ALICE_EMAIL, ALICE_PASSWORD)


def test_reset_row_outlives_token_expiry(resets, alice):
    reset = resets.request_reset(ALICE_EMAIL)
    just_expired = KeyValueStore(PASSWORD_RESET_NAMESPACE, clock=lambda: reset.expires_at + timedelta(minutes=1))
    assert just_expired.get(reset.token) is not None


@pytest.mark.parametrize('weak', ['short1', 'onlyletterslong', '123456789012345', ''])
def test_weak_password_rejected_and_token_kept(resets, alice, weak):
    reset = resets.request_reset(ALICE_EMAIL)

    with pytest.raises(ValidationError):
        resets.consume_reset(reset.token, weak)

    assert resets.store.get(reset.token) is not None


def test_unknown_token(resets):
    with pytest.raises(ResourceNotFoundError):
        resets.consume_reset('no-such-token', NEW_PASSWORD)


def test_token_for_deleted_account(resets, credentials, alice):
    reset = resets.request_reset(ALICE_EMAIL)
    credentials.delete(ALICE_EMAIL)

    with pytest.raises(ResourceNotFoundError):
        resets.consume_reset(reset.token, NEW_PASSWORD)
    assert resets.store.get(reset.token) is None
