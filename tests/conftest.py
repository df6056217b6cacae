"""
Centralized pytest configuration for identity service tests.

This module provides standardized fixtures and utilities for all test modules,
ensuring consistent database setup, client configuration, and resource cleanup.
"""

import pytest
import os
import sys

# Add project root to Python path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app import create_app
from config import TestingConfig
from db.database import db
from db.kv_store import (
    DIRECTORY_NAMESPACE,
    PASSWORD_RESET_NAMESPACE,
    TOKEN_BLACKLIST_NAMESPACE,
    USERS_NAMESPACE,
    KeyValueStore,
)
from services.credential_store import CredentialStore
from services.directory_association_service import DirectoryAssociationStore
from services.password_reset_service import PasswordResetService
from services.session_token_service import SessionTokenService
from utils.crypto_utils import (
    SecretEnvelopeCipher,
    derive_envelope_passphrase,
    derive_token_signing_key,
)

ALICE_EMAIL = 'alice@example.com'
ALICE_PASSWORD = 'Passw0rd123!'
BOB_EMAIL = 'bob@example.com'
BOB_PASSWORD = 'B0bsSecretPass'


@pytest.fixture(scope="function")
def app():
    """
    Create a Flask app for testing with fresh in-memory database.

    Each test gets a clean database and an app context that stays pushed
    for the duration of the test, so services can be used directly.
    """
    app = create_app(TestingConfig)

    with app.app_context():
        yield app
        # Clean teardown
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope="function")
def client(app):
    """Test client for HTTP endpoint testing. Keeps cookies between requests."""
    return app.test_client()


@pytest.fixture
def sent_reset_links(app):
    """Capture reset links instead of delivering them."""
    links = []
    app.config['RESET_LINK_SENDER'] = lambda email, token: links.append((email, token))
    return links


@pytest.fixture
def cipher():
    return SecretEnvelopeCipher()


@pytest.fixture
def envelope_passphrase():
    return derive_envelope_passphrase(TestingConfig.SECRET_KEY)


@pytest.fixture
def credentials(app, cipher, envelope_passphrase):
    return CredentialStore(
        KeyValueStore(USERS_NAMESPACE),
        cipher,
        envelope_passphrase=envelope_passphrase,
        legacy_passphrases=[TestingConfig.SECRET_KEY],
    )


@pytest.fixture
def tokens(app):
    return SessionTokenService(
        derive_token_signing_key(TestingConfig.SECRET_KEY),
        KeyValueStore(TOKEN_BLACKLIST_NAMESPACE),
    )


@pytest.fixture
def resets(app, credentials):
    return PasswordResetService(KeyValueStore(PASSWORD_RESET_NAMESPACE), credentials)


@pytest.fixture
def directories(app):
    return DirectoryAssociationStore(KeyValueStore(DIRECTORY_NAMESPACE))


def register_test_user(client, email=ALICE_EMAIL, password=ALICE_PASSWORD):
    """
    Register a test user via HTTP endpoint.

    Returns:
        Flask response object from registration request
    """
    return client.post('/api/auth/register', json={'email': email, 'password': password})


def session_cookie(response, name='token'):
    """Return the session token set by a response, or None."""
    for header in response.headers.getlist('Set-Cookie'):
        cookie_name, _, rest = header.partition('=')
        if cookie_name == name:
            return rest.split(';', 1)[0]
    return None


def bearer(token):
    return {'Authorization': f'Bearer {token}'}
