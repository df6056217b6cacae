"""
Cryptographic utilities for secret envelopes, sub-key derivation and tokens.

This module provides the password-based authenticated encryption used to keep
a recoverable copy of each user's password (PBKDF2-HMAC-SHA256 + AES-256-GCM),
HKDF derivation of purpose-bound sub-keys from the root server secret, and
helpers for generating and fingerprinting opaque tokens.
"""

import hashlib
import json
import secrets
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from utils.error_handling import DecryptionError

# PBKDF2 parameters for envelope keys
PBKDF2_ITERATIONS = 250000  # Minimum accepted iterations
PBKDF2_KEY_LENGTH = 32      # Output length in bytes (256 bits for AES-256)

# Cryptographic sizes
SALT_SIZE = 16              # Bytes for salt (128 bits)
NONCE_SIZE = 12             # Bytes for AES-GCM nonce (96 bits)
TAG_SIZE = 16               # Bytes for the AES-GCM authentication tag
RESET_TOKEN_SIZE = 32       # Bytes for password reset tokens (256 bits)

# HKDF context strings for sub-keys of the root secret
TOKEN_SIGNING_CONTEXT = "session-token-signing"
ENVELOPE_CONTEXT = "secret-envelope"


class SecretEnvelopeCipher:
    """
    Password-based authenticated encryption of JSON values.

    Envelope layout: salt (16 bytes) | iv (12 bytes) | ciphertext + GCM tag.
    Every seal draws a fresh salt and nonce, so sealing the same value twice
    gives different envelopes; opening is deterministic.
    """

    def __init__(self, iterations: int = PBKDF2_ITERATIONS):
        if iterations < PBKDF2_ITERATIONS:
            raise ValueError(f"PBKDF2 iterations must be >= {PBKDF2_ITERATIONS}")
        self.iterations = iterations

    def derive(self, passphrase: str, salt: bytes) -> bytes:
        """
        Derive a 256-bit AES-GCM key from a passphrase using PBKDF2-HMAC-SHA256.

        Args:
            passphrase (str): The passphrase to derive a key from
            salt (bytes): A 16-byte random salt for the derivation

        Returns:
            bytes: A 32-byte key, only ever passed to AESGCM
        """
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=PBKDF2_KEY_LENGTH,
            salt=salt,
            iterations=self.iterations,
        )
        return kdf.derive(passphrase.encode('utf-8'))

    def seal(self, value: Any, passphrase: str) -> bytes:
        """
        Encrypt a JSON-serializable value under a passphrase.

        Args:
            value: Any JSON-serializable value (usually the password string)
            passphrase (str): The passphrase to derive the encryption key from

        Returns:
            bytes: Concatenated salt (16 bytes) + nonce (12 bytes) + ciphertext
        """
        salt = secrets.token_bytes(SALT_SIZE)
        nonce = secrets.token_bytes(NONCE_SIZE)
        key = self.derive(passphrase, salt)
        plaintext = json.dumps(value, ensure_ascii=False, separators=(',', ':')).encode('utf-8')
        ct = AESGCM(key).encrypt(nonce, plaintext, None)
        return salt + nonce + ct

    def open(self, envelope: bytes, passphrase: str) -> Any:
        """
        Decrypt an envelope produced by seal().

        Args:
            envelope (bytes): salt + nonce + ciphertext
            passphrase (str): The passphrase the envelope was sealed with

        Returns:
            The original JSON value

        Raises:
            DecryptionError: Wrong passphrase, corrupted bytes or wrong layout
        """
        if not envelope or len(envelope) < SALT_SIZE + NONCE_SIZE + TAG_SIZE:
            raise DecryptionError("Envelope is too short")
        salt = envelope[:SALT_SIZE]
        nonce = envelope[SALT_SIZE:SALT_SIZE + NONCE_SIZE]
        ct = envelope[SALT_SIZE + NONCE_SIZE:]
        key = self.derive(passphrase, salt)
        try:
            plaintext = AESGCM(key).decrypt(nonce, ct, None)
        except InvalidTag:
            raise DecryptionError("Envelope authentication failed") from None
        try:
            return json.loads(plaintext.decode('utf-8'))
        except (UnicodeDecodeError, ValueError):
            raise DecryptionError("Envelope payload is not valid JSON") from None


def derive_subkey(root_secret: str, context: str, length: int = 32) -> bytes:
    """
    Derive a purpose-bound key from the root server secret using HKDF-SHA256.

    Distinct context strings give independent keys, so the token signing key
    and the envelope passphrase never coincide with each other or the root.

    Args:
        root_secret (str): The configured SECRET_KEY
        context (str): Purpose label (see *_CONTEXT constants)
        length (int): Output length in bytes

    Returns:
        bytes: The derived key
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=length,
        salt=None,
        info=context.encode('utf-8'),
    )
    return hkdf.derive(root_secret.encode('utf-8'))


def derive_envelope_passphrase(root_secret: str) -> str:
    """Return the envelope passphrase (hex) derived from the root secret."""
    return derive_subkey(root_secret, ENVELOPE_CONTEXT).hex()


def derive_token_signing_key(root_secret: str) -> bytes:
    """Return the HMAC key for session tokens derived from the root secret."""
    return derive_subkey(root_secret, TOKEN_SIGNING_CONTEXT)


def generate_reset_token() -> str:
    """Generate an unguessable, URL-safe password reset token."""
    return secrets.token_urlsafe(RESET_TOKEN_SIZE)


def fingerprint_token(token: str) -> str:
    """
    Hash a token for use as a store key.

    Revocation entries are keyed by this SHA256 digest rather than the raw
    token, which keeps keys short and keeps live tokens out of the store.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()
