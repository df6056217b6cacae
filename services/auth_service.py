"""
Password hashing for account authentication.

This module provides the one-way half of the dual password storage. It uses
Argon2id, a memory-hard algorithm resistant to GPU and side-channel attacks.
The reversible half (the secret envelope) lives in utils.crypto_utils and is
never consulted for authentication.
"""

from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, VerificationError, InvalidHashError

# Initialize Argon2 password hasher with secure defaults
_ph = PasswordHasher()


def hash_password(password: str) -> str:
    """
    Hash a password using Argon2id.

    Args:
        password (str): The plain text password to hash

    Returns:
        str: The Argon2id hash of the password (includes salt and parameters)
    """
    return _ph.hash(password)


def verify_password(password: str, hash_: str) -> bool:
    """
    Verify a password against its stored Argon2id hash.

    The comparison is constant-time inside argon2-cffi. Hashes in any other
    format (for example legacy bcrypt strings) never verify.

    Args:
        password (str): The plain text password to verify
        hash_ (str): The stored Argon2id password hash to compare against

    Returns:
        bool: True if the password matches the hash, False otherwise
    """
    if not hash_:
        return False
    try:
        return _ph.verify(hash_, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False
