import pytest
import base64
import sys, os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
import utils.crypto_utils as crypto_utils
from utils.crypto_utils import SecretEnvelopeCipher
from utils.error_handling import DecryptionError

PASSPHRASE = 'server-envelope-passphrase'


@pytest.fixture(scope="module")
def cipher():
    return SecretEnvelopeCipher()


def test_derive_key_length_and_type(cipher):
    key = cipher.derive('testpassword', b'0' * 16)
    assert isinstance(key, bytes)
    assert len(key) == 32


def test_derive_is_deterministic_per_salt(cipher):
    assert cipher.derive('pw', b'a' * 16) == cipher.derive('pw', b'a' * 16)
    assert cipher.derive('pw', b'a' * 16) != cipher.derive('pw', b'b' * 16)


def test_iterations_below_minimum_rejected():
    with pytest.raises(ValueError):
        SecretEnvelopeCipher(iterations=1000)


@pytest.mark.parametrize('value', ['Passw0rd123!', 'pässwörd 密码', '', {'nested': [1, 2]}])
def test_seal_open_returns_original_value(cipher, value):
    envelope = cipher.seal(value, PASSPHRASE)
    assert cipher.open(envelope, PASSPHRASE) == value


def test_envelope_output_structure(cipher):
    envelope = cipher.seal('data', PASSPHRASE)
    # salt (16) + nonce (12) + ciphertext + tag (16)
    assert isinstance(envelope, bytes)
    assert len(envelope) >= 16 + 12 + 16


def test_seal_uses_fresh_salt_and_nonce(cipher):
    first = cipher.seal('same value', PASSPHRASE)
    second = cipher.seal('same value', PASSPHRASE)
    assert first != second
    assert first[:16] != second[:16]
    assert first[16:28] != second[16:28]


def test_open_wrong_passphrase(cipher):
    envelope = cipher.seal('data', PASSPHRASE)
    with pytest.raises(DecryptionError):
        cipher.open(envelope, 'another-passphrase')


# One position in each region: salt, nonce, ciphertext and tag
@pytest.mark.parametrize('position', [0, 15, 16, 27, 28, -1])
def test_single_byte_flip_fails_authentication(cipher, position):
    envelope = bytearray(cipher.seal('Passw0rd123!', PASSPHRASE))
    envelope[position] ^= 0x01
    with pytest.raises(DecryptionError):
        cipher.open(bytes(envelope), PASSPHRASE)


@pytest.mark.parametrize('envelope', [b'', b'\x00' * 10, b'\x00' * 43])
def test_open_short_envelope(cipher, envelope):
    with pytest.raises(DecryptionError):
        cipher.open(envelope, PASSPHRASE)


def test_derived_subkeys_are_distinct():
    root = 'root-secret-value'
    signing = crypto_utils.derive_token_signing_key(root)
    envelope = crypto_utils.derive_envelope_passphrase(root)
    assert len(signing) == 32
    assert signing.hex() != envelope
    assert envelope != root
    assert crypto_utils.derive_envelope_passphrase(root) == envelope
    assert crypto_utils.derive_envelope_passphrase('other-root') != envelope


def test_generate_reset_token_length_and_charset():
    token = crypto_utils.generate_reset_token()
    # Should be base64url, 43 chars for 32 bytes, no padding
    assert isinstance(token, str)
    assert 42 <= len(token) <= 44
    base64.urlsafe_b64decode(token + '==')


def test_generate_reset_token_uniqueness():
    tokens = {crypto_utils.generate_reset_token() for _ in range(100)}
    assert len(tokens) == 100


def test_fingerprint_token():
    fingerprint = crypto_utils.fingerprint_token('abc')
    assert len(fingerprint) == 64
    assert fingerprint == crypto_utils.fingerprint_token('abc')
    assert fingerprint != crypto_utils.fingerprint_token('abd')
