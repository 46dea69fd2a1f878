"""Envelope encryption for secret values.

An envelope is a single printable string that carries everything needed to
decrypt it again:

    v1.<urlsafe-base64( nonce(12) || ciphertext || tag(16) )>

All encryption uses AES-256-GCM (authenticated encryption). A fresh random
nonce is drawn inside every seal; callers never supply one.
"""

import base64
import binascii
import hashlib
import os
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import DecryptionFailedError

NONCE_SIZE = 12  # 96 bits, standard for AES-GCM
TAG_SIZE = 16  # 128-bit GCM tag, appended to the ciphertext by AESGCM
KEY_SIZE = 32  # 256 bits for AES-256
ENVELOPE_VERSION = "v1"
TOKEN_PREFIX = "hush_"


def generate_key() -> bytes:
    """Generate a random 256-bit AES key."""
    return AESGCM.generate_key(bit_length=256)


def _encode(payload: bytes) -> str:
    return base64.urlsafe_b64encode(payload).decode("ascii")


def _decode(body: str) -> bytes:
    try:
        payload = base64.b64decode(body.encode("ascii"), altchars=b"-_", validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise DecryptionFailedError("Envelope is not valid base64") from exc
    # Reject encodings that decode to the same bytes but differ as text.
    if _encode(payload) != body:
        raise DecryptionFailedError("Envelope is not canonically encoded")
    return payload


def seal(plaintext: str, key: bytes) -> str:
    """Encrypt plaintext into a self-contained envelope string."""
    nonce = os.urandom(NONCE_SIZE)
    ciphertext = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
    return f"{ENVELOPE_VERSION}.{_encode(nonce + ciphertext)}"


def open_envelope(envelope: str, key: bytes) -> str:
    """Decrypt an envelope produced by :func:`seal`.

    Raises:
        DecryptionFailedError: If the envelope is malformed or authentication
            fails (wrong key, corruption or tampering). No plaintext is
            returned in that case.
    """
    version, sep, body = envelope.partition(".")
    if not sep or version != ENVELOPE_VERSION:
        raise DecryptionFailedError("Unsupported envelope format")

    payload = _decode(body)
    if len(payload) < NONCE_SIZE + TAG_SIZE:
        raise DecryptionFailedError("Envelope is truncated")

    nonce, ciphertext = payload[:NONCE_SIZE], payload[NONCE_SIZE:]
    try:
        plaintext = AESGCM(key).decrypt(nonce, ciphertext, None)
    except InvalidTag as exc:
        raise DecryptionFailedError("Envelope failed authentication") from exc

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecryptionFailedError("Envelope does not contain UTF-8 text") from exc


class EnvelopeCipher:
    """Seals and opens envelopes under one master key."""

    def __init__(self, key: bytes):
        if len(key) != KEY_SIZE:
            raise ValueError(f"Master key must be {KEY_SIZE} bytes")
        self._key = key

    def seal(self, plaintext: str) -> str:
        return seal(plaintext, self._key)

    def open(self, envelope: str) -> str:
        return open_envelope(envelope, self._key)

    def __repr__(self) -> str:
        return "EnvelopeCipher(key=<redacted>)"


def hash_token(token: str) -> str:
    """Produce a SHA-256 hex digest of a bearer token for storage."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_token() -> str:
    """Generate a cryptographically secure URL-safe bearer token (256 bits)."""
    return TOKEN_PREFIX + secrets.token_urlsafe(32)
