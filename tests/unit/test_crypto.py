"""Tests for hush.crypto module."""

import base64

import pytest

from hush.crypto import (
    NONCE_SIZE,
    EnvelopeCipher,
    generate_key,
    generate_token,
    hash_token,
    open_envelope,
    seal,
)
from hush.errors import DecryptionFailedError


def _nonce(envelope: str) -> bytes:
    body = envelope.split(".", 1)[1]
    return base64.urlsafe_b64decode(body)[:NONCE_SIZE]


class TestSealOpen:
    @pytest.mark.parametrize(
        "plaintext",
        ["postgres://x", "", "pässwörd ✓", "line1\nline2", "a" * 100_000],
    )
    def test_roundtrip(self, plaintext):
        key = generate_key()
        assert open_envelope(seal(plaintext, key), key) == plaintext

    def test_envelope_is_versioned_and_printable(self):
        envelope = seal("value", generate_key())
        assert envelope.startswith("v1.")
        assert envelope.isascii()

    def test_plaintext_not_visible_in_envelope(self):
        envelope = seal("hunter2-hunter2", generate_key())
        assert "hunter2" not in envelope
        assert b"hunter2" not in base64.urlsafe_b64decode(envelope[3:])

    def test_same_plaintext_seals_differently(self):
        key = generate_key()
        assert seal("same", key) != seal("same", key)

    def test_nonces_never_repeat(self):
        key = generate_key()
        nonces = {_nonce(seal("x", key)) for _ in range(5000)}
        assert len(nonces) == 5000

    def test_wrong_key_fails(self):
        envelope = seal("secret", generate_key())
        with pytest.raises(DecryptionFailedError):
            open_envelope(envelope, generate_key())


class TestTamperDetection:
    def test_every_flipped_character_is_rejected(self):
        key = generate_key()
        envelope = seal("postgres://user:pw@db/app", key)
        for i in range(len(envelope)):
            flipped = chr(ord(envelope[i]) ^ 0x01)
            tampered = envelope[:i] + flipped + envelope[i + 1 :]
            with pytest.raises(DecryptionFailedError):
                open_envelope(tampered, key)

    def test_every_flipped_payload_byte_is_rejected(self):
        key = generate_key()
        envelope = seal("value", key)
        payload = bytearray(base64.urlsafe_b64decode(envelope[3:]))
        for i in range(len(payload)):
            tampered = bytearray(payload)
            tampered[i] ^= 0xFF
            forged = "v1." + base64.urlsafe_b64encode(bytes(tampered)).decode()
            with pytest.raises(DecryptionFailedError):
                open_envelope(forged, key)

    def test_truncated_envelope_fails(self):
        key = generate_key()
        envelope = seal("value", key)
        with pytest.raises(DecryptionFailedError):
            open_envelope(envelope[:10], key)

    @pytest.mark.parametrize("bad", ["", "v1.", "v2.AAAA", "no-separator", "v1.!!!!"])
    def test_garbage_fails(self, bad):
        with pytest.raises(DecryptionFailedError):
            open_envelope(bad, generate_key())

    def test_standard_base64_alphabet_rejected(self):
        key = generate_key()
        envelope = seal("value-with-enough-bytes", key)
        swapped = envelope.replace("-", "+").replace("_", "/")
        if swapped != envelope:
            with pytest.raises(DecryptionFailedError):
                open_envelope(swapped, key)


class TestEnvelopeCipher:
    def test_roundtrip(self, cipher):
        assert cipher.open(cipher.seal("DB_URL")) == "DB_URL"

    def test_rejects_short_key(self):
        with pytest.raises(ValueError):
            EnvelopeCipher(b"short")

    def test_repr_hides_key(self, master_key):
        assert master_key.hex() not in repr(EnvelopeCipher(master_key))


class TestGenerateKey:
    def test_key_length(self):
        assert len(generate_key()) == 32

    def test_keys_are_unique(self):
        keys = {generate_key() for _ in range(100)}
        assert len(keys) == 100


class TestTokens:
    def test_hash_deterministic(self):
        assert hash_token("abc") == hash_token("abc")

    def test_hash_hex_format(self):
        h = hash_token("test")
        assert len(h) == 64
        assert all(c in "0123456789abcdef" for c in h)

    def test_tokens_are_unique(self):
        tokens = {generate_token() for _ in range(100)}
        assert len(tokens) == 100

    def test_token_is_prefixed_and_url_safe(self):
        token = generate_token()
        assert token.startswith("hush_")
        assert all(c.isalnum() or c in "-_" for c in token)
