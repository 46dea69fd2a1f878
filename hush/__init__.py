"""Client-side encrypted secrets manager with a ciphertext-only daemon."""

from .auth import TokenAuthority
from .client import SecretClient
from .crypto import EnvelopeCipher, open_envelope, seal
from .database import SecretsDatabase
from .keystore import MasterKeyStore

__all__ = [
    "EnvelopeCipher",
    "MasterKeyStore",
    "SecretClient",
    "SecretsDatabase",
    "TokenAuthority",
    "open_envelope",
    "seal",
]
