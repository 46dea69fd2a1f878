import os
import tempfile

import pytest

from hush.auth import TokenAuthority
from hush.crypto import EnvelopeCipher, generate_key
from hush.database import SecretsDatabase


class FakeClock:
    """Deterministic, strictly increasing timestamps."""

    def __init__(self):
        self.tick = 0

    def __call__(self) -> str:
        self.tick += 1
        return f"2025-01-01T00:00:{self.tick:02d}+00:00"


@pytest.fixture
def db_path():
    """Path to a fresh SQLite file inside a throwaway directory."""
    with tempfile.TemporaryDirectory() as tmp:
        yield os.path.join(tmp, "hush.db")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db(db_path, clock):
    return SecretsDatabase(db_path, clock=clock)


@pytest.fixture
def authority(db):
    return TokenAuthority(db)


@pytest.fixture
def master_key():
    return generate_key()


@pytest.fixture
def cipher(master_key):
    return EnvelopeCipher(master_key)
