"""Local storage for the master key.

The master key is generated once per user and kept in an owner-only file.
It never leaves this machine: it is not logged, sent, or stored server-side.
Every envelope pushed to a server was sealed with it, so losing or
replacing it makes those secrets unrecoverable.
"""

import os
from pathlib import Path

from loguru import logger

from .crypto import KEY_SIZE, generate_key
from .errors import KeyExistsError, MalformedInputError, NotFoundError

DEFAULT_KEY_DIR = Path.home() / ".hush"
KEY_FILE_NAME = "master.key"


class MasterKeyStore:
    """Owns the per-user master key file."""

    def __init__(self, key_path: str | Path | None = None):
        self.key_path = Path(key_path) if key_path else DEFAULT_KEY_DIR / KEY_FILE_NAME

    def exists(self) -> bool:
        return self.key_path.exists()

    def generate(self, force: bool = False) -> bytes:
        """Create and persist a new master key.

        Args:
            force: Replace an existing key. Every secret sealed with the old
                key becomes permanently unreadable, so callers must obtain
                explicit confirmation before passing True.

        Raises:
            KeyExistsError: If a key exists and ``force`` is False.
        """
        if self.exists() and not force:
            raise KeyExistsError(
                f"Master key already exists at {self.key_path}; "
                "refusing to overwrite it without confirmation"
            )

        self.key_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        key = generate_key()

        if force and self.exists():
            logger.warning(f"Replacing master key at {self.key_path}")
            self.key_path.unlink()

        # O_EXCL: a concurrent generate loses instead of clobbering.
        try:
            fd = os.open(self.key_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        except FileExistsError as exc:
            raise KeyExistsError(f"Master key already exists at {self.key_path}") from exc
        with os.fdopen(fd, "wb") as f:
            f.write(key)

        logger.info(f"Generated master key at {self.key_path}")
        return key

    def load(self) -> bytes:
        """Return the master key.

        Raises:
            NotFoundError: If no key has been generated yet.
            MalformedInputError: If the key file has the wrong size.
        """
        try:
            key = self.key_path.read_bytes()
        except FileNotFoundError as exc:
            raise NotFoundError(
                f"No master key at {self.key_path}; run setup first"
            ) from exc
        if len(key) != KEY_SIZE:
            raise MalformedInputError(
                f"Master key at {self.key_path} must be {KEY_SIZE} bytes, got {len(key)}"
            )
        return key

    def ensure(self) -> bytes:
        """Load the key, generating it first if this machine has none."""
        if self.exists():
            return self.load()
        return self.generate()

    def delete(self) -> None:
        """Destroy the master key file."""
        try:
            self.key_path.unlink()
        except FileNotFoundError as exc:
            raise NotFoundError(f"No master key at {self.key_path}") from exc
        logger.warning(f"Deleted master key at {self.key_path}")
