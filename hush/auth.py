"""Bearer token issuance and validation.

Tokens are opaque random strings. Only their SHA-256 digests are stored,
so the plaintext is handed out exactly once, at issuance. Any valid token
grants access to every project; there is no expiry or revocation state.
"""

from loguru import logger

from .crypto import generate_token, hash_token
from .database import SecretsDatabase
from .errors import StorageError, TokenExistsError

ADMIN_TOKEN_NAME = "admin"


class TokenAuthority:
    """Issues tokens into, and validates them against, the persisted token set."""

    def __init__(self, db: SecretsDatabase):
        self._db = db

    def issue_token(self, name: str) -> str:
        """Create a new token under a unique name.

        Returns:
            The plaintext token. It is not stored and cannot be recovered.

        Raises:
            TokenExistsError: If a token with this name was already issued.
        """
        if self._db.get_token_by_name(name) is not None:
            raise TokenExistsError(f"A token named '{name}' already exists")
        token = generate_token()
        try:
            self._db.insert_token(hash_token(token), name)
        except StorageError as exc:
            # Lost a race with a concurrent issue under the same name.
            if self._db.get_token_by_name(name) is not None:
                raise TokenExistsError(f"A token named '{name}' already exists") from exc
            raise
        logger.info(f"Issued access token '{name}'")
        return token

    def issue_admin_token(self) -> str:
        """Issue the bootstrap admin token. Succeeds only once per database."""
        return self.issue_token(ADMIN_TOKEN_NAME)

    def validate(self, token: str | None) -> bool:
        if not token:
            return False
        return self._db.get_token_by_hash(hash_token(token)) is not None

    def token_names(self) -> list[str]:
        return [record.name for record in self._db.list_tokens()]
