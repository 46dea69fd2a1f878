"""Best-effort batch push and pull.

Batches are not atomic. Each item is processed on its own: a malformed
pair, a failed request or an envelope that will not open is recorded as
that item's outcome and the loop moves on. Callers inspect the returned
:class:`BatchResult` instead of watching output.
"""

import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from .client import SecretClient
from .config import Credentials, ProjectConfig
from .crypto import EnvelopeCipher
from .errors import HushError, MalformedInputError
from .keystore import MasterKeyStore


@dataclass
class ItemOutcome:
    """Result for one item of a batch. ``error`` is None on success."""

    key: str
    value: str | None = None
    error: HushError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchResult:
    outcomes: list[ItemOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> list[ItemOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def failed(self) -> list[ItemOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def status(self) -> str:
        """One of "empty", "ok", "partial" or "failed"."""
        if not self.outcomes:
            return "empty"
        if not self.failed:
            return "ok"
        if not self.succeeded:
            return "failed"
        return "partial"

    def values(self) -> dict[str, str]:
        """Successfully processed key/value pairs, in batch order."""
        return {o.key: o.value for o in self.succeeded if o.value is not None}


def parse_pair(pair: str) -> tuple[str, str]:
    """Split ``KEY=VALUE`` on the first '='. The value may be empty."""
    key, sep, value = pair.partition("=")
    key = key.strip()
    if not sep:
        raise MalformedInputError(f"Invalid format: {pair!r} (use KEY=VALUE)")
    if not key:
        raise MalformedInputError("Missing key name (use KEY=VALUE)")
    return key, value


async def push_pairs(
    client: SecretClient,
    cipher: EnvelopeCipher,
    project: str,
    environment: str,
    pairs: Iterable[str],
) -> BatchResult:
    """Seal and push each ``KEY=VALUE`` pair, one request at a time."""
    result = BatchResult()
    for pair in pairs:
        try:
            key, value = parse_pair(pair)
        except MalformedInputError as exc:
            logger.warning(f"Skipping malformed pair: {exc}")
            result.outcomes.append(ItemOutcome(key=pair.partition("=")[0], error=exc))
            continue

        try:
            await client.push_secret(project, environment, key, cipher.seal(value))
        except HushError as exc:
            logger.warning(f"Failed to push {key}: {exc}")
            result.outcomes.append(ItemOutcome(key=key, error=exc))
            continue

        result.outcomes.append(ItemOutcome(key=key))

    logger.info(
        f"Pushed {len(result.succeeded)}/{len(result.outcomes)} secrets "
        f"to {project}/{environment}"
    )
    return result


async def pull_secrets(
    client: SecretClient,
    cipher: EnvelopeCipher,
    project: str,
    environment: str,
    only: Iterable[str] | None = None,
) -> BatchResult:
    """Fetch and open every secret for one project/environment.

    A failed fetch raises, since there is nothing to process. Envelopes
    that do not open are recorded per item. If ``only`` is given, other
    keys are ignored.
    """
    remote = await client.fetch_secrets(project, environment)
    wanted = set(only) if only else None
    result = BatchResult()
    for secret in remote:
        if wanted is not None and secret.key not in wanted:
            continue
        try:
            value = cipher.open(secret.value)
        except HushError as exc:
            logger.warning(f"Could not decrypt {secret.key}: {exc}")
            result.outcomes.append(ItemOutcome(key=secret.key, error=exc))
            continue
        result.outcomes.append(ItemOutcome(key=secret.key, value=value))

    logger.info(
        f"Pulled {len(result.succeeded)}/{len(result.outcomes)} secrets "
        f"from {project}/{environment}"
    )
    return result


async def list_keys(client: SecretClient, project: str, environment: str) -> list[str]:
    """Key names stored for a project/environment. Values are not opened."""
    return [s.key for s in await client.fetch_secrets(project, environment)]


def _quote(value: str) -> str:
    # Single quotes: dotenv loaders do not expand ${VAR} inside them.
    if "$" in value:
        escaped = value.replace("\\", "\\\\").replace("'", "\\'")
        return f"'{escaped}'"
    if value == "" or any(c in value for c in " \t\n\"'#\\"):
        escaped = (
            value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
        )
        return f'"{escaped}"'
    return value


def render_dotenv(values: dict[str, str], prefix: str = "") -> str:
    return "".join(f"{prefix}{key}={_quote(value)}\n" for key, value in values.items())


def write_env_file(path: str | Path, content: str) -> None:
    """Write decrypted output readable by the owner only."""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as f:
        f.write(content)
    os.chmod(path, 0o600)


def _project_client(credentials: Credentials, client: SecretClient | None) -> SecretClient:
    return client or SecretClient(credentials.server, credentials.token)


async def push_project(
    config: ProjectConfig,
    credentials: Credentials,
    keystore: MasterKeyStore,
    pairs: Iterable[str],
    client: SecretClient | None = None,
) -> BatchResult:
    """Seal and push pairs into the project/environment named by ``config``.

    A missing master key raises before anything is sent.
    """
    cipher = EnvelopeCipher(keystore.load())
    return await push_pairs(
        _project_client(credentials, client),
        cipher,
        config.project,
        config.environment,
        pairs,
    )


async def pull_project(
    config: ProjectConfig,
    credentials: Credentials,
    keystore: MasterKeyStore,
    client: SecretClient | None = None,
) -> BatchResult:
    """Pull the project's secrets and write them to ``config.output.path``.

    Only ``config.secrets`` are written when that list is non-empty, each
    key prefixed with ``config.prefix``. Keys that fail to decrypt are left
    out of the file and reported in the result.
    """
    if config.output.format != "dotenv":
        raise MalformedInputError(f"Unsupported output format: {config.output.format}")
    cipher = EnvelopeCipher(keystore.load())

    result = await pull_secrets(
        _project_client(credentials, client),
        cipher,
        config.project,
        config.environment,
        only=config.secrets or None,
    )
    write_env_file(config.output.path, render_dotenv(result.values(), config.prefix))
    logger.info(f"Wrote {len(result.succeeded)} secrets to {config.output.path}")
    return result
