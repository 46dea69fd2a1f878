"""Configuration for the hush client and daemon.

Client side:
    .hush                    - per-project YAML descriptor (project, environment, output)
    ~/.hush/credentials.yaml - server URL and bearer token (owner-only)

Daemon side is read from the environment (optionally via .env.local):
    HUSH_DB_PATH, HUSH_HOST, PORT, HUSH_LOG_LEVEL

HUSH_SERVER and HUSH_TOKEN override the credentials file.
"""

import os
import re
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from .errors import MalformedInputError, NotFoundError

PROJECT_FILE_NAME = ".hush"
CREDENTIALS_PATH = Path.home() / ".hush" / "credentials.yaml"

_ENV_VAR = re.compile(r"\$\{([^}]+)\}")


def load_env() -> None:
    load_dotenv(".env.local")


def expand_env_vars(obj):
    """Recursively replace ${VAR} references with environment values.

    Unknown variables are left as-is.
    """
    if isinstance(obj, dict):
        return {k: expand_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [expand_env_vars(v) for v in obj]
    if isinstance(obj, str):
        return _ENV_VAR.sub(lambda m: os.environ.get(m.group(1), m.group(0)), obj)
    return obj


def _read_yaml(path: Path) -> dict:
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as exc:
        raise NotFoundError(f"{path} not found") from exc
    except yaml.YAMLError as exc:
        raise MalformedInputError(f"{path} is not valid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise MalformedInputError(f"{path} must contain a mapping")
    return expand_env_vars(data)


class OutputConfig(BaseModel):
    format: str = "dotenv"
    path: str = ".env"


class ProjectConfig(BaseModel):
    """Validated contents of a project's .hush file."""

    project: str = Field(min_length=1)
    environment: str = Field(default="production", min_length=1)
    output: OutputConfig = Field(default_factory=OutputConfig)
    secrets: list[str] = Field(default_factory=list)
    prefix: str = ""

    @classmethod
    def load(cls, path: str | Path = PROJECT_FILE_NAME) -> "ProjectConfig":
        data = _read_yaml(Path(path))
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise MalformedInputError(f"Invalid project file {path}: {exc}") from exc

    def save(self, path: str | Path = PROJECT_FILE_NAME) -> None:
        with open(path, "w") as f:
            yaml.safe_dump(self.model_dump(exclude_none=True), f, sort_keys=False)


class Credentials(BaseModel):
    """Server URL and bearer token used for every authenticated request."""

    server: str = Field(min_length=1)
    token: str = Field(min_length=1)

    @classmethod
    def load(cls, path: str | Path = CREDENTIALS_PATH) -> "Credentials":
        load_env()
        path = Path(path)
        try:
            data = _read_yaml(path)
        except NotFoundError:
            data = {}

        if os.environ.get("HUSH_SERVER"):
            data["server"] = os.environ["HUSH_SERVER"]
        if os.environ.get("HUSH_TOKEN"):
            data["token"] = os.environ["HUSH_TOKEN"]

        if not data.get("server") or not data.get("token"):
            raise NotFoundError(
                f"No credentials in {path} and HUSH_SERVER/HUSH_TOKEN not set; log in first"
            )
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise MalformedInputError(f"Invalid credentials file {path}: {exc}") from exc

    def save(self, path: str | Path = CREDENTIALS_PATH) -> None:
        path = Path(path)
        path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            yaml.safe_dump(self.model_dump(), f, sort_keys=False)


class ServerSettings(BaseModel):
    """Daemon settings, read from the environment."""

    db_path: str = "./hush.db"
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ServerSettings":
        load_env()
        values = {
            "db_path": os.environ.get("HUSH_DB_PATH"),
            "host": os.environ.get("HUSH_HOST"),
            "port": os.environ.get("PORT"),
            "log_level": os.environ.get("HUSH_LOG_LEVEL"),
        }
        try:
            return cls.model_validate({k: v for k, v in values.items() if v})
        except ValidationError as exc:
            raise MalformedInputError(f"Invalid daemon settings: {exc}") from exc
