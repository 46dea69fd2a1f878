"""Tests for hush.config module."""

import stat

import pytest

from hush.config import Credentials, ProjectConfig, ServerSettings, expand_env_vars
from hush.errors import MalformedInputError, NotFoundError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for var in ["HUSH_SERVER", "HUSH_TOKEN", "HUSH_DB_PATH", "HUSH_HOST", "PORT", "HUSH_LOG_LEVEL"]:
        monkeypatch.delenv(var, raising=False)
    # load_dotenv reads .env.local from the working directory
    monkeypatch.chdir(tmp_path)


def test_expand_env_vars(monkeypatch):
    monkeypatch.setenv("TEST_VAR", "expanded")
    assert expand_env_vars("val-${TEST_VAR}") == "val-expanded"
    assert expand_env_vars("val-${MISSING_VAR}") == "val-${MISSING_VAR}"
    assert expand_env_vars({"k": ["${TEST_VAR}", 3]}) == {"k": ["expanded", 3]}


class TestProjectConfig:
    def test_defaults(self, tmp_path):
        path = tmp_path / ".hush"
        path.write_text("project: acme\n")
        cfg = ProjectConfig.load(path)
        assert cfg.project == "acme"
        assert cfg.environment == "production"
        assert cfg.output.format == "dotenv"
        assert cfg.output.path == ".env"
        assert cfg.prefix == ""

    def test_full(self, tmp_path):
        path = tmp_path / ".hush"
        path.write_text(
            "project: acme\n"
            "environment: staging\n"
            "output:\n  path: config/.env\n"
            "secrets: [DB_URL, API_KEY]\n"
            "prefix: APP_\n"
        )
        cfg = ProjectConfig.load(path)
        assert cfg.environment == "staging"
        assert cfg.output.path == "config/.env"
        assert cfg.secrets == ["DB_URL", "API_KEY"]
        assert cfg.prefix == "APP_"

    def test_legacy_server_key_ignored(self, tmp_path):
        path = tmp_path / ".hush"
        path.write_text("project: acme\nserver: http://old-host:8080\n")
        cfg = ProjectConfig.load(path)
        assert cfg.project == "acme"
        assert "server" not in cfg.model_dump()

    def test_save_and_reload(self, tmp_path):
        path = tmp_path / ".hush"
        ProjectConfig(project="acme", environment="dev").save(path)
        assert ProjectConfig.load(path).environment == "dev"

    def test_missing_file(self, tmp_path):
        with pytest.raises(NotFoundError):
            ProjectConfig.load(tmp_path / ".hush")

    def test_missing_project(self, tmp_path):
        path = tmp_path / ".hush"
        path.write_text("environment: prod\n")
        with pytest.raises(MalformedInputError):
            ProjectConfig.load(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / ".hush"
        path.write_text("project: [unclosed\n")
        with pytest.raises(MalformedInputError):
            ProjectConfig.load(path)


class TestCredentials:
    def test_save_is_owner_only_and_reloads(self, tmp_path):
        path = tmp_path / "creds" / "credentials.yaml"
        Credentials(server="http://hush.local", token="hush_abc").save(path)
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
        creds = Credentials.load(path)
        assert creds.server == "http://hush.local"
        assert creds.token == "hush_abc"

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "credentials.yaml"
        Credentials(server="http://file", token="hush_file").save(path)
        monkeypatch.setenv("HUSH_TOKEN", "hush_env")
        creds = Credentials.load(path)
        assert creds.server == "http://file"
        assert creds.token == "hush_env"

    def test_env_only(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HUSH_SERVER", "http://env")
        monkeypatch.setenv("HUSH_TOKEN", "hush_env")
        creds = Credentials.load(tmp_path / "absent.yaml")
        assert creds.server == "http://env"

    def test_missing(self, tmp_path):
        with pytest.raises(NotFoundError):
            Credentials.load(tmp_path / "absent.yaml")


class TestServerSettings:
    def test_defaults(self):
        settings = ServerSettings.from_env()
        assert settings.db_path == "./hush.db"
        assert settings.port == 8080

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("HUSH_DB_PATH", "/var/lib/hush/hush.db")
        monkeypatch.setenv("PORT", "9090")
        settings = ServerSettings.from_env()
        assert settings.db_path == "/var/lib/hush/hush.db"
        assert settings.port == 9090

    def test_invalid_port(self, monkeypatch):
        monkeypatch.setenv("PORT", "not-a-port")
        with pytest.raises(MalformedInputError):
            ServerSettings.from_env()
