"""
Unit Tests for Configuration Management.

Black box tests against the public interface of config.py.
Tests run against the real YAML files in config/settings/; secrets come
from the environment set up in the root conftest.
Failure scenarios use tmp_path to create controlled filesystems.
"""

import pytest

from crm.backend.core.config import (
    AppConfig,
    Settings,
    find_project_root,
    get_app_config,
    get_database_url,
    get_redis_url,
    get_settings,
    load_yaml_config,
    validate_project_root,
)
from crm.backend.core.config_schema import (
    ApplicationSchema,
    CrmSchema,
    DatabaseSchema,
    FeaturesSchema,
    LoggingSchema,
    SecuritySchema,
)


@pytest.fixture(autouse=True)
def _clear_config_cache():
    """Clear lru_cache between tests so each test gets a fresh load."""
    get_settings.cache_clear()
    get_app_config.cache_clear()
    yield
    get_settings.cache_clear()
    get_app_config.cache_clear()


def _write_settings(tmp_path, files: dict[str, str]) -> None:
    (tmp_path / ".project_root").touch()
    settings_dir = tmp_path / "config" / "settings"
    settings_dir.mkdir(parents=True)
    for name, content in files.items():
        (settings_dir / name).write_text(content)


class TestFindProjectRoot:
    """Tests for .project_root marker discovery."""

    def test_finds_root_from_project_directory(self):
        root = find_project_root()
        assert (root / ".project_root").exists()
        assert (root / "config" / "settings").is_dir()

    def test_raises_when_no_marker_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(RuntimeError, match="Project root not found"):
            find_project_root()

    def test_validate_exits_when_marker_missing(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(SystemExit):
            validate_project_root()


class TestLoadYamlConfig:
    """Tests for YAML file loading from config/settings/."""

    @pytest.mark.parametrize(
        "filename",
        ["application.yaml", "database.yaml", "logging.yaml", "features.yaml", "security.yaml", "crm.yaml"],
    )
    def test_every_config_file_loads(self, filename):
        data = load_yaml_config(filename)
        assert isinstance(data, dict)
        assert data

    def test_raises_for_nonexistent_file(self):
        with pytest.raises(FileNotFoundError, match="Configuration file not found"):
            load_yaml_config("does_not_exist.yaml")

    def test_returns_empty_dict_for_empty_yaml(self, tmp_path, monkeypatch):
        _write_settings(tmp_path, {"empty.yaml": ""})
        monkeypatch.chdir(tmp_path)

        assert load_yaml_config("empty.yaml") == {}


class TestSettings:
    """Secrets are read from the environment when config/.env is absent."""

    def test_reads_secrets_from_environment(self, monkeypatch):
        monkeypatch.setenv("JWT_SECRET", "from-env")
        settings = get_settings()
        assert isinstance(settings, Settings)
        assert settings.jwt_secret == "from-env"

    def test_settings_are_cached(self):
        assert get_settings() is get_settings()


class TestAppConfig:
    """Tests for validated YAML configuration loading."""

    def test_sections_are_typed(self):
        config = AppConfig()
        assert isinstance(config.application, ApplicationSchema)
        assert isinstance(config.database, DatabaseSchema)
        assert isinstance(config.logging, LoggingSchema)
        assert isinstance(config.features, FeaturesSchema)
        assert isinstance(config.security, SecuritySchema)
        assert isinstance(config.crm, CrmSchema)

    def test_crm_limits_are_loaded(self):
        crm = AppConfig().crm
        assert crm.bulk.max_clients == 100
        assert crm.bulk.max_delete == 50
        assert crm.bulk.max_export == 1000
        assert crm.tagging.max_tags_per_request > 0
        assert crm.statistics.cache_ttl_seconds > 0

    def test_api_prefix_is_versioned(self):
        assert AppConfig().application.api_prefix == "/api/v1"

    def test_unknown_key_is_rejected(self, tmp_path, monkeypatch):
        root = find_project_root()
        files = {
            name: (root / "config" / "settings" / name).read_text()
            for name in ("application.yaml", "database.yaml", "logging.yaml", "security.yaml", "crm.yaml")
        }
        files["features.yaml"] = (
            (root / "config" / "settings" / "features.yaml").read_text() + "\nunexpected_flag: true\n"
        )
        _write_settings(tmp_path, files)
        monkeypatch.chdir(tmp_path)

        with pytest.raises(ValueError, match="features.yaml"):
            AppConfig()


class TestConnectionUrls:
    def test_database_url_uses_asyncpg_and_secret(self, monkeypatch):
        monkeypatch.setenv("DB_PASSWORD", "s3cret")
        url = get_database_url()
        db = get_app_config().database
        assert url == f"postgresql+asyncpg://{db.user}:s3cret@{db.host}:{db.port}/{db.name}"

    def test_sync_database_url(self):
        assert get_database_url(async_driver=False).startswith("postgresql://")

    def test_redis_url_includes_db_index(self, monkeypatch):
        monkeypatch.setenv("REDIS_PASSWORD", "pw")
        redis = get_app_config().database.redis
        assert get_redis_url() == f"redis://:pw@{redis.host}:{redis.port}/{redis.db}"
