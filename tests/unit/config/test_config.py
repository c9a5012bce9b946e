"""Tests for Config models and ConfigManager."""

import json

import pytest
from pydantic import ValidationError

from lomad.config import (
    Config,
    ConfigManager,
    GitHubConfig,
    LinkCheckConfig,
    MasterlistConfig,
)


class TestConfigModels:
    def test_defaults(self):
        config = Config()

        assert config.github.api_url == "https://api.github.com"
        assert config.github.owner == "loot"
        assert config.github.token_env_var == "GITHUB_TOKEN"
        assert config.masterlist.filename == "masterlist.yaml"
        assert config.link_check.max_concurrency == 10
        assert "skyrim" in config.known_repositories

    def test_api_url_is_normalized(self):
        assert GitHubConfig(api_url=" https://ghe.example/api/v3/ ").api_url == (
            "https://ghe.example/api/v3"
        )

    def test_api_url_scheme_is_validated(self):
        with pytest.raises(ValidationError, match="Only HTTP and HTTPS"):
            GitHubConfig(api_url="ftp://ghe.example")

    def test_concurrency_must_be_positive(self):
        with pytest.raises(ValidationError):
            LinkCheckConfig(max_concurrency=0)

    def test_url_commit_message_template(self):
        message = MasterlistConfig().url_commit_message

        assert message.format(old_url="http://a", new_url="https://b") == (
            "Replace http://a with https://b"
        )

    def test_url_commit_message_rejects_unknown_fields(self):
        with pytest.raises(ValidationError, match="old_url"):
            MasterlistConfig(url_commit_message="Move {unknown}")


class TestConfigManager:
    def test_missing_file_gives_defaults(self, tmp_path):
        manager = ConfigManager(tmp_path / "absent.json")

        assert manager.load() == Config()

    def test_save_then_load(self, tmp_path):
        path = tmp_path / ".lomad" / "config.json"
        config = Config(known_repositories=["morrowind"])
        config.github.owner = "someone"

        ConfigManager(path).save(config)
        loaded = ConfigManager(path).load()

        assert loaded.known_repositories == ["morrowind"]
        assert loaded.github.owner == "someone"

    def test_partial_file_keeps_other_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"link_check": {"timeout": 2.5}}))

        config = ConfigManager(path).load()

        assert config.link_check.timeout == 2.5
        assert config.link_check.max_concurrency == 10
        assert config.github.owner == "loot"

    def test_invalid_file_is_reported(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")

        with pytest.raises(ValueError, match="Failed to load config"):
            ConfigManager(path).load()

    def test_save_without_config_fails(self, tmp_path):
        with pytest.raises(ValueError, match="No configuration to save"):
            ConfigManager(tmp_path / "config.json").save()
