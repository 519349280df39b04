"""Tests for environment-driven configuration."""

import os

import pytest

from deadwood.config import Config, get_config, reset_config


class TestFlags:
    """Boolean flags read from the environment."""

    def test_defaults(self, tmp_path):
        config = Config(env_path=tmp_path / "missing.env")

        assert config.debug is False
        assert config.performance is False
        assert config.gitignore is True

    @pytest.mark.parametrize("value, expected", [
        ("1", True),
        ("true", True),
        ("YES", True),
        (" on ", True),
        ("0", False),
        ("false", False),
        ("off", False),
        ("maybe", False),
    ])
    def test_debug_values(self, monkeypatch, tmp_path, value, expected):
        monkeypatch.setenv("DEADWOOD_DEBUG", value)

        assert Config(env_path=tmp_path / "missing.env").debug is expected

    def test_unrecognized_gitignore_value_keeps_default(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DEADWOOD_GITIGNORE", "sometimes")

        assert Config(env_path=tmp_path / "missing.env").gitignore is True

    def test_dotenv_file_is_loaded(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("DEADWOOD_PERFORMANCE=1\n", encoding="utf-8")

        try:
            assert Config(env_path=env_file).performance is True
        finally:
            # load_dotenv writes straight into os.environ
            os.environ.pop("DEADWOOD_PERFORMANCE", None)

    def test_environment_wins_over_dotenv(self, monkeypatch, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("DEADWOOD_GITIGNORE=0\n", encoding="utf-8")
        monkeypatch.setenv("DEADWOOD_GITIGNORE", "1")

        assert Config(env_path=env_file).gitignore is True


class TestSingleton:
    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_reset_config(self):
        first = get_config()
        reset_config()

        assert get_config() is not first
