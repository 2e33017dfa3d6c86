"""Tests for workspace discovery, .ordexconfig loading and logging setup."""

import logging

import pytest

from ordex._logging import PACKAGE_LOGGER, configure_logging, set_quiet_mode
from ordex.config import ConfigurationError, discover_workspace_root, get_workspace_root
from ordex.context import (
    WorkspaceSettings,
    clear_settings_cache,
    get_settings,
    load_settings,
    write_default_config,
)


class TestWorkspaceRoot:
    """Root discovery."""

    def test_env_var_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ORDEX_ROOT", str(tmp_path))

        assert get_workspace_root() == tmp_path

    def test_walks_up_to_config(self, tmp_path):
        (tmp_path / ".ordexconfig").write_text("")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)

        assert discover_workspace_root(nested) == tmp_path.resolve()

    def test_no_workspace(self, tmp_path, monkeypatch):
        monkeypatch.delenv("ORDEX_ROOT", raising=False)
        monkeypatch.chdir(tmp_path)

        with pytest.raises(ConfigurationError):
            get_workspace_root()


class TestSettings:
    """.ordexconfig parsing."""

    def test_defaults_without_file(self, tmp_path):
        settings = load_settings(tmp_path)

        assert settings.include == ["**/*.md"]
        assert "**/node_modules/**" in settings.exclude
        assert settings.attachment_marker == "ATTACH"
        assert settings.identifier_marker == "GUID"
        assert settings.source_file is None

    def test_reads_values(self, tmp_path):
        config = tmp_path / ".ordexconfig"
        config.write_text(
            "include:\n  - 'notes/**/*.md'\nexclude:\n  - 'archive/**'\n"
            "attachment_marker: IMG\nidentifier_marker: ID\nunknown_key: 1\n"
        )

        settings = load_settings(tmp_path)

        assert settings.include == ["notes/**/*.md"]
        assert settings.exclude == ["archive/**"]
        assert settings.attachment_marker == "IMG"
        assert settings.identifier_marker == "ID"
        assert settings.source_file == config

    def test_empty_file_gives_defaults(self, tmp_path):
        (tmp_path / ".ordexconfig").write_text("# just comments\n")

        settings = load_settings(tmp_path)

        assert settings.attachment_marker == "ATTACH"
        assert settings.source_file == tmp_path / ".ordexconfig"

    @pytest.mark.parametrize(
        "content",
        [
            "attachment_marker: 'not valid!'\n",
            "- just\n- a list\n",
            "include: [unclosed\n",
            "identifier_batch_size: 0\n",
        ],
    )
    def test_invalid_file_falls_back_to_defaults(self, tmp_path, content, caplog):
        (tmp_path / ".ordexconfig").write_text(content)

        settings = load_settings(tmp_path)

        assert settings == WorkspaceSettings()
        assert "Ignoring" in caplog.text

    def test_cache_and_clear(self, tmp_path):
        config = tmp_path / ".ordexconfig"
        config.write_text("attachment_marker: ONE\n")
        clear_settings_cache()

        assert get_settings(tmp_path).attachment_marker == "ONE"
        config.write_text("attachment_marker: TWO\n")
        assert get_settings(tmp_path).attachment_marker == "ONE"

        clear_settings_cache()
        assert get_settings(tmp_path).attachment_marker == "TWO"
        clear_settings_cache()

    def test_default_config_round_trips(self, tmp_path):
        write_default_config(tmp_path)

        settings = load_settings(tmp_path)

        assert settings.attachment_marker == "ATTACH"
        assert settings.include == ["**/*.md"]
        with pytest.raises(FileExistsError):
            write_default_config(tmp_path)


class TestLogging:
    """Package logger setup."""

    @pytest.fixture
    def package_logger(self, monkeypatch):
        logger = logging.getLogger(PACKAGE_LOGGER)
        monkeypatch.setattr(logger, "handlers", [])
        monkeypatch.setattr(logger, "propagate", logger.propagate)
        monkeypatch.setattr(logger, "level", logger.level)
        return logger

    def test_level_from_env(self, package_logger, monkeypatch):
        monkeypatch.setenv("ORDEX_LOG_LEVEL", "debug")

        configure_logging()
        configure_logging()

        assert len(package_logger.handlers) == 1
        assert package_logger.level == logging.DEBUG
        assert package_logger.propagate is False

    def test_unknown_level_falls_back_to_info(self, package_logger, monkeypatch):
        monkeypatch.setenv("ORDEX_LOG_LEVEL", "chatty")

        configure_logging()

        assert package_logger.level == logging.INFO

    def test_quiet_mode_restores_configured_level(self, package_logger, monkeypatch):
        monkeypatch.setenv("ORDEX_LOG_LEVEL", "WARNING")
        configure_logging()

        set_quiet_mode(True)
        assert package_logger.handlers[0].level == logging.ERROR

        set_quiet_mode(False)
        assert package_logger.level == logging.WARNING
        assert package_logger.handlers[0].level == logging.WARNING
