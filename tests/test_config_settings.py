"""Tests for easyplug.config.settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError


class TestSettings:
    """Test the Settings pydantic-settings class."""

    @pytest.fixture(autouse=True)
    def _clean_env(self, monkeypatch, tmp_path):
        # Isolate from real env vars and any .env in the working directory
        for name in ("PLUGINS_DIR", "ARCHIVE_SUFFIX", "UNIT_SUFFIX", "SEARCH_PATHS", "AUTOLOAD"):
            monkeypatch.delenv(f"EASYPLUG_{name}", raising=False)
        monkeypatch.chdir(tmp_path)

    def _make(self, **kwargs):
        from easyplug.config.settings import Settings
        return Settings(**kwargs)

    # -- defaults --

    def test_defaults(self):
        s = self._make()
        assert s.PLUGINS_DIR == Path("./plugins")
        assert s.ARCHIVE_SUFFIX == ".zip"
        assert s.UNIT_SUFFIX == ".py"
        assert s.SEARCH_PATHS == []
        assert s.AUTOLOAD is True

    # -- environment --

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("EASYPLUG_PLUGINS_DIR", "/opt/plugins")
        monkeypatch.setenv("EASYPLUG_AUTOLOAD", "false")
        s = self._make()
        assert s.PLUGINS_DIR == Path("/opt/plugins")
        assert s.AUTOLOAD is False

    def test_unprefixed_env_ignored(self, monkeypatch):
        monkeypatch.setenv("PLUGINS_DIR", "/elsewhere")
        assert self._make().PLUGINS_DIR == Path("./plugins")

    def test_search_paths_from_json(self, monkeypatch):
        monkeypatch.setenv("EASYPLUG_SEARCH_PATHS", '["/lib/a", "/lib/b"]')
        assert self._make().SEARCH_PATHS == [Path("/lib/a"), Path("/lib/b")]

    def test_env_file(self, tmp_path):
        (tmp_path / ".env").write_text("EASYPLUG_ARCHIVE_SUFFIX=.plug\n")
        assert self._make().ARCHIVE_SUFFIX == ".plug"

    # -- _normalise_suffix validator --

    def test_suffix_gets_leading_dot(self):
        s = self._make(ARCHIVE_SUFFIX="jar", UNIT_SUFFIX=" py ")
        assert s.ARCHIVE_SUFFIX == ".jar"
        assert s.UNIT_SUFFIX == ".py"

    def test_dotted_suffix_untouched(self):
        assert self._make(UNIT_SUFFIX=".plugin.py").UNIT_SUFFIX == ".plugin.py"

    @pytest.mark.parametrize("value", ["", "   ", "."])
    def test_empty_suffix_rejected(self, value):
        with pytest.raises(ValidationError):
            self._make(ARCHIVE_SUFFIX=value)

    # -- kwarg overrides --

    def test_override_via_kwargs(self):
        s = self._make(PLUGINS_DIR="ext", AUTOLOAD=False, SEARCH_PATHS=["vendor"])
        assert s.PLUGINS_DIR == Path("ext")
        assert s.AUTOLOAD is False
        assert s.SEARCH_PATHS == [Path("vendor")]

    def test_module_level_instance(self):
        from easyplug.config import Settings, settings
        assert isinstance(settings, Settings)
