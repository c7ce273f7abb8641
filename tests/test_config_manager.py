"""Tests for config_manager module."""

import json
import os
import tempfile
from pathlib import Path
from unittest import mock

from prismpdf.config import WORKSPACE_DIR, WORKSPACE_DIR_ENV
from prismpdf.utils.config_manager import DEFAULT_CONFIG, ConfigManager


class TestConfigManager:
    def _make_manager(self, tmp_dir, initial=None):
        path = os.path.join(tmp_dir, "config.json")
        if initial:
            with open(path, "w") as f:
                json.dump(initial, f)
        return ConfigManager(config_path=path)

    def test_get_default_value(self):
        with tempfile.TemporaryDirectory() as d:
            cm = self._make_manager(d)
            assert cm.get("nonexistent.key", "fallback") == "fallback"

    def test_defaults_present(self):
        with tempfile.TemporaryDirectory() as d:
            cm = self._make_manager(d)
            assert cm.get("preview.split_scale") == 0.5
            assert cm.get("preview.reorder_scale") == 0.4
            assert cm.get("output.split_archive_name") == "split-pages.zip"
            assert cm.get("compress.object_streams") is True

    def test_set_and_get(self):
        with tempfile.TemporaryDirectory() as d:
            cm = self._make_manager(d)
            cm.set("output.merged_name", "all.pdf", save_immediately=False)
            assert cm.get("output.merged_name") == "all.pdf"

    def test_save_and_reload(self):
        with tempfile.TemporaryDirectory() as d:
            path = os.path.join(d, "config.json")
            cm = ConfigManager(config_path=path)
            cm.set("test.key", "value123")
            cm2 = ConfigManager(config_path=path)
            assert cm2.get("test.key") == "value123"

    def test_nested_key_path(self):
        with tempfile.TemporaryDirectory() as d:
            cm = self._make_manager(d)
            cm.set("a.b.c", 42, save_immediately=False)
            assert cm.get("a.b.c") == 42

    def test_old_config_upgraded(self):
        with tempfile.TemporaryDirectory() as d:
            cm = self._make_manager(d, initial={"version": 0, "preview": {"split_scale": 0.8}})
            assert cm.get("preview.split_scale") == 0.8
            assert cm.get("preview.reorder_scale") == 0.4
            assert cm.get("version") == DEFAULT_CONFIG["version"]

    def test_corrupt_file_uses_defaults(self):
        with tempfile.TemporaryDirectory() as d:
            path = os.path.join(d, "config.json")
            with open(path, "w") as f:
                f.write("{broken")
            cm = ConfigManager(config_path=path)
            assert cm.get("output.merged_name") == "merged.pdf"

    def test_save_returns_true(self):
        with tempfile.TemporaryDirectory() as d:
            cm = self._make_manager(d)
            assert cm.save() is True
            assert not os.path.exists(cm.config_path + ".tmp")


class TestWorkspaceDir:
    def test_default(self):
        with tempfile.TemporaryDirectory() as d, mock.patch.dict(os.environ, clear=False) as env:
            env.pop(WORKSPACE_DIR_ENV, None)
            cm = ConfigManager(config_path=os.path.join(d, "config.json"))
            assert cm.workspace_dir == WORKSPACE_DIR

    def test_from_settings(self):
        with tempfile.TemporaryDirectory() as d, mock.patch.dict(os.environ, clear=False) as env:
            env.pop(WORKSPACE_DIR_ENV, None)
            cm = ConfigManager(config_path=os.path.join(d, "config.json"))
            cm.set("workspace.directory", os.path.join(d, "ws"), save_immediately=False)
            assert cm.workspace_dir == Path(d) / "ws"

    def test_environment_wins(self):
        with tempfile.TemporaryDirectory() as d:
            cm = ConfigManager(config_path=os.path.join(d, "config.json"))
            cm.set("workspace.directory", os.path.join(d, "ws"), save_immediately=False)
            with mock.patch.dict(os.environ, {WORKSPACE_DIR_ENV: os.path.join(d, "env")}):
                assert cm.workspace_dir == Path(d) / "env"
