"""Tests for runtime data directory resolution helpers."""

from __future__ import annotations

import os
import sys
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest import mock

# Ensure the repository's src/ directory is importable without installation.
REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from newsdesk.core.paths import ensure_data_dir, get_data_dir, resolve_data_dir, resolve_data_file  # noqa: E402


class DataDirEnvironmentOverrideTests(unittest.TestCase):
    """Verify that NEWSDESK_DATA_DIR overrides the runtime data dir."""

    def test_get_data_dir_honors_environment_override(self) -> None:
        with TemporaryDirectory() as tmp:
            override = Path(tmp) / "custom-location"
            with mock.patch.dict(os.environ, {"NEWSDESK_DATA_DIR": str(override)}, clear=False):
                data_dir = get_data_dir()
        self.assertEqual(data_dir, override.resolve())

    def test_ensure_data_dir_creates_environment_override_directory(self) -> None:
        with TemporaryDirectory() as tmp:
            override = Path(tmp) / "nested" / "override"
            with mock.patch.dict(os.environ, {"NEWSDESK_DATA_DIR": str(override)}, clear=False):
                data_dir = ensure_data_dir()
                self.assertTrue(override.exists(), "override directory was not created")
        self.assertEqual(data_dir, override.resolve())


class ResolveDataFileTests(unittest.TestCase):

    def test_relative_files_land_under_the_data_dir(self) -> None:
        with TemporaryDirectory() as tmp:
            with mock.patch.dict(os.environ, {"NEWSDESK_DATA_DIR": tmp}, clear=False):
                path = resolve_data_file("db/newsdesk.db", ensure_parent=True)
                self.assertEqual(path, Path(tmp).resolve() / "db" / "newsdesk.db")
                self.assertTrue(path.parent.is_dir())

    def test_leading_data_dir_name_is_stripped(self) -> None:
        with TemporaryDirectory() as tmp:
            with mock.patch.dict(os.environ, {"NEWSDESK_DATA_DIR": tmp}, clear=False):
                path = resolve_data_file(".newsdesk/session.json")
        self.assertEqual(path, Path(tmp).resolve() / "session.json")

    def test_absolute_paths_are_kept(self) -> None:
        with TemporaryDirectory() as tmp:
            target = Path(tmp) / "elsewhere" / "file.db"
            self.assertEqual(resolve_data_file(str(target), ensure_parent=True), target)
            self.assertTrue(target.parent.is_dir())

    def test_resolve_data_dir_can_create_directory(self) -> None:
        with TemporaryDirectory() as tmp:
            with mock.patch.dict(os.environ, {"NEWSDESK_DATA_DIR": tmp}, clear=False):
                previews = resolve_data_dir("previews", ensure_exists=True)
                self.assertTrue(previews.is_dir())


if __name__ == "__main__":
    unittest.main()
