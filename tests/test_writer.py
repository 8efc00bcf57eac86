"""Tests for clientgen.writer -- conflict handling and atomic replacement."""

from __future__ import annotations

from pathlib import Path

import pytest

from clientgen.exceptions import WriteConflictError
from clientgen.exit_codes import EXIT_WRITE_CONFLICT
from clientgen.writer import WriteStatus, write_module


class TestWriteModule:
    def test_new_file_is_written(self, tmp_path: Path) -> None:
        path = tmp_path / "Petstore" / "Schemas.elm"
        assert write_module(path, "module A exposing (..)\n") == WriteStatus.WRITTEN
        assert path.read_text(encoding="utf-8") == "module A exposing (..)\n"

    def test_identical_content_without_overwrite_conflicts(self, tmp_path: Path) -> None:
        path = tmp_path / "out.py"
        path.write_text("x = 1\n", encoding="utf-8")
        before = path.stat().st_mtime_ns
        with pytest.raises(WriteConflictError):
            write_module(path, "x = 1\n")
        assert path.stat().st_mtime_ns == before

    def test_identical_content_with_overwrite_is_unchanged(self, tmp_path: Path) -> None:
        path = tmp_path / "out.py"
        path.write_text("x = 1\n", encoding="utf-8")
        before = path.stat().st_mtime_ns
        assert write_module(path, "x = 1\n", overwrite=True) == WriteStatus.UNCHANGED
        assert path.stat().st_mtime_ns == before

    def test_different_content_conflicts(self, tmp_path: Path) -> None:
        path = tmp_path / "out.py"
        path.write_text("x = 1\n", encoding="utf-8")
        with pytest.raises(WriteConflictError) as exc_info:
            write_module(path, "x = 2\n")
        assert exc_info.value.path == path
        assert exc_info.value.exit_code == EXIT_WRITE_CONFLICT
        assert "Refusing to overwrite existing file" in str(exc_info.value)
        assert path.read_text(encoding="utf-8") == "x = 1\n"

    def test_empty_existing_file_conflicts(self, tmp_path: Path) -> None:
        path = tmp_path / "out.py"
        path.touch()
        with pytest.raises(WriteConflictError):
            write_module(path, "x = 2\n")

    def test_overwrite(self, tmp_path: Path) -> None:
        path = tmp_path / "out.py"
        path.write_text("x = 1\n", encoding="utf-8")
        assert write_module(path, "x = 2\n", overwrite=True) == WriteStatus.WRITTEN
        assert path.read_text(encoding="utf-8") == "x = 2\n"

    def test_no_temp_files_left(self, tmp_path: Path) -> None:
        write_module(tmp_path / "out.py", "x = 1\n")
        write_module(tmp_path / "out.py", "x = 2\n", overwrite=True)
        assert sorted(p.name for p in tmp_path.iterdir()) == ["out.py"]

    def test_accepts_string_path(self, tmp_path: Path) -> None:
        assert write_module(str(tmp_path / "out.py"), "x = 1\n") == WriteStatus.WRITTEN
