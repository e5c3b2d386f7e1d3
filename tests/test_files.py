"""test suite for file helpers."""
import pytest
import os
import stat
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from spacetime_token.utils import files
from spacetime_token.utils.files import atomic_write_text, read_text
from spacetime_token.domain.errors import ConfigIOError


class TestAtomicWrite:
    def test_creates_parent_and_writes(self, tmp_path):
        target = tmp_path / "nested" / "cli.toml"
        atomic_write_text(target, "a = 1\n")

        assert read_text(target) == "a = 1\n"

    def test_read_missing(self, tmp_path):
        assert read_text(tmp_path / "missing.toml") is None

    def test_no_temp_files_left(self, tmp_path):
        target = tmp_path / "cli.toml"
        atomic_write_text(target, "a = 1\n")
        atomic_write_text(target, "a = 2\n")

        assert [p.name for p in tmp_path.iterdir()] == ["cli.toml"]
        assert target.read_text() == "a = 2\n"

    def test_each_write_uses_its_own_temp_file(self, tmp_path, monkeypatch):
        seen = []
        real_replace = os.replace

        def replace(src, dst):
            seen.append(Path(src).name)
            real_replace(src, dst)

        monkeypatch.setattr(files.os, "replace", replace)
        target = tmp_path / "cli.toml"
        atomic_write_text(target, "a = 1\n")
        atomic_write_text(target, "a = 2\n")

        assert len(set(seen)) == 2
        assert all(name.startswith(".cli.toml.") for name in seen)

    def test_keeps_existing_mode(self, tmp_path):
        target = tmp_path / "cli.toml"
        target.write_text("a = 1\n")
        target.chmod(0o644)

        atomic_write_text(target, "a = 2\n")

        assert stat.S_IMODE(target.stat().st_mode) == 0o644

    def test_failed_replace_keeps_original(self, tmp_path, monkeypatch):
        target = tmp_path / "cli.toml"
        target.write_text("a = 1\n")

        def fail_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(files.os, "replace", fail_replace)

        with pytest.raises(ConfigIOError):
            atomic_write_text(target, "a = 2\n")

        assert target.read_text() == "a = 1\n"
        assert [p.name for p in tmp_path.iterdir()] == ["cli.toml"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
