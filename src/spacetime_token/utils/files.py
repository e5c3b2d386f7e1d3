import os
import tempfile
from pathlib import Path
from typing import Optional

from ..domain.errors import ConfigIOError


def read_text(path: Path) -> Optional[str]:
    """read a text file, returns None if it does not exist."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as e:
        raise ConfigIOError(path, e) from e


def atomic_write_text(path: Path, content: str) -> None:
    """
    replace path with content in a single rename.

    each write gets its own temporary file next to the target, so the
    rename never crosses filesystems and concurrent writers never share a
    temp file. on failure the previous file is left intact.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
    except OSError as e:
        raise ConfigIOError(path, e) from e

    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        if path.exists():
            # mkstemp creates 0600, keep whatever mode the target had
            os.chmod(tmp_path, path.stat().st_mode & 0o777)
        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path.exists():
            tmp_path.unlink()
        raise ConfigIOError(path, e) from e
