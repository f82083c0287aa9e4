"""Filesystem helpers."""

from __future__ import annotations

import shutil
from pathlib import Path, PurePath
from typing import Union

from ..errors import DirectoryResetError


def recreate_directory(path: Union[str, PurePath]) -> None:
    """Leave ``path`` existing and empty, removing whatever was there."""
    target = Path(path)
    try:
        if target.is_symlink() or target.is_file():
            target.unlink()
        elif target.exists():
            shutil.rmtree(target)
        target.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise DirectoryResetError(f"Could not recreate directory {target}: {exc}") from exc
