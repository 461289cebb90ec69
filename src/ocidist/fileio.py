"""
Atomic file writes.

Files are written to a temp file in the target directory, flushed and
renamed into place, so a failed write never leaves a partial file behind.
"""
from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Union

from .errors import LocalIOError

__all__ = ["write_atomically"]


def write_atomically(target_path: Union[str, Path], data: bytes, *, mode: int = 0o644) -> None:
    """
    Write ``data`` to ``target_path`` atomically (temp file + rename).
    
    Args:
        target_path: Final path for the file
        data: File content
        mode: Permission bits of the final file
        
    Raises:
        LocalIOError: If the file cannot be written
    """
    target_path = Path(target_path)
    try:
        target_path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(prefix=".ocidist.tmp.", dir=target_path.parent)
    except OSError as e:
        raise LocalIOError(f"Failed to write {target_path}: {e}") from e
    
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "wb") as out:
            out.write(data)
            out.flush()
            os.fsync(out.fileno())
        os.chmod(temp_path, mode)
        os.replace(temp_path, target_path)
    except OSError as e:
        try:
            temp_path.unlink()
        except FileNotFoundError:
            pass
        raise LocalIOError(f"Failed to write {target_path}: {e}") from e
