# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# netshift/core/file_ops.py
"""
Atomic file operation utilities.

Every write to a live host file (interfaces, sysctl, link bindings, hosts)
goes through here: content lands in a temporary file in the target's
directory, is fsync'd, then replaces the target with os.replace(). A reader
therefore sees either the old file or the new one, never a torn write.
"""

from __future__ import annotations

import hashlib
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional


@contextmanager
def atomic_write(
    target_path: Path,
    *,
    suffix: str = ".part",
    dir: Optional[Path] = None,
) -> Generator[Path, None, None]:
    """
    Context manager for atomic file writes using temporary file + rename.

    Yields a temporary path for the caller to fill; on success the
    temporary file replaces `target_path`, on error it is removed.

    Example:
        with atomic_write(Path("/etc/network/interfaces")) as tmp:
            tmp.write_text(rendered, encoding="utf-8")
    """
    target_path = Path(target_path)
    temp_dir = Path(dir) if dir else target_path.parent
    temp_dir.mkdir(parents=True, exist_ok=True)

    fd, temp_name = tempfile.mkstemp(
        suffix=suffix,
        prefix=f".{target_path.name}.",
        dir=str(temp_dir),
    )
    os.close(fd)
    temp_path = Path(temp_name)

    try:
        yield temp_path
        _fsync_path(temp_path)
        os.replace(temp_path, target_path)
        _fsync_dir(target_path.parent)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


def atomic_write_text(path: Path, text: str, *, encoding: str = "utf-8", mode: Optional[int] = None) -> None:
    """
    Write `text` to `path` atomically, optionally forcing file mode.
    Undecodable bytes carried over from read_text_or_empty() are written back as-is.
    """
    with atomic_write(path) as tmp:
        with open(tmp, "w", encoding=encoding, errors="surrogateescape") as f:
            f.write(text)
        if mode is not None:
            os.chmod(tmp, mode)
        elif path.exists():
            shutil.copymode(path, tmp)


def atomic_copy(src: Path, dst: Path) -> None:
    """Copy `src` over `dst` atomically (content + permission bits)."""
    with atomic_write(dst) as tmp:
        shutil.copyfile(src, tmp)
        shutil.copymode(src, tmp)


def sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for blk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(blk)
    return h.hexdigest()


def read_text_or_empty(path: Path, *, encoding: str = "utf-8") -> str:
    """
    Read a text file, treating a missing file as empty. Bytes that are not
    valid in `encoding` (a Latin-1 comment in a hand-edited file) survive as
    surrogates so a later write reproduces them unchanged.
    """
    try:
        with open(path, "r", encoding=encoding, errors="surrogateescape") as f:
            return f.read()
    except FileNotFoundError:
        return ""


def safe_unlink(path: Path) -> None:
    """Delete a file, ignoring a missing one."""
    Path(path).unlink(missing_ok=True)


def _fsync_path(path: Path) -> None:
    fd = os.open(str(path), os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def _fsync_dir(path: Path) -> None:
    # Not every filesystem allows fsync on a directory fd.
    try:
        dirfd = os.open(str(path), os.O_DIRECTORY)
    except OSError:
        return
    try:
        os.fsync(dirfd)
    except OSError:
        pass
    finally:
        os.close(dirfd)
