# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# netshift/backup/manager.py
from __future__ import annotations

import datetime as _dt
import logging
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from ..config.settings import EngineConfig
from ..core.exceptions import BackupError, IrrecoverableError, NetshiftError
from ..core.file_ops import atomic_copy, atomic_write, sha256_file
from ..core.logger import Log

_TS_FORMAT = "%Y-%m-%d_%H-%M-%S"
_ONE_US = _dt.timedelta(microseconds=1)


@dataclass(frozen=True)
class Backup:
    created: _dt.datetime
    source: Path
    path: Path
    sha256: str = ""

    @property
    def name(self) -> str:
        return self.path.name


class BackupManager:
    """
    Timestamped snapshots of one live file, pruned to the newest N.

    Names embed a sortable timestamp with microsecond resolution
    (`<prefix>_YYYY-mm-dd_HH-MM-SS-ffffff.bak`); older second-resolution
    names are still recognized. Ordering is by that timestamp, then mtime.
    """

    def __init__(self, logger: logging.Logger, cfg: EngineConfig, *, source: Optional[Path] = None,
                 prefix: Optional[str] = None):
        self.logger = logger
        self.cfg = cfg
        self.source = Path(source or cfg.interfaces_file)
        self.prefix = prefix or cfg.backup_prefix
        self.backup_dir = Path(cfg.backup_dir)
        self._name_re = re.compile(
            rf"^{re.escape(self.prefix)}_(\d{{4}}-\d{{2}}-\d{{2}}_\d{{2}}-\d{{2}}-\d{{2}})(?:-(\d{{6}}))?\.bak$"
        )

    # ------------------------------------------------------------------
    # Naming
    # ------------------------------------------------------------------

    def _parse_created(self, p: Path) -> Optional[_dt.datetime]:
        m = self._name_re.match(p.name)
        if not m:
            return None
        ts = _dt.datetime.strptime(m.group(1), _TS_FORMAT)
        if m.group(2):
            ts = ts.replace(microsecond=int(m.group(2)))
        return ts

    def _name_for(self, ts: _dt.datetime) -> str:
        return f"{self.prefix}_{ts.strftime(_TS_FORMAT)}-{ts.microsecond:06d}.bak"

    def _next_timestamp(self) -> _dt.datetime:
        ts = _dt.datetime.now()
        existing = self.list_backups()
        if existing and ts <= existing[0].created:
            ts = existing[0].created + _ONE_US
        return ts

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_backups(self) -> List[Backup]:
        """Retained backups, newest first."""
        if not self.backup_dir.is_dir():
            return []
        found = []
        for p in self.backup_dir.iterdir():
            if not p.is_file() or not p.name.startswith(self.prefix + "_") or not p.name.endswith(".bak"):
                continue
            try:
                mtime = p.stat().st_mtime
            except FileNotFoundError:
                continue
            created = self._parse_created(p) or _dt.datetime.fromtimestamp(mtime)
            found.append((created, mtime, Backup(created=created, source=self.source, path=p)))
        found.sort(key=lambda t: (t[0], t[1]), reverse=True)
        return [b for _, _, b in found]

    def latest(self) -> Optional[Backup]:
        backups = self.list_backups()
        return backups[0] if backups else None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def snapshot(self, source: Optional[Path] = None, *, prune: bool = True) -> Backup:
        """
        Copy the live file into the backup dir and verify the copy.
        Any failure raises BackupError: no destructive write may follow.
        With prune=False the caller runs prune() once its own work is done.
        """
        src = Path(source or self.source)
        if not src.is_file():
            raise BackupError(msg=f"Cannot back up {src}: file does not exist").with_context(source=str(src))

        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            ts = self._next_timestamp()
            dest = self.backup_dir / self._name_for(ts)
            with atomic_write(dest) as tmp:
                shutil.copyfile(src, tmp)
                shutil.copymode(src, tmp)
            want = sha256_file(src)
            got = sha256_file(dest)
        except OSError as e:
            raise BackupError(msg=f"Backup of {src} failed: {e}", cause=e).with_context(
                source=str(src), backup_dir=str(self.backup_dir)
            )

        if want != got:
            dest.unlink(missing_ok=True)
            raise BackupError(msg=f"Backup of {src} does not match its source").with_context(
                source=str(src), backup=str(dest)
            )

        Log.ok(self.logger, f"Backup created: {dest}")
        backup = Backup(created=ts, source=src, path=dest, sha256=got)
        if prune:
            self.prune()
        return backup

    def prune(self, retention: Optional[int] = None) -> List[Backup]:
        keep = int(retention if retention is not None else self.cfg.retention)
        backups = self.list_backups()
        removed: List[Backup] = []
        for b in backups[keep:]:
            try:
                b.path.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                self.logger.warning("Could not remove old backup %s: %s", b.path, e)
                continue
            removed.append(b)
            self.logger.info("Removed old backup: %s", b.path)
        return removed

    def restore(self, backup: Backup, *, activate: Optional[Callable[[], None]] = None) -> None:
        """
        Copy `backup` over the live file, verify it, then activate.

        Restore is the last line of defense: any failure from here on is
        IrrecoverableError carrying the backup path for manual recovery.
        """
        target = Path(backup.source)
        log = Log.bind(self.logger, backup=str(backup.path))
        log.info("Restoring %s from %s", target, backup.path)

        def irrecoverable(msg: str, cause: Optional[BaseException] = None) -> IrrecoverableError:
            return IrrecoverableError(msg=msg, cause=cause, backup_path=str(backup.path)).with_context(
                target=str(target)
            )

        try:
            want = backup.sha256 or sha256_file(backup.path)
            atomic_copy(backup.path, target)
            got = sha256_file(target)
        except OSError as e:
            raise irrecoverable(f"Restore of {target} failed: {e}", e)

        if got != want:
            raise irrecoverable(f"Restored {target} does not match backup {backup.path}")

        if activate is not None:
            try:
                activate()
            except (NetshiftError, OSError) as e:
                raise irrecoverable(f"Activation failed after restore: {e}", e)

        Log.ok(self.logger, f"Restored {target} from {backup.path}")
