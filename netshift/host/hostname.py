# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# netshift/host/hostname.py
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional

from ..backup.manager import BackupManager
from ..config.settings import EngineConfig
from ..core.exceptions import MutationError, ValidationError
from ..core.file_ops import atomic_write_text, read_text_or_empty
from ..core.logger import Log
from ..core.utils import U, Runner
from ..validation.validator import check_hostname


class HostnameChanger:
    """
    hostnamectl + /etc/hosts + /etc/hostname, each file snapshotted first.
    Other applications' configs are not touched.
    """

    def __init__(self, logger: logging.Logger, cfg: EngineConfig, *, runner: Runner = U.run_cmd,
                 dry_run: Optional[bool] = None):
        self.logger = logger
        self.cfg = cfg
        self.runner = runner
        self.dry_run = cfg.dry_run if dry_run is None else dry_run

    def current(self) -> str:
        name = read_text_or_empty(self.cfg.hostname_file).strip()
        if name:
            return name
        cp = self.runner(self.logger, ["hostname"], check=False, capture=True)
        return (cp.stdout or "").strip() if cp.returncode == 0 else ""

    def _rewrite(self, path: Path, old: str, new: str, prefix: str) -> int:
        text = read_text_or_empty(path)
        if not text:
            return 0
        updated, n = re.subn(rf"(?<![\w.-]){re.escape(old)}(?![\w-])", new, text)
        if n == 0:
            return 0
        BackupManager(self.logger, self.cfg, source=path, prefix=prefix).snapshot()
        atomic_write_text(path, updated)
        self.logger.info("Updated %d occurrence(s) in %s", n, path)
        return n

    def change(self, new: str) -> str:
        res = check_hostname(new)
        if not res:
            raise ValidationError(msg=res.reason)
        old = self.current()
        if old == new:
            self.logger.info("No-op: hostname is already %s", new)
            return old

        if self.dry_run:
            self.logger.info("[dry-run] would change hostname %s -> %s", old or "(unknown)", new)
            return old

        cp = self.runner(self.logger, ["hostnamectl", "set-hostname", new], check=False, capture=True)
        if cp.returncode != 0:
            raise MutationError(msg=f"hostnamectl set-hostname failed (rc={cp.returncode})").with_context(
                output=(cp.stderr or "").strip()
            )

        try:
            if old:
                self._rewrite(self.cfg.hosts_file, old, new, "hosts_backup")
            if self.cfg.hostname_file.exists():
                BackupManager(self.logger, self.cfg, source=self.cfg.hostname_file, prefix="hostname_backup").snapshot()
            atomic_write_text(self.cfg.hostname_file, new + "\n")
        except OSError as e:
            raise MutationError(msg=f"Failed to update host files: {e}", cause=e)

        cp = self.runner(self.logger, ["systemctl", "restart", "systemd-hostnamed"], check=False, capture=True)
        if cp.returncode != 0:
            self.logger.warning("systemd-hostnamed restart failed (rc=%s); continuing", cp.returncode)

        Log.ok(self.logger, f"Hostname changed {old or '(unknown)'} -> {new}")
        return old
