# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# netshift/apply/controller.py
from __future__ import annotations

import difflib
import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from ..backup.manager import Backup, BackupManager
from ..config.settings import EngineConfig, RollbackPolicy
from ..core.exceptions import ActivationError, MutationError
from ..core.file_ops import atomic_copy, atomic_write_text, read_text_or_empty, safe_unlink
from ..core.logger import Log
from ..host.system import ServiceController
from ..synth.model import ConfigurationArtifact


class ApplyOutcome(Enum):
    APPLIED = "applied"
    UNCHANGED = "unchanged"
    DRY_RUN = "dry-run"


class ApplyVerifyController:
    """
    The single point where a staged artifact becomes live.

    stage -> commit (atomic copy over the live path) -> activate (restart +
    status check). Any MutationError on the way goes through the rollback
    policy before it is re-raised to the caller.
    """

    def __init__(
        self,
        logger: logging.Logger,
        cfg: EngineConfig,
        *,
        services: ServiceController,
        backups: BackupManager,
        ask_rollback: Optional[Callable[[], bool]] = None,
        dry_run: Optional[bool] = None,
    ):
        self.logger = logger
        self.cfg = cfg
        self.services = services
        self.backups = backups
        self.ask_rollback = ask_rollback
        self.dry_run = cfg.dry_run if dry_run is None else dry_run
        self.live_path = Path(cfg.interfaces_file)
        self.staging_path = cfg.staging_file

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def diff(self, artifact: ConfigurationArtifact) -> str:
        old = read_text_or_empty(self.live_path).splitlines(keepends=True)
        new = artifact.render().splitlines(keepends=True)
        return "".join(
            difflib.unified_diff(old, new, fromfile=str(self.live_path), tofile=f"{self.live_path} (staged)")
        )

    def stage(self, artifact: ConfigurationArtifact) -> Path:
        try:
            atomic_write_text(self.staging_path, artifact.render(), mode=0o644)
        except OSError as e:
            raise MutationError(msg=f"Failed to stage {self.staging_path}: {e}", cause=e)
        self.logger.debug("Staged %s", self.staging_path)
        return self.staging_path

    def commit(self, staged: Path) -> None:
        try:
            atomic_copy(staged, self.live_path)
        except OSError as e:
            raise MutationError(msg=f"Failed to replace {self.live_path}: {e}", cause=e)
        safe_unlink(staged)
        Log.ok(self.logger, f"Wrote {self.live_path}")

    def activate(self) -> None:
        svc = self.cfg.networking_service
        Log.step(self.logger, f"Restarting {svc}")
        rc = self.services.restart(svc)
        if rc == 0 and self.services.is_active(svc):
            Log.ok(self.logger, f"{svc} is active")
            return

        status = self.services.status(svc)
        self.logger.error("%s failed (restart rc=%s). Service status:\n%s", svc, rc, status)
        raise ActivationError(msg=f"{svc} restart failed (rc={rc})", status_output=status).with_context(service=svc)

    # ------------------------------------------------------------------
    # Rollback
    # ------------------------------------------------------------------

    def _should_roll_back(self) -> bool:
        policy = self.cfg.rollback
        if policy == RollbackPolicy.AUTO:
            return True
        if policy == RollbackPolicy.PROMPT:
            if self.ask_rollback is None:
                return True
            return bool(self.ask_rollback())
        return False

    def rollback(self, backup: Backup) -> None:
        Log.warn(self.logger, f"Rolling back to {backup.path}")
        self.backups.restore(backup, activate=self.activate)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def apply(self, artifact: ConfigurationArtifact, backup: Optional[Backup] = None) -> ApplyOutcome:
        """
        Make `artifact` live. `backup` is the pre-apply snapshot used for
        rollback (defaults to artifact.last_known_good).
        """
        backup = backup or artifact.last_known_good  # type: ignore[assignment]
        if self.dry_run:
            delta = self.diff(artifact)
            self.logger.info("[dry-run] %s:\n%s", "no changes" if not delta else "pending changes", delta.rstrip())
            return ApplyOutcome.DRY_RUN

        if artifact.render() == read_text_or_empty(self.live_path):
            self.logger.info("No-op: %s already matches the synthesized configuration", self.live_path)
            return ApplyOutcome.UNCHANGED

        committed = False
        try:
            staged = self.stage(artifact)
            self.commit(staged)
            committed = True
            self.activate()
        except MutationError as e:
            safe_unlink(self.staging_path)
            if isinstance(e, ActivationError) and e.status_output:
                self.logger.debug("Captured status output (%d chars)", len(e.status_output))
            if not committed:
                self.logger.error("Live configuration untouched: %s", e)
                raise
            if backup is None:
                self.logger.error("No backup available for rollback")
                raise
            if self._should_roll_back():
                self.rollback(backup)
                e.with_context(rolled_back=True, backup=str(backup.path))
            else:
                Log.warn(self.logger, f"Rollback skipped; previous configuration is in {backup.path}")
                e.with_context(rolled_back=False, backup=str(backup.path))
            raise
        except KeyboardInterrupt:
            safe_unlink(self.staging_path)
            where = "after" if committed else "before"
            self.logger.warning("Interrupted %s commit; staging file removed", where)
            raise

        return ApplyOutcome.APPLIED
