# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for timestamped snapshots, pruning and verified restore."""
from __future__ import annotations

import datetime as dt
import logging
import os

import pytest

from netshift.backup.manager import BackupManager
from netshift.core.exceptions import BackupError, IrrecoverableError
from netshift.core.file_ops import sha256_file

logger = logging.getLogger(__name__)


@pytest.fixture
def live(engine_cfg):
    engine_cfg.interfaces_file.write_text("auto lo\niface lo inet loopback\n", encoding="utf-8")
    return engine_cfg.interfaces_file


@pytest.mark.unit
class TestSnapshot:
    def test_snapshot_copies_and_verifies(self, engine_cfg, live):
        """A snapshot is a byte-identical copy named with a sortable timestamp."""
        bm = BackupManager(logger, engine_cfg)
        b = bm.snapshot()

        assert b.path.parent == engine_cfg.backup_dir
        assert b.name.startswith("interfaces_backup_")
        assert b.name.endswith(".bak")
        assert b.path.read_bytes() == live.read_bytes()
        assert b.sha256 == sha256_file(live)

    def test_missing_source_is_backup_error(self, engine_cfg):
        """No live file means no snapshot, and BackupError is a precondition failure."""
        bm = BackupManager(logger, engine_cfg)
        with pytest.raises(BackupError) as ei:
            bm.snapshot()
        assert ei.value.code == 3

    def test_retention_keeps_newest(self, engine_cfg, live):
        """Six snapshots with retention 5 leave exactly the 5 newest."""
        bm = BackupManager(logger, engine_cfg)
        made = []
        for i in range(6):
            live.write_text(f"# revision {i}\n", encoding="utf-8")
            made.append(bm.snapshot())

        kept = bm.list_backups()
        assert len(kept) == 5
        assert [b.path for b in kept] == [b.path for b in reversed(made[1:])]
        assert not made[0].path.exists()
        assert kept[0].path.read_text(encoding="utf-8") == "# revision 5\n"

    def test_timestamps_strictly_increase(self, engine_cfg, live):
        bm = BackupManager(logger, engine_cfg)
        a = bm.snapshot()
        b = bm.snapshot()
        assert b.created > a.created
        assert bm.latest().path == b.path

    def test_legacy_second_resolution_names_are_listed(self, engine_cfg, live):
        """Names without microseconds still sort by their embedded timestamp."""
        engine_cfg.backup_dir.mkdir(parents=True)
        old = engine_cfg.backup_dir / "interfaces_backup_2020-01-02_03-04-05.bak"
        old.write_text("old\n", encoding="utf-8")
        bm = BackupManager(logger, engine_cfg)
        new = bm.snapshot()

        listed = bm.list_backups()
        assert [b.path for b in listed] == [new.path, old]
        assert listed[1].created == dt.datetime(2020, 1, 2, 3, 4, 5)

    def test_unrelated_files_ignored(self, engine_cfg, live):
        engine_cfg.backup_dir.mkdir(parents=True)
        (engine_cfg.backup_dir / "notes.txt").write_text("x", encoding="utf-8")
        (engine_cfg.backup_dir / "sysctl_backup_2020-01-01_00-00-00.bak").write_text("x", encoding="utf-8")
        assert BackupManager(logger, engine_cfg).list_backups() == []


@pytest.mark.unit
class TestRestore:
    def test_restore_reproduces_snapshot(self, engine_cfg, live):
        bm = BackupManager(logger, engine_cfg)
        b = bm.snapshot()
        original = live.read_bytes()
        live.write_text("broken\n", encoding="utf-8")

        calls = []
        bm.restore(b, activate=lambda: calls.append("activate"))

        assert live.read_bytes() == original
        assert calls == ["activate"]

    def test_restore_failure_is_irrecoverable(self, engine_cfg, live):
        """A vanished backup cannot be restored; the error carries the path."""
        bm = BackupManager(logger, engine_cfg)
        b = bm.snapshot()
        os.unlink(b.path)

        with pytest.raises(IrrecoverableError) as ei:
            bm.restore(b)
        assert ei.value.backup_path == str(b.path)
        assert ei.value.code == 5

    def test_activation_failure_after_restore_is_irrecoverable(self, engine_cfg, live):
        from netshift.core.exceptions import ActivationError

        bm = BackupManager(logger, engine_cfg)
        b = bm.snapshot()

        def fail():
            raise ActivationError(msg="networking restart failed")

        with pytest.raises(IrrecoverableError) as ei:
            bm.restore(b, activate=fail)
        assert isinstance(ei.value.cause, ActivationError)
