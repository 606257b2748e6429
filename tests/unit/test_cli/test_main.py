# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exit codes from the top-level entry point."""

import pytest

from netshift.__main__ import main


def run(monkeypatch, *argv):
    monkeypatch.setattr("sys.argv", ["netshift", "--no-log-file", *argv])
    with pytest.raises(SystemExit) as ei:
        main()
    return ei.value.code


@pytest.mark.unit
class TestMain:
    def test_unknown_cmd_exits_2(self, monkeypatch):
        assert run(monkeypatch, "--cmd", "wipe") == 2

    def test_list_backups_under_alternate_root(self, monkeypatch, tmp_path):
        assert run(monkeypatch, "--root", str(tmp_path), "--cmd", "list-backups") == 0

    def test_restore_without_backups_exits_3(self, monkeypatch, tmp_path):
        assert run(monkeypatch, "--root", str(tmp_path), "--cmd", "restore") == 3

    def test_missing_config_file(self, monkeypatch, tmp_path):
        assert run(monkeypatch, "--config", str(tmp_path / "missing.yaml")) == 2
