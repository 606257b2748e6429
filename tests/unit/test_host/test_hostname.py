# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for hostname changes across hostnamectl, /etc/hosts and /etc/hostname."""
from __future__ import annotations

import pytest

from netshift.core.exceptions import MutationError, ValidationError
from netshift.host.hostname import HostnameChanger

from fakes.fake_host import FakeRunner
from fakes.fake_logger import FakeLogger

HOSTS = "127.0.0.1 localhost\n192.168.51.10 pve1.lab pve1\n10.0.0.9 pve10\n"


@pytest.fixture
def host(engine_cfg):
    engine_cfg.hosts_file.write_text(HOSTS, encoding="utf-8")
    engine_cfg.hostname_file.write_text("pve1\n", encoding="utf-8")
    return engine_cfg


@pytest.mark.unit
class TestHostnameChanger:
    def test_change(self, host):
        runner = FakeRunner()
        old = HostnameChanger(FakeLogger(), host, runner=runner).change("node7")

        assert old == "pve1"
        assert host.hostname_file.read_text(encoding="utf-8") == "node7\n"
        hosts = host.hosts_file.read_text(encoding="utf-8")
        assert "192.168.51.10 node7.lab node7\n" in hosts
        assert "pve10" in hosts
        assert runner.ran("hostnamectl", "set-hostname", "node7")
        assert runner.ran("systemctl", "restart", "systemd-hostnamed")

        names = sorted(p.name for p in host.backup_dir.iterdir())
        assert any(n.startswith("hosts_backup_") for n in names)
        assert any(n.startswith("hostname_backup_") for n in names)

    def test_same_name_is_noop(self, host):
        runner = FakeRunner()
        assert HostnameChanger(FakeLogger(), host, runner=runner).change("pve1") == "pve1"
        assert runner.calls == []

    def test_invalid_name(self, host):
        with pytest.raises(ValidationError):
            HostnameChanger(FakeLogger(), host, runner=FakeRunner()).change("bad_name!")
        assert host.hostname_file.read_text(encoding="utf-8") == "pve1\n"

    def test_dry_run(self, host):
        runner = FakeRunner()
        HostnameChanger(FakeLogger(), host, runner=runner, dry_run=True).change("node7")
        assert runner.calls == []
        assert host.hosts_file.read_text(encoding="utf-8") == HOSTS

    def test_hostnamectl_failure(self, host):
        runner = FakeRunner()
        runner.set(["hostnamectl"], returncode=1, stderr="Access denied")
        with pytest.raises(MutationError) as ei:
            HostnameChanger(FakeLogger(), host, runner=runner).change("node7")
        assert ei.value.context["output"] == "Access denied"
        assert host.hosts_file.read_text(encoding="utf-8") == HOSTS
