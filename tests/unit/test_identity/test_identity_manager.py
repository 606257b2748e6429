# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for MAC-bound interface renames."""
from __future__ import annotations

import logging

import pytest

from netshift.backup.manager import BackupManager
from netshift.core.exceptions import MutationError, PreconditionError, ValidationError
from netshift.host.system import DeviceEnumerator
from netshift.identity.manager import IdentityState, InterfaceIdentityManager, rewrite_text

from fakes.fake_host import FakeRunner, make_sysfs

logger = logging.getLogger(__name__)

MAC_A = "00:11:22:33:44:55"
MAC_B = "00:11:22:33:44:66"
MAC_ETH = "aa:bb:cc:dd:ee:01"

INTERFACES = (
    "auto enx001122334455\n"
    "iface enx001122334455 inet manual\n"
    "\n"
    "auto vmbr0\n"
    "iface vmbr0 inet manual\n"
    "    bridge-ports enx001122334455\n"
    "\n"
    "auto enx001122334455.50\n"
    "iface enx001122334455.50 inet manual\n"
)


@pytest.fixture
def host(engine_cfg):
    make_sysfs(engine_cfg.sys_class_net, {
        "lo": ("00:00:00:00:00:00", "unknown"),
        "eth0": (MAC_ETH, "up"),
        "enx001122334455": (MAC_A, "up"),
    })
    engine_cfg.interfaces_file.write_text(INTERFACES, encoding="utf-8")
    runner = FakeRunner()
    mgr = InterfaceIdentityManager(
        logger,
        engine_cfg,
        enumerator=DeviceEnumerator(logger, engine_cfg, runner=runner),
        backups=BackupManager(logger, engine_cfg),
        runner=runner,
        which=lambda tool: "/usr/sbin/" + tool if tool == "update-initramfs" else None,
    )
    return engine_cfg, runner, mgr


def test_rewrite_text_matches_whole_tokens_and_vlan_children():
    text = "eth0 eth01 veth0 eth0.50 eth0-x bridge-ports eth0\n"
    out, n = rewrite_text(text, "eth0", "lan0")
    assert n == 3
    assert out == "lan0 eth01 veth0 lan0.50 eth0-x bridge-ports lan0\n"


@pytest.mark.unit
class TestRename:
    def test_rename_writes_binding_and_rewrites_references(self, host):
        cfg, runner, mgr = host
        ident = mgr.rename("enx001122334455", "nic0")

        link = cfg.link_dir / "10-nic0.link"
        assert ident.link_file == link
        assert link.read_text(encoding="utf-8") == (
            "[Match]\nMACAddress=00:11:22:33:44:55\nType=ether\n\n[Link]\nName=nic0\n"
        )
        assert ident.mac == MAC_A
        assert ident.state == IdentityState.BOUND
        assert ident.written
        assert ident.references_rewritten == 5

        text = cfg.interfaces_file.read_text(encoding="utf-8")
        assert "enx001122334455" not in text
        assert "iface nic0.50 inet manual" in text
        assert "bridge-ports nic0" in text
        assert runner.ran("update-initramfs") == [["update-initramfs", "-u", "-k", "all"]]

    def test_references_snapshotted_before_rewrite(self, host):
        cfg, _runner, mgr = host
        mgr.rename("enx001122334455", "nic0")
        [b] = BackupManager(logger, cfg).list_backups()
        assert b.path.read_text(encoding="utf-8") == INTERFACES

    def test_same_binding_is_noop(self, host):
        """Renaming again to the same name writes nothing and skips the boot image."""
        cfg, runner, mgr = host
        mgr.rename("enx001122334455", "nic0")
        before = (cfg.link_dir / "10-nic0.link").stat().st_mtime_ns

        again = mgr.rename("enx001122334455", "nic0")

        assert not again.written
        assert again.references_rewritten == 0
        assert (cfg.link_dir / "10-nic0.link").stat().st_mtime_ns == before
        assert len(runner.ran("update-initramfs")) == 1

    def test_conflicting_binding_refused_without_override(self, host):
        cfg, _runner, mgr = host
        cfg.link_dir.mkdir(parents=True)
        (cfg.link_dir / "10-nic0.link").write_text(mgr.render_link(MAC_B, "nic0"), encoding="utf-8")

        with pytest.raises(PreconditionError, match="already bound"):
            mgr.rename("enx001122334455", "nic0")

        ident = mgr.rename("enx001122334455", "nic0", override=True)
        assert ident.written
        assert [(b.mac, b.name) for b in mgr.existing_bindings()] == [(MAC_A, "nic0")]

    def test_mac_bound_elsewhere_refused(self, host):
        cfg, _runner, mgr = host
        cfg.link_dir.mkdir(parents=True)
        (cfg.link_dir / "10-lan5.link").write_text(mgr.render_link(MAC_A, "lan5"), encoding="utf-8")
        with pytest.raises(PreconditionError):
            mgr.rename("enx001122334455", "nic0")

    def test_live_name_in_use(self, host):
        _cfg, _runner, mgr = host
        with pytest.raises(PreconditionError, match="in use"):
            mgr.rename("enx001122334455", "eth0")

    def test_zero_mac_refused(self, host):
        cfg, _runner, mgr = host
        with pytest.raises(PreconditionError):
            mgr.rename("lo", "nic0")
        assert not cfg.link_dir.exists()

    @pytest.mark.parametrize("old,new", [("enx001122334455", "bad name"), ("eth0", "eth0")])
    def test_invalid_names(self, host, old, new):
        _cfg, _runner, mgr = host
        with pytest.raises(ValidationError):
            mgr.rename(old, new)

    def test_observe_promotes_after_reboot(self, host):
        cfg, _runner, mgr = host
        ident = mgr.rename("enx001122334455", "nic0")
        assert mgr.observe(ident).state == IdentityState.BOUND

        # after reboot udev applied the binding
        make_sysfs(cfg.sys_class_net, {"nic0": (MAC_A, "up")})
        assert mgr.observe(ident).state == IdentityState.ACTIVE
        [seen] = mgr.bindings_for(["nic0"])
        assert seen.state == IdentityState.ACTIVE

    def test_dry_run_writes_nothing(self, engine_cfg):
        make_sysfs(engine_cfg.sys_class_net, {"enx001122334455": (MAC_A, "up")})
        engine_cfg.interfaces_file.write_text(INTERFACES, encoding="utf-8")
        runner = FakeRunner()
        mgr = InterfaceIdentityManager(
            logger, engine_cfg,
            enumerator=DeviceEnumerator(logger, engine_cfg, runner=runner),
            backups=BackupManager(logger, engine_cfg),
            runner=runner, which=lambda t: "/usr/bin/" + t, dry_run=True,
        )
        mgr.rename("enx001122334455", "nic0")
        assert not engine_cfg.link_dir.exists()
        assert engine_cfg.interfaces_file.read_text(encoding="utf-8") == INTERFACES
        assert runner.calls == []


@pytest.mark.unit
class TestRenameVolatile:
    def test_batch_assigns_free_names_and_regenerates_once(self, host):
        cfg, runner, mgr = host
        make_sysfs(cfg.sys_class_net, {"enx001122334466": (MAC_B, "up"), "nic0": (MAC_ETH, "up")})

        out = mgr.rename_volatile("nic")

        assert [(i.current_name, i.target_name) for i in out] == [
            ("enx001122334455", "nic1"),
            ("enx001122334466", "nic2"),
        ]
        assert all(i.state == IdentityState.BOUND for i in out)
        assert len(runner.ran("update-initramfs")) == 1

    def test_existing_binding_keeps_its_name(self, host):
        cfg, runner, mgr = host
        mgr.rename("enx001122334455", "nic3", regenerate=False)

        [ident] = mgr.rename_volatile("nic")

        assert ident.target_name == "nic3"
        assert not ident.written
        assert runner.ran("update-initramfs") == []

    def test_no_volatile_interfaces(self, engine_cfg):
        make_sysfs(engine_cfg.sys_class_net, {"eth0": (MAC_ETH, "up")})
        mgr = InterfaceIdentityManager(
            logger, engine_cfg,
            enumerator=DeviceEnumerator(logger, engine_cfg, runner=FakeRunner()),
            backups=BackupManager(logger, engine_cfg),
            runner=FakeRunner(), which=lambda t: None,
        )
        assert mgr.rename_volatile("nic") == []

    def test_bad_prefix(self, host):
        _cfg, _runner, mgr = host
        with pytest.raises(ValidationError):
            mgr.rename_volatile("nic!")

    def test_conflict_on_later_interface_writes_nothing(self, host):
        cfg, runner, mgr = host
        make_sysfs(cfg.sys_class_net, {"enx001122334466": (MAC_B, "up")})
        cfg.link_dir.mkdir(parents=True)
        (cfg.link_dir / "10-other0.link").write_text(mgr.render_link(MAC_B, "other0"), encoding="utf-8")

        with pytest.raises(PreconditionError, match="already bound"):
            mgr.rename_volatile("nic")

        assert sorted(p.name for p in cfg.link_dir.iterdir()) == ["10-other0.link"]
        assert cfg.interfaces_file.read_text(encoding="utf-8") == INTERFACES
        assert runner.ran("update-initramfs") == []

    def test_write_failure_midway_still_regenerates(self, host, monkeypatch):
        cfg, runner, mgr = host
        make_sysfs(cfg.sys_class_net, {"enx001122334466": (MAC_B, "up")})
        real_write = mgr.write_binding

        def write_binding(mac, new):
            if mac == MAC_B:
                raise MutationError(msg="disk full")
            return real_write(mac, new)

        monkeypatch.setattr(mgr, "write_binding", write_binding)

        with pytest.raises(MutationError):
            mgr.rename_volatile("nic")

        assert (cfg.link_dir / "10-nic0.link").exists()
        assert len(runner.ran("update-initramfs")) == 1
