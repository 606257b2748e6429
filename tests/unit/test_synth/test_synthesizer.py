# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for stanza emission, ordering and idempotence."""
from __future__ import annotations

from pathlib import Path

import pytest

from netshift.config.settings import NetworkDefaults, NetworkModel, SynthesisMode
from netshift.synth.model import ConfigurationArtifact, StanzaKind, parse_interfaces
from netshift.synth.params import build_parameter_set, default_vlans
from netshift.synth.synthesizer import StanzaSynthesizer

from fakes.fake_logger import FakeLogger

PATH = Path("/etc/network/interfaces")
LIVE = ["eth0", "eth1", "eth2", "lo"]


def params(model=NetworkModel.LINUX, **kw):
    raw = {"bond_members": ["eth0", "eth1"], "address": "10.0.0.5/24", "gateway": "10.0.0.1"}
    raw.update(kw)
    return build_parameter_set(raw, model=model, live_interfaces=LIVE, logger=FakeLogger())


def stanza_block(text, name):
    """The indented lines under `iface <name>`."""
    lines = text.splitlines()
    start = next(i for i, ln in enumerate(lines) if ln.startswith(f"iface {name} "))
    out = []
    for ln in lines[start + 1:]:
        if not ln.startswith("    "):
            break
        out.append(ln.strip())
    return out


@pytest.mark.unit
class TestLinuxModel:
    def test_bond_scenario(self):
        """eth0+eth1 bonded under a static management bridge at 10.0.0.5/24."""
        art, report = StanzaSynthesizer(FakeLogger()).build_artifact(params(), PATH)
        text = art.render()

        assert report.added == [
            (StanzaKind.LOOPBACK, "lo"),
            (StanzaKind.PORT, "eth0"),
            (StanzaKind.PORT, "eth1"),
            (StanzaKind.BOND, "bond0"),
            (StanzaKind.BRIDGE, "vmbr0"),
        ]
        assert text.startswith("auto lo\niface lo inet loopback\n")
        assert "iface bond0 inet manual" in text
        assert "bond-slaves eth0 eth1" in stanza_block(text, "bond0")
        assert "bond-mode balance-alb" in stanza_block(text, "bond0")
        assert "bond-miimon 100" in stanza_block(text, "bond0")
        assert "bond-master bond0" in stanza_block(text, "eth0")

        vmbr0 = stanza_block(text, "vmbr0")
        assert "iface vmbr0 inet static" in text
        assert vmbr0[:3] == ["address 10.0.0.5", "netmask 255.255.255.0", "gateway 10.0.0.1"]
        assert "bridge-ports bond0" in vmbr0
        assert "mtu 1500" in vmbr0

    def test_phase_order(self):
        """Loopback, then ports/bond, then bridges, then VLANs."""
        p = params(mgmt_port="eth2", vlans=default_vlans(NetworkDefaults(), 5, 6))
        text = StanzaSynthesizer(FakeLogger()).build_artifact(p, PATH)[0].render()
        pos = [text.index(f"iface {n} ") for n in ("lo", "eth0", "eth2", "bond0", "vmbr0", "vmbr1", "vlan50", "vlan55")]
        assert pos == sorted(pos)

    def test_mtu_policy(self):
        """Jumbo on bond, members, VLAN bridge and VLANs; standard on the management bridge."""
        p = params(mgmt_port="eth2", vlans=default_vlans(NetworkDefaults(), 5, 6))
        text = StanzaSynthesizer(FakeLogger()).build_artifact(p, PATH)[0].render()
        for name in ("eth0", "eth1", "eth2", "bond0", "vmbr1", "vlan50", "vlan55"):
            assert "mtu 9000" in stanza_block(text, name), name
        assert "mtu 1500" in stanza_block(text, "vmbr0")

    def test_vlans_ride_the_vlan_bridge(self):
        p = params(mgmt_port="eth2", vlans=default_vlans(NetworkDefaults(), 5, 6))
        text = StanzaSynthesizer(FakeLogger()).build_artifact(p, PATH)[0].render()
        assert "vlan-raw-device vmbr1" in stanza_block(text, "vlan50")
        assert "address 10.50.10.5" in stanza_block(text, "vlan50")
        assert "bridge-ports eth2" in stanza_block(text, "vmbr1")

    def test_mgmt_port_brought_up_and_vlans_carry_dns(self):
        p = params(mgmt_port="eth2", dns=["10.0.0.53", "10.0.0.54"], vlans=default_vlans(NetworkDefaults(), 5, 6))
        text = StanzaSynthesizer(FakeLogger()).build_artifact(p, PATH)[0].render()
        assert "up ip link set dev eth2 up" in stanza_block(text, "eth2")
        for name in ("vlan50", "vlan55"):
            assert "dns-nameservers 10.0.0.53 10.0.0.54" in stanza_block(text, name), name

    def test_without_mgmt_port_vlans_use_management_bridge(self):
        p = params(vlans=default_vlans(NetworkDefaults(), 5, 6))
        text = StanzaSynthesizer(FakeLogger()).build_artifact(p, PATH)[0].render()
        assert "iface vmbr1 " not in text
        assert "vlan-raw-device vmbr0" in stanza_block(text, "vlan55")
        assert "mtu 9000" in stanza_block(text, "vmbr0")


@pytest.mark.unit
class TestOvsModel:
    def test_ovs_stanzas(self):
        p = params(NetworkModel.OVS, mgmt_port="eth2", vlans=default_vlans(NetworkDefaults(), 5, 6))
        text = StanzaSynthesizer(FakeLogger()).build_artifact(p, PATH)[0].render()

        bond = stanza_block(text, "bond0")
        assert "ovs_type OVSBond" in bond
        assert "ovs_bonds eth0 eth1" in bond
        assert "ovs_options bond_mode=balance-slb lacp=active trunks=50,55" in bond

        assert "ovs_ports bond0 vlan50 vlan55" in stanza_block(text, "vmbr1")
        assert "bridge-ports eth2" in stanza_block(text, "vmbr0")
        assert "mtu 1500" in stanza_block(text, "eth2")

        assert "allow-vmbr1 vlan50" in text
        vlan = stanza_block(text, "vlan50")
        assert "ovs_type OVSIntPort" in vlan
        assert "ovs_options tag=50" in vlan

    def test_rendered_kinds_read_back(self):
        """Parsing the rendered file recovers the same (kind, name) pairs."""
        p = params(NetworkModel.OVS, mgmt_port="eth2", vlans=default_vlans(NetworkDefaults(), 5, 6))
        art, report = StanzaSynthesizer(FakeLogger()).build_artifact(p, PATH)
        parsed = [(s.kind, s.name) for s in parse_interfaces(art.render())]
        assert parsed == report.added


@pytest.mark.unit
class TestIdempotence:
    @pytest.mark.parametrize("model,extra", [
        (NetworkModel.LINUX, {}),
        (NetworkModel.LINUX, {"mgmt_port": "eth2", "vlans": default_vlans(NetworkDefaults(), 5, 6)}),
        (NetworkModel.OVS, {"mgmt_port": "eth2", "vlans": default_vlans(NetworkDefaults(), 5, 6)}),
    ])
    def test_second_run_is_byte_identical(self, model, extra):
        """Merging into our own output adds nothing and changes no byte."""
        fl = FakeLogger()
        synth = StanzaSynthesizer(fl)
        p = params(model, **extra)
        first = synth.build_artifact(p, PATH)[0].render()

        art, report = synth.build_artifact(p, PATH, mode=SynthesisMode.MERGE, live_text=first)

        assert art.render() == first
        assert report.added == []
        assert not report.changed
        assert any(m.startswith("No-op: bond stanza bond0") for m in fl.messages("info"))

    def test_replace_is_deterministic(self):
        synth = StanzaSynthesizer(FakeLogger())
        assert synth.build_artifact(params(), PATH)[0].render() == synth.build_artifact(params(), PATH)[0].render()

    def test_merge_keeps_foreign_text(self):
        """Existing loopback and unrelated stanzas survive byte-for-byte; only missing stanzas are appended."""
        live = (
            "# managed by hand\n"
            "auto lo\n"
            "iface lo inet loopback\n"
            "\n"
            "iface wlan0 inet dhcp\n"
        )
        art, report = StanzaSynthesizer(FakeLogger()).build_artifact(
            params(), PATH, mode=SynthesisMode.MERGE, live_text=live
        )
        text = art.render()
        assert text.startswith(live)
        assert (StanzaKind.LOOPBACK, "lo") in report.skipped
        assert text.count("iface lo ") == 1
        assert (StanzaKind.BRIDGE, "vmbr0") in report.added


@pytest.mark.unit
class TestArtifact:
    def test_add_refuses_duplicates(self):
        art = ConfigurationArtifact.from_text(PATH, "auto bond0\niface bond0 inet manual\n    bond-slaves eth0\n")
        from netshift.synth.model import Stanza

        assert not art.add(Stanza(StanzaKind.BOND, "bond0"))
        assert art.add(Stanza(StanzaKind.BRIDGE, "bond0"))

    def test_render_separates_with_blank_line(self):
        from netshift.synth.model import Stanza

        art = ConfigurationArtifact.from_text(PATH, "auto lo\niface lo inet loopback")
        art.add(Stanza(StanzaKind.PORT, "eth0"))
        assert art.render() == "auto lo\niface lo inet loopback\n\nauto eth0\niface eth0 inet manual\n"
