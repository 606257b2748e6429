# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# netshift/synth/synthesizer.py
"""
Stanza synthesis for the two supported network models.

Emission order is fixed: loopback, then bond members + bond, then bridges,
then VLANs. A stanza whose (kind, name) already exists in the target
artifact is skipped with an INFO no-op, so repeated runs converge.

MTU policy is decided here, per emitted stanza, never by the operator:
jumbo for the bond, its members, the VLAN-carrying bridge and its port and
every VLAN; standard for the management-only bridge.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Tuple

from ..config.settings import NetworkModel, SynthesisMode
from .model import PHASE_ORDER, ConfigurationArtifact, Stanza, StanzaKind
from .params import ValidatedParameterSet

JUMBO_MTU = 9000
STANDARD_MTU = 1500

_BRIDGE_DEFAULTS: Tuple[Tuple[str, str], ...] = (
    ("bridge-stp", "off"),
    ("bridge-fd", "0"),
)
_VLAN_AWARE: Tuple[Tuple[str, str], ...] = (
    ("bridge-vlan-aware", "yes"),
    ("bridge-vids", "2-4094"),
)
_BOND_OFFLOADS: Tuple[Tuple[str, str], ...] = (
    ("offload-rxvlan", "off"),
    ("offload-txvlan", "off"),
    ("offload-tso", "off"),
    ("offload-rx-vlan-filter", "off"),
)


@dataclass
class SynthesisReport:
    added: List[Tuple[StanzaKind, str]] = field(default_factory=list)
    skipped: List[Tuple[StanzaKind, str]] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added)


class StanzaSynthesizer:
    def __init__(self, logger: logging.Logger):
        self.logger = logger

    # ------------------------------------------------------------------
    # Topology helpers
    # ------------------------------------------------------------------

    @staticmethod
    def vlan_carrier(p: ValidatedParameterSet) -> str:
        """Bridge the VLAN stanzas attach to."""
        if p.model == NetworkModel.OVS or p.mgmt_port:
            return p.vlan_bridge
        return p.mgmt_bridge

    def _mgmt_bridge_mtu(self, p: ValidatedParameterSet) -> int:
        carries_vlans = bool(p.vlans) and self.vlan_carrier(p) == p.mgmt_bridge
        return JUMBO_MTU if carries_vlans else STANDARD_MTU

    # ------------------------------------------------------------------
    # Per-kind emitters
    # ------------------------------------------------------------------

    def _loopback(self, p: ValidatedParameterSet) -> List[Stanza]:
        return [Stanza(StanzaKind.LOOPBACK, "lo", method="loopback")]

    def _ports(self, p: ValidatedParameterSet) -> List[Stanza]:
        out: List[Stanza] = []
        for m in p.bond_members:
            st = Stanza(StanzaKind.PORT, m)
            if p.model == NetworkModel.LINUX:
                st.set("bond-master", p.bond_name)
                st.set("mtu", JUMBO_MTU)
                st.body.append(f"up ip link set dev {m} up")
            else:
                st.set("mtu", JUMBO_MTU)
            out.append(st)

        if p.mgmt_port:
            # linux: uplink of the VLAN-carrying bridge; ovs: uplink of the management bridge
            mtu = JUMBO_MTU if p.model == NetworkModel.LINUX else STANDARD_MTU
            st = Stanza(StanzaKind.PORT, p.mgmt_port, comment="Management interface")
            if p.model == NetworkModel.LINUX:
                st.body.append(f"up ip link set dev {p.mgmt_port} up")
            out.append(st.set("mtu", mtu))
        return out

    def _bond(self, p: ValidatedParameterSet) -> List[Stanza]:
        st = Stanza(StanzaKind.BOND, p.bond_name)
        members = " ".join(p.bond_members)
        if p.model == NetworkModel.LINUX:
            st.set("bond-slaves", members)
            st.set("bond-miimon", 100)
            st.set("bond-mode", p.bond_mode)
            st.set("bond-xmit-hash-policy", "layer3+4")
            st.settings.extend(_BOND_OFFLOADS)
        else:
            st.set("ovs_bridge", p.vlan_bridge)
            st.set("ovs_type", "OVSBond")
            st.set("ovs_bonds", members)
            opts = f"bond_mode={p.bond_mode} lacp=active"
            if p.vlans:
                opts += " trunks=" + ",".join(str(v.vid) for v in p.vlans)
            st.set("ovs_options", opts)
        st.set("mtu", JUMBO_MTU)
        return [st]

    def _bridges(self, p: ValidatedParameterSet) -> List[Stanza]:
        mgmt = Stanza(StanzaKind.BRIDGE, p.mgmt_bridge, method="static", comment="Management bridge")
        mgmt.set("address", p.address)
        mgmt.set("netmask", p.netmask)
        mgmt.set("gateway", p.gateway)

        if p.model == NetworkModel.LINUX:
            mgmt.set("bridge-ports", p.bond_name)
            mgmt.settings.extend(_BRIDGE_DEFAULTS)
            mgmt.settings.extend(_VLAN_AWARE)
        else:
            mgmt.set("bridge-ports", p.mgmt_port)
            mgmt.settings.extend(_BRIDGE_DEFAULTS)
        if p.dns:
            mgmt.set("dns-nameservers", " ".join(p.dns))
        mgmt.set("mtu", self._mgmt_bridge_mtu(p))
        out = [mgmt]

        if p.model == NetworkModel.OVS:
            ports = [p.bond_name] + [f"vlan{v.vid}" for v in p.vlans]
            vb = Stanza(StanzaKind.BRIDGE, p.vlan_bridge, comment="OVS bridge for VLANs")
            vb.set("ovs_type", "OVSBridge")
            vb.set("ovs_ports", " ".join(ports))
            vb.set("mtu", JUMBO_MTU)
            out.append(vb)
        elif p.mgmt_port:
            vb = Stanza(StanzaKind.BRIDGE, p.vlan_bridge, comment="VLAN bridge")
            vb.set("bridge-ports", p.mgmt_port)
            vb.settings.extend(_BRIDGE_DEFAULTS)
            vb.settings.extend(_VLAN_AWARE)
            vb.body.append(f"up ip link set dev {p.vlan_bridge} promisc on")
            vb.set("mtu", JUMBO_MTU)
            out.append(vb)
        return out

    def _vlans(self, p: ValidatedParameterSet) -> List[Stanza]:
        carrier = self.vlan_carrier(p)
        out: List[Stanza] = []
        for v in p.vlans:
            name = f"vlan{v.vid}"
            comment = f"VLAN {v.vid}" + (f" ({v.role})" if v.role else "")
            if p.model == NetworkModel.OVS:
                st = Stanza(StanzaKind.VLAN, name, method="static", allow=carrier, comment=comment)
                st.set("ovs_type", "OVSIntPort")
                st.set("ovs_bridge", carrier)
                st.set("ovs_options", f"tag={v.vid}")
                st.set("address", v.address)
                st.set("netmask", v.netmask)
            else:
                st = Stanza(StanzaKind.VLAN, name, method="static", comment=comment)
                st.set("address", v.address)
                st.set("netmask", v.netmask)
                st.set("vlan-raw-device", carrier)
                if p.dns:
                    st.set("dns-nameservers", " ".join(p.dns))
            st.set("mtu", JUMBO_MTU)
            out.append(st)
        return out

    def _emitters(self) -> Dict[StanzaKind, Callable[[ValidatedParameterSet], List[Stanza]]]:
        return {
            StanzaKind.LOOPBACK: self._loopback,
            StanzaKind.PORT: self._ports,
            StanzaKind.BOND: self._bond,
            StanzaKind.BRIDGE: self._bridges,
            StanzaKind.VLAN: self._vlans,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def emit(self, params: ValidatedParameterSet, kind: StanzaKind) -> List[Stanza]:
        fn = self._emitters().get(kind)
        if fn is None:
            raise ValueError(f"No emitter for stanza kind {kind.value}")
        return fn(params)

    def plan(self, params: ValidatedParameterSet) -> List[Stanza]:
        out: List[Stanza] = []
        for phase in PHASE_ORDER:
            for kind in phase:
                out.extend(self.emit(params, kind))
        return out

    def synthesize(self, params: ValidatedParameterSet, artifact: ConfigurationArtifact) -> SynthesisReport:
        report = SynthesisReport()
        for st in self.plan(params):
            if artifact.add(st):
                report.added.append(st.key)
                self.logger.debug("Emitted %s stanza %s", st.kind.value, st.name)
            else:
                report.skipped.append(st.key)
                self.logger.info("No-op: %s stanza %s already present", st.kind.value, st.name)
        self.logger.info(
            "Synthesis: %d stanza(s) added, %d already present",
            len(report.added),
            len(report.skipped),
        )
        return report

    def build_artifact(
        self,
        params: ValidatedParameterSet,
        path: Path,
        *,
        mode: SynthesisMode = SynthesisMode.REPLACE,
        live_text: str = "",
    ) -> Tuple[ConfigurationArtifact, SynthesisReport]:
        if mode == SynthesisMode.MERGE:
            artifact = ConfigurationArtifact.from_text(path, live_text)
        else:
            artifact = ConfigurationArtifact.empty(path)
        report = self.synthesize(params, artifact)
        return artifact, report
