# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# netshift/synth/params.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from ..config.settings import NetworkDefaults, NetworkModel
from ..core.exceptions import PreconditionError, ValidationError
from ..validation import validator as V

# (interface, reason) -> proceed anyway?
MissingInterfaceHook = Callable[[str, str], bool]

BOND_MODES: Dict[NetworkModel, Tuple[str, ...]] = {
    NetworkModel.LINUX: (
        "balance-rr", "active-backup", "balance-xor", "broadcast", "802.3ad", "balance-tlb", "balance-alb",
    ),
    NetworkModel.OVS: ("active-backup", "balance-slb", "balance-tcp"),
}


@dataclass(frozen=True)
class VlanSpec:
    vid: int
    address: str
    netmask: str
    role: str = ""


@dataclass(frozen=True)
class ValidatedParameterSet:
    """
    Fully-checked apply parameters. Only build_parameter_set() creates these,
    so a synthesizer holding one never sees an unvalidated field.
    """

    model: NetworkModel
    bond_members: Tuple[str, ...]
    address: str
    netmask: str
    gateway: str
    dns: Tuple[str, ...] = ()
    mgmt_port: Optional[str] = None
    vlans: Tuple[VlanSpec, ...] = ()
    bond_name: str = "bond0"
    bond_mode: str = "balance-alb"
    mgmt_bridge: str = "vmbr0"
    vlan_bridge: str = "vmbr1"
    forced_missing: Tuple[str, ...] = field(default=())

    @property
    def interfaces(self) -> Tuple[str, ...]:
        extra = (self.mgmt_port,) if self.mgmt_port else ()
        return tuple(self.bond_members) + extra


def _as_list(raw: Any) -> List[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        return [x for x in raw.replace(",", " ").split() if x]
    return [str(x).strip() for x in raw if str(x).strip()]


def default_vlans(defaults: NetworkDefaults, cluster_octet: Any, storage_octet: Any) -> List[dict]:
    """Cluster/storage VLAN entries on the default subnets (last octet supplied by the operator)."""
    return [
        {"id": defaults.cluster_vlan, "address": f"{defaults.cluster_subnet}.{cluster_octet}/24", "role": "cluster"},
        {"id": defaults.storage_vlan, "address": f"{defaults.storage_subnet}.{storage_octet}/24", "role": "storage"},
    ]


def build_parameter_set(
    raw: Mapping[str, Any],
    *,
    model: NetworkModel,
    live_interfaces: Iterable[str],
    logger: logging.Logger,
    defaults: Optional[NetworkDefaults] = None,
    allow_missing: Optional[MissingInterfaceHook] = None,
) -> ValidatedParameterSet:
    """
    Validate every field, then check device existence.

    - All field problems are collected and raised together as one ValidationError.
    - A missing interface raises PreconditionError unless `allow_missing`
      explicitly approves it; an approved one is logged at WARNING.
    """
    d = defaults or NetworkDefaults()
    problems: List[str] = []

    members = _as_list(raw.get("bond_members"))
    mgmt_port = str(raw.get("mgmt_port") or "").strip() or None
    fallback_mode = d.bond_mode if model == NetworkModel.LINUX else "balance-slb"
    bond_mode = str(raw.get("bond_mode") or fallback_mode).strip()

    if not members:
        problems.append("bond_members: at least one interface is required")
    for name in members + ([mgmt_port] if mgmt_port else []):
        res = V.check_interface_name(name)
        if not res:
            problems.append(res.reason)
    if len(set(members)) != len(members):
        problems.append(f"bond_members: duplicate entries in {members}")
    if mgmt_port and mgmt_port in members:
        problems.append(f"mgmt_port {mgmt_port!r} is also a bond member")
    if model == NetworkModel.OVS and not mgmt_port:
        problems.append("mgmt_port is required for network_model=ovs")
    if bond_mode not in BOND_MODES[model]:
        problems.append(f"bond_mode {bond_mode!r} not valid for {model.value} (use {'|'.join(BOND_MODES[model])})")

    address = str(raw.get("address") or "").strip()
    netmask = str(raw.get("netmask") or "").strip()
    prefix_raw = raw.get("prefix")
    addr_ok = V.parse_address(address, default_prefix=24 if (netmask or prefix_raw is not None) else None)
    ip = ""
    prefix = 24
    if not addr_ok:
        problems.append(f"address: {addr_ok.reason}")
    else:
        ip, prefix = V.split_address(address, default_prefix=24)
        given: Optional[int] = None
        if netmask:
            nm = V.check_netmask(netmask)
            if nm:
                given = V.netmask_to_cidr(netmask)
            else:
                problems.append(f"netmask: {nm.reason}")
        elif prefix_raw is not None:
            pr = V.check_cidr(prefix_raw)
            if pr:
                given = int(prefix_raw)
            else:
                problems.append(f"prefix: {pr.reason}")
        if given is not None:
            if "/" not in address:
                prefix = given
            elif given != prefix:
                problems.append(f"netmask/prefix /{given} conflicts with address {address}")

    gateway = str(raw.get("gateway") or "").strip()
    gw = V.check_ipv4(gateway)
    if not gw:
        problems.append(f"gateway: {gw.reason}")
    elif ip and V.validate_cidr(prefix) and not V.same_subnet(ip, gateway, prefix):
        problems.append(f"gateway {gateway} is outside {ip}/{prefix}")

    dns = _as_list(raw.get("dns")) or [d.dns]
    for server in dns:
        res = V.check_ipv4(server)
        if not res:
            problems.append(f"dns: {res.reason}")

    vlans: List[VlanSpec] = []
    seen_vids = set()
    for entry in raw.get("vlans") or []:
        if not isinstance(entry, Mapping):
            problems.append(f"vlans: entry must be a mapping, got {entry!r}")
            continue
        try:
            vid = int(entry.get("id", entry.get("vid")))
        except (TypeError, ValueError):
            problems.append(f"vlans: invalid id in {dict(entry)!r}")
            continue
        if not 1 <= vid <= 4094:
            problems.append(f"vlans: id {vid} out of range 1-4094")
            continue
        if vid in seen_vids:
            problems.append(f"vlans: duplicate id {vid}")
            continue
        seen_vids.add(vid)
        vaddr = str(entry.get("address") or "").strip()
        res = V.parse_address(vaddr, default_prefix=24)
        if not res:
            problems.append(f"vlan{vid} address: {res.reason}")
            continue
        vip, vpfx = V.split_address(vaddr, default_prefix=24)
        vlans.append(VlanSpec(vid=vid, address=vip, netmask=V.cidr_to_netmask(vpfx), role=str(entry.get("role") or "")))

    if problems:
        raise ValidationError(msg="; ".join(problems)).with_context(fields=len(problems))

    live = sorted(set(live_interfaces))
    forced: List[str] = []
    for name in members + ([mgmt_port] if mgmt_port else []):
        res = V.check_interface_exists(name, live)
        if res:
            continue
        logger.warning("Interface %s does not exist (live: %s)", name, ", ".join(live) or "none")
        if allow_missing is None or not allow_missing(name, res.reason):
            raise PreconditionError(msg=f"Interface {name} does not exist").with_context(interface=name)
        logger.warning("Proceeding with missing interface %s on operator confirmation", name)
        forced.append(name)

    return ValidatedParameterSet(
        model=model,
        bond_members=tuple(members),
        address=ip,
        netmask=V.cidr_to_netmask(prefix),
        gateway=gateway,
        dns=tuple(dns),
        mgmt_port=mgmt_port,
        vlans=tuple(vlans),
        bond_name=d.bond_name,
        bond_mode=bond_mode,
        mgmt_bridge=d.mgmt_bridge,
        vlan_bridge=d.vlan_bridge,
        forced_missing=tuple(forced),
    )
