# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# netshift/config/settings.py
"""
EngineConfig: the one configuration struct every component receives.

Built once from (args, merged YAML) by EngineConfig.from_sources(); there
are no module-level path globals anywhere else in the package. Tests build
it with EngineConfig.rooted(tmp_path) so every host path lives in a sandbox.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from ..core.exceptions import ValidationError


class NetworkModel(Enum):
    LINUX = "linux"  # bond + VLAN-aware Linux bridges
    OVS = "ovs"  # Open vSwitch bridges with tagged internal ports


class SynthesisMode(Enum):
    REPLACE = "replace"  # fresh artifact, fully replaces the live file
    MERGE = "merge"  # live text kept byte-exact, missing stanzas appended


class RollbackPolicy(Enum):
    AUTO = "auto"
    PROMPT = "prompt"
    NEVER = "never"


DEFAULT_TUNABLES: Dict[str, str] = {
    "net.ipv4.ip_forward": "1",
    "net.ipv6.conf.all.disable_ipv6": "1",
    "net.ipv6.conf.default.disable_ipv6": "1",
}

PACKAGES_BY_MODEL: Dict[NetworkModel, Tuple[str, ...]] = {
    NetworkModel.LINUX: ("ifenslave", "bridge-utils", "ethtool", "iproute2"),
    NetworkModel.OVS: ("openvswitch-switch",),
}


@dataclass(frozen=True)
class NetworkDefaults:
    """Subnet/naming defaults offered when collecting apply parameters."""

    mgmt_subnet: str = "192.168.51"
    cluster_subnet: str = "10.50.10"
    storage_subnet: str = "10.55.10"
    cluster_vlan: int = 50
    storage_vlan: int = 55
    dns: str = "192.168.51.1"
    bond_mode: str = "balance-alb"
    bond_name: str = "bond0"
    mgmt_bridge: str = "vmbr0"
    vlan_bridge: str = "vmbr1"

    @property
    def mgmt_gateway(self) -> str:
        return f"{self.mgmt_subnet}.1"

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "NetworkDefaults":
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        kwargs = {k: data[k] for k in data if k in known}
        for k in ("cluster_vlan", "storage_vlan"):
            if k in kwargs:
                try:
                    kwargs[k] = int(kwargs[k])
                except (TypeError, ValueError):
                    raise ValidationError(msg=f"network.{k} must be an integer, got {kwargs[k]!r}")
        return cls(**kwargs)


def _enum_value(enum_cls: Any, raw: Any, key: str) -> Any:
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw).strip().lower())
    except ValueError:
        allowed = "|".join(m.value for m in enum_cls)
        raise ValidationError(msg=f"Invalid {key}={raw!r} (use {allowed})")


def _as_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() in ("1", "true", "yes", "on", "y")


@dataclass(frozen=True)
class EngineConfig:
    interfaces_file: Path = Path("/etc/network/interfaces")
    backup_dir: Path = Path("/root/network_backups")
    backup_prefix: str = "interfaces_backup"
    retention: int = 5
    staging_dir: Optional[Path] = None

    sysctl_file: Path = Path("/etc/sysctl.conf")
    tunables: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_TUNABLES))

    link_dir: Path = Path("/etc/systemd/network")
    link_priority: int = 10
    sys_class_net: Path = Path("/sys/class/net")
    volatile_prefix: str = "enx"

    workload_conf_dirs: Tuple[Path, ...] = (Path("/etc/pve/lxc"), Path("/etc/pve/qemu-server"))
    volume_denylist: Tuple[str, ...] = ("data", "root", "swap")
    volume_deny_patterns: Tuple[str, ...] = (r"^osd-block-",)

    networking_service: str = "networking"
    prompt_timeout: int = 60
    rollback: RollbackPolicy = RollbackPolicy.AUTO
    dry_run: bool = False

    network_model: NetworkModel = NetworkModel.LINUX
    synthesis_mode: SynthesisMode = SynthesisMode.REPLACE

    install_packages: bool = True
    helper_url: Optional[str] = None
    helper_path: Optional[Path] = None

    hosts_file: Path = Path("/etc/hosts")
    hostname_file: Path = Path("/etc/hostname")

    network: NetworkDefaults = field(default_factory=NetworkDefaults)

    def __post_init__(self) -> None:
        if int(self.retention) < 1:
            raise ValidationError(msg=f"retention must be >= 1, got {self.retention}")
        if int(self.prompt_timeout) < 0:
            raise ValidationError(msg=f"prompt_timeout must be >= 0, got {self.prompt_timeout}")

    @property
    def staging_file(self) -> Path:
        base = self.staging_dir or self.interfaces_file.parent
        return base / f"{self.interfaces_file.name}.netshift-staged"

    @property
    def packages(self) -> Tuple[str, ...]:
        return PACKAGES_BY_MODEL[self.network_model]

    def with_overrides(self, **kw: Any) -> "EngineConfig":
        return replace(self, **kw)

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------

    @classmethod
    def rooted(cls, root: Path, **overrides: Any) -> "EngineConfig":
        """
        Re-anchor every host path under `root` (alternate root / test sandbox).
        """
        root = Path(root)
        base = cls()

        def under(p: Path) -> Path:
            return root / Path(p).relative_to("/")

        kw: Dict[str, Any] = dict(
            interfaces_file=under(base.interfaces_file),
            backup_dir=under(base.backup_dir),
            sysctl_file=under(base.sysctl_file),
            link_dir=under(base.link_dir),
            sys_class_net=under(base.sys_class_net),
            workload_conf_dirs=tuple(under(p) for p in base.workload_conf_dirs),
            hosts_file=under(base.hosts_file),
            hostname_file=under(base.hostname_file),
        )
        kw.update(overrides)
        return cls(**kw)

    @classmethod
    def from_sources(cls, args: argparse.Namespace, conf: Mapping[str, Any]) -> "EngineConfig":
        """
        CLI values win over YAML values, YAML wins over dataclass defaults.
        `--root` re-anchors the default paths before explicit overrides apply.
        """

        def pick(key: str) -> Any:
            v = getattr(args, key, None)
            if v is not None and v != "":
                return v
            return conf.get(key)

        root = pick("root")
        cfg = cls.rooted(Path(root)) if root and str(root) != "/" else cls()

        kw: Dict[str, Any] = {}
        for key in ("interfaces_file", "backup_dir", "staging_dir", "sysctl_file", "link_dir",
                    "sys_class_net", "hosts_file", "hostname_file", "helper_path"):
            v = pick(key)
            if v:
                kw[key] = Path(str(v)).expanduser()

        for key in ("backup_prefix", "volatile_prefix", "networking_service", "helper_url"):
            v = pick(key)
            if v:
                kw[key] = str(v)

        for key in ("retention", "link_priority", "prompt_timeout"):
            v = pick(key)
            if v is not None:
                try:
                    kw[key] = int(v)
                except (TypeError, ValueError):
                    raise ValidationError(msg=f"{key} must be an integer, got {v!r}")

        for key in ("dry_run", "install_packages"):
            v = pick(key)
            if v is not None:
                kw[key] = _as_bool(v)

        v = pick("rollback")
        if v is not None:
            kw["rollback"] = _enum_value(RollbackPolicy, v, "rollback")
        v = pick("network_model")
        if v is not None:
            kw["network_model"] = _enum_value(NetworkModel, v, "network_model")
        v = pick("synthesis_mode")
        if v is not None:
            kw["synthesis_mode"] = _enum_value(SynthesisMode, v, "synthesis_mode")

        tun = conf.get("tunables")
        if isinstance(tun, Mapping):
            kw["tunables"] = {str(k): str(val) for k, val in tun.items()}

        for key in ("workload_conf_dirs",):
            v = conf.get(key)
            if v:
                kw[key] = tuple(Path(str(x)) for x in v)
        for key in ("volume_denylist", "volume_deny_patterns"):
            v = conf.get(key)
            if v:
                kw[key] = tuple(str(x) for x in v)

        net = conf.get("network")
        if isinstance(net, Mapping):
            kw["network"] = NetworkDefaults.from_mapping(net)

        return cfg.with_overrides(**kw)
