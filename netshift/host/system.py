# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# netshift/host/system.py
"""
Thin collaborators around host commands and sysfs.

Each one takes the command runner as a constructor argument so tests can
substitute a fake; none of them decide policy.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..config.settings import EngineConfig
from ..core.utils import U, Runner
from ..validation.validator import check_mac, normalize_mac


@dataclass
class InterfaceInfo:
    name: str
    mac: str
    operstate: str
    addresses: List[str] = field(default_factory=list)

    @property
    def mac_ok(self) -> bool:
        return bool(check_mac(self.mac))


@dataclass(frozen=True)
class Volume:
    name: str
    vg: str
    size: str = ""

    @property
    def ref(self) -> str:
        return f"{self.vg}/{self.name}"


class DeviceEnumerator:
    """Live interfaces from /sys/class/net plus IPv4 addresses from `ip`."""

    def __init__(self, logger: logging.Logger, cfg: EngineConfig, *, runner: Runner = U.run_cmd):
        self.logger = logger
        self.root = Path(cfg.sys_class_net)
        self.runner = runner

    def _read(self, name: str, attr: str) -> str:
        try:
            return (self.root / name / attr).read_text(encoding="utf-8").strip()
        except OSError:
            return ""

    def list_interfaces(self) -> List[str]:
        if not self.root.is_dir():
            self.logger.warning("%s not found; no interfaces enumerated", self.root)
            return []
        return sorted(p.name for p in self.root.iterdir())

    def mac(self, name: str) -> str:
        return normalize_mac(self._read(name, "address"))

    def operstate(self, name: str) -> str:
        return self._read(name, "operstate") or "unknown"

    def ipv4_addresses(self) -> Dict[str, List[str]]:
        cp = self.runner(self.logger, ["ip", "-o", "-4", "addr", "show"], check=False, capture=True)
        if cp.returncode != 0:
            self.logger.warning("ip addr show failed (rc=%s); addresses unavailable", cp.returncode)
            return {}
        out: Dict[str, List[str]] = {}
        for line in (cp.stdout or "").splitlines():
            parts = line.split()
            # "2: eth0    inet 10.0.0.5/24 brd 10.0.0.255 scope global eth0"
            if len(parts) >= 4 and parts[2] == "inet":
                out.setdefault(parts[1].split("@", 1)[0], []).append(parts[3])
        return out

    def report(self) -> List[InterfaceInfo]:
        addrs = self.ipv4_addresses()
        return [
            InterfaceInfo(name=n, mac=self.mac(n), operstate=self.operstate(n), addresses=addrs.get(n, []))
            for n in self.list_interfaces()
        ]


class ServiceController:
    def __init__(self, logger: logging.Logger, *, runner: Runner = U.run_cmd, timeout: Optional[int] = 120):
        self.logger = logger
        self.runner = runner
        self.timeout = timeout

    def restart(self, service: str) -> int:
        cp = self.runner(self.logger, ["systemctl", "restart", service], check=False, capture=True,
                         timeout=self.timeout)
        return cp.returncode

    def is_active(self, service: str) -> bool:
        cp = self.runner(self.logger, ["systemctl", "is-active", "--quiet", service], check=False, capture=True)
        return cp.returncode == 0

    def status(self, service: str) -> str:
        cp = self.runner(self.logger, ["systemctl", "status", "--no-pager", "--full", service],
                         check=False, capture=True)
        return ((cp.stdout or "") + (cp.stderr or "")).strip()


class PackageInstaller:
    def __init__(self, logger: logging.Logger, *, runner: Runner = U.run_cmd):
        self.logger = logger
        self.runner = runner

    def missing(self, packages: Iterable[str]) -> List[str]:
        out = []
        for pkg in packages:
            cp = self.runner(self.logger, ["dpkg-query", "-W", "-f=${Status}", pkg], check=False, capture=True)
            if cp.returncode != 0 or "install ok installed" not in (cp.stdout or ""):
                out.append(pkg)
        return out

    def install(self, packages: Iterable[str]) -> bool:
        packages = list(packages)
        todo = self.missing(packages)
        if not todo:
            self.logger.info("Packages already installed: %s", " ".join(packages))
            return True
        env = dict(os.environ, DEBIAN_FRONTEND="noninteractive")
        self.logger.info("Installing packages: %s", " ".join(todo))
        cp = self.runner(self.logger, ["apt-get", "install", "-y", *todo], check=False, capture=True, env=env)
        if cp.returncode != 0:
            self.logger.error("Package installation failed (rc=%s): %s", cp.returncode, (cp.stderr or "").strip())
            return False
        return True


class VolumeLister:
    def __init__(self, logger: logging.Logger, *, runner: Runner = U.run_cmd):
        self.logger = logger
        self.runner = runner

    def list_volumes(self) -> List[Volume]:
        cp = self.runner(
            self.logger,
            ["lvs", "--noheadings", "-o", "lv_name,vg_name,lv_size", "--separator", " "],
            check=False,
            capture=True,
        )
        if cp.returncode != 0:
            self.logger.error("lvs failed (rc=%s): %s", cp.returncode, (cp.stderr or "").strip())
            return []
        out: List[Volume] = []
        for line in (cp.stdout or "").splitlines():
            parts = line.split()
            if len(parts) >= 2:
                out.append(Volume(name=parts[0], vg=parts[1], size=parts[2] if len(parts) > 2 else ""))
        return out

    def remove(self, vol: Volume) -> bool:
        cp = self.runner(self.logger, ["lvremove", "-f", vol.ref], check=False, capture=True)
        if cp.returncode != 0:
            self.logger.error("lvremove %s failed (rc=%s): %s", vol.ref, cp.returncode, (cp.stderr or "").strip())
            return False
        return True
