# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# netshift/identity/manager.py
"""
MAC-keyed persistent interface renaming (systemd .link files).

Two-phase commit:
  phase 1 (here)  resolve MAC, write the binding, rewrite references,
                  regenerate the early-boot image -> bound-awaiting-reboot
  phase 2 (boot)  udev applies the .link file; observe() sees the new name
                  carrying the bound MAC -> active

Nothing here assumes phase 2 happens within this process.
"""

from __future__ import annotations

import configparser
import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Tuple

from ..backup.manager import BackupManager
from ..config.settings import EngineConfig
from ..core.exceptions import MutationError, PreconditionError, ValidationError
from ..core.file_ops import atomic_write_text, read_text_or_empty
from ..core.logger import Log
from ..core.utils import U, Runner
from ..host.system import DeviceEnumerator
from ..validation import validator as V


class IdentityState(Enum):
    PENDING = "pending"
    BOUND = "bound-awaiting-reboot"
    ACTIVE = "active"


@dataclass
class InterfaceIdentity:
    mac: str
    current_name: str
    target_name: str
    state: IdentityState = IdentityState.PENDING
    link_file: Optional[Path] = None
    references_rewritten: int = 0
    written: bool = False


@dataclass(frozen=True)
class Binding:
    mac: str
    name: str
    path: Path


# initramfs tools in preference order; first one present wins
_BOOT_IMAGE_TOOLS: Tuple[Tuple[str, List[str]], ...] = (
    ("update-initramfs", ["update-initramfs", "-u", "-k", "all"]),
    ("dracut", ["dracut", "-f", "--regenerate-all"]),
    ("mkinitcpio", ["mkinitcpio", "-P"]),
)


def reference_pattern(old: str) -> "re.Pattern[str]":
    """
    Whole-token match of `old`, also matching `old.<vid>` VLAN children,
    but not `old` inside a longer name (eth0 vs eth01 / veth0 / eth0-x).
    """
    return re.compile(rf"(?<![\w.-]){re.escape(old)}(?![\w-])")


def rewrite_text(text: str, old: str, new: str) -> Tuple[str, int]:
    return reference_pattern(old).subn(new, text)


class InterfaceIdentityManager:
    def __init__(
        self,
        logger: logging.Logger,
        cfg: EngineConfig,
        *,
        enumerator: DeviceEnumerator,
        backups: BackupManager,
        runner: Runner = U.run_cmd,
        which: Callable[[str], Optional[str]] = U.which,
        dry_run: Optional[bool] = None,
    ):
        self.logger = logger
        self.cfg = cfg
        self.enumerator = enumerator
        self.backups = backups
        self.runner = runner
        self.which = which
        self.dry_run = cfg.dry_run if dry_run is None else dry_run
        self.link_dir = Path(cfg.link_dir)

    # ------------------------------------------------------------------
    # Bindings on disk
    # ------------------------------------------------------------------

    def link_path(self, name: str) -> Path:
        return self.link_dir / f"{int(self.cfg.link_priority):02d}-{name}.link"

    @staticmethod
    def render_link(mac: str, name: str) -> str:
        return f"[Match]\nMACAddress={mac}\nType=ether\n\n[Link]\nName={name}\n"

    def existing_bindings(self) -> List[Binding]:
        if not self.link_dir.is_dir():
            return []
        out: List[Binding] = []
        for p in sorted(self.link_dir.glob("*.link")):
            cp = configparser.ConfigParser(strict=False, interpolation=None)
            cp.optionxform = str  # type: ignore[assignment]
            try:
                cp.read_string(read_text_or_empty(p))
            except configparser.Error as e:
                self.logger.warning("Skipping unparsable link file %s: %s", p, e)
                continue
            mac = V.normalize_mac(cp.get("Match", "MACAddress", fallback=""))
            name = cp.get("Link", "Name", fallback="").strip()
            if mac and name:
                out.append(Binding(mac=mac, name=name, path=p))
        return out

    # ------------------------------------------------------------------
    # Protocol steps
    # ------------------------------------------------------------------

    def resolve_mac(self, name: str) -> str:
        mac = self.enumerator.mac(name)
        res = V.check_mac(mac)
        if not res:
            raise PreconditionError(msg=f"Cannot rename {name}: {res.reason}").with_context(interface=name)
        return mac

    def check_conflicts(self, mac: str, new: str, *, override: bool = False) -> Optional[Binding]:
        """
        Returns the binding that already maps `mac` to `new` (a no-op rename),
        else None. Conflicting bindings raise unless override=True.
        """
        same: Optional[Binding] = None
        for b in self.existing_bindings():
            if b.mac == mac and b.name == new:
                same = b
            elif b.mac == mac:
                if not override:
                    raise PreconditionError(
                        msg=f"{mac} is already bound to {b.name} ({b.path}); use override to rebind"
                    ).with_context(mac=mac, bound_name=b.name)
                self.logger.warning("Override: replacing binding %s -> %s (%s)", mac, b.name, b.path)
            elif b.name == new:
                if not override:
                    raise PreconditionError(
                        msg=f"Name {new} is already bound to {b.mac} ({b.path}); use override to reuse it"
                    ).with_context(mac=b.mac, bound_name=new)
                self.logger.warning("Override: taking name %s from %s (%s)", new, b.mac, b.path)

        if same is None and new in self.enumerator.list_interfaces():
            live_mac = self.enumerator.mac(new)
            if live_mac != mac and not override:
                raise PreconditionError(
                    msg=f"Name {new} is in use by a live interface ({live_mac or 'no MAC'})"
                ).with_context(name=new)
        return same

    def _drop_conflicting(self, mac: str, new: str) -> None:
        for b in self.existing_bindings():
            if (b.mac == mac) != (b.name == new):
                if self.dry_run:
                    self.logger.info("[dry-run] would remove binding %s", b.path)
                    continue
                b.path.unlink(missing_ok=True)
                self.logger.info("Removed conflicting binding %s", b.path)

    def write_binding(self, mac: str, new: str) -> Path:
        path = self.link_path(new)
        if self.dry_run:
            self.logger.info("[dry-run] would write %s (%s -> %s)", path, mac, new)
            return path
        try:
            self.link_dir.mkdir(parents=True, exist_ok=True)
            atomic_write_text(path, self.render_link(mac, new), mode=0o644)
        except OSError as e:
            raise MutationError(msg=f"Failed to write binding {path}: {e}", cause=e).with_context(path=str(path))
        Log.ok(self.logger, f"Binding written: {path}", mac=mac, name=new)
        return path

    def rewrite_references(self, old: str, new: str, path: Optional[Path] = None) -> int:
        """
        Replace whole-token `old` (and `old.<vid>`) with `new` in the
        interfaces file. A snapshot is taken before the write.
        """
        target = Path(path or self.cfg.interfaces_file)
        text = read_text_or_empty(target)
        updated, count = rewrite_text(text, old, new)
        if count == 0:
            self.logger.info("No references to %s in %s", old, target)
            return 0
        if self.dry_run:
            self.logger.info("[dry-run] would rewrite %d reference(s) %s -> %s in %s", count, old, new, target)
            return count

        self.backups.snapshot(target)
        try:
            atomic_write_text(target, updated)
        except OSError as e:
            raise MutationError(msg=f"Failed to rewrite {target}: {e}", cause=e).with_context(path=str(target))
        self.logger.info("Rewrote %d reference(s) %s -> %s in %s", count, old, new, target)
        return count

    def regenerate_boot_image(self) -> bool:
        if self.dry_run:
            self.logger.info("[dry-run] would regenerate the initramfs")
            return True
        for tool, cmd in _BOOT_IMAGE_TOOLS:
            if not self.which(tool):
                continue
            cp = self.runner(self.logger, cmd, check=False, capture=True)
            if cp.returncode == 0:
                self.logger.info("initramfs: success: %s", " ".join(cmd))
                return True
            self.logger.warning("initramfs: %s failed (rc=%s): %s", tool, cp.returncode,
                                (cp.stderr or "")[-1200:].strip())
            return False
        self.logger.warning("initramfs: no known initramfs tool detected; skipping")
        return False

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def rename(self, old: str, new: str, *, override: bool = False, regenerate: bool = True) -> InterfaceIdentity:
        for n in (old, new):
            res = V.check_interface_name(n)
            if not res:
                raise ValidationError(msg=res.reason)
        if old == new:
            raise ValidationError(msg=f"Old and new name are both {old!r}")

        log = Log.bind(self.logger, iface=old)
        mac = self.resolve_mac(old)
        ident = InterfaceIdentity(mac=mac, current_name=old, target_name=new)

        existing = self.check_conflicts(mac, new, override=override)
        if existing is not None:
            log.info("%s already bound to %s (%s); nothing to write", mac, new, existing.path)
            ident.link_file = existing.path
        else:
            if override:
                self._drop_conflicting(mac, new)
            ident.link_file = self.write_binding(mac, new)
            ident.written = True

        ident.references_rewritten = self.rewrite_references(old, new)
        ident.state = IdentityState.BOUND

        if regenerate and existing is None:
            self.regenerate_boot_image()
        if existing is None:
            Log.warn(self.logger, f"Reboot required for {old} -> {new} to take effect")
        return ident

    def _next_free_name(self, prefix: str, taken: Set[str]) -> str:
        n = 0
        while f"{prefix}{n}" in taken:
            n += 1
        return f"{prefix}{n}"

    def rename_volatile(self, prefix: str, *, override: bool = False) -> List[InterfaceIdentity]:
        """
        Give every live `<volatile_prefix>*` interface a stable `<prefix><n>` name.
        A MAC already bound to a `<prefix>*` name keeps that name.
        """
        res = V.check_name_prefix(prefix)
        if not res:
            raise ValidationError(msg=res.reason)

        live = self.enumerator.list_interfaces()
        volatile = [n for n in live if n.startswith(self.cfg.volatile_prefix)]
        if not volatile:
            self.logger.info("No interfaces named %s* found", self.cfg.volatile_prefix)
            return []

        bindings = self.existing_bindings()
        by_mac: Dict[str, str] = {b.mac: b.name for b in bindings}
        taken: Set[str] = set(live) | {b.name for b in bindings}

        # every conflict is raised before the first binding is written
        plan: List[Tuple[str, str]] = []
        for old in volatile:
            mac = self.resolve_mac(old)
            bound = by_mac.get(mac)
            if bound and bound.startswith(prefix):
                new = bound
            else:
                new = self._next_free_name(prefix, taken)
            self.check_conflicts(mac, new, override=override)
            taken.add(new)
            plan.append((old, new))

        out: List[InterfaceIdentity] = []
        try:
            for old, new in plan:
                out.append(self.rename(old, new, override=override, regenerate=False))
        finally:
            if any(i.written for i in out):
                if len(out) < len(plan):
                    Log.warn(self.logger, f"Renamed {len(out)} of {len(plan)} interface(s) before failing")
                self.regenerate_boot_image()
        return out

    def observe(self, ident: InterfaceIdentity) -> InterfaceIdentity:
        """Promote bound-awaiting-reboot to active once the stable name carries the bound MAC."""
        if ident.state == IdentityState.BOUND and self.enumerator.mac(ident.target_name) == ident.mac:
            ident.state = IdentityState.ACTIVE
            self.logger.info("%s is active on %s", ident.target_name, ident.mac)
        return ident

    def bindings_for(self, names: Optional[List[str]] = None) -> List[InterfaceIdentity]:
        """Current bindings as identities (state observed against live interfaces)."""
        out: List[InterfaceIdentity] = []
        live_by_mac = {self.enumerator.mac(n): n for n in self.enumerator.list_interfaces()}
        for b in self.existing_bindings():
            if names and b.name not in names:
                continue
            ident = InterfaceIdentity(
                mac=b.mac,
                current_name=live_by_mac.get(b.mac, ""),
                target_name=b.name,
                state=IdentityState.BOUND,
                link_file=b.path,
            )
            out.append(self.observe(ident))
        return out
