# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# netshift/orchestrator/menu.py
"""
Menu dispatcher: one action per menu entry, each mapping onto one engine
entry point. This layer owns the error propagation policy:

  ValidationError / PreconditionError  -> reported, menu resumes
  MutationError                        -> already through rollback, reported
  IrrecoverableError                   -> logged in full, raised as Fatal
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..apply.controller import ApplyOutcome, ApplyVerifyController
from ..backup.manager import Backup, BackupManager
from ..config.settings import EngineConfig
from ..core.exceptions import (
    Fatal,
    IrrecoverableError,
    MutationError,
    PreconditionError,
    ValidationError,
    format_exception_for_cli,
)
from ..core.file_ops import read_text_or_empty
from ..core.logger import Log
from ..core.utils import U, Runner
from ..host.hostname import HostnameChanger
from ..host.parallel import fetch_helper, run_parallel_tasks
from ..host.system import DeviceEnumerator, InterfaceInfo, PackageInstaller, ServiceController, VolumeLister
from ..identity.manager import InterfaceIdentity, InterfaceIdentityManager
from ..orphans.scanner import OrphanCandidate, OrphanScanner
from ..synth.params import ValidatedParameterSet, build_parameter_set, default_vlans
from ..synth.synthesizer import StanzaSynthesizer
from ..tunables.patcher import TunablePatcher
from ..validation import validator as V
from .prompts import ConsoleInput, InputProvider, ScriptedInput, load_answers

MENU: Tuple[Tuple[str, str], ...] = (
    ("check", "Check interfaces"),
    ("apply", "Apply network configuration"),
    ("hostname", "Change hostname"),
    ("restore", "Restore from backup"),
    ("tunables", "Configure kernel tunables"),
    ("rename", "Rename interfaces"),
    ("orphans", "Scan orphaned volumes"),
    ("exit", "Exit"),
)

COMMANDS = tuple(k for k, _ in MENU if k != "exit") + ("list-backups",)
READ_ONLY = ("check", "list-backups")


@dataclass
class Components:
    enumerator: DeviceEnumerator
    services: ServiceController
    packages: PackageInstaller
    volumes: VolumeLister
    backups: BackupManager
    synthesizer: StanzaSynthesizer
    patcher: TunablePatcher
    identity: InterfaceIdentityManager
    orphans: OrphanScanner
    controller: ApplyVerifyController
    hostname: HostnameChanger


class Orchestrator:
    def __init__(
        self,
        logger: logging.Logger,
        cfg: EngineConfig,
        io: InputProvider,
        *,
        conf: Optional[Mapping[str, Any]] = None,
        runner: Runner = U.run_cmd,
        components: Optional[Components] = None,
        console: Optional[Console] = None,
    ):
        self.logger = logger
        self.cfg = cfg
        self.io = io
        self.conf: Mapping[str, Any] = conf or {}
        self.console = console or Console()
        self.needs_root = False
        self.c = components or self.build_components(logger, cfg, io, runner=runner)

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    @staticmethod
    def build_components(logger: logging.Logger, cfg: EngineConfig, io: InputProvider, *,
                         runner: Runner = U.run_cmd) -> Components:
        enumerator = DeviceEnumerator(logger, cfg, runner=runner)
        services = ServiceController(logger, runner=runner)
        backups = BackupManager(logger, cfg)
        sysctl_backups = BackupManager(logger, cfg, source=cfg.sysctl_file, prefix="sysctl_backup")
        volumes = VolumeLister(logger, runner=runner)
        return Components(
            enumerator=enumerator,
            services=services,
            packages=PackageInstaller(logger, runner=runner),
            volumes=volumes,
            backups=backups,
            synthesizer=StanzaSynthesizer(logger),
            patcher=TunablePatcher(logger, runner=runner, backups=sysctl_backups, dry_run=cfg.dry_run),
            identity=InterfaceIdentityManager(logger, cfg, enumerator=enumerator, backups=backups, runner=runner),
            orphans=OrphanScanner(logger, cfg, volumes=volumes),
            controller=ApplyVerifyController(
                logger,
                cfg,
                services=services,
                backups=backups,
                ask_rollback=lambda: io.confirm("Activation failed. Restore the previous configuration?", True),
            ),
            hostname=HostnameChanger(logger, cfg, runner=runner),
        )

    @classmethod
    def from_args(cls, logger: logging.Logger, args: argparse.Namespace, conf: Mapping[str, Any]) -> "Orchestrator":
        cfg = EngineConfig.from_sources(args, conf)
        assume_yes = bool(getattr(args, "assume_yes", False) or conf.get("assume_yes", False))
        answers = getattr(args, "answers", None) or conf.get("answers")
        io: InputProvider
        if answers:
            io = ScriptedInput(logger, load_answers(logger, str(answers)), assume_yes=assume_yes)
        else:
            io = ConsoleInput(logger, timeout=cfg.prompt_timeout, assume_yes=assume_yes)
        orch = cls(logger, cfg, io, conf=conf)
        orch.needs_root = not (getattr(args, "root", None) or conf.get("root"))
        return orch

    def execute(self, cmd: str) -> int:
        """Entry point from main(): the menu loop or a single action."""
        if self.needs_root and cmd not in READ_ONLY and not self.cfg.dry_run:
            U.require_root(self.logger)
        if cmd == "menu":
            return self.run()
        return self.run_once(cmd)

    def _actions(self) -> Dict[str, Callable[[], Any]]:
        return {
            "check": self.check_interfaces,
            "apply": self.apply_configuration,
            "hostname": self.change_hostname,
            "restore": self.restore_backup,
            "tunables": self.configure_tunables,
            "rename": self.rename_interfaces,
            "orphans": self.scan_orphans,
            "list-backups": self.list_backups,
        }

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(self, action: str) -> int:
        """Run one action under the error policy; returns an exit code."""
        fn = self._actions().get(action)
        if fn is None:
            raise ValidationError(msg=f"Unknown action {action!r} (use {', '.join(COMMANDS)})")

        Log.banner(self.logger, action)
        try:
            fn()
            return 0
        except IrrecoverableError as e:
            self.logger.critical("Irrecoverable: %s", e.user_message(include_context=True, include_cause=True))
            if e.backup_path:
                self.logger.critical("Recover manually from backup: %s", e.backup_path)
            raise Fatal(code=e.code, msg=e.msg, cause=e, context=dict(e.context or {})) from e
        except (ValidationError, PreconditionError) as e:
            Log.fail(self.logger, format_exception_for_cli(e, verbose=1))
            return e.code
        except MutationError as e:
            Log.fail(self.logger, format_exception_for_cli(e, verbose=1))
            return e.code

    def run_once(self, action: str) -> int:
        return self.dispatch(action)

    def show_menu(self) -> None:
        body = "\n".join(f"{i}) {label}" for i, (_, label) in enumerate(MENU, 1))
        self.console.print(Panel(body, title="netshift", title_align="left", expand=False))

    def run(self) -> int:
        """Numbered menu loop; no answer (timeout/EOF) means exit."""
        rc = 0
        while True:
            self.show_menu()
            raw = self.io.ask(f"Choose an option (1-{len(MENU)})")
            if raw is None:
                self.logger.info("No selection; exiting")
                return rc
            key = self._menu_key(raw)
            if key is None:
                Log.warn(self.logger, f"Invalid option: {raw}")
                continue
            if key == "exit":
                return rc
            rc = self.dispatch(key)
            self.pause()

    @staticmethod
    def _menu_key(raw: str) -> Optional[str]:
        raw = raw.strip().lower()
        if raw.isdigit() and 1 <= int(raw) <= len(MENU):
            return MENU[int(raw) - 1][0]
        keys = [k for k, _ in MENU]
        return raw if raw in keys else None

    def pause(self) -> None:
        if self.io.interactive:
            self.io.ask("Press Enter to continue")

    # ------------------------------------------------------------------
    # Check interfaces
    # ------------------------------------------------------------------

    def check_interfaces(self) -> List[InterfaceInfo]:
        infos = self.c.enumerator.report()
        table = Table(title="Network interfaces")
        for col in ("Interface", "MAC", "State", "IPv4"):
            table.add_column(col)
        for info in infos:
            mac = info.mac if info.mac_ok else f"[red]{info.mac or 'missing'}[/red]"
            table.add_row(info.name, mac, info.operstate, ", ".join(info.addresses) or "-")
        self.console.print(table)

        bad = [i.name for i in infos if not i.mac_ok and i.name != "lo"]
        if bad:
            Log.warn(self.logger, f"Interfaces without a usable MAC: {', '.join(bad)}")

        for ident in self.c.identity.bindings_for():
            self.logger.info("Binding %s -> %s: %s", ident.mac, ident.target_name, ident.state.value)
        return infos

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def collect_parameters(self) -> Dict[str, Any]:
        """Interactive parameter collection on the default (or operator-chosen) subnets."""
        d = self.cfg.network
        io = self.io
        question = (
            f"Use default subnets? (management {d.mgmt_subnet}.0/24, "
            f"cluster {d.cluster_subnet}.0/24, storage {d.storage_subnet}.0/24)"
        )
        if not io.confirm(question, default=True):
            subnets = {}
            for key, label in (("mgmt_subnet", "Management"), ("cluster_subnet", "Cluster"),
                               ("storage_subnet", "Storage")):
                val = io.ask(f"{label} subnet prefix (e.g. 10.1.2)", validator=lambda s: bool(V.check_subnet_prefix(s)),
                             error_msg="Invalid subnet prefix")
                if val is None:
                    raise ValidationError(msg=f"{label} subnet prefix is required")
                subnets[key] = val
            d = dataclasses.replace(d, **subnets)

        def octet(label: str) -> str:
            val = io.ask(f"Last octet for {label}", validator=lambda s: s.isdigit() and 1 <= int(s) <= 254,
                         error_msg="Octet must be 1-254")
            if val is None:
                raise ValidationError(msg=f"Last octet for {label} is required")
            return val

        mgmt_oct = octet("management")
        cluster_oct = octet("cluster")
        storage_oct = octet("storage")

        live = self.c.enumerator.list_interfaces()
        candidates = [n for n in live if n != "lo"]
        idx = io.choose("Select management interface", candidates)
        if idx is None:
            raise ValidationError(msg="No management interface selected")
        mgmt_port = candidates.pop(idx)

        members = []
        for label in ("first", "second"):
            idx = io.choose(f"Select {label} NIC for bond", candidates)
            if idx is None:
                raise ValidationError(msg=f"No {label} bond NIC selected")
            members.append(candidates.pop(idx))

        return {
            "bond_members": members,
            "mgmt_port": mgmt_port,
            "address": f"{d.mgmt_subnet}.{mgmt_oct}/24",
            "gateway": d.mgmt_gateway,
            "dns": [d.dns],
            "vlans": default_vlans(d, cluster_oct, storage_oct),
        }

    def validated_parameters(self, raw: Optional[Mapping[str, Any]] = None) -> ValidatedParameterSet:
        if raw is None:
            net = self.conf.get("network")
            raw = net if isinstance(net, Mapping) and net.get("bond_members") else self.collect_parameters()

        def allow_missing(name: str, reason: str) -> bool:
            return self.io.confirm(f"{reason}. Proceed with {name} anyway?", default=False)

        return build_parameter_set(
            raw,
            model=self.cfg.network_model,
            live_interfaces=self.c.enumerator.list_interfaces(),
            logger=self.logger,
            defaults=self.cfg.network,
            allow_missing=allow_missing,
        )

    def _preparatory_tasks(self) -> int:
        tasks = [("kernel tunables", lambda: self.c.patcher.ensure_settings(self.cfg.sysctl_file, self.cfg.tunables))]
        if self.cfg.helper_url and not self.cfg.dry_run:
            dest = self.cfg.helper_path or (self.cfg.backup_dir / "helper")
            url = self.cfg.helper_url
            tasks.append(("helper download", lambda: fetch_helper(self.logger, url, Path(dest))))
        return run_parallel_tasks(self.logger, tasks)

    def apply_configuration(self, raw: Optional[Mapping[str, Any]] = None) -> ApplyOutcome:
        params = self.validated_parameters(raw)
        live = Path(self.cfg.interfaces_file)
        if not live.is_file():
            raise PreconditionError(msg=f"{live} does not exist").with_context(path=str(live))

        if not self.cfg.dry_run:
            U.require_writable(live)
            if self.cfg.install_packages and not self.c.packages.install(self.cfg.packages):
                raise PreconditionError(msg=f"Required packages missing: {' '.join(self.cfg.packages)}")

        failed = self._preparatory_tasks()
        if failed:
            Log.warn(self.logger, f"{failed} preparatory task(s) failed; continuing with the network transition")

        artifact, report = self.c.synthesizer.build_artifact(
            params, live, mode=self.cfg.synthesis_mode, live_text=read_text_or_empty(live)
        )
        if not self.cfg.dry_run and artifact.render() == read_text_or_empty(live):
            Log.ok(self.logger, f"{live} already matches the requested configuration; nothing to apply")
            return ApplyOutcome.UNCHANGED

        backup: Optional[Backup] = None
        if not self.cfg.dry_run:
            backup = self.c.backups.snapshot()
        artifact.last_known_good = backup
        outcome = self.c.controller.apply(artifact, backup)
        Log.ok(self.logger, f"Apply finished: {outcome.value} ({len(report.added)} stanza(s) synthesized)")
        return outcome

    # ------------------------------------------------------------------
    # Hostname
    # ------------------------------------------------------------------

    def change_hostname(self) -> str:
        new = self.conf.get("hostname")
        if not new:
            new = self.io.ask("New hostname", validator=V.validate_hostname, error_msg="Invalid hostname")
        if not new:
            raise ValidationError(msg="No hostname given")
        self.c.hostname.change(str(new).strip())
        return str(new).strip()

    # ------------------------------------------------------------------
    # Backups
    # ------------------------------------------------------------------

    def _backup_table(self, backups: List[Backup]) -> Table:
        table = Table(title=f"Backups in {self.cfg.backup_dir}")
        table.add_column("#", justify="right")
        table.add_column("Created")
        table.add_column("File")
        for i, b in enumerate(backups, 1):
            table.add_row(str(i), b.created.isoformat(sep=" ", timespec="seconds"), b.name)
        return table

    def list_backups(self) -> List[Backup]:
        backups = self.c.backups.list_backups()
        if not backups:
            self.logger.info("No backups found in %s", self.cfg.backup_dir)
            return []
        self.console.print(self._backup_table(backups))
        return backups

    def restore_backup(self) -> Optional[Backup]:
        backups = self.c.backups.list_backups()
        if not backups:
            raise PreconditionError(msg=f"No backups found in {self.cfg.backup_dir}")
        self.console.print(self._backup_table(backups))
        idx = self.io.choose("Select backup to restore", [b.name for b in backups])
        if idx is None:
            self.logger.info("Restore cancelled")
            return None
        chosen = backups[idx]
        if not self.io.confirm(f"Restore {chosen.name} over {self.cfg.interfaces_file}?", default=False):
            self.logger.info("Restore cancelled")
            return None
        if self.cfg.dry_run:
            self.logger.info("[dry-run] would restore %s", chosen.path)
            return chosen
        live = Path(self.cfg.interfaces_file)
        if live.is_file():
            # chosen must survive until the copy is done
            self.c.backups.snapshot(live, prune=False)
        self.c.backups.restore(chosen, activate=self.c.controller.activate)
        self.c.backups.prune()
        return chosen

    # ------------------------------------------------------------------
    # Tunables
    # ------------------------------------------------------------------

    def configure_tunables(self) -> bool:
        return self.c.patcher.ensure_settings(self.cfg.sysctl_file, self.cfg.tunables)

    # ------------------------------------------------------------------
    # Rename
    # ------------------------------------------------------------------

    def rename_interfaces(self) -> List[InterfaceIdentity]:
        rename_cfg = self.conf.get("rename") or {}
        override = bool(rename_cfg.get("override", False))
        mapping = rename_cfg.get("map") or {}
        ident = self.c.identity

        if mapping:
            out = [ident.rename(str(old), str(new), override=override, regenerate=False)
                   for old, new in mapping.items()]
            if any(i.written for i in out):
                ident.regenerate_boot_image()
        else:
            volatile = [n for n in self.c.enumerator.list_interfaces() if n.startswith(self.cfg.volatile_prefix)]
            if not volatile:
                self.logger.info("No interfaces named %s* found", self.cfg.volatile_prefix)
                return []
            self.logger.info("Interfaces to rename: %s", ", ".join(volatile))
            prefix = rename_cfg.get("prefix") or self.io.ask(
                "New name prefix", default="nic", validator=V.validate_name_prefix, error_msg="Invalid prefix"
            )
            if not prefix:
                raise ValidationError(msg="No name prefix given")
            if not self.io.confirm(f"Rename {len(volatile)} interface(s) to {prefix}<n>?", default=False):
                self.logger.info("Rename cancelled")
                return []
            out = ident.rename_volatile(str(prefix), override=override)

        table = Table(title="Interface bindings")
        for col in ("Old name", "New name", "MAC", "State"):
            table.add_column(col)
        for i in out:
            table.add_row(i.current_name, i.target_name, i.mac, i.state.value)
        self.console.print(table)
        return out

    # ------------------------------------------------------------------
    # Orphans
    # ------------------------------------------------------------------

    def scan_orphans(self) -> List[OrphanCandidate]:
        candidates = self.c.orphans.scan()
        if not candidates:
            Log.ok(self.logger, "No orphaned volumes found")
            return []
        table = Table(title="Orphaned volume candidates")
        for col in ("Volume", "VG", "Size", "Workload ID"):
            table.add_column(col)
        for cand in candidates:
            table.add_row(cand.name, cand.vg, cand.size, str(cand.workload_id))
        self.console.print(table)

        def confirm(cand: OrphanCandidate) -> bool:
            return self.io.confirm(f"Delete {cand.ref} ({cand.size or '?'})?", default=False, critical=True)

        return self.c.orphans.delete(candidates, confirm)
