# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# netshift/cli/args/groups.py
from __future__ import annotations

import argparse

from ...config.settings import NetworkModel, RollbackPolicy, SynthesisMode

DEFAULT_LOG_FILE = "/var/log/network_migration.log"


def _add_global_config_logging(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Global config/logging (two-phase parse relies on these)
    # ------------------------------------------------------------------
    from ... import __version__

    p.add_argument(
        "--config",
        action="append",
        default=[],
        help="YAML/JSON config file or directory (repeatable; later overrides earlier).",
    )
    p.add_argument("--dump-config", action="store_true", help="Print merged config and exit.")
    p.add_argument("--dump-args", action="store_true", help="Print final parsed args and exit.")
    p.add_argument("--version", action="version", version=__version__)
    p.add_argument("-v", "--verbose", action="count", default=0, help="Verbosity: -v, -vv, -vvv (trace)")
    p.add_argument("-q", "--quiet", action="count", default=0, help="Less output: -q warnings, -qq errors")
    p.add_argument("--log-file", dest="log_file", default=DEFAULT_LOG_FILE, help="Write logs to file.")
    p.add_argument("--no-log-file", dest="no_log_file", action="store_true", help="Do not write a log file.")
    p.add_argument("--json-logs", dest="json_logs", action="store_true", help="Emit NDJSON logs on stderr.")


def _add_project_control(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Project control: YAML-driven operation (no subcommands)
    # ------------------------------------------------------------------
    p.add_argument(
        "--cmd",
        dest="cmd",
        default=None,
        help="Operation (normally from YAML `cmd:`): menu, check, apply, hostname, restore, "
        "tunables, rename, orphans, list-backups. Default: menu",
    )
    p.add_argument(
        "--answers",
        dest="answers",
        default=None,
        help="YAML list of answers consumed in order instead of reading the terminal.",
    )
    p.add_argument(
        "-y",
        "--yes",
        dest="assume_yes",
        action="store_true",
        help="Answer confirmations with yes (orphan deletion still asks per volume).",
    )
    p.add_argument(
        "--prompt-timeout",
        dest="prompt_timeout",
        type=int,
        default=None,
        help="Seconds to wait for an answer before using the default (0 = wait forever).",
    )


def _add_global_operation_flags(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Global operation flags
    # ------------------------------------------------------------------
    p.add_argument("--dry-run", dest="dry_run", action="store_true", default=None,
                   help="Show the diff and stop before any write.")
    p.add_argument("--root", dest="root", default=None, help="Alternate root; default host paths are re-anchored under it.")
    p.add_argument(
        "--rollback",
        dest="rollback",
        default=None,
        choices=[x.value for x in RollbackPolicy],
        help="What to do when activation fails (default: auto).",
    )
    p.add_argument("--retention", dest="retention", type=int, default=None, help="Backups to keep (default: 5).")


def _add_network_knobs(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Network synthesis
    # ------------------------------------------------------------------
    p.add_argument(
        "--network-model",
        dest="network_model",
        default=None,
        choices=[x.value for x in NetworkModel],
        help="Bond/bridge flavour to render (default: linux).",
    )
    p.add_argument(
        "--synthesis-mode",
        dest="synthesis_mode",
        default=None,
        choices=[x.value for x in SynthesisMode],
        help="replace: fresh file; merge: keep live text, append missing stanzas (default: replace).",
    )
    p.add_argument(
        "--no-install-packages",
        dest="install_packages",
        action="store_false",
        default=None,
        help="Skip the package preflight.",
    )
    p.add_argument("--helper-url", dest="helper_url", default=None, help="Optional helper fetched during apply.")
    p.add_argument("--helper-path", dest="helper_path", default=None, help="Where the fetched helper is stored.")


def _add_path_overrides(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Host paths (mostly for testing and alternate roots)
    # ------------------------------------------------------------------
    p.add_argument("--interfaces-file", dest="interfaces_file", default=None, help="Interfaces definition file.")
    p.add_argument("--backup-dir", dest="backup_dir", default=None, help="Backup directory.")
    p.add_argument("--staging-dir", dest="staging_dir", default=None, help="Directory for the staged file.")
    p.add_argument("--sysctl-file", dest="sysctl_file", default=None, help="Kernel tunables file.")
    p.add_argument("--link-dir", dest="link_dir", default=None, help="Directory for MAC binding .link files.")
    p.add_argument("--sys-class-net", dest="sys_class_net", default=None, help="Interface enumeration root.")
    p.add_argument("--hosts-file", dest="hosts_file", default=None, help="Hosts file.")
    p.add_argument("--hostname-file", dest="hostname_file", default=None, help="Hostname file.")
    p.add_argument("--networking-service", dest="networking_service", default=None,
                   help="Service restarted to activate the configuration.")
