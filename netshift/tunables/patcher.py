# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# netshift/tunables/patcher.py
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from ..backup.manager import BackupManager
from ..core.exceptions import MutationError, PreconditionError
from ..core.file_ops import atomic_write_text, read_text_or_empty
from ..core.logger import Log
from ..core.utils import U, Runner
from ..synth.model import Stanza, StanzaKind

_KV_RE = re.compile(r"^\s*([^#;=\s][^=]*?)\s*=\s*(.*?)\s*$")


def parse_settings(text: str) -> List[Tuple[str, str]]:
    """`key = value` pairs in file order; comments and blank lines skipped."""
    out: List[Tuple[str, str]] = []
    for line in text.splitlines():
        m = _KV_RE.match(line)
        if m:
            out.append((m.group(1), m.group(2)))
    return out


class TunablePatcher:
    """
    Additive-only editor for sysctl-style files.

    Existing lines are never rewritten or reordered: keys missing (or present
    only with a different value) get one appended `key = value` line, then the
    file is loaded live with `sysctl -p <file>`.
    """

    def __init__(
        self,
        logger: logging.Logger,
        *,
        runner: Runner = U.run_cmd,
        backups: Optional[BackupManager] = None,
        dry_run: bool = False,
    ):
        self.logger = logger
        self.runner = runner
        self.backups = backups
        self.dry_run = dry_run

    def missing(self, text: str, desired: Mapping[str, str]) -> Dict[str, str]:
        # last occurrence wins, as with sysctl -p
        current: Dict[str, str] = dict(parse_settings(text))

        out: Dict[str, str] = {}
        for k, v in desired.items():
            v = str(v)
            if current.get(k) == v:
                continue
            if k in current:
                self.logger.warning("%s is set to %r; appending %r after it", k, current[k], v)
            out[k] = v
        return out

    def ensure_settings(self, path: Path, desired: Mapping[str, str]) -> bool:
        """
        Returns True when the file was changed. An already-converged file is
        not touched and nothing is activated.
        """
        path = Path(path)
        text = read_text_or_empty(path)
        todo = self.missing(text, desired)
        if not todo:
            Log.ok(self.logger, f"No-op: all {len(desired)} setting(s) already present in {path}")
            return False

        lines = "".join(Stanza(StanzaKind.TUNABLE, k).set(k, v).render() for k, v in todo.items())
        if self.dry_run:
            self.logger.info("[dry-run] would append to %s:\n%s", path, lines.rstrip("\n"))
            return False

        if not path.parent.is_dir():
            raise PreconditionError(msg=f"Directory for {path} does not exist").with_context(path=str(path))
        if self.backups is not None and path.exists():
            self.backups.snapshot(path)

        new_text = text
        if new_text and not new_text.endswith("\n"):
            new_text += "\n"
        new_text += lines
        try:
            atomic_write_text(path, new_text)
        except OSError as e:
            raise MutationError(msg=f"Failed to write {path}: {e}", cause=e).with_context(path=str(path))
        Log.ok(self.logger, f"Appended {len(todo)} setting(s) to {path}: {', '.join(todo)}")

        self.activate(path)
        return True

    def activate(self, path: Path) -> None:
        cp = self.runner(self.logger, ["sysctl", "-p", str(path)], check=False, capture=True)
        if cp.returncode != 0:
            detail = (cp.stderr or cp.stdout or "").strip()
            raise MutationError(msg=f"sysctl -p {path} failed (rc={cp.returncode})").with_context(
                path=str(path), output=detail
            )
        self.logger.info("Activated settings from %s", path)
