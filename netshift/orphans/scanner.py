# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# netshift/orphans/scanner.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Set, Union

from ..config.settings import EngineConfig
from ..core.logger import Log
from ..host.system import Volume, VolumeLister

_ID_RE = re.compile(r"\d+")

# candidate -> delete it?
ConfirmFn = Callable[["OrphanCandidate"], bool]


@dataclass(frozen=True)
class OrphanCandidate:
    name: str
    workload_id: int
    vg: str = ""
    size: str = ""

    @property
    def ref(self) -> str:
        return f"{self.vg}/{self.name}" if self.vg else self.name


def extract_workload_id(name: str) -> Optional[int]:
    """First run of digits in the volume name ("vm-101-disk-0" -> 101)."""
    m = _ID_RE.search(name)
    return int(m.group(0)) if m else None


class OrphanScanner:
    """
    Volumes whose numeric workload id has no live workload config file.

    Denylisted names (exact or pattern) are excluded before any id check.
    Deletion is always per candidate: there is no confirm-all path.
    """

    def __init__(
        self,
        logger: logging.Logger,
        cfg: EngineConfig,
        *,
        volumes: Optional[VolumeLister] = None,
        dry_run: Optional[bool] = None,
    ):
        self.logger = logger
        self.cfg = cfg
        self.volumes = volumes
        self.dry_run = cfg.dry_run if dry_run is None else dry_run
        self._deny = set(cfg.volume_denylist)
        self._deny_re = [re.compile(p) for p in cfg.volume_deny_patterns]

    def is_denied(self, name: str) -> bool:
        return name in self._deny or any(r.search(name) for r in self._deny_re)

    def live_workload_ids(self) -> Set[int]:
        ids: Set[int] = set()
        for d in self.cfg.workload_conf_dirs:
            d = Path(d)
            if not d.is_dir():
                continue
            for p in d.glob("*.conf"):
                if p.stem.isdigit():
                    ids.add(int(p.stem))
        return ids

    def classify(
        self,
        volumes: Iterable[Union[str, Volume]],
        live_ids: Iterable[int],
    ) -> List[OrphanCandidate]:
        """Pure: no host access. Accepts plain names or Volume records."""
        live = set(int(x) for x in live_ids)
        out: List[OrphanCandidate] = []
        for v in volumes:
            vol = v if isinstance(v, Volume) else Volume(name=str(v), vg="")
            if self.is_denied(vol.name):
                self.logger.debug("Skipping protected volume %s", vol.name)
                continue
            wid = extract_workload_id(vol.name)
            if wid is None:
                self.logger.debug("Skipping %s: no workload id in name", vol.name)
                continue
            if wid in live:
                continue
            out.append(OrphanCandidate(name=vol.name, workload_id=wid, vg=vol.vg, size=vol.size))
        return out

    def scan(self) -> List[OrphanCandidate]:
        if self.volumes is None:
            raise RuntimeError("OrphanScanner.scan() needs a VolumeLister")
        vols = self.volumes.list_volumes()
        candidates = self.classify(vols, self.live_workload_ids())
        self.logger.info("Scanned %d volume(s): %d orphan candidate(s)", len(vols), len(candidates))
        return candidates

    def delete(self, candidates: Sequence[OrphanCandidate], confirm: ConfirmFn) -> List[OrphanCandidate]:
        """Ask `confirm` once per candidate; only approved ones are removed."""
        if self.volumes is None:
            raise RuntimeError("OrphanScanner.delete() needs a VolumeLister")
        removed: List[OrphanCandidate] = []
        for cand in candidates:
            if not confirm(cand):
                self.logger.info("Kept %s", cand.ref)
                continue
            if self.dry_run:
                self.logger.info("[dry-run] would remove %s", cand.ref)
                continue
            if self.volumes.remove(Volume(name=cand.name, vg=cand.vg, size=cand.size)):
                Log.ok(self.logger, f"Removed {cand.ref}")
                removed.append(cand)
            else:
                Log.warn(self.logger, f"Failed to remove {cand.ref}")
        return removed
