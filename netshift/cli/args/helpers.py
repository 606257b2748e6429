# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# netshift/cli/args/helpers.py
from __future__ import annotations

import argparse
from typing import Any, Dict, Optional


def _require(v: Any) -> bool:
    """True if v is meaningfully present (empty/whitespace-only strings count as missing)."""
    if v is None:
        return False
    if isinstance(v, str):
        return v.strip() != ""
    return True


def _merged_get(args: argparse.Namespace, conf: Dict[str, Any], key: str) -> Any:
    """Prefer a non-empty CLI value, else the config value."""
    v = getattr(args, key, None)
    if _require(v):
        return v
    return conf.get(key)


def _merged_cmd(args: argparse.Namespace, conf: Dict[str, Any]) -> Optional[str]:
    for v in (getattr(args, "cmd", None), conf.get("cmd"), conf.get("command")):
        if _require(v):
            return str(v).strip().lower()
    return None


def _resolve_log_file(args: argparse.Namespace) -> Optional[str]:
    if getattr(args, "no_log_file", False):
        return None
    v = getattr(args, "log_file", None)
    return str(v) if _require(v) else None
