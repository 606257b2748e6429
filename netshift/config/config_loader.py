# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# netshift/config/config_loader.py
from __future__ import annotations

import argparse
import glob
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List

import yaml

from ..core.utils import U

_CONFIG_SUFFIXES = (".yaml", ".yml", ".json")


class Config:
    """
    YAML/JSON config loading for the two-phase CLI parse.

    - expand_configs(): directories and globs become an ordered file list
    - load_many(): deep-merge in order (later files win)
    - apply_as_defaults(): merged keys become argparse defaults (CLI still overrides)
    """

    @staticmethod
    def expand_configs(logger: logging.Logger, paths: List[str]) -> List[Path]:
        out: List[Path] = []
        for raw in paths:
            p = os.path.expanduser(str(raw))
            if any(ch in p for ch in "*?["):
                matches = sorted(glob.glob(p))
                if not matches:
                    logger.warning("Config glob matched nothing: %s", p)
                out.extend(Path(m) for m in matches)
                continue

            pp = Path(p)
            if pp.is_dir():
                found = sorted(x for x in pp.iterdir() if x.suffix.lower() in _CONFIG_SUFFIXES and x.is_file())
                logger.debug("Config dir %s -> %d file(s)", pp, len(found))
                out.extend(found)
                continue

            out.append(pp)
        return out

    @staticmethod
    def load(logger: logging.Logger, path: Path) -> Dict[str, Any]:
        if not path.exists():
            U.die(logger, f"Config file not found: {path}", 2)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            U.die(logger, f"Cannot read config {path}: {e}", 2)

        try:
            if path.suffix.lower() == ".json":
                data = json.loads(text) if text.strip() else {}
            else:
                data = yaml.safe_load(text) or {}
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            U.die(logger, f"Invalid config {path}: {e}", 2)

        if not isinstance(data, dict):
            U.die(logger, f"Config {path} must contain a mapping at top level", 2)
        logger.debug("Loaded config %s (%d keys)", path, len(data))
        return data

    @staticmethod
    def merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        out = dict(base)
        for k, v in override.items():
            if isinstance(v, dict) and isinstance(out.get(k), dict):
                out[k] = Config.merge(out[k], v)
            else:
                out[k] = v
        return out

    @staticmethod
    def load_many(logger: logging.Logger, paths: List[Path]) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for p in paths:
            merged = Config.merge(merged, Config.load(logger, p))
        if paths:
            logger.info("Loaded %d config file(s)", len(paths))
        return merged

    @staticmethod
    def apply_as_defaults(logger: logging.Logger, parser: argparse.ArgumentParser, conf: Dict[str, Any]) -> None:
        """
        Only keys matching a known argparse dest become defaults; nested
        blocks (network:, rename:, ...) stay in `conf` for the settings layer.
        """
        dests = {a.dest for a in parser._actions}
        defaults: Dict[str, Any] = {}
        for k, v in conf.items():
            key = str(k).replace("-", "_")
            if key in dests and not isinstance(v, dict):
                defaults[key] = v
        if defaults:
            logger.debug("Config defaults applied: %s", sorted(defaults))
            parser.set_defaults(**defaults)
