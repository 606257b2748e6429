# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# netshift/cli/args/validators.py
from __future__ import annotations

import argparse
import os
from typing import Any, Dict
from urllib.parse import urlparse

from ...core.exceptions import ValidationError
from ...orchestrator.menu import COMMANDS
from ...validation.validator import check_hostname, check_name_prefix
from .helpers import _merged_cmd, _merged_get, _require

KNOWN_CMDS = ("menu",) + COMMANDS


def _validate_mapping(conf: Dict[str, Any], key: str) -> None:
    v = conf.get(key)
    if v is not None and not isinstance(v, dict):
        raise ValidationError(msg=f"YAML `{key}:` must be a mapping, got {type(v).__name__}")


def _validate_answers(args: argparse.Namespace, conf: Dict[str, Any]) -> None:
    path = _merged_get(args, conf, "answers")
    if _require(path) and not os.path.isfile(str(path)):
        raise ValidationError(msg=f"--answers file not found: {path}")


def _validate_numbers(args: argparse.Namespace, conf: Dict[str, Any]) -> None:
    for key, low in (("retention", 1), ("prompt_timeout", 0)):
        v = _merged_get(args, conf, key)
        if v is None:
            continue
        try:
            n = int(v)
        except (TypeError, ValueError):
            raise ValidationError(msg=f"{key} must be an integer, got {v!r}")
        if n < low:
            raise ValidationError(msg=f"{key} must be >= {low}, got {n}")


def _validate_helper(args: argparse.Namespace, conf: Dict[str, Any]) -> None:
    url = _merged_get(args, conf, "helper_url")
    if not _require(url):
        return
    parsed = urlparse(str(url))
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(msg=f"helper_url must be an http(s) URL, got {url!r}")


def _validate_cmd_hostname(args: argparse.Namespace, conf: Dict[str, Any]) -> None:
    name = conf.get("hostname")
    if name is None:
        return
    res = check_hostname(str(name))
    if not res:
        raise ValidationError(msg=f"YAML `hostname:` {res.reason}")


def _validate_cmd_rename(args: argparse.Namespace, conf: Dict[str, Any]) -> None:
    _validate_mapping(conf, "rename")
    rename_cfg = conf.get("rename") or {}
    prefix = rename_cfg.get("prefix")
    if prefix is not None:
        res = check_name_prefix(str(prefix))
        if not res:
            raise ValidationError(msg=f"YAML `rename.prefix:` {res.reason}")
    mapping = rename_cfg.get("map")
    if mapping is not None and not isinstance(mapping, dict):
        raise ValidationError(msg="YAML `rename.map:` must map old names to new names")


def _validate_cmd_apply(args: argparse.Namespace, conf: Dict[str, Any]) -> None:
    _validate_mapping(conf, "network")


def _validate_cmd_menu(args: argparse.Namespace, conf: Dict[str, Any]) -> None:
    for fn in (_validate_cmd_apply, _validate_cmd_rename, _validate_cmd_hostname):
        fn(args, conf)


def validate_args(args: argparse.Namespace, conf: Dict[str, Any]) -> None:
    """Shape checks only; field values are validated again where they are used."""
    cmd = _merged_cmd(args, conf) or "menu"
    if cmd not in KNOWN_CMDS:
        raise ValidationError(msg=f"Unknown cmd={cmd!r}. Supported: {', '.join(KNOWN_CMDS)}")
    args.cmd = cmd

    _validate_answers(args, conf)
    _validate_numbers(args, conf)
    _validate_helper(args, conf)
    _validate_mapping(conf, "tunables")

    validators = {
        "apply": _validate_cmd_apply,
        "hostname": _validate_cmd_hostname,
        "rename": _validate_cmd_rename,
        "menu": _validate_cmd_menu,
    }
    fn = validators.get(cmd)
    if fn is not None:
        fn(args, conf)
