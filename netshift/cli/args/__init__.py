# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# netshift/cli/args/__init__.py
"""Argument parsing for the netshift CLI, split by concern."""
from __future__ import annotations

from .builder import HelpFormatter, _build_epilog
from .groups import (
    DEFAULT_LOG_FILE,
    _add_global_config_logging,
    _add_global_operation_flags,
    _add_network_knobs,
    _add_path_overrides,
    _add_project_control,
)
from .helpers import _merged_cmd, _merged_get, _require, _resolve_log_file
from .parser import _build_preparser, _load_merged_config, build_parser, parse_args_with_config
from .validators import KNOWN_CMDS, validate_args

__all__ = [
    "HelpFormatter",
    "_build_epilog",
    "DEFAULT_LOG_FILE",
    "_add_global_config_logging",
    "_add_global_operation_flags",
    "_add_network_knobs",
    "_add_path_overrides",
    "_add_project_control",
    "_merged_cmd",
    "_merged_get",
    "_require",
    "_resolve_log_file",
    "_build_preparser",
    "_load_merged_config",
    "build_parser",
    "parse_args_with_config",
    "KNOWN_CMDS",
    "validate_args",
]
