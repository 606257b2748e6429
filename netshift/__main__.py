# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# netshift/__main__.py
from __future__ import annotations

import sys
import traceback
from typing import Optional

from .cli.args import parse_args_with_config
from .core.exceptions import Fatal, NetshiftError, format_exception_for_cli
from .orchestrator.menu import Orchestrator


def _print_stderr(msg: str) -> None:
    print(msg, file=sys.stderr)


def _safe_log(logger, level: str, msg: str) -> None:
    """Log through `logger` when there is one, else print to stderr."""
    if logger is None:
        _print_stderr(msg)
        return
    fn = getattr(logger, level, None)
    if callable(fn):
        fn(msg)
    else:
        _print_stderr(msg)


def main() -> None:
    logger: Optional[object] = None

    # Phase 1: parse (config errors surface here)
    try:
        args, conf, logger = parse_args_with_config()
    except Fatal as e:
        # U.die() has already logged it when a logger existed
        if logger is None:
            _print_stderr(f"💥 ERROR    {e}")
        raise SystemExit(e.code)
    except NetshiftError as e:
        _safe_log(logger, "error", f"💥 {format_exception_for_cli(e, verbose=1)}")
        raise SystemExit(e.code)
    except KeyboardInterrupt:
        _safe_log(logger, "warning", "Interrupted by user (Ctrl+C).")
        raise SystemExit(130)

    verbose = getattr(args, "verbose", 0)

    # Phase 2: run
    try:
        orch = Orchestrator.from_args(logger, args, conf)
        rc = orch.execute(args.cmd)
    except Fatal as e:
        _safe_log(logger, "error", format_exception_for_cli(e, verbose=verbose))
        rc = e.code
    except NetshiftError as e:
        _safe_log(logger, "error", f"💥 {format_exception_for_cli(e, verbose=max(verbose, 1))}")
        rc = e.code
    except KeyboardInterrupt:
        _safe_log(logger, "warning", "Interrupted by user (Ctrl+C). Staged changes were discarded.")
        rc = 130
    except Exception as e:
        _safe_log(logger, "error", f"💥 UNHANDLED {type(e).__name__}: {e}")
        _safe_log(logger, "debug", traceback.format_exc())
        rc = 1

    raise SystemExit(rc)


if __name__ == "__main__":
    main()
