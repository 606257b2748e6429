# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# netshift/core/utils.py
from __future__ import annotations

import json
import logging
import os
import shlex
import subprocess
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from .exceptions import Fatal, PreconditionError
from .logger import Log

# Signature shared by U.run_cmd and the test doubles that stand in for it.
Runner = Callable[..., subprocess.CompletedProcess]


class U:
    @staticmethod
    def die(logger: logging.Logger, msg: str, code: int = 1) -> None:
        logger.error(msg)
        raise Fatal(code, msg)

    @staticmethod
    def which(prog: str) -> Optional[str]:
        from shutil import which as _which
        return _which(prog)

    @staticmethod
    def json_dump(obj: Any) -> str:
        return json.dumps(obj, indent=2, sort_keys=True, default=str)

    @staticmethod
    def _pretty_cmd(cmd: List[str]) -> str:
        return " ".join(shlex.quote(x) for x in cmd)

    @staticmethod
    def run_cmd(
        logger: logging.Logger,
        cmd: List[str],
        *,
        check: bool = True,
        capture: bool = False,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[int] = None,
        cwd: Optional[Union[str, Path]] = None,
        input_text: Optional[str] = None,
        fatal: bool = False,
    ) -> subprocess.CompletedProcess:
        """
        Run a command.

        - capture=True collects stdout/stderr as text
        - check=False returns the CompletedProcess for the caller to inspect
        - fatal=True wraps failures into Fatal (otherwise re-raises subprocess exceptions)
        """
        pretty = U._pretty_cmd(cmd)
        logger.debug("Running: %s", pretty)

        try:
            cp = subprocess.run(
                cmd,
                check=check,
                capture_output=capture,
                text=True,
                env=env,
                timeout=timeout,
                cwd=str(cwd) if cwd is not None else None,
                input=input_text,
            )
            if capture and cp.stdout:
                Log.trace(logger, "Output of %s:\n%s", pretty, cp.stdout.rstrip())
            return cp

        except subprocess.CalledProcessError as e:
            stdout = (e.stdout or e.output or "").strip()
            stderr = (e.stderr or "").strip()
            if stdout or stderr:
                logger.error(
                    "Command failed: %s%s%s",
                    pretty,
                    f"\nstdout:\n{stdout}" if stdout else "",
                    f"\nstderr:\n{stderr}" if stderr else "",
                )
            else:
                logger.error("Command failed: %s (no output)", pretty)

            if fatal:
                raise Fatal(e.returncode or 1, f"Command failed: {pretty}") from e
            raise

        except subprocess.TimeoutExpired as e:
            logger.error("Command timed out: %s (timeout=%ss)", pretty, timeout)
            if fatal:
                raise Fatal(124, f"Command timed out: {pretty}") from e
            raise

        except OSError as e:
            logger.error("Command error: %s (%s)", pretty, e)
            if fatal:
                raise Fatal(1, f"Command error: {pretty}: {e}") from e
            raise

    @staticmethod
    def require_root(logger: logging.Logger, *, write_actions: bool = True) -> None:
        if not write_actions:
            return
        if os.geteuid() != 0:
            logger.error("This operation requires root. Re-run with sudo.")
            raise PreconditionError(msg="This operation requires root. Re-run with sudo.")

    @staticmethod
    def require_writable(path: Path) -> None:
        """Raise PreconditionError if `path` (or its parent, when missing) is not writable."""
        target = path if path.exists() else path.parent
        if not os.access(target, os.W_OK):
            raise PreconditionError(msg=f"No write permission for {path}").with_context(path=str(path))
