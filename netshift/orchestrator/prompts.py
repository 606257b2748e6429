# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# netshift/orchestrator/prompts.py
"""
Input providers for the orchestrator.

Every question goes through an InputProvider so the engine never touches
stdin directly: ConsoleInput for operators, ScriptedInput for --answers
files and tests. Unanswered questions (timeout, EOF, non-TTY, exhausted
script) resolve to the caller's safe default.
"""

from __future__ import annotations

import logging
import select
import sys
from collections import deque
from typing import Any, Callable, Iterable, List, Optional, Sequence

import yaml
from rich.console import Console

from ..core.exceptions import ValidationError

Validator = Callable[[str], bool]

_YES = ("y", "yes", "true", "1", "on")
_NO = ("n", "no", "false", "0", "off")


def parse_yes_no(raw: Any) -> Optional[bool]:
    if isinstance(raw, bool):
        return raw
    s = str(raw).strip().lower()
    if s in _YES:
        return True
    if s in _NO:
        return False
    return None


class InputProvider:
    """
    assume_yes answers ordinary confirmations with yes; questions asked with
    critical=True (irreversible actions) are never auto-approved.
    """

    interactive = False

    def __init__(self, logger: logging.Logger, *, assume_yes: bool = False):
        self.logger = logger
        self.assume_yes = assume_yes

    def _next(self, label: str) -> Optional[str]:
        raise NotImplementedError

    def say(self, text: str) -> None:
        self.logger.info("%s", text)

    def ask(self, label: str, default: str = "", validator: Optional[Validator] = None,
            error_msg: str = "Invalid input") -> Optional[str]:
        for _ in range(5):
            raw = self._next(f"{label} [{default}]: " if default else f"{label}: ")
            if raw is None:
                return default or None
            value = raw.strip() or default
            if not value:
                return None
            if validator is None or validator(value):
                return value
            self.say(f"{error_msg}: {value}")
            if not self.interactive:
                return None
        return None

    def confirm(self, question: str, default: bool = False, *, critical: bool = False) -> bool:
        if self.assume_yes and not critical:
            self.logger.info("%s -> yes (--yes)", question)
            return True
        hint = "Y/n" if default else "y/N"
        for _ in range(5):
            raw = self._next(f"{question} [{hint}]: ")
            if raw is None or str(raw).strip() == "":
                return default
            ans = parse_yes_no(raw)
            if ans is not None:
                return ans
            self.say("Please answer yes or no")
            if not self.interactive:
                return default
        return default

    def choose(self, label: str, options: Sequence[str], default: Optional[int] = None) -> Optional[int]:
        """0-based index of the chosen option, or `default` when unanswered."""
        if not options:
            return default
        for i, opt in enumerate(options, 1):
            self.say(f"  {i}) {opt}")
        raw = self.ask(f"{label} (1-{len(options)})")
        if raw is None:
            return default
        if raw in options:
            return list(options).index(raw)
        if raw.isdigit() and 1 <= int(raw) <= len(options):
            return int(raw) - 1
        self.say(f"Invalid selection: {raw}")
        return default


class ConsoleInput(InputProvider):
    interactive = True

    def __init__(self, logger: logging.Logger, *, timeout: int = 60, assume_yes: bool = False,
                 console: Optional[Console] = None):
        super().__init__(logger, assume_yes=assume_yes)
        self.timeout = timeout
        self.console = console or Console(stderr=True)

    def say(self, text: str) -> None:
        self.console.print(text, highlight=False)

    def _next(self, label: str) -> Optional[str]:
        if not sys.stdin.isatty():
            self.logger.debug("stdin is not a TTY; using default for %r", label)
            return None
        self.console.print(label, end="", highlight=False)
        if self.timeout and self.timeout > 0:
            ready, _, _ = select.select([sys.stdin], [], [], self.timeout)
            if not ready:
                self.console.print()
                self.logger.warning("No answer within %ss; using default", self.timeout)
                return None
        line = sys.stdin.readline()
        if line == "":
            return None
        return line.rstrip("\n")


class ScriptedInput(InputProvider):
    """Answers from a list (YAML --answers file or a test), in order."""

    def __init__(self, logger: logging.Logger, answers: Iterable[Any] = (), *, assume_yes: bool = False):
        super().__init__(logger, assume_yes=assume_yes)
        self.answers = deque(answers)
        self.asked: List[str] = []

    def _next(self, label: str) -> Optional[str]:
        self.asked.append(label)
        if not self.answers:
            self.logger.debug("No scripted answer for %r; using default", label)
            return None
        ans = self.answers.popleft()
        if isinstance(ans, bool):
            return "yes" if ans else "no"
        return "" if ans is None else str(ans)


def load_answers(logger: logging.Logger, path: str) -> List[Any]:
    """Read a YAML list of answers; a mapping with an `answers:` key is accepted too."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or []
    if isinstance(data, dict):
        data = data.get("answers") or []
    if not isinstance(data, list):
        raise ValidationError(msg=f"Answers file {path} must contain a YAML list")
    logger.debug("Loaded %d scripted answer(s) from %s", len(data), path)
    return data
