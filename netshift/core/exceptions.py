# SPDX-License-Identifier: LGPL-3.0-or-later
# netshift/core/exceptions.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


def _safe_int(x: Any, default: int = 1) -> int:
    try:
        return int(x)
    except (TypeError, ValueError):
        return default


def _clamp_exit_code(code: int) -> int:
    if code < 0:
        return 1
    if code > 255:
        return 255
    return code


def _one_line(s: str, limit: int = 600) -> str:
    s = (s or "").strip().replace("\r", " ").replace("\n", " ")
    s = " ".join(s.split())
    return s if len(s) <= limit else (s[: limit - 3] + "...")


_SECRET_KEY_PARTS = (
    "pass",
    "secret",
    "token",
    "apikey",
    "api_key",
    "auth",
    "private",
)


def _is_secret_key(k: str) -> bool:
    ks = (k or "").lower()
    return any(p in ks for p in _SECRET_KEY_PARTS)


def _format_context_compact(ctx: Dict[str, Any]) -> str:
    parts = []
    for k in sorted(ctx.keys()):
        v = ctx.get(k)
        if _is_secret_key(str(k)):
            parts.append(f"{k}=<redacted>")
        else:
            parts.append(f"{k}={v!r}")
    return ", ".join(parts)


@dataclass(eq=False)
class NetshiftError(Exception):
    """
    Base project error with:
      - stable fields for reporting/JSON
      - readable __str__ (what operators see)
      - exit code clamped to 0..255
    """
    code: int = 1
    msg: str = "error"
    cause: Optional[BaseException] = None
    context: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        self.code = _clamp_exit_code(_safe_int(self.code, default=1))
        self.msg = _one_line(self.msg) or self.__class__.__name__
        if self.context is None:
            self.context = {}
        super().__init__(self.msg)
        self.args = (self.msg,)

    def with_context(self, **ctx: Any) -> "NetshiftError":
        if self.context is None:
            self.context = {}
        self.context.update(ctx)
        return self

    def user_message(self, *, include_context: bool = False, include_cause: bool = False) -> str:
        parts = [self.msg or self.__class__.__name__]

        if include_context and self.context:
            parts.append(f"[{_one_line(_format_context_compact(self.context))}]")

        if include_cause and self.cause is not None:
            parts.append(f"(cause: {type(self.cause).__name__}: {_one_line(str(self.cause))})")

        return " ".join(parts)

    def __str__(self) -> str:
        return self.user_message()

    def to_dict(self, *, include_cause: bool = False) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "type": self.__class__.__name__,
            "code": self.code,
            "message": self.msg,
            "context": self.context or {},
        }
        if include_cause and self.cause is not None:
            d["cause"] = {"type": type(self.cause).__name__, "message": _one_line(str(self.cause))}
        return d


class Fatal(NetshiftError):
    """
    User-facing fatal error (exit code is honored by top-level main()).
    """
    pass


@dataclass(eq=False)
class ValidationError(NetshiftError):
    """
    Bad operator input. Never mutates state; recover by re-prompting.
    """
    code: int = 2


@dataclass(eq=False)
class PreconditionError(NetshiftError):
    """
    Missing permission, device or file. Raised before any write happens.
    """
    code: int = 3


@dataclass(eq=False)
class BackupError(PreconditionError):
    """Snapshot could not be taken; the caller must not proceed to write."""
    pass


@dataclass(eq=False)
class MutationError(NetshiftError):
    """
    A write or activation failed after a backup was taken.
    Handled by the Apply/Verify rollback path.
    """
    code: int = 4


@dataclass(eq=False)
class ActivationError(MutationError):
    """Networking service restart or status check failed."""
    status_output: str = ""


@dataclass(eq=False)
class IrrecoverableError(NetshiftError):
    """
    Rollback itself failed. Terminal: the operator gets the backup path.
    """
    code: int = 5
    backup_path: Optional[str] = None

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.backup_path:
            self.context.setdefault("backup_path", self.backup_path)


def format_exception_for_cli(e: BaseException, *, verbose: int = 0) -> str:
    """
    One-liner output for CLI.

    verbose=0: just message
    verbose=1: message + compact context (if any)
    verbose>=2: message + context + cause
    """
    if isinstance(e, NetshiftError):
        return e.user_message(
            include_context=(verbose >= 1),
            include_cause=(verbose >= 2),
        )

    if verbose >= 2:
        return f"{type(e).__name__}: {_one_line(str(e))}"
    return _one_line(str(e)) or type(e).__name__
