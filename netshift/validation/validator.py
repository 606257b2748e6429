# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# netshift/validation/validator.py
"""
Pure input checks for operator-supplied network parameters.

Malformed input is the expected negative case: nothing here raises for bad
values. Each check_* returns a ValidationResult (truthy when ok, with a
reason when not); validate_* are the boolean shorthands.
"""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional

_IFNAME_RE = re.compile(r"^[A-Za-z0-9_.:-]{1,15}$")
_PREFIX_RE = re.compile(r"^[a-zA-Z0-9_-]+$")
_HOSTNAME_RE = re.compile(r"^[A-Za-z0-9-]+$")
_MAC_RE = re.compile(r"^[0-9a-f]{2}(:[0-9a-f]{2}){5}$")
_SUBNET_PREFIX_RE = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}$")

ZERO_MAC = "00:00:00:00:00:00"


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def good(cls) -> "ValidationResult":
        return cls(True)

    @classmethod
    def bad(cls, reason: str) -> "ValidationResult":
        return cls(False, reason)


# ---------------------------------------------------------------------------
# Addresses
# ---------------------------------------------------------------------------

def check_ipv4(value: Any) -> ValidationResult:
    if not isinstance(value, str):
        return ValidationResult.bad(f"not a string: {value!r}")
    s = value.strip()
    if s != value or not s:
        return ValidationResult.bad(f"not a dotted-decimal IPv4 address: {value!r}")
    parts = s.split(".")
    if len(parts) != 4 or not all(p.isdigit() and p.isascii() for p in parts):
        return ValidationResult.bad(f"not a dotted-decimal IPv4 address: {value!r}")
    for p in parts:
        if int(p) > 255:
            return ValidationResult.bad(f"octet {p} out of range 0-255 in {value!r}")
    try:
        ipaddress.IPv4Address(s)
    except ipaddress.AddressValueError as e:
        return ValidationResult.bad(f"invalid IPv4 address {value!r}: {e}")
    return ValidationResult.good()


def validate_ipv4(value: Any) -> bool:
    """True for dotted-decimal IPv4 with every octet in 0..255."""
    return bool(check_ipv4(value))


def check_cidr(prefix: Any) -> ValidationResult:
    if isinstance(prefix, bool):
        return ValidationResult.bad(f"not a prefix length: {prefix!r}")
    if isinstance(prefix, int):
        n = prefix
    elif isinstance(prefix, str) and prefix.strip().isdigit() and prefix.strip().isascii():
        n = int(prefix.strip())
    else:
        return ValidationResult.bad(f"not a prefix length: {prefix!r}")
    if not 1 <= n <= 32:
        return ValidationResult.bad(f"prefix length {n} out of range 1-32")
    return ValidationResult.good()


def validate_cidr(prefix: Any) -> bool:
    """True for prefix lengths 1..32 (int or numeric string)."""
    return bool(check_cidr(prefix))


def cidr_to_netmask(prefix: Any) -> str:
    """
    24 -> "255.255.255.0". Callers validate first; a bad prefix raises ValueError.
    """
    res = check_cidr(prefix)
    if not res:
        raise ValueError(res.reason)
    return str(ipaddress.IPv4Network(f"0.0.0.0/{int(prefix)}").netmask)


def check_netmask(value: Any) -> ValidationResult:
    res = check_ipv4(value)
    if not res:
        return res
    try:
        net = ipaddress.IPv4Network(f"0.0.0.0/{value}")
    except ValueError:
        return ValidationResult.bad(f"not a contiguous netmask: {value!r}")
    if net.prefixlen == 0:
        return ValidationResult.bad(f"netmask {value!r} has prefix length 0")
    return ValidationResult.good()


def validate_netmask(value: Any) -> bool:
    return bool(check_netmask(value))


def netmask_to_cidr(mask: str) -> int:
    return ipaddress.IPv4Network(f"0.0.0.0/{mask}").prefixlen


def check_subnet_prefix(value: Any) -> ValidationResult:
    """Three-octet subnet prefix such as "192.168.51"."""
    if not isinstance(value, str) or not _SUBNET_PREFIX_RE.match(value):
        return ValidationResult.bad(f"not a three-octet subnet prefix: {value!r}")
    return check_ipv4(f"{value}.1")


def parse_address(value: str, default_prefix: Optional[int] = None) -> ValidationResult:
    """
    Accept "A.B.C.D" or "A.B.C.D/NN"; the result carries no data, use
    split_address() once it is known good.
    """
    if not isinstance(value, str):
        return ValidationResult.bad(f"not a string: {value!r}")
    addr, sep, pfx = value.partition("/")
    res = check_ipv4(addr)
    if not res:
        return res
    if sep:
        return check_cidr(pfx)
    if default_prefix is None:
        return ValidationResult.bad(f"address {value!r} has no /prefix")
    return ValidationResult.good()


def split_address(value: str, default_prefix: Optional[int] = None) -> tuple:
    addr, sep, pfx = value.partition("/")
    return addr, int(pfx) if sep else int(default_prefix or 24)


def same_subnet(addr: str, gateway: str, prefix: int) -> bool:
    net = ipaddress.IPv4Network(f"{addr}/{prefix}", strict=False)
    return ipaddress.IPv4Address(gateway) in net


# ---------------------------------------------------------------------------
# Names
# ---------------------------------------------------------------------------

def check_interface_name(name: Any) -> ValidationResult:
    if not isinstance(name, str) or not name:
        return ValidationResult.bad("interface name is empty")
    if not _IFNAME_RE.match(name) or name in (".", ".."):
        return ValidationResult.bad(f"invalid interface name {name!r} (1-15 chars of [A-Za-z0-9_.:-])")
    return ValidationResult.good()


def validate_interface_name(name: Any) -> bool:
    return bool(check_interface_name(name))


def check_name_prefix(prefix: Any) -> ValidationResult:
    if not isinstance(prefix, str) or not _PREFIX_RE.match(prefix):
        return ValidationResult.bad(f"invalid name prefix {prefix!r} (letters, digits, '_' and '-' only)")
    if len(prefix) > 12:
        return ValidationResult.bad(f"name prefix {prefix!r} too long to leave room for an index")
    return ValidationResult.good()


def validate_name_prefix(prefix: Any) -> bool:
    return bool(check_name_prefix(prefix))


def check_hostname(name: Any) -> ValidationResult:
    if not isinstance(name, str) or not name:
        return ValidationResult.bad("hostname is empty")
    if len(name) > 63 or not _HOSTNAME_RE.match(name):
        return ValidationResult.bad(f"invalid hostname {name!r} (letters, digits and hyphens only)")
    if name.startswith("-") or name.endswith("-"):
        return ValidationResult.bad(f"hostname {name!r} cannot start or end with a hyphen")
    return ValidationResult.good()


def validate_hostname(name: Any) -> bool:
    return bool(check_hostname(name))


def normalize_mac(mac: Any) -> str:
    return str(mac or "").strip().lower()


def check_mac(mac: Any) -> ValidationResult:
    m = normalize_mac(mac)
    if not m:
        return ValidationResult.bad("hardware address is empty")
    if not _MAC_RE.match(m):
        return ValidationResult.bad(f"malformed hardware address {mac!r}")
    if m == ZERO_MAC:
        return ValidationResult.bad("hardware address is all zeros")
    return ValidationResult.good()


def validate_mac(mac: Any) -> bool:
    return bool(check_mac(mac))


# ---------------------------------------------------------------------------
# Live state (read-only)
# ---------------------------------------------------------------------------

def check_interface_exists(name: str, live: Iterable[str]) -> ValidationResult:
    """
    `live` is the device enumerator's current interface list. A missing
    interface is reported, not raised: callers decide whether to proceed.
    """
    names = sorted(set(live))
    if name in names:
        return ValidationResult.good()
    shown = ", ".join(names) if names else "none"
    return ValidationResult.bad(f"interface {name!r} not present (live: {shown})")


def interface_exists(name: str, live: Iterable[str]) -> bool:
    return bool(check_interface_exists(name, live))
