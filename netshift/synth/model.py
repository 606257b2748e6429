# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# netshift/synth/model.py
"""
Stanza / ConfigurationArtifact model for Debian-style interfaces files.

This file intentionally contains:
- StanzaKind + Stanza (structured block, rendered to text only at the end)
- ConfigurationArtifact (opaque base text + appended stanzas)
- parse_interfaces() (best-effort reader used for idempotence checks)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple


class StanzaKind(Enum):
    LOOPBACK = "loopback"
    PORT = "port"  # physical member / uplink, "inet manual"
    BOND = "bond"
    BRIDGE = "bridge"
    VLAN = "vlan"
    TUNABLE = "tunable"  # sysctl-style "key = value" line


# Emission order; each later kind references devices created by an earlier one.
PHASE_ORDER: Tuple[Tuple[StanzaKind, ...], ...] = (
    (StanzaKind.LOOPBACK,),
    (StanzaKind.PORT, StanzaKind.BOND),
    (StanzaKind.BRIDGE,),
    (StanzaKind.VLAN,),
)


@dataclass
class Stanza:
    kind: StanzaKind
    name: str
    method: str = "manual"
    family: str = "inet"
    settings: List[Tuple[str, str]] = field(default_factory=list)
    body: List[str] = field(default_factory=list)
    allow: Optional[str] = None  # "allow-<bridge>" hotplug group (OVS ports)
    auto: bool = True
    comment: Optional[str] = None

    @property
    def key(self) -> Tuple[StanzaKind, str]:
        return (self.kind, self.name)

    def set(self, key: str, value: object) -> "Stanza":
        self.settings.append((key, str(value)))
        return self

    def get(self, key: str) -> Optional[str]:
        for k, v in self.settings:
            if k == key:
                return v
        return None

    def render(self) -> str:
        if self.kind == StanzaKind.TUNABLE:
            value = self.get(self.name) or ""
            return f"{self.name} = {value}\n"

        lines: List[str] = []
        if self.comment:
            lines.append(f"# {self.comment}")
        if self.allow:
            lines.append(f"allow-{self.allow} {self.name}")
        if self.auto:
            lines.append(f"auto {self.name}")
        lines.append(f"iface {self.name} {self.family} {self.method}")
        for k, v in self.settings:
            lines.append(f"    {k} {v}".rstrip())
        for ln in self.body:
            lines.append(f"    {ln}")
        return "\n".join(lines) + "\n"


@dataclass(frozen=True)
class ParsedStanza:
    kind: StanzaKind
    name: str
    method: str
    settings: Tuple[Tuple[str, str], ...] = ()

    def get(self, key: str) -> Optional[str]:
        for k, v in self.settings:
            if k == key:
                return v
        return None


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------

_IFACE_RE = re.compile(r"^iface\s+(\S+)\s+(\S+)\s+(\S+)")
_BOND_KEYS = ("bond-slaves", "bond_slaves", "bond-mode", "bond_mode")
_BRIDGE_KEYS = ("bridge-ports", "bridge_ports")
_VLAN_KEYS = ("vlan-raw-device", "vlan_raw_device")


def infer_kind(name: str, method: str, settings: Iterable[Tuple[str, str]]) -> StanzaKind:
    """
    Settings decide first (they are authoritative), names are the fallback:
    bondN -> bond, vmbrN / brN / br-* -> bridge, vlanN / parent.vid -> vlan.
    """
    kv: Dict[str, str] = {}
    for k, v in settings:
        kv.setdefault(k, v)

    if method == "loopback" or name == "lo":
        return StanzaKind.LOOPBACK

    ovs_type = kv.get("ovs_type", "")
    if ovs_type == "OVSBond" or any(k in kv for k in _BOND_KEYS):
        return StanzaKind.BOND
    if ovs_type == "OVSBridge" or any(k in kv for k in _BRIDGE_KEYS):
        return StanzaKind.BRIDGE
    if ovs_type == "OVSIntPort" or any(k in kv for k in _VLAN_KEYS):
        return StanzaKind.VLAN
    if "bond-master" in kv or "bond_master" in kv:
        return StanzaKind.PORT

    if re.match(r"^bond\d+$", name):
        return StanzaKind.BOND
    if re.match(r"^(vmbr|br|bridge)\d+$", name) or name.startswith("br-"):
        return StanzaKind.BRIDGE
    if re.match(r"^vlan\d+$", name) or re.match(r"^[\w-]+\.\d+$", name):
        return StanzaKind.VLAN
    return StanzaKind.PORT


def parse_interfaces(text: str) -> List[ParsedStanza]:
    """
    Block reader: an `iface` line opens a block, indented lines extend it,
    the next non-indented line closes it. Anything else is ignored.
    """
    out: List[ParsedStanza] = []
    current: Optional[Tuple[str, str]] = None
    settings: List[Tuple[str, str]] = []

    def flush() -> None:
        nonlocal current, settings
        if current is not None:
            name, method = current
            out.append(ParsedStanza(infer_kind(name, method, settings), name, method, tuple(settings)))
        current = None
        settings = []

    for line in text.splitlines():
        stripped = line.strip()
        m = _IFACE_RE.match(stripped) if not line[:1].isspace() else None
        if m:
            flush()
            current = (m.group(1), m.group(3))
            continue

        if not stripped or stripped.startswith("#"):
            continue

        if line[:1].isspace() and current is not None:
            parts = stripped.split(None, 1)
            settings.append((parts[0], parts[1] if len(parts) > 1 else ""))
            continue

        flush()

    flush()
    return out


# ---------------------------------------------------------------------------
# Artifact
# ---------------------------------------------------------------------------

@dataclass
class ConfigurationArtifact:
    """
    The staged interfaces file.

    `base_text` is never re-rendered: in merge mode it is the live file kept
    byte-for-byte, in replace mode it is empty. Newly synthesized stanzas are
    appended after it, in emission order.
    """

    path: Path
    base_text: str = ""
    existing: List[ParsedStanza] = field(default_factory=list)
    stanzas: List[Stanza] = field(default_factory=list)
    last_known_good: Optional[object] = None  # Backup taken before this artifact goes live

    @classmethod
    def empty(cls, path: Path) -> "ConfigurationArtifact":
        return cls(path=Path(path))

    @classmethod
    def from_text(cls, path: Path, text: str) -> "ConfigurationArtifact":
        return cls(path=Path(path), base_text=text, existing=parse_interfaces(text))

    def identifiers(self, kind: StanzaKind) -> Set[str]:
        names = {p.name for p in self.existing if p.kind == kind}
        names.update(s.name for s in self.stanzas if s.kind == kind)
        return names

    def has(self, kind: StanzaKind, name: str) -> bool:
        return name in self.identifiers(kind)

    def add(self, stanza: Stanza) -> bool:
        """Append unless (kind, name) is already present; returns True if added."""
        if self.has(stanza.kind, stanza.name):
            return False
        self.stanzas.append(stanza)
        return True

    def render(self) -> str:
        text = self.base_text
        for st in self.stanzas:
            if text and not text.endswith("\n"):
                text += "\n"
            if text:
                text += "\n"
            text += st.render()
        return text
