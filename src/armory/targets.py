"""Target platform triples supported by the armory registry.

Every artifact is published for exactly one triple, and the canonical text
form (``x86_64_linux`` and friends) is used both on the wire and as a
storage path segment.
"""

from __future__ import annotations

import platform
from enum import Enum
from typing import Optional


class UnsupportedPlatformError(Exception):
    """Raised when the running platform has no matching triple."""


class Triple(str, Enum):
    """Architecture and operating system pairing."""

    X86_64_LINUX = "x86_64_linux"
    AARCH64_LINUX = "aarch64_linux"
    X86_64_DARWIN = "x86_64_darwin"
    AARCH64_DARWIN = "aarch64_darwin"
    X86_64_WINDOWS = "x86_64_windows"
    AARCH64_WINDOWS = "aarch64_windows"

    def __str__(self) -> str:
        return self.value


_ARCH_ALIASES = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "aarch64": "aarch64",
    "arm64": "aarch64",
}

_OS_ALIASES = {
    "linux": "linux",
    "darwin": "darwin",
    "windows": "windows",
}


def parse_triple(text: str) -> Triple:
    """Parse the canonical text form of a triple."""
    try:
        return Triple(text)
    except ValueError:
        valid = ", ".join(t.value for t in Triple)
        raise ValueError(f"unrecognized triple {text!r} (expected one of: {valid})") from None


def current_triple(machine: Optional[str] = None, system: Optional[str] = None) -> Triple:
    """Return the triple of the running interpreter."""
    machine = machine if machine is not None else platform.machine()
    system = system if system is not None else platform.system()

    arch = _ARCH_ALIASES.get(machine.lower())
    os_name = _OS_ALIASES.get(system.lower())
    if arch is None or os_name is None:
        raise UnsupportedPlatformError(f"unrecognized target ({machine!r}, {system!r})")
    return Triple(f"{arch}_{os_name}")
