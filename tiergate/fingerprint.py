"""Machine identity derived from stable host metadata.

The fingerprint is a SHA-256 over ``platform-user-host-arch-cpu-memory``.
Only slow-changing facts are used so the value survives reboots and network
changes; it is not expected to survive an OS reinstall.  Collection never
raises: every probe falls back to a neutral placeholder.
"""

from __future__ import annotations

import getpass
import hashlib
import logging
import platform
import socket
import subprocess
import sys
from pathlib import Path
from typing import List

import psutil

from .models import MachineFingerprint

logger = logging.getLogger(__name__)

CPUINFO_PATH = Path("/proc/cpuinfo")
WINDOWS_CPU_KEY = r"HARDWARE\DESCRIPTION\System\CentralProcessor\0"

# Length of the display form of the fingerprint.
SHORT_LENGTH = 16


# ---------------------------------------------------------------------------
# Host probes
# ---------------------------------------------------------------------------

def _platform_name() -> str:
    # Mirrors the lower-case names used by other runtimes (linux, darwin, win32).
    return sys.platform or "unknown-platform"


def _username() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError, ImportError):
        return "unknown-user"


def _hostname() -> str:
    try:
        return socket.gethostname() or "unknown-host"
    except OSError:
        return "unknown-host"


def _architecture() -> str:
    return platform.machine() or "unknown-arch"


def _run(args: List[str]) -> str:
    """Run *args* and return stripped stdout, or ``""`` on any failure."""
    try:
        result = subprocess.run(args, capture_output=True, text=True, timeout=5, check=False)
    except (OSError, subprocess.SubprocessError):
        return ""
    return result.stdout.strip() if result.returncode == 0 else ""


def _linux_cpu_model() -> str:
    if not CPUINFO_PATH.is_file():
        return ""
    try:
        with CPUINFO_PATH.open("r", encoding="utf-8", errors="ignore") as fp:
            for line in fp:
                key, _, value = line.partition(":")
                if key.strip() == "model name" and value.strip():
                    return value.strip()
    except OSError:
        pass
    return ""


def _darwin_cpu_model() -> str:
    return _run(["sysctl", "-n", "machdep.cpu.brand_string"])


def _windows_cpu_model() -> str:
    try:
        import winreg
    except ImportError:
        return ""
    try:
        with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, WINDOWS_CPU_KEY) as key:
            value, _ = winreg.QueryValueEx(key, "ProcessorNameString")
    except OSError:
        return ""
    return str(value).strip()


def _cpu_model() -> str:
    """Return the marketing model string of the first CPU.

    ``platform.processor()`` is only a last resort: on macOS and Windows it
    reports the architecture or family (``arm``, ``Intel64 Family 6 ...``)
    rather than the model name.
    """
    name = _platform_name()
    if name == "darwin":
        model = _darwin_cpu_model()
    elif name == "win32":
        model = _windows_cpu_model()
    else:
        model = _linux_cpu_model()
    return model or platform.processor() or "unknown-cpu"


def _total_memory() -> int:
    try:
        return int(psutil.virtual_memory().total)
    except (OSError, RuntimeError, AttributeError):
        logger.debug("Total memory unavailable, using 0 for fingerprint")
        return 0


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------

def raw_fingerprint() -> str:
    """Return the un-hashed identity string for the current host."""
    parts = [
        _platform_name(),
        _username(),
        _hostname(),
        _architecture(),
        _cpu_model(),
        str(_total_memory()),
    ]
    return "-".join(parts)


def machine_fingerprint() -> MachineFingerprint:
    """Compute the fingerprint of the machine we are running on."""
    full = hashlib.sha256(raw_fingerprint().encode("utf-8")).hexdigest()
    return MachineFingerprint(short=full[:SHORT_LENGTH], full=full)


__all__ = ["machine_fingerprint", "raw_fingerprint", "SHORT_LENGTH"]
