"""Side-effect-free probes of host state.

None of the probes raise. A fact that cannot be determined is reported as
``Fact.UNKNOWN``; callers proceed with a warning instead of treating it as
``Fact.NO``.
"""
import logging
import os
import shutil
import subprocess
import sys
from enum import Enum
from pathlib import Path
from typing import Callable

from dotenv import dotenv_values

from .utils import run_command

logger = logging.getLogger("homelabctl.probe")

OS_RELEASE = Path("/etc/os-release")


class OSFamily(str, Enum):
    """Operating systems the bootstrap knows how to provision."""
    DEBIAN = 'debian'
    UBUNTU = 'ubuntu'
    UNKNOWN = 'unknown'


class Fact(str, Enum):
    """Tri-state result of a host probe."""
    YES = 'yes'
    NO = 'no'
    UNKNOWN = 'unknown'

    @classmethod
    def of(cls, value: bool) -> "Fact":
        return cls.YES if value else cls.NO


class EnvironmentProbe:
    """Reads facts about the host the bootstrap runs on."""

    def __init__(
        self,
        runner: Callable[..., subprocess.CompletedProcess] = run_command,
        os_release: Path = OS_RELEASE,
    ):
        self.runner = runner
        self.os_release = os_release

    def detect_os(self) -> OSFamily:
        """Detect the OS family from the ID field of /etc/os-release."""
        try:
            if not self.os_release.is_file():
                return OSFamily.UNKNOWN
            os_id = (dotenv_values(self.os_release, interpolate=False).get("ID") or "").strip().lower()
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Could not read {self.os_release}: {e}")
            return OSFamily.UNKNOWN
        try:
            return OSFamily(os_id)
        except ValueError:
            return OSFamily.UNKNOWN

    def tool_available(self, name: str) -> bool:
        return shutil.which(name) is not None

    def port_free(self, port: int) -> Fact:
        """Check whether anything listens on a TCP port, using ss."""
        if not self.tool_available("ss"):
            return Fact.UNKNOWN
        try:
            result = self.runner(
                ["ss", "-H", "-lnt", f"( sport = :{port} )"],
                check=False,
                capture_output=True,
            )
        except OSError as e:
            logger.debug(f"ss failed: {e}")
            return Fact.UNKNOWN
        if result.returncode != 0:
            return Fact.UNKNOWN
        listening = any(
            line.split()[3].endswith(f":{port}")
            for line in (result.stdout or "").splitlines()
            if len(line.split()) > 3
        )
        return Fact.of(not listening)

    def service_active(self, name: str) -> Fact:
        """Check a systemd unit with systemctl is-active."""
        if not self.tool_available("systemctl"):
            return Fact.UNKNOWN
        try:
            result = self.runner(
                ["systemctl", "is-active", "--quiet", name],
                check=False,
                capture_output=True,
            )
        except OSError as e:
            logger.debug(f"systemctl failed: {e}")
            return Fact.UNKNOWN
        return Fact.of(result.returncode == 0)

    def address_on_interface(self, address: str) -> Fact:
        """Check whether an IP address is assigned to a local interface."""
        if not self.tool_available("ip"):
            return Fact.UNKNOWN
        try:
            result = self.runner(
                ["ip", "-o", "addr", "show"],
                check=False,
                capture_output=True,
            )
        except OSError as e:
            logger.debug(f"ip addr failed: {e}")
            return Fact.UNKNOWN
        if result.returncode != 0:
            return Fact.UNKNOWN
        for line in (result.stdout or "").splitlines():
            fields = line.split()
            for i, field in enumerate(fields[:-1]):
                if field in ("inet", "inet6") and fields[i + 1].split("/")[0] == address:
                    return Fact.YES
        return Fact.NO

    def is_root(self) -> bool:
        return hasattr(os, "geteuid") and os.geteuid() == 0

    def is_interactive(self) -> bool:
        """True when attached to a terminal (not e.g. curl | bash)."""
        try:
            return sys.stdin.isatty() or sys.stdout.isatty()
        except (AttributeError, ValueError):
            return False
