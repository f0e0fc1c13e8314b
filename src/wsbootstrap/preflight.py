"""
Preflight checks: make sure the local tooling is there before we start.

The bootstrap drives everything through the Google Cloud SDK, so the
only hard requirement is a ``gcloud`` binary on PATH. The check runs
before any remote call.
"""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from enum import Enum

from .errors import ToolMissing
from .gcloud import GCLOUD_BINARY

GCLOUD_DOWNLOAD_URL = "https://cloud.google.com/sdk/docs/install"


class ToolStatus(str, Enum):
    """Status of a system tool."""
    INSTALLED = "installed"
    MISSING = "missing"


@dataclass
class ToolCheck:
    """Result of checking a single system tool."""

    name: str
    status: ToolStatus
    version: str = ""
    download_url: str = ""

    @property
    def installed(self) -> bool:
        """Whether the tool is installed."""
        return self.status == ToolStatus.INSTALLED


def check_gcloud(binary: str = GCLOUD_BINARY) -> ToolCheck:
    """Check if the Google Cloud SDK is installed.

    Args:
        binary: Executable to look for.

    Returns:
        ToolCheck for gcloud.
    """
    if not shutil.which(binary):
        return ToolCheck(
            name="gcloud",
            status=ToolStatus.MISSING,
            download_url=GCLOUD_DOWNLOAD_URL,
        )

    version = ""
    try:
        result = subprocess.run(
            [binary, "--version"],
            capture_output=True, text=True, timeout=30,
        )
        if result.returncode == 0 and result.stdout.strip():
            version = result.stdout.strip().split("\n")[0][:60]
    except (OSError, subprocess.TimeoutExpired):
        pass
    return ToolCheck(name="gcloud", status=ToolStatus.INSTALLED, version=version)


def require_gcloud(binary: str = GCLOUD_BINARY) -> ToolCheck:
    """Fail unless gcloud is installed.

    Raises:
        ToolMissing: If the gcloud binary is not on PATH.
    """
    check = check_gcloud(binary)
    if not check.installed:
        raise ToolMissing(
            "gcloud command could not be found. Please install the Google Cloud SDK "
            f"({check.download_url})."
        )
    return check
