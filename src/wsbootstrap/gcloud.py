"""
gcloud CLI collaborator: the only thing that talks to the control plane.

Every call is a blocking ``subprocess.run`` of the ``gcloud`` binary with
``--project`` appended. Three shapes of call:

  - describe: existence check; a clean "not found" returns False
  - query:    read-only call whose stdout we parse
  - create:   mutating call (create / enable / add-binding / submit)

Anything else that exits nonzero raises RemoteCallFailed.
"""

from __future__ import annotations

import logging
import re
import subprocess
from typing import List, Optional, Sequence, Tuple

from .errors import RemoteCallFailed

logger = logging.getLogger("wsbootstrap.gcloud")

GCLOUD_BINARY = "gcloud"
DESCRIBE_TIMEOUT = 120  # seconds; creates and builds run unbounded

_NOT_FOUND_RE = re.compile(
    r"NOT_FOUND|not found|was not found|does not exist|\b404\b",
    re.IGNORECASE,
)


def _run(cmd: List[str], timeout: Optional[float] = None) -> subprocess.CompletedProcess:
    """Run a command and capture output.

    Args:
        cmd: Command and arguments.
        timeout: Seconds before the call is abandoned (None = no limit).

    Returns:
        CompletedProcess with stdout/stderr.
    """
    return subprocess.run(
        cmd, capture_output=True, text=True, timeout=timeout, check=False,
    )


def is_not_found(stderr: str) -> bool:
    """Whether a failed call's error text means the resource is absent."""
    return bool(_NOT_FOUND_RE.search(stderr or ""))


class GcloudClient:
    """Thin wrapper around the gcloud CLI bound to one project.

    Args:
        project_id: Project every call is scoped to.
        binary: gcloud executable name or path.
        describe_timeout: Timeout for describe/query calls.
        create_timeout: Timeout for mutating calls (None = no limit).
    """

    def __init__(
        self,
        project_id: str,
        binary: str = GCLOUD_BINARY,
        describe_timeout: Optional[float] = DESCRIBE_TIMEOUT,
        create_timeout: Optional[float] = None,
    ) -> None:
        self.project_id = project_id
        self._binary = binary
        self._describe_timeout = describe_timeout
        self._create_timeout = create_timeout

    def argv(self, args: Sequence[str], quiet: bool = False) -> List[str]:
        """Full command line for a gcloud invocation."""
        cmd = [self._binary, *args, f"--project={self.project_id}"]
        if quiet:
            cmd.append("--quiet")
        return cmd

    def _call(
        self, args: Sequence[str], timeout: Optional[float], quiet: bool = False,
    ) -> Tuple[List[str], subprocess.CompletedProcess]:
        cmd = self.argv(args, quiet=quiet)
        logger.debug("exec: %s", " ".join(cmd))
        try:
            return cmd, _run(cmd, timeout=timeout)
        except subprocess.TimeoutExpired as exc:
            raise RemoteCallFailed(cmd, -1, f"timed out after {exc.timeout}s") from exc
        except OSError as exc:
            raise RemoteCallFailed(cmd, -1, str(exc)) from exc

    def describe(self, args: Sequence[str]) -> bool:
        """Check whether a resource exists.

        Args:
            args: gcloud arguments of a ``describe`` call.

        Returns:
            bool: True if it exists, False on a clean "not found".

        Raises:
            RemoteCallFailed: On any other failure.
        """
        cmd, proc = self._call(args, self._describe_timeout)
        if proc.returncode == 0:
            return True
        if is_not_found(proc.stderr):
            return False
        raise RemoteCallFailed(cmd, proc.returncode, proc.stderr)

    def query(self, args: Sequence[str]) -> str:
        """Run a read-only call and return its stdout.

        Raises:
            RemoteCallFailed: If the call exits nonzero.
        """
        cmd, proc = self._call(args, self._describe_timeout)
        if proc.returncode != 0:
            raise RemoteCallFailed(cmd, proc.returncode, proc.stderr)
        return proc.stdout or ""

    def create(self, args: Sequence[str]) -> None:
        """Run a mutating call non-interactively.

        Raises:
            RemoteCallFailed: If the call exits nonzero.
        """
        cmd, proc = self._call(args, self._create_timeout, quiet=True)
        if proc.returncode != 0:
            raise RemoteCallFailed(cmd, proc.returncode, proc.stderr)
        for line in (proc.stderr or "").splitlines():
            logger.debug("gcloud: %s", line)
