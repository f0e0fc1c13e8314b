"""Error taxonomy for the bootstrap run.

Config errors are raised before any remote call. ``RemoteCallFailed``
aborts the run at the first failing describe or create.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from .models import ResourceSpec, StepReport


class BootstrapError(Exception):
    """Base class for every user-facing bootstrap failure."""


class ConfigMissing(BootstrapError):
    """The configuration file does not exist."""


class ConfigInvalid(BootstrapError):
    """A required key is missing or a value failed validation."""


class ToolMissing(BootstrapError):
    """A required local command-line tool is not installed."""


class RemoteCallFailed(BootstrapError):
    """A gcloud call failed for a reason other than "not found".

    Attributes:
        cmd: The argv that was executed.
        returncode: Process exit status (-1 for timeouts / launch errors).
        stderr: Captured standard error.
        spec: The resource being reconciled, once known.
        reports: Step reports accumulated up to and including the failure.
    """

    def __init__(
        self,
        cmd: Sequence[str],
        returncode: int,
        stderr: str = "",
        spec: Optional["ResourceSpec"] = None,
    ) -> None:
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = stderr
        self.spec = spec
        self.reports: list["StepReport"] = []
        super().__init__(self._message())

    def _message(self) -> str:
        detail = self.stderr.strip() or f"exit code {self.returncode}"
        if self.spec is not None:
            return f"{self.spec.describe()}: {detail}"
        return f"{' '.join(self.cmd[:4])}: {detail}"

    def attach(self, spec: "ResourceSpec") -> "RemoteCallFailed":
        """Bind the failing resource so the message names it."""
        self.spec = spec
        self.args = (self._message(),)
        return self
