"""
Pydantic models for declared resources and reconciliation outcomes.

A ResourceSpec is what we want to exist. The remote provider owns the
actual resource; nothing here is persisted locally.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ResourceKind(str, Enum):
    """Every kind of remote object the bootstrap knows how to ensure."""

    API = "api"
    SERVICE_ACCOUNT = "service_account"
    BUCKET = "bucket"
    REPOSITORY = "repository"
    IAM_BINDING = "iam_binding"
    NETWORK = "network"
    FIREWALL_RULE = "firewall_rule"
    ROUTER = "router"
    NAT = "nat"
    IMAGE = "image"
    WORKSTATION_CLUSTER = "workstation_cluster"
    WORKSTATION_CONFIG = "workstation_config"
    WORKSTATION = "workstation"

    @property
    def label(self) -> str:
        """Human-readable name used in log lines and errors."""
        return _KIND_LABELS[self]


_KIND_LABELS = {
    ResourceKind.API: "API",
    ResourceKind.SERVICE_ACCOUNT: "Service account",
    ResourceKind.BUCKET: "Bucket",
    ResourceKind.REPOSITORY: "Artifact Registry repo",
    ResourceKind.IAM_BINDING: "IAM binding",
    ResourceKind.NETWORK: "Network",
    ResourceKind.FIREWALL_RULE: "Firewall rule",
    ResourceKind.ROUTER: "Router",
    ResourceKind.NAT: "NAT",
    ResourceKind.IMAGE: "Container image",
    ResourceKind.WORKSTATION_CLUSTER: "Workstation cluster",
    ResourceKind.WORKSTATION_CONFIG: "Workstation config",
    ResourceKind.WORKSTATION: "Workstation instance",
}


class ReconciliationResult(str, Enum):
    """Outcome of ensuring a single resource."""

    CREATED = "created"
    ALREADY_EXISTS = "already_exists"
    FAILED = "failed"


class ResourceSpec(BaseModel):
    """Immutable declaration of one remote resource.

    Identity is the (kind, name, location) triple. ``location`` is empty
    for global resources. ``params`` holds the declarative create
    parameters, is read-only, and is applied verbatim, never merged.
    """

    model_config = ConfigDict(frozen=True)

    kind: ResourceKind
    name: str = Field(min_length=1)
    location: str = ""
    params: Mapping[str, Any] = Field(default_factory=dict, validate_default=True)

    @field_validator("params")
    @classmethod
    def _read_only(cls, v: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(v))

    def __hash__(self) -> int:
        return hash(self.identity)

    @property
    def identity(self) -> Tuple[ResourceKind, str, str]:
        """The (kind, name, location) triple the provider keys on."""
        return (self.kind, self.name, self.location)

    def describe(self) -> str:
        """Short label such as ``Network 'ws-net-europe-north1'``."""
        if self.kind == ResourceKind.IAM_BINDING:
            return (
                f"{self.kind.label} '{self.params.get('role', '?')}'"
                f" for {self.params.get('member', '?')}"
                f" on {self.params.get('target', '?')}"
            )
        return f"{self.kind.label} '{self.name}'"


class StepReport(BaseModel):
    """What happened to one resource during a run."""

    spec: ResourceSpec
    result: ReconciliationResult
    detail: str = ""
