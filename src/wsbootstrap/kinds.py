"""
Resource kind handlers: how each kind is looked up and created.

One handler per ResourceKind, registered with ``@register_kind``. A
handler turns a ResourceSpec into gcloud argv for the existence check
and for the create call. Create parameters come from ``spec.params`` and
are rendered verbatim as ``--flag=value`` (``True`` → bare ``--flag``).
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Mapping

from .gcloud import GcloudClient
from .models import ResourceKind, ResourceSpec
from .naming import bucket_url

logger = logging.getLogger("wsbootstrap.kinds")


# ---------------------------------------------------------------------------
# Handler registry
# ---------------------------------------------------------------------------

_HANDLERS: Dict[ResourceKind, "KindHandler"] = {}


def register_kind(kind: ResourceKind):
    """Decorator to register the handler class for a resource kind.

    Args:
        kind: The ResourceKind the decorated class handles.
    """
    def wrapper(cls):
        cls.kind = kind
        _HANDLERS[kind] = cls()
        return cls
    return wrapper


def handler_for(kind: ResourceKind) -> "KindHandler":
    """Look up the registered handler.

    Raises:
        RuntimeError: If no handler is registered for the kind.
    """
    try:
        return _HANDLERS[kind]
    except KeyError:
        raise RuntimeError(f"No handler registered for resource kind: {kind.value}")


def render_flags(params: Mapping[str, Any], skip: Iterable[str] = ()) -> List[str]:
    """Render declarative parameters as gcloud flags.

    ``True`` becomes a bare ``--flag``; ``False`` and ``None`` are omitted.
    """
    skipped = set(skip)
    flags = []
    for key, value in params.items():
        if key in skipped or value is None or value is False:
            continue
        if value is True:
            flags.append(f"--{key}")
        else:
            flags.append(f"--{key}={value}")
    return flags


class KindHandler:
    """Base handler: describe-based existence check, flag-rendered create."""

    kind: ResourceKind

    def describe_args(self, spec: ResourceSpec) -> List[str]:
        raise NotImplementedError

    def create_args(self, spec: ResourceSpec) -> List[str]:
        raise NotImplementedError

    def exists(self, client: GcloudClient, spec: ResourceSpec) -> bool:
        return client.describe(self.describe_args(spec))

    def create(self, client: GcloudClient, spec: ResourceSpec) -> None:
        client.create(self.create_args(spec))


# ---------------------------------------------------------------------------
# Project-level services and identities
# ---------------------------------------------------------------------------

@register_kind(ResourceKind.API)
class ApiHandler(KindHandler):
    """Platform APIs. ``services list`` exits 0 either way, so parse stdout."""

    def describe_args(self, spec: ResourceSpec) -> List[str]:
        return [
            "services", "list", "--enabled",
            f"--filter=config.name={spec.name}",
            "--format=value(config.name)",
        ]

    def exists(self, client: GcloudClient, spec: ResourceSpec) -> bool:
        return spec.name in client.query(self.describe_args(spec)).split()

    def create_args(self, spec: ResourceSpec) -> List[str]:
        return ["services", "enable", spec.name]


@register_kind(ResourceKind.SERVICE_ACCOUNT)
class ServiceAccountHandler(KindHandler):
    """Service accounts are described by email but created by account id."""

    def describe_args(self, spec: ResourceSpec) -> List[str]:
        return ["iam", "service-accounts", "describe", spec.params["email"]]

    def create_args(self, spec: ResourceSpec) -> List[str]:
        return [
            "iam", "service-accounts", "create", spec.name,
            *render_flags(spec.params, skip=("email",)),
        ]


@register_kind(ResourceKind.BUCKET)
class BucketHandler(KindHandler):

    def describe_args(self, spec: ResourceSpec) -> List[str]:
        return ["storage", "buckets", "describe", bucket_url(spec.name)]

    def create_args(self, spec: ResourceSpec) -> List[str]:
        return [
            "storage", "buckets", "create", bucket_url(spec.name),
            f"--location={spec.location}",
            *render_flags(spec.params),
        ]


@register_kind(ResourceKind.REPOSITORY)
class RepositoryHandler(KindHandler):

    def describe_args(self, spec: ResourceSpec) -> List[str]:
        return [
            "artifacts", "repositories", "describe", spec.name,
            f"--location={spec.location}",
        ]

    def create_args(self, spec: ResourceSpec) -> List[str]:
        return [
            "artifacts", "repositories", "create", spec.name,
            f"--location={spec.location}",
            *render_flags(spec.params),
        ]


# ---------------------------------------------------------------------------
# IAM bindings
# ---------------------------------------------------------------------------

# target_type -> (gcloud command group, needs --location)
_IAM_TARGETS = {
    "repository": (["artifacts", "repositories"], True),
    "bucket": (["storage", "buckets"], False),
    "project": (["projects"], False),
}


def policy_has_binding(policy: Mapping[str, Any], role: str, member: str) -> bool:
    """Whether an IAM policy document grants ``role`` to ``member``."""
    for binding in policy.get("bindings") or []:
        if binding.get("role") == role and member in (binding.get("members") or []):
            return True
    return False


@register_kind(ResourceKind.IAM_BINDING)
class IamBindingHandler(KindHandler):
    """Role grants on a repository, bucket or the project.

    The binding "exists" when the target's current policy already lists
    the member under the role. Expected params: ``target_type``,
    ``target``, ``role``, ``member``.
    """

    def _target_args(self, spec: ResourceSpec, verb: str) -> List[str]:
        target_type = spec.params["target_type"]
        if target_type not in _IAM_TARGETS:
            raise RuntimeError(f"Unsupported IAM binding target: {target_type}")
        group, scoped = _IAM_TARGETS[target_type]
        target = spec.params["target"]
        if target_type == "bucket":
            target = bucket_url(target)
        args = [*group, verb, target]
        if scoped:
            args.append(f"--location={spec.location}")
        return args

    def describe_args(self, spec: ResourceSpec) -> List[str]:
        return [*self._target_args(spec, "get-iam-policy"), "--format=json"]

    def exists(self, client: GcloudClient, spec: ResourceSpec) -> bool:
        raw = client.query(self.describe_args(spec)).strip()
        if not raw:
            return False
        try:
            policy = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Unparseable IAM policy for %s; treating as unbound", spec.describe())
            return False
        return policy_has_binding(policy, spec.params["role"], spec.params["member"])

    def create_args(self, spec: ResourceSpec) -> List[str]:
        return [
            *self._target_args(spec, "add-iam-policy-binding"),
            f"--member={spec.params['member']}",
            f"--role={spec.params['role']}",
        ]


# ---------------------------------------------------------------------------
# Networking
# ---------------------------------------------------------------------------

@register_kind(ResourceKind.NETWORK)
class NetworkHandler(KindHandler):

    def describe_args(self, spec: ResourceSpec) -> List[str]:
        return ["compute", "networks", "describe", spec.name]

    def create_args(self, spec: ResourceSpec) -> List[str]:
        return ["compute", "networks", "create", spec.name, *render_flags(spec.params)]


@register_kind(ResourceKind.FIREWALL_RULE)
class FirewallRuleHandler(KindHandler):

    def describe_args(self, spec: ResourceSpec) -> List[str]:
        return ["compute", "firewall-rules", "describe", spec.name]

    def create_args(self, spec: ResourceSpec) -> List[str]:
        return ["compute", "firewall-rules", "create", spec.name, *render_flags(spec.params)]


@register_kind(ResourceKind.ROUTER)
class RouterHandler(KindHandler):

    def describe_args(self, spec: ResourceSpec) -> List[str]:
        return ["compute", "routers", "describe", spec.name, f"--region={spec.location}"]

    def create_args(self, spec: ResourceSpec) -> List[str]:
        return [
            "compute", "routers", "create", spec.name,
            f"--region={spec.location}",
            *render_flags(spec.params),
        ]


@register_kind(ResourceKind.NAT)
class NatHandler(KindHandler):
    """Cloud NAT lives under a router; ``params['router']`` is its parent."""

    def describe_args(self, spec: ResourceSpec) -> List[str]:
        return [
            "compute", "routers", "nats", "describe", spec.name,
            f"--router={spec.params['router']}",
            f"--region={spec.location}",
        ]

    def create_args(self, spec: ResourceSpec) -> List[str]:
        return [
            "compute", "routers", "nats", "create", spec.name,
            f"--region={spec.location}",
            *render_flags(spec.params),
        ]


# ---------------------------------------------------------------------------
# Container image
# ---------------------------------------------------------------------------

@register_kind(ResourceKind.IMAGE)
class ImageHandler(KindHandler):
    """The workstation image, built by Cloud Build from a local context.

    ``spec.name`` is the full registry path. Expected params: ``source``
    (build context directory), ``service-account``,
    ``gcs-source-staging-dir``, ``gcs-log-dir`` and optionally ``rebuild``
    to submit a build even when the tag is already in the registry.
    """

    def describe_args(self, spec: ResourceSpec) -> List[str]:
        return ["artifacts", "docker", "images", "describe", spec.name]

    def exists(self, client: GcloudClient, spec: ResourceSpec) -> bool:
        if spec.params.get("rebuild"):
            return False
        return super().exists(client, spec)

    def create_args(self, spec: ResourceSpec) -> List[str]:
        return [
            "builds", "submit", str(spec.params["source"]),
            f"--region={spec.location}",
            f"--tag={spec.name}",
            *render_flags(spec.params, skip=("source", "rebuild")),
        ]


# ---------------------------------------------------------------------------
# Workstations
# ---------------------------------------------------------------------------

@register_kind(ResourceKind.WORKSTATION_CLUSTER)
class WorkstationClusterHandler(KindHandler):

    def describe_args(self, spec: ResourceSpec) -> List[str]:
        return ["workstations", "clusters", "describe", spec.name, f"--region={spec.location}"]

    def create_args(self, spec: ResourceSpec) -> List[str]:
        return [
            "workstations", "clusters", "create", spec.name,
            f"--region={spec.location}",
            *render_flags(spec.params),
        ]


@register_kind(ResourceKind.WORKSTATION_CONFIG)
class WorkstationConfigHandler(KindHandler):
    """Workstation configs are scoped by ``params['cluster']``."""

    def describe_args(self, spec: ResourceSpec) -> List[str]:
        return [
            "workstations", "configs", "describe", spec.name,
            f"--cluster={spec.params['cluster']}",
            f"--region={spec.location}",
        ]

    def create_args(self, spec: ResourceSpec) -> List[str]:
        return [
            "workstations", "configs", "create", spec.name,
            f"--region={spec.location}",
            *render_flags(spec.params),
        ]


@register_kind(ResourceKind.WORKSTATION)
class WorkstationHandler(KindHandler):
    """Workstation instances are scoped by ``params['config']`` and ``params['cluster']``."""

    def describe_args(self, spec: ResourceSpec) -> List[str]:
        return [
            "workstations", "describe", spec.name,
            f"--config={spec.params['config']}",
            f"--cluster={spec.params['cluster']}",
            f"--region={spec.location}",
        ]

    def create_args(self, spec: ResourceSpec) -> List[str]:
        return [
            "workstations", "create", spec.name,
            f"--region={spec.location}",
            *render_flags(spec.params),
        ]
