"""
The bootstrap plan: every resource, in dependency order.

The order is fixed by construction rather than computed:

    APIs → service accounts → buckets → registry → IAM bindings →
    network → firewall → router → NAT → image build →
    cluster → config → workstation instance
"""

from __future__ import annotations

from typing import List

from . import naming
from .config import BootstrapConfig
from .models import ResourceKind, ResourceSpec

REQUIRED_APIS = [
    "compute.googleapis.com",
    "artifactregistry.googleapis.com",
    "workstations.googleapis.com",
    "cloudbuild.googleapis.com",
    "iam.googleapis.com",
    "storage.googleapis.com",
    "aiplatform.googleapis.com",
]

IAP_FIREWALL_RULE = "allow-ssh-ingress-from-iap"
IAP_SOURCE_RANGE = "35.235.240.0/20"
CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


def binding_name(target: str, role: str, member: str) -> str:
    """Identity name of an IAM binding: unique per (target, role, member)."""
    return f"{target}:{role}:{member}"


def _binding(
    target_type: str, target: str, role: str, member: str, location: str = "",
) -> ResourceSpec:
    return ResourceSpec(
        kind=ResourceKind.IAM_BINDING,
        name=binding_name(target, role, member),
        location=location,
        params={
            "target_type": target_type,
            "target": target,
            "role": role,
            "member": member,
        },
    )


def api_specs(config: BootstrapConfig) -> List[ResourceSpec]:
    return [ResourceSpec(kind=ResourceKind.API, name=api) for api in REQUIRED_APIS]


def service_account_specs(config: BootstrapConfig) -> List[ResourceSpec]:
    return [
        ResourceSpec(
            kind=ResourceKind.SERVICE_ACCOUNT,
            name=config.workstation_sa_name,
            params={
                "email": config.workstation_sa_email,
                "display-name": "Service Account for Cloud Workstations",
            },
        ),
        ResourceSpec(
            kind=ResourceKind.SERVICE_ACCOUNT,
            name=config.build_sa_name,
            params={
                "email": config.build_sa_email,
                "display-name": "Dedicated Service Account for Cloud Build",
            },
        ),
    ]


def bucket_specs(config: BootstrapConfig) -> List[ResourceSpec]:
    return [
        ResourceSpec(kind=ResourceKind.BUCKET, name=config.source_bucket, location=config.region),
        ResourceSpec(kind=ResourceKind.BUCKET, name=config.logs_bucket, location=config.region),
    ]


def repository_specs(config: BootstrapConfig) -> List[ResourceSpec]:
    return [
        ResourceSpec(
            kind=ResourceKind.REPOSITORY,
            name=config.repo_name,
            location=config.region,
            params={
                "repository-format": "docker",
                "description": "Workstation image repository",
            },
        ),
    ]


def iam_binding_specs(config: BootstrapConfig) -> List[ResourceSpec]:
    """Role grants for the workstation and build service accounts.

    The workstation account pulls images and calls Vertex AI; the build
    account pushes images, reads staged sources, writes logs and manages
    workstations.
    """
    ws = f"serviceAccount:{config.workstation_sa_email}"
    build = f"serviceAccount:{config.build_sa_email}"
    project = config.project_id
    return [
        _binding("repository", config.repo_name, "roles/artifactregistry.reader", ws, config.region),
        _binding("repository", config.repo_name, "roles/artifactregistry.writer", build, config.region),
        _binding("bucket", config.source_bucket, "roles/storage.objectUser", build),
        _binding("bucket", config.logs_bucket, "roles/storage.admin", build),
        _binding("project", project, "roles/logging.logWriter", build),
        _binding("project", project, "roles/workstations.admin", build),
        _binding("project", project, "roles/aiplatform.user", ws),
    ]


def network_specs(config: BootstrapConfig) -> List[ResourceSpec]:
    return [
        ResourceSpec(
            kind=ResourceKind.NETWORK,
            name=config.network_name,
            params={
                "subnet-mode": "auto",
                "mtu": 1460,
                "bgp-routing-mode": "regional",
            },
        ),
        ResourceSpec(
            kind=ResourceKind.FIREWALL_RULE,
            name=IAP_FIREWALL_RULE,
            params={
                "direction": "INGRESS",
                "priority": 1000,
                "network": config.network_name,
                "action": "ALLOW",
                "rules": "tcp:22",
                "source-ranges": IAP_SOURCE_RANGE,
            },
        ),
        ResourceSpec(
            kind=ResourceKind.ROUTER,
            name=config.router_name,
            location=config.region,
            params={"network": config.network_name},
        ),
        ResourceSpec(
            kind=ResourceKind.NAT,
            name=config.nat_name,
            location=config.region,
            params={
                "router": config.router_name,
                "auto-allocate-nat-external-ips": True,
                "nat-all-subnet-ip-ranges": True,
            },
        ),
    ]


def image_specs(config: BootstrapConfig) -> List[ResourceSpec]:
    return [
        ResourceSpec(
            kind=ResourceKind.IMAGE,
            name=config.image_path,
            location=config.region,
            params={
                "source": str(config.build_context),
                "service-account": naming.service_account_resource(
                    config.build_sa_name, config.project_id,
                ),
                "gcs-source-staging-dir": f"{naming.bucket_url(config.source_bucket)}/source",
                "gcs-log-dir": f"{naming.bucket_url(config.logs_bucket)}/logs",
                "rebuild": config.rebuild_image,
            },
        ),
    ]


def workstation_specs(config: BootstrapConfig) -> List[ResourceSpec]:
    return [
        ResourceSpec(
            kind=ResourceKind.WORKSTATION_CLUSTER,
            name=config.cluster_name,
            location=config.region,
            params={
                "network": naming.network_path(config.project_id, config.network_name),
                "subnetwork": naming.subnetwork_path(
                    config.project_id, config.region, config.network_name,
                ),
            },
        ),
        ResourceSpec(
            kind=ResourceKind.WORKSTATION_CONFIG,
            name=config.workstation_config_name,
            location=config.region,
            params={
                "cluster": config.cluster_name,
                "machine-type": config.machine_type,
                "pool-size": config.pool_size,
                "shielded-secure-boot": True,
                "shielded-vtpm": True,
                "shielded-integrity-monitoring": True,
                "container-custom-image": config.image_path,
                "service-account": config.workstation_sa_email,
                "service-account-scopes": CLOUD_PLATFORM_SCOPE,
                "disable-public-ip-addresses": True,
            },
        ),
        ResourceSpec(
            kind=ResourceKind.WORKSTATION,
            name=config.workstation_name,
            location=config.region,
            params={
                "config": config.workstation_config_name,
                "cluster": config.cluster_name,
            },
        ),
    ]


def build_plan(config: BootstrapConfig) -> List[ResourceSpec]:
    """Every resource the bootstrap ensures, in the order it must run.

    Args:
        config: Validated bootstrap configuration.

    Returns:
        list[ResourceSpec]: Specs in dependency order.
    """
    return [
        *api_specs(config),
        *service_account_specs(config),
        *bucket_specs(config),
        *repository_specs(config),
        *iam_binding_specs(config),
        *network_specs(config),
        *image_specs(config),
        *workstation_specs(config),
    ]
