"""Derived resource names.

Pure functions of the declared identifiers and the project id. Nothing
here touches the network or the config file.
"""

from __future__ import annotations


def service_account_email(name: str, project_id: str) -> str:
    """Email of a project-scoped service account.

    Args:
        name: Account id (e.g. 'workstation-sa').
        project_id: Owning project.

    Returns:
        str: e.g. 'workstation-sa@demo.iam.gserviceaccount.com'.
    """
    return f"{name}@{project_id}.iam.gserviceaccount.com"


def service_account_resource(name: str, project_id: str) -> str:
    """Fully-qualified service account path accepted by Cloud Build."""
    return f"projects/{project_id}/serviceAccounts/{service_account_email(name, project_id)}"


def source_bucket_name(project_id: str) -> str:
    """Bucket that stages Cloud Build source uploads."""
    return f"{project_id}-cloudbuild-sources"


def logs_bucket_name(project_id: str) -> str:
    """Bucket that receives Cloud Build logs."""
    return f"{project_id}-cloudbuild-logs"


def bucket_url(bucket: str) -> str:
    return f"gs://{bucket}"


def network_name(region: str) -> str:
    return f"ws-net-{region}"


def router_name(region: str) -> str:
    return f"ws-router-{region}"


def nat_name(region: str) -> str:
    return f"ws-nat-{region}"


def network_path(project_id: str, network: str) -> str:
    return f"projects/{project_id}/global/networks/{network}"


def subnetwork_path(project_id: str, region: str, network: str) -> str:
    """Auto-mode networks create one subnetwork per region named after the network."""
    return f"projects/{project_id}/regions/{region}/subnetworks/{network}"


def image_path(region: str, project_id: str, repo: str, image: str, tag: str) -> str:
    """Artifact Registry path of the workstation image.

    Args:
        region: Registry region (e.g. 'europe-north1').
        project_id: Owning project.
        repo: Docker repository name.
        image: Image name inside the repository.
        tag: Image tag.

    Returns:
        str: e.g. 'europe-north1-docker.pkg.dev/demo/workstation-image/workstation-image:latest'.
    """
    return f"{region}-docker.pkg.dev/{project_id}/{repo}/{image}:{tag}"
