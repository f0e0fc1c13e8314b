"""
Reconciler: create-if-absent, one resource at a time, fail fast.

For each declared ResourceSpec: ask the control plane whether it exists;
if it does, log and move on; if not, create it with exactly the declared
parameters. Existing resources are never diffed or updated.

The first describe/create failure that is not a clean "not found" stops
the run. Nothing already created is rolled back; re-running picks up
where the failed run stopped.

Usage:
    from wsbootstrap.reconciler import Reconciler
    reports = Reconciler(GcloudClient("my-project")).run(build_plan(config))
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .errors import RemoteCallFailed
from .gcloud import GcloudClient
from .kinds import handler_for
from .models import ReconciliationResult, ResourceKind, ResourceSpec, StepReport

logger = logging.getLogger("wsbootstrap.reconciler")

# Banner logged when the run enters a new phase.
PHASES = {
    ResourceKind.API: "Enabling required APIs",
    ResourceKind.SERVICE_ACCOUNT: "Ensuring service accounts exist",
    ResourceKind.BUCKET: "Ensuring Cloud Storage buckets exist",
    ResourceKind.REPOSITORY: "Ensuring Artifact Registry exists",
    ResourceKind.IAM_BINDING: "Applying IAM policies",
    ResourceKind.NETWORK: "Ensuring networking resources exist",
    ResourceKind.FIREWALL_RULE: "Ensuring networking resources exist",
    ResourceKind.ROUTER: "Ensuring networking resources exist",
    ResourceKind.NAT: "Ensuring networking resources exist",
    ResourceKind.IMAGE: "Building container image",
    ResourceKind.WORKSTATION_CLUSTER: "Ensuring workstation resources exist",
    ResourceKind.WORKSTATION_CONFIG: "Ensuring workstation resources exist",
    ResourceKind.WORKSTATION: "Ensuring workstation resources exist",
}


class Reconciler:
    """Drives resource specs against the control plane.

    Args:
        client: gcloud collaborator bound to the target project.
    """

    def __init__(self, client: GcloudClient) -> None:
        self._client = client

    def ensure(self, spec: ResourceSpec) -> ReconciliationResult:
        """Make sure one resource exists.

        Args:
            spec: Fully-specified resource declaration.

        Returns:
            ReconciliationResult: CREATED or ALREADY_EXISTS.

        Raises:
            RemoteCallFailed: If the existence check or the create fails
                for any reason other than "not found".
        """
        handler = handler_for(spec.kind)
        try:
            if handler.exists(self._client, spec):
                logger.info("%s already exists.", spec.describe())
                return ReconciliationResult.ALREADY_EXISTS

            logger.info("Creating %s", spec.describe())
            handler.create(self._client, spec)
        except RemoteCallFailed as exc:
            raise exc.attach(spec)

        logger.info("Created %s", spec.describe())
        return ReconciliationResult.CREATED

    def run(self, specs: Iterable[ResourceSpec]) -> List[StepReport]:
        """Ensure every spec in order, stopping at the first failure.

        Args:
            specs: Resource declarations in dependency order.

        Returns:
            list[StepReport]: One report per spec.

        Raises:
            RemoteCallFailed: On the first failure. ``exc.reports`` holds
                the reports gathered so far, ending with the FAILED one.
        """
        reports: List[StepReport] = []
        phase: Optional[str] = None

        for spec in specs:
            banner = PHASES.get(spec.kind)
            if banner and banner != phase:
                logger.info("--- %s ---", banner)
                phase = banner

            try:
                result = self.ensure(spec)
            except RemoteCallFailed as exc:
                reports.append(StepReport(
                    spec=spec,
                    result=ReconciliationResult.FAILED,
                    detail=str(exc),
                ))
                exc.reports = reports
                logger.error("Aborting: %s", exc)
                raise

            reports.append(StepReport(spec=spec, result=result))

        return reports
