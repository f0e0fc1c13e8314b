"""Tests for the reconciler, driven against an in-memory gcloud."""

from __future__ import annotations

import logging

import pytest

from wsbootstrap.config import BootstrapConfig
from wsbootstrap.errors import RemoteCallFailed
from wsbootstrap.gcloud import GcloudClient
from wsbootstrap.models import ReconciliationResult, ResourceKind, ResourceSpec
from wsbootstrap.plan import build_plan
from wsbootstrap.reconciler import Reconciler

IMAGE = "europe-north1-docker.pkg.dev/demo/workstation-image/workstation-image:latest"


@pytest.fixture
def reconciler() -> Reconciler:
    return Reconciler(GcloudClient("demo"))


def _network() -> ResourceSpec:
    return ResourceSpec(kind=ResourceKind.NETWORK, name="ws-net-europe-north1")


class TestEnsure:
    """Tests for ensuring a single resource."""

    def test_creates_when_absent(self, fake_gcloud, reconciler: Reconciler):
        assert reconciler.ensure(_network()) == ReconciliationResult.CREATED
        assert fake_gcloud.mutations == [["compute", "networks", "create", "ws-net-europe-north1"]]

    def test_skips_when_present(self, fake_gcloud, reconciler: Reconciler, caplog):
        fake_gcloud.existing.add((("compute", "networks"), "ws-net-europe-north1"))
        with caplog.at_level(logging.INFO, logger="wsbootstrap"):
            assert reconciler.ensure(_network()) == ReconciliationResult.ALREADY_EXISTS
        assert fake_gcloud.mutations == []
        assert "Network 'ws-net-europe-north1' already exists." in caplog.text

    def test_second_ensure_is_noop(self, fake_gcloud, reconciler: Reconciler):
        reconciler.ensure(_network())
        assert reconciler.ensure(_network()) == ReconciliationResult.ALREADY_EXISTS
        assert len(fake_gcloud.mutations) == 1

    def test_failure_names_the_resource(self, fake_gcloud, reconciler: Reconciler):
        fake_gcloud.fail_when(lambda args: args[:3] == ["compute", "networks", "describe"])
        with pytest.raises(RemoteCallFailed) as info:
            reconciler.ensure(_network())
        assert info.value.spec == _network()
        assert str(info.value).startswith("Network 'ws-net-europe-north1': ")
        assert "PERMISSION_DENIED" in str(info.value)


class TestRun:
    """End-to-end runs of the full plan."""

    def test_fresh_project(self, fake_gcloud, reconciler: Reconciler, demo_config: BootstrapConfig):
        """Everything is created, in dependency order."""
        plan = build_plan(demo_config)
        reports = reconciler.run(plan)

        assert [r.spec for r in reports] == plan
        assert all(r.result == ReconciliationResult.CREATED for r in reports)

        fake = fake_gcloud
        assert fake.index_of("compute", "networks", "create") < fake.index_of("compute", "routers", "create")
        assert fake.index_of("compute", "routers", "create") < fake.index_of("compute", "routers", "nats", "create")
        assert fake.index_of("builds", "submit") < fake.index_of("workstations", "configs", "create")
        assert fake.index_of("workstations", "clusters", "create") < fake.index_of("workstations", "configs", "create")
        assert fake.index_of("workstations", "configs", "create") < fake.index_of("workstations", "create")
        assert fake.index_of("iam", "service-accounts", "create") < fake.index_of("projects", "add-iam-policy-binding")

    def test_demo_resources(self, fake_gcloud, reconciler: Reconciler, demo_config: BootstrapConfig):
        reconciler.run(build_plan(demo_config))
        mutations = fake_gcloud.mutations

        assert ["compute", "networks", "create", "ws-net-europe-north1",
                "--subnet-mode=auto", "--mtu=1460", "--bgp-routing-mode=regional"] in mutations
        assert any(
            c[:4] == ["compute", "routers", "create", "ws-router-europe-north1"] for c in mutations
        )
        assert any(
            c[:5] == ["compute", "routers", "nats", "create", "ws-nat-europe-north1"] for c in mutations
        )
        submit = next(c for c in mutations if c[:2] == ["builds", "submit"])
        assert f"--tag={IMAGE}" in submit
        assert "--region=europe-north1" in submit
        assert any(c[:4] == ["workstations", "clusters", "create", "cluster"] for c in mutations)
        assert any(c[:4] == ["workstations", "configs", "create", "base-config"] for c in mutations)
        assert any(c[:3] == ["workstations", "create", "my-workstation"] for c in mutations)

    def test_each_binding_applied_once(self, fake_gcloud, reconciler: Reconciler, demo_config: BootstrapConfig):
        reconciler.run(build_plan(demo_config))
        reconciler.run(build_plan(demo_config))
        bindings = [c for c in fake_gcloud.mutations if "add-iam-policy-binding" in c]
        assert len(bindings) == 7
        assert len({tuple(c) for c in bindings}) == 7

    def test_rerun_is_idempotent(self, fake_gcloud, reconciler: Reconciler, demo_config: BootstrapConfig):
        """A second run creates nothing and reports every resource as existing."""
        reconciler.run(build_plan(demo_config))
        before = len(fake_gcloud.mutations)

        reports = reconciler.run(build_plan(demo_config))

        assert len(fake_gcloud.mutations) == before
        assert all(r.result == ReconciliationResult.ALREADY_EXISTS for r in reports)

    def test_partial_state(self, fake_gcloud, reconciler: Reconciler, demo_config: BootstrapConfig):
        """Pre-existing resources are left alone; the rest are created."""
        fake_gcloud.existing.add((("compute", "networks"), "ws-net-europe-north1"))
        fake_gcloud.existing.add((("services",), "compute.googleapis.com"))

        reports = reconciler.run(build_plan(demo_config))

        by_name = {r.spec.name: r.result for r in reports}
        assert by_name["ws-net-europe-north1"] == ReconciliationResult.ALREADY_EXISTS
        assert by_name["compute.googleapis.com"] == ReconciliationResult.ALREADY_EXISTS
        assert by_name["ws-router-europe-north1"] == ReconciliationResult.CREATED
        assert not any(c[:3] == ["compute", "networks", "create"] for c in fake_gcloud.mutations)

    def test_rebuild_image_always_submits(self, fake_gcloud, reconciler: Reconciler):
        config = BootstrapConfig(project_id="demo", rebuild_image=True)
        reconciler.run(build_plan(config))
        reports = reconciler.run(build_plan(config))

        submits = [c for c in fake_gcloud.mutations if c[:2] == ["builds", "submit"]]
        assert len(submits) == 2
        image = next(r for r in reports if r.spec.kind == ResourceKind.IMAGE)
        assert image.result == ReconciliationResult.CREATED

    def test_phase_banners(self, fake_gcloud, reconciler: Reconciler, demo_config: BootstrapConfig, caplog):
        with caplog.at_level(logging.INFO, logger="wsbootstrap"):
            reconciler.run(build_plan(demo_config))
        assert caplog.text.count("--- Ensuring networking resources exist ---") == 1
        assert "--- Building container image ---" in caplog.text


class TestFailFast:
    """The first unexpected failure aborts the run."""

    def test_describe_failure_stops_run(self, fake_gcloud, reconciler: Reconciler, demo_config: BootstrapConfig):
        fake_gcloud.fail_when(lambda args: args[:3] == ["compute", "networks", "describe"])

        with pytest.raises(RemoteCallFailed) as info:
            reconciler.run(build_plan(demo_config))

        reports = info.value.reports
        assert reports[-1].result == ReconciliationResult.FAILED
        assert reports[-1].spec.kind == ResourceKind.NETWORK
        assert "PERMISSION_DENIED" in reports[-1].detail
        assert all(r.result == ReconciliationResult.CREATED for r in reports[:-1])

        later = [c for c in fake_gcloud.calls if c[0] in ("builds", "workstations")]
        assert later == []
        assert not any(c[:2] == ["compute", "routers"] for c in fake_gcloud.calls)

    def test_create_failure_stops_run(self, fake_gcloud, reconciler: Reconciler, demo_config: BootstrapConfig):
        fake_gcloud.fail_when(
            lambda args: args[:3] == ["workstations", "clusters", "create"],
            stderr="ERROR: (gcloud.workstations.clusters.create) RESOURCE_EXHAUSTED: quota",
        )

        with pytest.raises(RemoteCallFailed, match="RESOURCE_EXHAUSTED"):
            reconciler.run(build_plan(demo_config))

        assert not any(c[:2] == ["workstations", "configs"] for c in fake_gcloud.calls)

    def test_resume_after_failure(self, fake_gcloud, reconciler: Reconciler, demo_config: BootstrapConfig):
        """Re-running after a fix finishes the job without recreating anything."""
        fake_gcloud.fail_when(lambda args: args[:2] == ["builds", "submit"])
        with pytest.raises(RemoteCallFailed):
            reconciler.run(build_plan(demo_config))
        created_before = len(fake_gcloud.mutations)

        fake_gcloud._failures.clear()
        reports = reconciler.run(build_plan(demo_config))

        created = [r for r in reports if r.result == ReconciliationResult.CREATED]
        assert [r.spec.kind for r in created] == [
            ResourceKind.IMAGE,
            ResourceKind.WORKSTATION_CLUSTER,
            ResourceKind.WORKSTATION_CONFIG,
            ResourceKind.WORKSTATION,
        ]
        # the failed submit is recorded as a call but created nothing
        assert len(fake_gcloud.mutations) == created_before + 4
