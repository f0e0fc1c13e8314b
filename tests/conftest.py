"""Shared test fixtures for wsbootstrap."""

from __future__ import annotations

import json
import subprocess
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Tuple

import pytest

MUTATING_VERBS = {"create", "enable", "add-iam-policy-binding", "submit"}
VERBS = MUTATING_VERBS | {"describe", "list", "get-iam-policy"}

NOT_FOUND = "ERROR: (gcloud) NOT_FOUND: Requested entity was not found."


class FakeGcloud:
    """In-memory stand-in for the gcloud binary.

    Patched over ``wsbootstrap.gcloud._run``. Keeps a set of existing
    resources keyed by (command group, name) and IAM policies keyed by
    (command group, target), and records every call with ``--project``
    and ``--quiet`` stripped.
    """

    def __init__(self, project: str = "demo") -> None:
        self.project = project
        self.existing: Set[Tuple[Tuple[str, ...], str]] = set()
        self.policies: Dict[Tuple[Tuple[str, ...], str], Set[Tuple[str, str]]] = {}
        self.calls: List[List[str]] = []
        self.timeouts: List[Optional[float]] = []
        self._failures: List[Tuple[Callable[[List[str]], bool], str]] = []

    # -- test helpers ------------------------------------------------------

    def fail_when(
        self,
        predicate: Callable[[List[str]], bool],
        stderr: str = "ERROR: (gcloud) PERMISSION_DENIED: caller does not have permission",
    ) -> None:
        """Make every call matching ``predicate`` exit 1 with ``stderr``."""
        self._failures.append((predicate, stderr))

    @property
    def mutations(self) -> List[List[str]]:
        """Calls that change remote state, in order."""
        return [c for c in self.calls if _verb(c) in MUTATING_VERBS]

    def index_of(self, *prefix: str) -> int:
        """Position in ``mutations`` of the first call starting with ``prefix``."""
        for i, call in enumerate(self.mutations):
            if tuple(call[: len(prefix)]) == prefix:
                return i
        raise AssertionError(f"no mutating call starting with {prefix}")

    # -- subprocess replacement --------------------------------------------

    def __call__(self, cmd: List[str], timeout=None) -> subprocess.CompletedProcess:
        assert cmd[0] == "gcloud"
        assert f"--project={self.project}" in cmd
        args = [a for a in cmd[1:] if not a.startswith("--project=") and a != "--quiet"]
        self.calls.append(args)
        self.timeouts.append(timeout)

        for predicate, stderr in self._failures:
            if predicate(args):
                return _done(cmd, 1, stderr=stderr)

        verb = _verb(args)
        idx = args.index(verb)
        group = tuple(args[:idx])
        target = args[idx + 1] if len(args) > idx + 1 and not args[idx + 1].startswith("--") else ""
        flags = dict(a[2:].split("=", 1) for a in args if a.startswith("--") and "=" in a)

        if verb == "list":
            name = flags["filter"].split("=", 1)[1]
            found = (("services",), name) in self.existing
            return _done(cmd, 0, stdout=f"{name}\n" if found else "")

        if verb == "enable":
            self.existing.add((("services",), target))
            return _done(cmd, 0)

        if verb == "submit":
            self.existing.add((("artifacts", "docker", "images"), flags["tag"]))
            return _done(cmd, 0)

        if verb == "get-iam-policy":
            granted = self.policies.get((group, target), set())
            by_role: Dict[str, List[str]] = {}
            for role, member in sorted(granted):
                by_role.setdefault(role, []).append(member)
            policy = {
                "bindings": [{"role": r, "members": m} for r, m in by_role.items()],
                "etag": "BwX=",
            }
            return _done(cmd, 0, stdout=json.dumps(policy))

        if verb == "add-iam-policy-binding":
            self.policies.setdefault((group, target), set()).add((flags["role"], flags["member"]))
            return _done(cmd, 0)

        if verb == "describe":
            if (group, target) in self.existing:
                return _done(cmd, 0, stdout=f"name: {target}\n")
            return _done(cmd, 1, stderr=NOT_FOUND)

        # create
        if group == ("iam", "service-accounts"):
            # Reason: created by account id, described by email.
            target = f"{target}@{self.project}.iam.gserviceaccount.com"
        if (group, target) in self.existing:
            return _done(cmd, 1, stderr="ERROR: (gcloud) ALREADY_EXISTS")
        self.existing.add((group, target))
        return _done(cmd, 0)


def _verb(args: List[str]) -> str:
    for arg in args:
        if arg in VERBS:
            return arg
    raise AssertionError(f"unrecognised gcloud call: {args}")


def _done(cmd: List[str], code: int, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(cmd, code, stdout=stdout, stderr=stderr)


@pytest.fixture
def fake_gcloud(monkeypatch: pytest.MonkeyPatch) -> FakeGcloud:
    """Replace the gcloud subprocess runner with an in-memory fake."""
    fake = FakeGcloud()
    monkeypatch.setattr("wsbootstrap.gcloud._run", fake)
    return fake


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """A minimal shell-style config file for project 'demo'."""
    path = tmp_path / "gcp"
    path.write_text('PROJECT_ID="demo"\n')
    return path


@pytest.fixture
def demo_config(config_file: Path):
    """Loaded configuration for project 'demo' with all defaults."""
    from wsbootstrap.config import load_config

    return load_config(config_file)
