"""
wsbootstrap CLI: one command, no subcommands.

Reads the config file (``./gcp`` or ``$WSBOOTSTRAP_CONFIG``), checks
for gcloud, then ensures every resource of the workstation environment
in order. Exit code 0 on full success, 1 on any validation or step
failure.

Entry point: wsbootstrap.cli:main
"""

from __future__ import annotations

import logging

import click

from .. import __version__
from ..config import load_config
from ..errors import BootstrapError, ConfigInvalid, ConfigMissing, RemoteCallFailed
from ..gcloud import GcloudClient
from ..plan import build_plan
from ..preflight import require_gcloud
from ..reconciler import Reconciler
from ._common import console, err_console, setup_logging, summary_table

logger = logging.getLogger("wsbootstrap.cli")


@click.command()
@click.version_option(version=__version__, prog_name="wsbootstrap")
def main():
    """Provision a cloud development workstation environment.

    \b
    Enables APIs, creates service accounts, buckets, an Artifact
    Registry repo, IAM bindings, VPC/firewall/router/NAT, builds the
    workstation image, then creates the workstation cluster, config
    and instance. Safe to re-run: existing resources are skipped.

    \b
    Configuration comes from ./gcp (override with WSBOOTSTRAP_CONFIG):
        PROJECT_ID="your-gcp-project-id"
    """
    try:
        config = load_config()
    except (ConfigMissing, ConfigInvalid) as exc:
        err_console.print(f"[bold red]Error:[/] {exc}")
        raise SystemExit(1)

    setup_logging(config.log_level)

    try:
        gcloud = require_gcloud()
        logger.debug("Using %s", gcloud.version or "gcloud (version unknown)")
        client = GcloudClient(config.project_id, create_timeout=config.gcloud_timeout)
        reports = Reconciler(client).run(build_plan(config))
    except RemoteCallFailed as exc:
        if exc.reports:
            err_console.print(summary_table(exc.reports))
        err_console.print(f"\n[bold red]Failed:[/] {exc}")
        raise SystemExit(1)
    except BootstrapError as exc:
        err_console.print(f"[bold red]Error:[/] {exc}")
        raise SystemExit(1)

    console.print()
    console.print(summary_table(reports))
    console.print(f"\n  Image: [cyan]{config.image_path}[/]")
    console.print("[bold green]--- Script finished successfully! ---[/]")
