import logging
from pathlib import Path
from typing import List, Optional

import typer

from ..config import DEFAULT_CONFIG_FILE, DEFAULT_REPO_DIR, load_config
from ..errors import HomelabError
from ..modules.helm import HelmClient
from ..modules.host import HostActions
from ..modules.kube import KubeClient
from ..modules.pipeline import RunContext, build_install_steps
from ..modules.probe import EnvironmentProbe
from ..modules.steps import ReconciliationStep, RunMode, RunReport, StepExecutor, StepStatus

logger = logging.getLogger("homelabctl.install")

STATUS_ICONS = {
    StepStatus.SKIPPED: "⏭️ ",
    StepStatus.APPLIED: "✅",
    StepStatus.PLANNED: "📝",
    StepStatus.FAILED: "❌",
}


def report_error(error: HomelabError) -> None:
    typer.echo(f"❌ {error}", err=True)
    if error.remediation:
        typer.echo(f"👉 {error.remediation}", err=True)


def build_context(config, repo_dir: Path, probe: EnvironmentProbe, **kwargs) -> RunContext:
    """Wire real collaborators for a run."""
    return RunContext(
        config=config,
        repo_dir=Path(repo_dir),
        probe=probe,
        kube=KubeClient(config.kubeconfig),
        helm=HelmClient(config.kubeconfig),
        host=HostActions(probe),
        **kwargs,
    )


def print_summary(report: RunReport, ctx: Optional[RunContext] = None) -> None:
    typer.echo("\n--- Step Summary ---")
    for step in report:
        detail = f" - {step.detail}" if step.detail else ""
        typer.echo(f"{STATUS_ICONS[step.status]} {step.name}: {step.status.value}{detail}")
    if ctx and ctx.issuer_warnings:
        typer.echo("\nWarnings:")
        for warning in ctx.issuer_warnings:
            typer.echo(f"⚠️  {warning}")
    typer.echo("--------------------\n")


def execute(steps: List[ReconciliationStep], dry_run: bool, ctx: Optional[RunContext] = None) -> RunReport:
    """Run steps, print the summary and exit 1 on failure."""
    mode = RunMode.DRY_RUN if dry_run else RunMode.APPLY
    report = StepExecutor().run(steps, mode)
    print_summary(report, ctx)
    if not report.ok:
        failed = report.failed
        if isinstance(report.error, HomelabError):
            report_error(report.error)
        typer.echo(f"❌ Step '{failed.name}' failed; later steps were not run.", err=True)
        raise typer.Exit(code=1)
    return report


def show_releases(ctx: RunContext) -> None:
    namespace = ctx.config.gitea_namespace
    try:
        releases = ctx.helm.list_releases(namespace)
    except HomelabError as e:
        logger.warning(f"⚠️  {e}")
        return
    typer.echo(f"Helm releases in {namespace}:")
    for entry in releases:
        typer.echo(f"  {entry.get('name')}  rev {entry.get('revision')}  {entry.get('status')}  {entry.get('chart')}")


def print_next_steps(config) -> None:
    typer.echo("== Homelab installation complete ==")
    typer.echo("Check Gitea pods with:")
    typer.echo(f"  kubectl get pods -n {config.gitea_namespace} --kubeconfig {config.kubeconfig}")
    typer.echo("Ingress should expose:")
    typer.echo(f"  https://{config.gitea_url}")


def install_cmd(
    repo_dir: Path = typer.Option(
        DEFAULT_REPO_DIR, "--repo-dir", envvar="REPO_DIR", help="Local clone holding charts/ and manifests/"
    ),
    config_file: Path = typer.Option(
        DEFAULT_CONFIG_FILE, "--config-file", envvar="CONFIG_FILE", help="Host configuration file"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be done without making changes"),
):
    """Deploy the Helm charts, issuer and manifests onto the running K3s cluster."""
    typer.echo("🚀 Deploying charts and manifests into your K3s cluster")
    try:
        config = load_config(config_file, repo_dir)
        ctx = build_context(config, repo_dir, EnvironmentProbe())
    except HomelabError as e:
        report_error(e)
        raise typer.Exit(code=1)

    execute(build_install_steps(ctx), dry_run, ctx)
    if not dry_run:
        show_releases(ctx)
        print_next_steps(config)
