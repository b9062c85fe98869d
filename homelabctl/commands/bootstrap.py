import logging
from pathlib import Path

import typer

from ..config import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_REPO_BRANCH,
    DEFAULT_REPO_DIR,
    DEFAULT_REPO_URL,
    load_config,
)
from ..errors import HomelabError, PrivilegeRequired
from ..modules.pipeline import build_bootstrap_steps
from ..modules.probe import EnvironmentProbe
from ..modules.reset import ResetController, ResetMode
from .install import build_context, execute, print_next_steps, report_error, show_releases

logger = logging.getLogger("homelabctl.bootstrap")


def bootstrap_cmd(
    reset: bool = typer.Option(False, "--reset", help="Soft reset: uninstall K3s and remove K3s data dirs"),
    hard_reset: bool = typer.Option(
        False, "--hard-reset", help="Hard reset: like --reset + remove repo and config"
    ),
    force: bool = typer.Option(
        False, "--force", "-f", envvar="K3S_FORCE_RESET",
        help="Reset without prompting (required when not attached to a terminal)",
    ),
    repo_branch: str = typer.Option(DEFAULT_REPO_BRANCH, "--repo-branch", envvar="REPO_BRANCH", help="Git branch to use"),
    repo_url: str = typer.Option(DEFAULT_REPO_URL, "--repo-url", envvar="REPO_URL", help="Git repository URL"),
    repo_dir: Path = typer.Option(DEFAULT_REPO_DIR, "--repo-dir", envvar="REPO_DIR", help="Local clone path"),
    config_file: Path = typer.Option(
        DEFAULT_CONFIG_FILE, "--config-file", envvar="CONFIG_FILE", help="Config file path"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be done without making changes"),
):
    """
    Prepare this host, install K3s and deploy the homelab charts.

    With --reset or --hard-reset the host is torn down instead and nothing
    is installed.
    """
    probe = EnvironmentProbe()
    try:
        if not dry_run and not probe.is_root():
            raise PrivilegeRequired(
                "This command must be run as root",
                remediation="Re-run with sudo",
            )

        if reset or hard_reset:
            mode = ResetMode.HARD if hard_reset else ResetMode.SOFT
            controller = ResetController(
                repo_dir=repo_dir,
                config_file=config_file,
                force=force,
                interactive=probe.is_interactive(),
            )
            controller.run(mode)
            typer.echo(f"✅ Reset ({mode.value}) completed.")
            return

        typer.echo("🏠 Homelab bootstrap - this will prepare the system, install K3s and then deploy manifests.")
        typer.echo(f"Repository branch: {repo_branch}")
        typer.echo(f"Repository URL:    {repo_url}")
        typer.echo(f"Repository dir:    {repo_dir}")
        typer.echo(f"Config file:       {config_file}\n")

        config = load_config(config_file, repo_dir)
        ctx = build_context(
            config, repo_dir, probe,
            repo_url=repo_url,
            repo_branch=repo_branch,
            force=force,
        )
    except HomelabError as e:
        report_error(e)
        raise typer.Exit(code=1)

    execute(build_bootstrap_steps(ctx), dry_run, ctx)
    if not dry_run:
        show_releases(ctx)
        print_next_steps(config)
        typer.echo("\n✅ Bootstrap process completed.")
