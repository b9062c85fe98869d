from pathlib import Path

import typer

from ..config import DEFAULT_CONFIG_FILE, DEFAULT_REPO_DIR, write_config_template


def init_config_cmd(
    config_file: Path = typer.Option(
        DEFAULT_CONFIG_FILE, "--config-file", envvar="CONFIG_FILE", help="Where to write the template"
    ),
    repo_dir: Path = typer.Option(
        DEFAULT_REPO_DIR, "--repo-dir", envvar="REPO_DIR", help="Clone holding example.config.env"
    ),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace an existing config file"),
):
    """Write a configuration template and stop so it can be edited."""
    try:
        path = write_config_template(config_file, repo_dir, overwrite=overwrite)
    except FileExistsError as e:
        typer.echo(f"❌ {e}", err=True)
        typer.echo("👉 Edit it directly, or pass --overwrite to start from the template", err=True)
        raise typer.Exit(code=1)
    except OSError as e:
        typer.echo(f"❌ Could not write {config_file}: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"📄 Config template written to {path}")
    typer.echo("Edit it (at least GITEA_URL) and run homelabctl bootstrap again.")
