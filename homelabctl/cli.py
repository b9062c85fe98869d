import logging
import sys
from typing import List, Optional

import typer

from homelabctl.commands import bootstrap, init_config, install
from homelabctl.errors import UnknownArgument
from homelabctl.logging import setup_logging

# Exit code typer uses for usage errors (unknown option or command, missing value)
USAGE_EXIT_CODE = 2

app = typer.Typer(help="Bootstrap a single-node K3s homelab and deploy its charts.")

debug_mode = False

app.command("bootstrap")(bootstrap.bootstrap_cmd)
app.command("install")(install.install_cmd)
app.command("init-config")(init_config.init_config_cmd)


# Global options callback
@app.callback()
def callback(
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
    log_file: Optional[str] = typer.Option(
        None, "--log-file", envvar="HOMELAB_LOG_FILE", help="Also log to this rotating file"
    ),
):
    """homelabctl - idempotent homelab bootstrap."""
    global debug_mode
    debug_mode = debug
    setup_logging(debug, log_file)
    if debug:
        logging.debug("Debug mode enabled")


def main(argv: Optional[List[str]] = None) -> int:
    """Console entry point: exit 0 on success, 1 on any failure.

    typer reports usage errors itself and exits with 2; that is mapped to
    UnknownArgument and exit code 1.
    """
    try:
        app(args=argv, prog_name="homelabctl")
    except SystemExit as e:
        code = 0 if e.code is None else e.code
        if code == USAGE_EXIT_CODE:
            error = UnknownArgument("Invalid command line", remediation="Run homelabctl --help for usage")
            typer.echo(f"❌ ERROR: {error}", err=True)
            typer.echo(f"👉 {error.remediation}", err=True)
            return 1
        return code if isinstance(code, int) else 1
    except Exception as e:
        if debug_mode:
            logging.error(f"Unhandled exception: {e}", exc_info=True)
        else:
            logging.error(f"Error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
