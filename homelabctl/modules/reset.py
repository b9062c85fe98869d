"""K3s reset and cleanup."""
import logging
import os
import shutil
import subprocess
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import typer

from ..errors import ResetRefused
from .utils import run_command

logger = logging.getLogger("homelabctl.reset")

K3S_UNINSTALL_SCRIPT = Path("/usr/local/bin/k3s-uninstall.sh")
K3S_DATA_DIRS = (Path("/var/lib/rancher/k3s"), Path("/etc/rancher/k3s"))


class ResetMode(str, Enum):
    SOFT = 'soft'
    HARD = 'hard'


def _typer_prompt(question: str) -> bool:
    return typer.confirm(question, default=False)


def confirm_destructive(
    question: str,
    force: bool,
    interactive: bool,
    prompt: Callable[[str], bool] = _typer_prompt,
    force_hint: str = "--force",
) -> None:
    """Confirmation policy for destructive actions.

    - force set: proceed without prompting
    - attached to a terminal: require an explicit yes
    - otherwise (e.g. curl | bash): refuse

    Raises:
        ResetRefused: If the action is not confirmed
    """
    if force:
        logger.warning("⚠️  Force flag set, proceeding without confirmation")
        return
    if not interactive:
        raise ResetRefused(
            "Non-interactive environment detected; refusing destructive action without confirmation",
            remediation=f"Run again with {force_hint} to proceed non-interactively",
        )
    if not prompt(question):
        raise ResetRefused("Operator declined; nothing was changed")


def uninstall_k3s(
    runner: Callable[..., subprocess.CompletedProcess] = run_command,
    script: Path = K3S_UNINSTALL_SCRIPT,
    required: bool = False,
) -> bool:
    """Run the K3s uninstall script if it is present.

    Returns:
        True if the script ran successfully
    """
    if not (script.is_file() and os.access(script, os.X_OK)):
        if required:
            raise ResetRefused(f"{script} not found; cannot uninstall the existing K3s installation")
        logger.info(f"ℹ️  {script} not found, skipping script-based uninstall")
        return False
    logger.info(f"🧹 Running {script}")
    result = runner([str(script)], check=False)
    if result.returncode != 0:
        logger.warning(f"⚠️  {script} exited with {result.returncode}, continuing cleanup")
        return False
    return True


class ResetController:
    """Tears down installed state.

    Soft removes K3s and its data directories. Hard additionally removes the
    repository clone and the configuration file.
    """

    def __init__(
        self,
        repo_dir: Path,
        config_file: Path,
        force: bool = False,
        interactive: bool = False,
        prompt: Callable[[str], bool] = _typer_prompt,
        runner: Callable[..., subprocess.CompletedProcess] = run_command,
        uninstall_script: Path = K3S_UNINSTALL_SCRIPT,
        data_dirs: Sequence[Path] = K3S_DATA_DIRS,
    ):
        self.repo_dir = Path(repo_dir)
        self.config_file = Path(config_file)
        self.force = force
        self.interactive = interactive
        self.prompt = prompt
        self.runner = runner
        self.uninstall_script = Path(uninstall_script)
        self.data_dirs = [Path(d) for d in data_dirs]

    def targets(self, mode: ResetMode) -> List[Path]:
        paths = list(self.data_dirs)
        if mode == ResetMode.HARD:
            paths += [self.repo_dir, self.config_file]
        return paths

    def describe(self, mode: ResetMode) -> str:
        lines = [f"Reset ({mode.value}) will:", "  - Stop and uninstall K3s"]
        lines += [f"  - Delete {p}" for p in self.targets(mode)]
        return "\n".join(lines)

    def run(self, mode: ResetMode) -> List[Path]:
        """Confirm, then perform the reset.

        Returns:
            Paths that were removed

        Raises:
            ResetRefused: If confirmation is refused or impossible
        """
        logger.info(f"🔁 Homelab bootstrap - RESET mode ({mode.value})")
        typer.echo(self.describe(mode))
        confirm_destructive(
            f"This will irreversibly reset this host ({mode.value}). Continue?",
            force=self.force,
            interactive=self.interactive,
            prompt=self.prompt,
        )
        return self._destroy(mode)

    def _destroy(self, mode: ResetMode) -> List[Path]:
        logger.info("🛑 Stopping and uninstalling K3s (if present)...")
        uninstall_k3s(self.runner, self.uninstall_script)

        removed = []
        if mode == ResetMode.HARD:
            logger.info("🗑️  HARD reset: removing homelab repo and config")
        for path in self.targets(mode):
            if _remove(path):
                removed.append(path)
        logger.info(f"✅ Reset ({mode.value}) completed")
        return removed


def _remove(path: Path) -> bool:
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        elif path.exists() or path.is_symlink():
            path.unlink()
        else:
            return False
    except OSError as e:
        logger.warning(f"⚠️  Could not remove {path}: {e}")
        return False
    logger.info(f"🗑️  Removed {path}")
    return True
