"""Thin wrapper around the helm CLI.

Every call passes the kubeconfig explicitly; nothing is exported into the
process environment.
"""
import json
import logging
import subprocess
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..errors import CommandFailed, ReleaseFailed, ToolMissing
from .utils import command_error_text, run_command

logger = logging.getLogger("homelabctl.helm")


class HelmClient:
    """Runs helm with a fixed kubeconfig."""

    def __init__(
        self,
        kubeconfig: str,
        runner: Callable[..., subprocess.CompletedProcess] = run_command,
        binary: str = "helm",
    ):
        self.kubeconfig = kubeconfig
        self.runner = runner
        self.binary = binary

    def _helm(self, *args: str) -> List[str]:
        return [self.binary, *args, "--kubeconfig", self.kubeconfig]

    def version(self) -> str:
        """Return the short helm version, raising ToolMissing if helm cannot run."""
        try:
            result = self.runner([self.binary, "version", "--short"], capture_output=True)
        except (OSError, subprocess.CalledProcessError) as e:
            raise ToolMissing(
                f"helm version check failed: {e}",
                remediation="Install Helm 3 (https://helm.sh/docs/intro/install/) and run again",
            ) from e
        return (result.stdout or "").strip()

    def upgrade_install(
        self,
        release: str,
        chart: str,
        namespace: str,
        extra_args: Sequence[str] = (),
    ) -> None:
        """Install or upgrade a release.

        extra_args are appended as independent argv elements, never joined
        into one string.

        Raises:
            ReleaseFailed: If helm exits non-zero
        """
        cmd = [
            self.binary, "upgrade", "--install", release, chart,
            "--namespace", namespace,
            "--kubeconfig", self.kubeconfig,
            *extra_args,
        ]
        try:
            self.runner(cmd, capture_output=True)
        except (OSError, subprocess.CalledProcessError) as e:
            reason = command_error_text(e) if isinstance(e, subprocess.CalledProcessError) else str(e)
            raise ReleaseFailed(
                f"helm upgrade --install {release} ({chart}) in namespace {namespace} failed: {reason}",
                remediation=f"Inspect with: helm status {release} -n {namespace} --kubeconfig {self.kubeconfig}",
            ) from e

    def list_releases(self, namespace: str) -> List[Dict[str, Any]]:
        """Return ``helm list -o json`` entries for a namespace."""
        try:
            result = self.runner(
                self._helm("list", "--namespace", namespace, "--output", "json"),
                capture_output=True,
            )
        except (OSError, subprocess.CalledProcessError) as e:
            raise CommandFailed(f"helm list -n {namespace} failed: {e}") from e
        output = (result.stdout or "").strip()
        if not output:
            return []
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise CommandFailed(f"helm list returned invalid JSON: {e}") from e

    def release_revision(self, release: str, namespace: str) -> Optional[int]:
        """Current revision of a release, or None if it is not installed."""
        for entry in self.list_releases(namespace):
            if entry.get("name") == release:
                try:
                    return int(entry.get("revision"))
                except (TypeError, ValueError):
                    return None
        return None

    def repo_add(self, name: str, url: str) -> None:
        try:
            self.runner([self.binary, "repo", "add", "--force-update", name, url], capture_output=True)
        except (OSError, subprocess.CalledProcessError) as e:
            raise CommandFailed(
                f"helm repo add {name} {url} failed: {e}",
                remediation=f"Check that {url} is reachable from this host",
            ) from e

    def repo_update(self) -> None:
        try:
            self.runner([self.binary, "repo", "update"], capture_output=True)
        except (OSError, subprocess.CalledProcessError) as e:
            raise CommandFailed(f"helm repo update failed: {e}") from e
