"""Host provisioning actions: packages, installers, repository, K3s."""
import logging
import os
import subprocess
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

import requests

from ..errors import CommandFailed, RepoSyncFailed, ToolMissing
from .probe import EnvironmentProbe, Fact, OSFamily
from .reset import K3S_UNINSTALL_SCRIPT, confirm_destructive, uninstall_k3s
from .utils import command_error_text, run_command

logger = logging.getLogger("homelabctl.host")

HELM_INSTALL_URL = "https://raw.githubusercontent.com/helm/helm/main/scripts/get-helm-3"
K3S_INSTALL_URL = "https://get.k3s.io"
DEBIAN_FAMILY = (OSFamily.DEBIAN, OSFamily.UBUNTU)


def fetch_script(url: str, timeout: int = 30) -> str:
    """Download an installer script."""
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise CommandFailed(
            f"Could not download {url}: {e}",
            remediation="Check outbound HTTPS connectivity from this host",
        ) from e
    return response.text


class HostActions:
    """Mutating operations on the local host.

    Every operation takes its inputs explicitly; working directories and
    environments are passed to child processes, never changed in-process.
    """

    def __init__(
        self,
        probe: EnvironmentProbe,
        runner: Callable[..., subprocess.CompletedProcess] = run_command,
        fetch: Callable[[str], str] = fetch_script,
    ):
        self.probe = probe
        self.runner = runner
        self.fetch = fetch

    def missing_tools(self, tools: Sequence[str]) -> List[str]:
        return [t for t in tools if not self.probe.tool_available(t)]

    def ensure_tools(self, tools: Sequence[str]) -> str:
        """Install missing tools via apt on Debian/Ubuntu.

        Raises:
            ToolMissing: On other operating systems or if apt fails
        """
        missing = self.missing_tools(tools)
        if not missing:
            return "all tools present"
        os_family = self.probe.detect_os()
        if os_family not in DEBIAN_FAMILY:
            raise ToolMissing(
                f"Missing required tools: {', '.join(missing)} (automatic installation "
                f"for OS '{os_family.value}' is not implemented)",
                remediation=f"Install {', '.join(missing)} and run this command again",
            )
        logger.info(f"📦 Installing missing tools via apt: {', '.join(missing)}")
        env = {**os.environ, "DEBIAN_FRONTEND": "noninteractive"}
        try:
            self.runner(["apt-get", "update", "-y"], env=env)
            self.runner(["apt-get", "install", "-y", *missing], env=env)
        except (OSError, subprocess.CalledProcessError) as e:
            raise ToolMissing(
                f"apt-get install {' '.join(missing)} failed: {e}",
                remediation=f"Install {', '.join(missing)} manually and run again",
            ) from e
        return f"installed {', '.join(missing)}"

    def install_helm(self) -> str:
        """Install Helm 3 with the official installer script."""
        os_family = self.probe.detect_os()
        if os_family not in DEBIAN_FAMILY:
            raise ToolMissing(
                f"Helm not found and automatic installation for OS '{os_family.value}' is not implemented",
                remediation="Install Helm manually: https://helm.sh/docs/intro/install/",
            )
        logger.info("🚀 Installing Helm using the official install script...")
        script = self.fetch(HELM_INSTALL_URL)
        try:
            self.runner(["bash", "-s", "-"], input=script)
        except (OSError, subprocess.CalledProcessError) as e:
            raise ToolMissing(
                f"Helm installation failed: {e}",
                remediation="Install Helm manually: https://helm.sh/docs/intro/install/",
            ) from e
        if not self.probe.tool_available("helm"):
            raise ToolMissing(
                "Helm installation finished but helm is not on PATH",
                remediation="Check /usr/local/bin/helm and your PATH",
            )
        return "helm installed"

    def sync_repository(self, url: str, branch: str, repo_dir: Path) -> str:
        """Clone the repository, or hard-reset an existing clone to origin/<branch>.

        Local changes in an existing clone are discarded.
        """
        repo_dir = Path(repo_dir)
        try:
            if (repo_dir / ".git").is_dir():
                logger.info(f"🔄 Fetching branch '{branch}' into {repo_dir}")
                try:
                    self.runner(["git", "fetch", "origin", branch], cwd=repo_dir, capture_output=True)
                except subprocess.CalledProcessError as e:
                    raise RepoSyncFailed(
                        f"Could not fetch branch '{branch}' from origin: {command_error_text(e)}",
                        remediation=f"Check that branch '{branch}' exists at the remote of {repo_dir}",
                    ) from e
                logger.info(f"♻️  Resetting {repo_dir} to origin/{branch} (discarding ALL local changes)")
                self.runner(["git", "reset", "--hard", "HEAD"], cwd=repo_dir)
                self.runner(["git", "clean", "-xfd"], cwd=repo_dir)
                self.runner(["git", "checkout", "-B", branch, f"origin/{branch}"], cwd=repo_dir)
                self.runner(["git", "reset", "--hard", f"origin/{branch}"], cwd=repo_dir)
                return f"updated {repo_dir} to origin/{branch}"

            logger.info(f"📥 Cloning {url} (branch: {branch}) to {repo_dir}")
            repo_dir.parent.mkdir(parents=True, exist_ok=True)
            try:
                self.runner(
                    ["git", "clone", "--branch", branch, "--single-branch", url, str(repo_dir)],
                    capture_output=True,
                )
            except subprocess.CalledProcessError as e:
                raise RepoSyncFailed(
                    f"Could not clone {url} (branch {branch}): {command_error_text(e)}",
                    remediation="Check --repo-url and --repo-branch",
                ) from e
            return f"cloned {url}@{branch}"
        except OSError as e:
            raise RepoSyncFailed(f"Repository sync into {repo_dir} failed: {e}") from e
        except subprocess.CalledProcessError as e:
            raise RepoSyncFailed(f"git failed in {repo_dir}: {command_error_text(e)}") from e

    def check_ports(self, ports: Sequence[int]) -> str:
        """Warn about busy ingress ports. Never fails."""
        summary = []
        for port in ports:
            state = self.probe.port_free(port)
            if state == Fact.NO:
                logger.warning(f"⚠️  Port {port} is in use. Ingress/Traefik may not be able to bind.")
                summary.append(f"{port} in use")
            elif state == Fact.UNKNOWN:
                logger.warning(f"⚠️  Could not determine whether port {port} is free (is 'ss' installed?)")
                summary.append(f"{port} unknown")
            else:
                logger.info(f"✅ Port {port} is free")
                summary.append(f"{port} free")
        return ", ".join(summary)

    def k3s_healthy(self) -> bool:
        """True unless a k3s binary exists and its service is known to be down."""
        if not self.probe.tool_available("k3s"):
            return True
        state = self.probe.service_active("k3s")
        if state == Fact.UNKNOWN:
            logger.warning("⚠️  systemctl not available; cannot verify the k3s service, leaving it as is")
            return True
        return state == Fact.YES

    def reset_unhealthy_k3s(
        self,
        force: bool,
        interactive: bool,
        prompt: Optional[Callable[[str], bool]] = None,
        script: Path = K3S_UNINSTALL_SCRIPT,
    ) -> str:
        """Uninstall a K3s installation that is present but not running."""
        logger.warning("⚠️  There is an existing k3s installation that is not running cleanly.")
        logger.warning("Resetting k3s stops and uninstalls it and deletes its data, then installs a fresh cluster.")
        kwargs = {"prompt": prompt} if prompt else {}
        confirm_destructive(
            "Do you want to uninstall and reinstall k3s now?",
            force=force,
            interactive=interactive,
            force_hint="--force (or K3S_FORCE_RESET=1)",
            **kwargs,
        )
        uninstall_k3s(self.runner, script, required=True)
        return "k3s uninstalled for a clean installation"

    def install_k3s(self, version: str = "", advertise_address: str = "") -> str:
        """Install a K3s server node with the get.k3s.io script."""
        exec_args: List[str] = []
        if advertise_address:
            present = self.probe.address_on_interface(advertise_address)
            if present == Fact.YES:
                logger.info(f"Using K3S_ADVERTISE_ADDRESS={advertise_address}")
                exec_args += ["--node-ip", advertise_address]
            elif present == Fact.UNKNOWN:
                logger.warning(
                    f"⚠️  Cannot verify K3S_ADVERTISE_ADDRESS={advertise_address} ('ip' unavailable); using it anyway"
                )
                exec_args += ["--node-ip", advertise_address]
            else:
                logger.warning(
                    f"⚠️  K3S_ADVERTISE_ADDRESS={advertise_address} not found on any interface. Ignoring this setting."
                )

        env: Dict[str, str] = {**os.environ, "INSTALL_K3S_EXEC": " ".join(exec_args)}
        if version:
            logger.info(f"🚀 Installing K3s {version}")
            env["INSTALL_K3S_VERSION"] = version
        else:
            logger.info("🚀 No K3S_VERSION set. Installing latest K3s from get.k3s.io")
        script = self.fetch(K3S_INSTALL_URL)
        try:
            self.runner(["sh", "-s", "-"], input=script, env=env)
        except (OSError, subprocess.CalledProcessError) as e:
            raise CommandFailed(
                f"K3s installation failed: {e}",
                remediation="Inspect the installer output above and journalctl -u k3s",
            ) from e
        return f"k3s {version or 'latest'} installed"
