"""Step lists for the bootstrap and install runs."""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from ..errors import ToolMissing
from .charts import ChartDescriptor
from .host import HostActions
from .issuer import IssuerConfigurator, IssuerState
from .releases import ReleaseManager
from .steps import ReconciliationStep

logger = logging.getLogger("homelabctl.pipeline")

BASE_TOOLS = ("git", "curl")
INGRESS_PORTS = (80, 443)
MANIFEST_SUFFIXES = (".yaml", ".yml")


@dataclass
class RunContext:
    """Everything a run needs, passed explicitly to each step."""
    config: object
    repo_dir: Path
    probe: object
    kube: object
    helm: object
    host: Optional[HostActions] = None
    repo_url: str = ''
    repo_branch: str = 'main'
    force: bool = False
    prompt: Optional[Callable[[str], bool]] = None
    sleep: Optional[Callable[[float], None]] = None
    clock: Optional[Callable[[], float]] = None
    issuer_warnings: List[str] = field(default_factory=list)


def manifest_files(directory: Path) -> List[Path]:
    """YAML files under directory, recursively, in sorted order."""
    directory = Path(directory)
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.rglob("*") if p.is_file() and p.suffix in MANIFEST_SUFFIXES)


def _wait_for_api_step(ctx: RunContext) -> ReconciliationStep:
    cfg = ctx.config

    def apply():
        kwargs = {}
        if ctx.sleep:
            kwargs["sleep"] = ctx.sleep
        if ctx.clock:
            kwargs["clock"] = ctx.clock
        elapsed = ctx.kube.wait_for_api(cfg.api_wait_timeout, cfg.api_wait_interval, **kwargs)
        return f"API reachable after {elapsed:.0f}s"

    return ReconciliationStep(
        name="wait-for-api",
        precondition=ctx.kube.api_reachable,
        apply=apply,
        description=f"wait up to {cfg.api_wait_timeout:g}s for the Kubernetes API",
    )


def _helm_check_step(ctx: RunContext) -> ReconciliationStep:
    def apply():
        if not ctx.probe.tool_available("helm"):
            raise ToolMissing(
                "Helm not installed",
                remediation="Install Helm 3 (or run homelabctl bootstrap) and re-run this command",
            )
        return f"helm {ctx.helm.version()}"

    return ReconciliationStep(name="check-helm", apply=apply, description="verify the helm CLI works")


def _helm_repos_step(ctx: RunContext) -> ReconciliationStep:
    repos = ctx.config.helm_repos

    def apply():
        for name, url in repos:
            logger.info(f"📚 Adding Helm repository {name} ({url})")
            ctx.helm.repo_add(name, url)
        ctx.helm.repo_update()
        return f"{len(repos)} repositories"

    return ReconciliationStep(
        name="helm-repos",
        precondition=lambda: not repos,
        apply=apply,
        description=f"add Helm repositories {', '.join(n for n, _ in repos)}",
    )


def _release_step(manager: ReleaseManager, desc: ChartDescriptor) -> ReconciliationStep:
    def converged() -> bool:
        return manager.helm.release_revision(desc.release, desc.namespace) is not None

    return ReconciliationStep(
        name=f"release:{desc.release}",
        apply=lambda: manager.reconcile_release(desc),
        postcondition=converged,
        description=f"helm upgrade --install {desc.release} {desc.reference} -n {desc.namespace}",
    )


def _issuer_step(ctx: RunContext) -> ReconciliationStep:
    def apply():
        configurator = IssuerConfigurator(ctx.config, ctx.kube)
        state = configurator.reconcile()
        ctx.issuer_warnings.extend(configurator.warnings)
        return state.value

    return ReconciliationStep(
        name="step-issuer",
        precondition=lambda: not ctx.config.issuer_enabled,
        apply=apply,
        description="create the step-issuer secret and issuer resource",
    )


def _manifests_step(ctx: RunContext) -> ReconciliationStep:
    directory = Path(ctx.config.manifests_dir)
    template = Path(ctx.config.step_issuer_template)

    def files() -> List[Path]:
        return [f for f in manifest_files(directory) if f != template]

    def apply():
        applied = []
        for path in files():
            logger.info(f"📄 Applying: {path}")
            applied += ctx.kube.apply_manifest(path)
        return f"{len(applied)} objects"

    return ReconciliationStep(
        name="manifests",
        precondition=lambda: not files(),
        apply=apply,
        description=f"apply manifests under {directory}",
    )


def build_install_steps(ctx: RunContext) -> List[ReconciliationStep]:
    """Deploy charts, issuer and manifests onto a running cluster."""
    manager = ReleaseManager(ctx.helm, ctx.kube, ctx.repo_dir)
    steps = [
        _wait_for_api_step(ctx),
        _helm_check_step(ctx),
        _helm_repos_step(ctx),
    ]
    steps += [_release_step(manager, desc) for desc in ctx.config.chart_descriptors()]
    steps += [
        _issuer_step(ctx),
        _manifests_step(ctx),
    ]
    return steps


def build_bootstrap_steps(ctx: RunContext) -> List[ReconciliationStep]:
    """Prepare the host, install K3s, then run the install steps."""
    host = ctx.host or HostActions(ctx.probe)
    cfg = ctx.config

    steps = [
        ReconciliationStep(
            name="base-tools",
            precondition=lambda: not host.missing_tools(BASE_TOOLS),
            apply=lambda: host.ensure_tools(BASE_TOOLS),
            postcondition=lambda: not host.missing_tools(BASE_TOOLS),
            description=f"install {', '.join(BASE_TOOLS)}",
        ),
        ReconciliationStep(
            name="repository",
            apply=lambda: host.sync_repository(ctx.repo_url, ctx.repo_branch, ctx.repo_dir),
            postcondition=lambda: (Path(ctx.repo_dir) / ".git").is_dir(),
            description=f"sync {ctx.repo_url}@{ctx.repo_branch} into {ctx.repo_dir}",
        ),
        ReconciliationStep(
            name="helm",
            precondition=lambda: ctx.probe.tool_available("helm"),
            apply=host.install_helm,
            postcondition=lambda: ctx.probe.tool_available("helm"),
            description="install Helm 3",
        ),
        ReconciliationStep(
            name="ports",
            apply=lambda: host.check_ports(INGRESS_PORTS),
            description=f"check ports {', '.join(str(p) for p in INGRESS_PORTS)}",
        ),
        ReconciliationStep(
            name="k3s-health",
            precondition=host.k3s_healthy,
            apply=lambda: host.reset_unhealthy_k3s(
                force=ctx.force, interactive=ctx.probe.is_interactive(), prompt=ctx.prompt
            ),
            postcondition=lambda: not ctx.probe.tool_available("k3s"),
            description="uninstall an existing k3s that is not running",
        ),
        ReconciliationStep(
            name="k3s",
            precondition=lambda: ctx.probe.tool_available("k3s"),
            apply=lambda: host.install_k3s(cfg.k3s_version, cfg.k3s_advertise_address),
            postcondition=lambda: ctx.probe.tool_available("k3s"),
            description=f"install K3s {cfg.k3s_version or 'latest'}",
        ),
    ]
    return steps + build_install_steps(ctx)
