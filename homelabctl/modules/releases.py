"""Helm release reconciliation."""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..errors import ChartNotFound
from .charts import ChartDescriptor, ChartSource, LocalChart, classify_reference

logger = logging.getLogger("homelabctl.releases")


@dataclass(frozen=True)
class ReleaseResult:
    release: str
    namespace: str
    chart: str
    revision: Optional[int]
    changed: bool

    def __str__(self) -> str:
        rev = f"revision {self.revision}" if self.revision is not None else "revision unknown"
        return f"{self.release} in {self.namespace} ({rev}{'' if self.changed else ', no changes'})"


class ReleaseManager:
    """Converges chart descriptors into Helm releases.

    Args:
        helm: HelmClient-like object (upgrade_install, release_revision)
        kube: KubeClient-like object (ensure_namespace)
        charts_root: Directory relative chart references are looked up in
    """

    def __init__(self, helm, kube, charts_root: Path):
        self.helm = helm
        self.kube = kube
        self.charts_root = Path(charts_root)

    def resolve(self, desc: ChartDescriptor) -> ChartSource:
        """Classify the reference and check a local chart's manifest.

        Raises:
            ChartNotFound: If a local chart directory has no Chart.yaml
        """
        source = classify_reference(desc.reference, self.charts_root)
        if isinstance(source, LocalChart):
            if not source.manifest.is_file():
                raise ChartNotFound(
                    f"Local chart for release '{desc.release}' not found: expected {source.manifest}",
                    remediation=f"Restore {source.manifest} or fix the reference '{desc.reference}' in CHARTS",
                )
            logger.info(f"📦 Using local chart {source.path} for {desc.release}")
        else:
            logger.info(f"🌐 Using remote chart {source.ref} for {desc.release}")
        return source

    def reconcile_release(self, desc: ChartDescriptor) -> ReleaseResult:
        """Install or upgrade one release.

        Nothing is mutated before the chart reference is resolved, so a
        missing local chart leaves the namespace and release untouched.

        Raises:
            ChartNotFound: If a local chart is missing its Chart.yaml
            ReleaseFailed: If helm upgrade --install fails
        """
        source = self.resolve(desc)

        self.kube.ensure_namespace(desc.namespace)
        before = self.helm.release_revision(desc.release, desc.namespace)

        logger.info(f"🚀 Installing or upgrading '{desc.release}' in namespace '{desc.namespace}'")
        self.helm.upgrade_install(desc.release, str(source), desc.namespace, desc.extra_args)

        after = self.helm.release_revision(desc.release, desc.namespace)
        result = ReleaseResult(
            release=desc.release,
            namespace=desc.namespace,
            chart=str(source),
            revision=after,
            changed=before is None or after != before,
        )
        logger.info(f"✅ Helm release {result}")
        return result
