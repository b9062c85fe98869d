"""Chart descriptors and chart reference classification."""
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple, Union

from ..errors import ConfigInvalid

CHART_MANIFEST = "Chart.yaml"


@dataclass(frozen=True)
class ChartDescriptor:
    """A Helm release the bootstrap converges."""
    release: str
    reference: str
    namespace: str
    extra_args: Tuple[str, ...] = ()

    @classmethod
    def parse(cls, encoded: str, default_namespace: str) -> "ChartDescriptor":
        """Parse ``release:reference:namespace:extraArgs``.

        Only the first three colons delimit fields, so extra arguments may
        contain colons. An empty namespace falls back to default_namespace.
        Extra arguments are split on whitespace into independent tokens.
        """
        fields = encoded.strip().split(":", 3)
        fields += [""] * (4 - len(fields))
        release, reference, namespace, extra = (f.strip() for f in fields)
        if not release or not reference:
            raise ConfigInvalid(
                f"Invalid chart descriptor '{encoded}': release and reference are required",
                remediation="Use the form release:reference:namespace:extraArgs in CHARTS",
            )
        return cls(
            release=release,
            reference=reference,
            namespace=namespace or default_namespace,
            extra_args=tuple(extra.split()),
        )


@dataclass(frozen=True)
class LocalChart:
    path: Path

    @property
    def manifest(self) -> Path:
        return self.path / CHART_MANIFEST

    def __str__(self) -> str:
        return str(self.path)


@dataclass(frozen=True)
class RemoteChart:
    ref: str

    def __str__(self) -> str:
        return self.ref


ChartSource = Union[LocalChart, RemoteChart]


def classify_reference(reference: str, charts_root: Path) -> ChartSource:
    """Decide whether a chart reference is a local directory or a repo/chart ref.

    1. A relative reference naming a directory under charts_root is local.
    2. A reference that is itself an existing directory is local.
    3. Anything else is a remote reference (``repo/chart``, ``oci://...``).

    The answer depends only on the reference and the filesystem right now.
    """
    candidate = Path(reference)
    if not candidate.is_absolute() and (charts_root / candidate).is_dir():
        return LocalChart(charts_root / candidate)
    if candidate.is_dir():
        return LocalChart(candidate)
    return RemoteChart(reference)
