"""Configuration management for the homelabctl application.

The host configuration is a key=value file (``/etc/homelab/config.env`` by
default). It is parsed strictly with python-dotenv: nothing in it is executed
and no ``$VAR`` expansion or environment shadowing takes place. Every optional
key has exactly one documented default.
"""
import logging
import shlex
import shutil
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigInvalid, ConfigMissing
from .modules.charts import ChartDescriptor

logger = logging.getLogger("homelabctl.config")

# Bootstrap defaults, each overridable by CLI flag or environment variable
DEFAULT_REPO_URL = "https://github.com/marshll/homelab.git"
DEFAULT_REPO_DIR = "/opt/homelab"
DEFAULT_REPO_BRANCH = "main"
DEFAULT_CONFIG_FILE = "/etc/homelab/config.env"

TEMPLATE_NAME = "example.config.env"

REQUIRED_KEYS = ("GITEA_URL",)

CONFIG_TEMPLATE = """\
# homelab host configuration
# Lines are KEY=value. Nothing in this file is executed.

# Public host name of Gitea (required)
GITEA_URL=

# Namespace of the Gitea release
GITEA_NAMESPACE=gitea

# K3s version to install (empty = latest) and optional node IP
K3S_VERSION=
K3S_ADVERTISE_ADDRESS=

# Charts as release:reference:namespace:extraArgs
# CHARTS=("gitea:charts/gitea:gitea:")

# Extra Helm repositories as name=url
# HELM_REPOS=("jetstack=https://charts.jetstack.io")

# step-ca issuer (leave STEP_CA_URL empty to skip)
STEP_CA_URL=
STEP_PROVISIONER=
STEP_PROVISIONER_PASSWORD_FILE=
STEP_CA_ROOT_FILE=
"""


def parse_array(value: Optional[str]) -> List[str]:
    """Parse a single-line shell-style array such as ``("a:b" "c:d")``.

    A bare value without parentheses is a one-element array. The value is
    tokenised with shlex, it is never evaluated.
    """
    if value is None:
        return []
    text = value.strip()
    if text.startswith("(") and text.endswith(")"):
        text = text[1:-1]
    try:
        return [item for item in shlex.split(text) if item.strip()]
    except ValueError as e:
        raise ConfigInvalid(f"Cannot parse array value {value!r}: {e}")


class HomelabConfig(BaseModel):
    """Typed, immutable view of the host configuration file."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra='ignore')

    gitea_url: str = Field(alias="GITEA_URL", description="Public host name of Gitea")
    gitea_namespace: str = Field(default="gitea", alias="GITEA_NAMESPACE")
    k3s_version: str = Field(default="", alias="K3S_VERSION")
    k3s_advertise_address: str = Field(default="", alias="K3S_ADVERTISE_ADDRESS")
    kubeconfig: str = Field(default="/etc/rancher/k3s/k3s.yaml", alias="KUBECONFIG")
    charts: Tuple[ChartDescriptor, ...] = Field(default=(), alias="CHARTS")
    helm_repos: Tuple[Tuple[str, str], ...] = Field(default=(), alias="HELM_REPOS")
    manifests_dir: Path = Field(default=Path("manifests"), alias="MANIFESTS_DIR")
    step_ca_url: str = Field(default="", alias="STEP_CA_URL")
    step_provisioner: str = Field(default="", alias="STEP_PROVISIONER")
    step_provisioner_password_file: Optional[Path] = Field(default=None, alias="STEP_PROVISIONER_PASSWORD_FILE")
    step_ca_root_file: Optional[Path] = Field(default=None, alias="STEP_CA_ROOT_FILE")
    step_issuer_namespace: str = Field(default="step-issuer", alias="STEP_ISSUER_NAMESPACE")
    step_issuer_secret: str = Field(default="step-issuer-provisioner-password", alias="STEP_ISSUER_SECRET")
    step_issuer_template: Path = Field(
        default=Path("manifests/step-issuer/issuer.yaml.tmpl"), alias="STEP_ISSUER_TEMPLATE"
    )
    api_wait_timeout: float = Field(default=60, gt=0, alias="API_WAIT_TIMEOUT")
    api_wait_interval: float = Field(default=2, gt=0, alias="API_WAIT_INTERVAL")

    @field_validator("gitea_url")
    @classmethod
    def strip_scheme(cls, v: str) -> str:
        v = v.strip()
        for scheme in ("https://", "http://"):
            if v.startswith(scheme):
                v = v[len(scheme):]
        v = v.rstrip("/")
        if not v:
            raise ValueError("must name a host, not only a URL scheme")
        return v

    @property
    def issuer_enabled(self) -> bool:
        return bool(self.step_ca_url and self.step_provisioner)

    def default_charts(self) -> Tuple[ChartDescriptor, ...]:
        return (
            ChartDescriptor(
                release="gitea",
                reference="charts/gitea",
                namespace=self.gitea_namespace,
                extra_args=("--set-string", f"ingress.host={self.gitea_url}"),
            ),
        )

    def chart_descriptors(self) -> Tuple[ChartDescriptor, ...]:
        """Descriptors for this run, derived fresh from the configuration."""
        return self.charts or self.default_charts()


def _resolve(path: Optional[str], repo_dir: Path) -> Optional[Path]:
    if not path:
        return None
    p = Path(path).expanduser()
    return p if p.is_absolute() else repo_dir / p


def _parse_helm_repos(value: Optional[str]) -> Tuple[Tuple[str, str], ...]:
    repos = []
    for item in parse_array(value):
        name, sep, url = item.partition("=")
        if not sep or not name.strip() or not url.strip():
            raise ConfigInvalid(
                f"Invalid HELM_REPOS entry '{item}'",
                remediation="Use the form name=url, e.g. HELM_REPOS=(\"jetstack=https://charts.jetstack.io\")",
            )
        repos.append((name.strip(), url.strip()))
    return tuple(repos)


def load_config(path: Path, repo_dir: Path) -> HomelabConfig:
    """Load and validate the host configuration.

    Args:
        path: Path of the key=value configuration file
        repo_dir: Local clone of the homelab repository; relative paths in the
            configuration are resolved against it

    Returns:
        Immutable HomelabConfig

    Raises:
        ConfigMissing: If the file does not exist
        ConfigInvalid: If a required key is absent or empty, or a value is invalid
    """
    path = Path(path)
    repo_dir = Path(repo_dir)
    if not path.is_file():
        remediation = f"Create it with: homelabctl init-config --config-file {path}"
        example = repo_dir / TEMPLATE_NAME
        if example.is_file():
            remediation += f" (or cp {example} {path})"
        raise ConfigMissing(
            f"No config found at {path}",
            remediation=f"{remediation}, then edit it and run again",
        )

    raw: Dict[str, Optional[str]] = dotenv_values(path, interpolate=False)
    logger.info(f"📋 Loaded config: {path}")

    missing = [key for key in REQUIRED_KEYS if not (raw.get(key) or "").strip()]
    if missing:
        raise ConfigInvalid(
            f"Missing required configuration in {path}: {', '.join(missing)}",
            remediation=f"Set {', '.join(missing)} in {path} and run again",
        )

    known = {f.alias for f in HomelabConfig.model_fields.values() if f.alias}
    for key in sorted(set(raw) - known):
        logger.warning(f"⚠️  Ignoring unknown config key {key} in {path}")

    # Empty optional values fall back to their defaults
    values = {k: v.strip() for k, v in raw.items() if k in known and v is not None and v.strip()}

    namespace = values.get("GITEA_NAMESPACE", "gitea")
    try:
        if "CHARTS" in values:
            values["CHARTS"] = tuple(
                ChartDescriptor.parse(item, namespace) for item in parse_array(values["CHARTS"])
            )
        if "HELM_REPOS" in values:
            values["HELM_REPOS"] = _parse_helm_repos(values["HELM_REPOS"])
        for key in ("MANIFESTS_DIR", "STEP_ISSUER_TEMPLATE",
                    "STEP_PROVISIONER_PASSWORD_FILE", "STEP_CA_ROOT_FILE"):
            if key in values:
                values[key] = _resolve(values[key], repo_dir)
        config = HomelabConfig(**values)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigInvalid(
            f"Invalid configuration in {path}: {problems}",
            remediation=f"Fix the listed keys in {path}",
        ) from e

    # Defaults are relative to the repository as well
    updates = {}
    if not config.manifests_dir.is_absolute():
        updates["manifests_dir"] = repo_dir / config.manifests_dir
    if not config.step_issuer_template.is_absolute():
        updates["step_issuer_template"] = repo_dir / config.step_issuer_template
    if updates:
        config = config.model_copy(update=updates)
    return config


def write_config_template(path: Path, repo_dir: Path, overwrite: bool = False) -> Path:
    """Write a configuration template for the operator to edit.

    Copies ``<repo_dir>/example.config.env`` when it exists, otherwise writes
    the built-in template.

    Returns:
        The written path

    Raises:
        FileExistsError: If path exists and overwrite is False
    """
    path = Path(path)
    if path.exists() and not overwrite:
        raise FileExistsError(f"Config already exists at {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    template = Path(repo_dir) / TEMPLATE_NAME
    if template.is_file():
        shutil.copyfile(template, path)
        logger.info(f"📄 Copied {template} to {path}")
    else:
        path.write_text(CONFIG_TEMPLATE, encoding="utf-8")
        logger.info(f"📄 Wrote config template to {path}")
    path.chmod(0o600)
    return path
