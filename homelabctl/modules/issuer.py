"""step-ca issuer provisioning.

Gated on configuration: without a CA URL and provisioner the issuer is simply
skipped, and missing key material or template only produces warnings so the
rest of the run can continue.
"""
import logging
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from ..errors import IssuerTemplateMissing, SecretMissingInputs

logger = logging.getLogger("homelabctl.issuer")

CA_URL_PLACEHOLDER = "${STEP_CA_URL}"
PROVISIONER_PLACEHOLDER = "${STEP_PROVISIONER}"


class IssuerState(str, Enum):
    SKIPPED = 'skipped'
    SECRET_MISSING_INPUTS = 'secret_missing_inputs'
    SECRET_CREATED = 'secret_created'
    ISSUER_APPLIED = 'issuer_applied'


def render_issuer_template(template: str, ca_url: str, provisioner: str) -> str:
    """Substitute exactly the CA URL and provisioner placeholders."""
    return template.replace(CA_URL_PLACEHOLDER, ca_url).replace(PROVISIONER_PLACEHOLDER, provisioner)


class IssuerConfigurator:
    """Creates the provisioner secret and applies the issuer resource.

    Args:
        config: HomelabConfig
        kube: KubeClient-like object (ensure_namespace, replace_secret, apply_documents)
    """

    def __init__(self, config, kube):
        self.config = config
        self.kube = kube
        self.warnings: List[str] = []

    def _warn(self, error) -> None:
        self.warnings.append(str(error))
        logger.warning(f"⚠️  {error}")
        if error.remediation:
            logger.warning(f"👉 {error.remediation}")

    def _missing_inputs(self) -> List[str]:
        cfg = self.config
        missing = []
        if cfg.step_provisioner_password_file is None:
            missing.append("STEP_PROVISIONER_PASSWORD_FILE (not set)")
        elif not Path(cfg.step_provisioner_password_file).is_file():
            missing.append(f"STEP_PROVISIONER_PASSWORD_FILE ({cfg.step_provisioner_password_file})")
        if cfg.step_ca_root_file is not None and not Path(cfg.step_ca_root_file).is_file():
            missing.append(f"STEP_CA_ROOT_FILE ({cfg.step_ca_root_file})")
        return missing

    def _secret_data(self) -> Dict[str, bytes]:
        cfg = self.config
        data = {"password": Path(cfg.step_provisioner_password_file).read_bytes().strip()}
        if cfg.step_ca_root_file is not None:
            data["ca.crt"] = Path(cfg.step_ca_root_file).read_bytes()
        return data

    def render(self) -> Optional[str]:
        """Rendered issuer manifest, or None if the template is missing."""
        template_path = Path(self.config.step_issuer_template)
        if not template_path.is_file():
            return None
        return render_issuer_template(
            template_path.read_text(), self.config.step_ca_url, self.config.step_provisioner
        )

    def reconcile(self) -> IssuerState:
        cfg = self.config
        if not cfg.issuer_enabled:
            logger.info("ℹ️  STEP_CA_URL or STEP_PROVISIONER not set, skipping step issuer")
            return IssuerState.SKIPPED

        missing = self._missing_inputs()
        if missing:
            self._warn(SecretMissingInputs(
                f"Step issuer key material missing: {', '.join(missing)}",
                remediation="Provide the files or clear STEP_CA_URL to disable the issuer",
            ))
            return IssuerState.SECRET_MISSING_INPUTS

        self.kube.ensure_namespace(cfg.step_issuer_namespace)
        self.kube.replace_secret(cfg.step_issuer_secret, cfg.step_issuer_namespace, self._secret_data())

        rendered = self.render()
        if rendered is None:
            self._warn(IssuerTemplateMissing(
                f"Issuer template not found at {cfg.step_issuer_template}; secret created without issuer",
                remediation="Restore the template or set STEP_ISSUER_TEMPLATE",
            ))
            return IssuerState.SECRET_CREATED

        applied = self.kube.apply_documents(
            list(yaml.safe_load_all(rendered)), source=str(cfg.step_issuer_template)
        )
        logger.info(f"✅ Step issuer applied: {', '.join(applied) or 'no objects'}")
        return IssuerState.ISSUER_APPLIED
