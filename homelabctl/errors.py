"""Error taxonomy for homelabctl.

Every user-visible failure carries the precise missing precondition in its
message and, where one exists, a remediation the operator can act on.
"""
from typing import Optional


class HomelabError(Exception):
    """Base class for all homelabctl errors."""

    fatal: bool = True

    def __init__(self, message: str, remediation: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.remediation = remediation

    def __str__(self) -> str:
        return self.message


class ConfigMissing(HomelabError):
    """The configuration file does not exist."""


class ConfigInvalid(HomelabError):
    """A required key is absent or empty, or a value has the wrong type."""


class ToolMissing(HomelabError):
    """A required host tool is missing and cannot be installed automatically."""


class ApiUnreachable(HomelabError):
    """The Kubernetes API did not answer within the readiness budget."""


class ChartNotFound(HomelabError):
    """A local chart directory has no Chart.yaml."""


class ReleaseFailed(HomelabError):
    """helm upgrade --install exited non-zero."""


class SecretMissingInputs(HomelabError):
    """Issuer key or password material is configured but not on disk."""

    fatal = False


class IssuerTemplateMissing(HomelabError):
    """The issuer template file does not exist."""

    fatal = False


class ResetRefused(HomelabError):
    """A destructive reset was declined or cannot be confirmed."""


class UnknownArgument(HomelabError):
    """An unknown command line flag, or a flag missing its value."""


class RepoSyncFailed(HomelabError):
    """git clone or fetch of the homelab repository failed."""


class PrivilegeRequired(HomelabError):
    """The command must run as root."""


class CommandFailed(HomelabError):
    """An external command exited non-zero."""
