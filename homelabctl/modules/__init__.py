"""
Reconciliation modules: host probes, step execution, Helm releases,
issuer provisioning and reset.
"""
from .charts import ChartDescriptor, LocalChart, RemoteChart, classify_reference
from .helm import HelmClient
from .host import HostActions
from .issuer import IssuerConfigurator, IssuerState
from .kube import KubeClient, wait_until_reachable
from .probe import EnvironmentProbe, Fact, OSFamily
from .releases import ReleaseManager, ReleaseResult
from .reset import ResetController, ResetMode, confirm_destructive
from .steps import ReconciliationStep, RunMode, StepExecutor, StepReport, StepStatus

__all__ = [
    'ChartDescriptor',
    'LocalChart',
    'RemoteChart',
    'classify_reference',
    'HelmClient',
    'HostActions',
    'IssuerConfigurator',
    'IssuerState',
    'KubeClient',
    'wait_until_reachable',
    'EnvironmentProbe',
    'Fact',
    'OSFamily',
    'ReleaseManager',
    'ReleaseResult',
    'ResetController',
    'ResetMode',
    'confirm_destructive',
    'ReconciliationStep',
    'RunMode',
    'StepExecutor',
    'StepReport',
    'StepStatus',
]
