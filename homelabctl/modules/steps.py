"""Ordered execution of idempotent reconciliation steps.

Each step has a precondition ("already converged?"), an apply action and a
postcondition ("did apply converge?"). Steps run strictly in order; the first
failure halts the run because later steps assume earlier ones converged.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional

from ..errors import HomelabError

logger = logging.getLogger("homelabctl.steps")


def _never() -> bool:
    return False


def _always() -> bool:
    return True


class RunMode(str, Enum):
    APPLY = 'apply'
    DRY_RUN = 'dry_run'


class StepStatus(str, Enum):
    """Outcome of a single step."""
    SKIPPED = 'skipped'
    APPLIED = 'applied'
    PLANNED = 'planned'
    FAILED = 'failed'


@dataclass
class ReconciliationStep:
    """An idempotent unit of work.

    ``apply`` may return a value; its string form becomes the report detail.
    A step without a precondition always applies, a step without a
    postcondition is considered converged once ``apply`` returns.
    """
    name: str
    apply: Callable[[], Any]
    precondition: Callable[[], bool] = field(default=_never)
    postcondition: Callable[[], bool] = field(default=_always)
    description: str = ''


@dataclass
class StepReport:
    name: str
    status: StepStatus
    detail: str = ''
    result: Any = None

    @property
    def ok(self) -> bool:
        return self.status != StepStatus.FAILED


@dataclass
class RunReport:
    """Reports of one executor run, in step order."""
    mode: RunMode
    steps: List[StepReport] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return all(step.ok for step in self.steps)

    @property
    def failed(self) -> Optional[StepReport]:
        return next((s for s in self.steps if s.status == StepStatus.FAILED), None)

    def __iter__(self):
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)


class StepExecutor:
    """Runs reconciliation steps in order with fail-fast semantics."""

    def run(self, steps: List[ReconciliationStep], mode: RunMode = RunMode.APPLY) -> RunReport:
        """Run steps in order.

        Args:
            steps: Ordered steps to converge
            mode: APPLY to converge, DRY_RUN to evaluate preconditions only

        Returns:
            RunReport with one StepReport per evaluated step. Steps after a
            failed step are not evaluated and get no report.
        """
        report = RunReport(mode=mode)
        total = len(steps)
        for index, step in enumerate(steps, 1):
            prefix = f"[{index}/{total}] {step.name}"
            try:
                satisfied = bool(step.precondition())
            except Exception as e:
                logger.error(f"❌ {prefix}: precondition check failed: {e}")
                report.steps.append(StepReport(step.name, StepStatus.FAILED, str(e)))
                report.error = e
                break

            if satisfied:
                logger.info(f"✅ {prefix}: already converged, skipping")
                report.steps.append(StepReport(step.name, StepStatus.SKIPPED, 'already converged'))
                continue

            if mode == RunMode.DRY_RUN:
                logger.info(f"📝 {prefix}: would apply {step.description or step.name}")
                report.steps.append(StepReport(step.name, StepStatus.PLANNED, step.description))
                continue

            logger.info(f"🚀 {prefix}")
            try:
                result = step.apply()
                converged = bool(step.postcondition())
            except HomelabError as e:
                logger.error(f"❌ {prefix}: {e}")
                if e.remediation:
                    logger.error(f"👉 {e.remediation}")
                report.steps.append(StepReport(step.name, StepStatus.FAILED, str(e)))
                report.error = e
                break
            except Exception as e:
                logger.error(f"❌ {prefix}: unexpected error: {e}", exc_info=True)
                report.steps.append(StepReport(step.name, StepStatus.FAILED, str(e)))
                report.error = e
                break

            if not converged:
                detail = f"postcondition not met after applying {step.name}"
                logger.error(f"❌ {prefix}: {detail}")
                report.steps.append(StepReport(step.name, StepStatus.FAILED, detail, result))
                break

            detail = '' if result is None else str(result)
            logger.info(f"✅ {prefix}: applied{': ' + detail if detail else ''}")
            report.steps.append(StepReport(step.name, StepStatus.APPLIED, detail, result))

        return report
