from __future__ import annotations

import logging
import shutil
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .config import DesiredState
from .errors import FatalPrerequisiteMissing, ProbeUnavailable, ProvisionError, VerificationFailed
from .lib.command import CmdResult, Runner, run_cmd
from .lib.files import host_path
from .state_store import record_observed, record_outcome, record_warning

logger = logging.getLogger(__name__)


class ProbeStatus(str, Enum):
    MATCHING = "present-matching"
    MISMATCHING = "present-mismatching"
    ABSENT = "absent"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Probe:
    status: ProbeStatus
    detail: str = ""

    @property
    def converged(self) -> bool:
        return self.status is ProbeStatus.MATCHING

    @classmethod
    def matching(cls, detail: str = "") -> "Probe":
        return cls(ProbeStatus.MATCHING, detail)

    @classmethod
    def mismatching(cls, detail: str = "") -> "Probe":
        return cls(ProbeStatus.MISMATCHING, detail)

    @classmethod
    def absent(cls, detail: str = "") -> "Probe":
        return cls(ProbeStatus.ABSENT, detail)


class Phase(str, Enum):
    PENDING = "pending"
    PROBING = "probing"
    CONVERGING = "converging"
    VERIFYING = "verifying"
    CONVERGED = "converged"
    DEGRADED = "degraded"
    FAILED = "failed"
    SKIPPED = "skipped"


TERMINAL_OK = (Phase.CONVERGED, Phase.DEGRADED)


@dataclass
class ProvisionCtx:
    """Everything a step may touch.

    root prefixes every host path ("/" on a real run). runner/which/sleep
    are injectable so steps can be exercised without a real host.
    """

    desired: DesiredState
    root: str = "/"
    dry_run: bool = False
    runner: Runner = run_cmd
    which: Callable[[str], Optional[str]] = shutil.which
    sleep: Callable[[float], None] = time.sleep

    def path(self, p: str) -> Path:
        return host_path(self.root, p)

    def query(self, argv: Sequence[str], **kwargs: Any) -> CmdResult:
        """Read-only command: always executed, never checked."""
        return self.runner(argv, check=False, **kwargs)

    def run(self, argv: Sequence[str], *, check: bool = True, **kwargs: Any) -> CmdResult:
        """State-changing command: honours dry_run."""
        return self.runner(argv, check=check, dry_run=self.dry_run, **kwargs)

    def settle(self, seconds: float) -> None:
        if seconds > 0 and not self.dry_run:
            self.sleep(seconds)

    def require(self, tool: str) -> str:
        found = self.which(tool)
        if not found:
            raise ProbeUnavailable(f"{tool} not found on PATH")
        return found


class ConvergenceStep:
    """One idempotent resource: probe, apply, verify, optional single fallback.

    apply() is only called when probe() did not report a match, and must be
    safe to call again on a converged resource.
    """

    resource: str = ""
    fatal: bool = False
    optional: bool = False
    tolerate_degraded: bool = False
    depends_on: Tuple[str, ...] = ()

    def probe(self, ctx: ProvisionCtx) -> Probe:
        raise NotImplementedError

    def apply(self, ctx: ProvisionCtx) -> None:
        raise NotImplementedError

    def verify(self, ctx: ProvisionCtx) -> Probe:
        return self.probe(ctx)

    def verify_fallback(self, ctx: ProvisionCtx) -> Probe:
        """Probe used after the fallback ran; the fallback may target a lesser state."""
        return self.verify(ctx)

    def fallback(self, ctx: ProvisionCtx) -> None:
        """Alternate convergence path; only called when has_fallback is True."""
        raise NotImplementedError

    @property
    def has_fallback(self) -> bool:
        return type(self).fallback is not ConvergenceStep.fallback

    def log_action(self, action: str, *args: Any) -> None:
        logger.info("resource=%s action=" + action, self.resource, *args)


@dataclass
class ResourceReport:
    resource: str
    phase: Phase = Phase.PENDING
    initial: Optional[ProbeStatus] = None
    final: Optional[ProbeStatus] = None
    applied: bool = False
    fallback_used: bool = False
    tolerated: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        if self.phase is Phase.CONVERGED:
            return True
        return self.phase is Phase.DEGRADED and self.tolerated


@dataclass(frozen=True)
class ReconcileResult:
    state: Dict[str, Any]
    reports: List[ResourceReport] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.reports)

    def report(self, resource: str) -> ResourceReport:
        for r in self.reports:
            if r.resource == resource:
                return r
        raise KeyError(resource)


def _safe_probe(step: ConvergenceStep, ctx: ProvisionCtx, *, verify: bool, fallback: bool = False) -> Probe:
    try:
        if fallback:
            return step.verify_fallback(ctx)
        return step.verify(ctx) if verify else step.probe(ctx)
    except FatalPrerequisiteMissing:
        raise
    except ProbeUnavailable as e:
        logger.warning("Probe unavailable for %s: %s", step.resource, e)
        return Probe(ProbeStatus.UNKNOWN, str(e))
    except (ProvisionError, OSError, ValueError) as e:
        logger.warning("Probe of %s failed: %s: %s", step.resource, type(e).__name__, e)
        return Probe(ProbeStatus.UNKNOWN, f"{type(e).__name__}: {e}")


def _attempt(
    step: ConvergenceStep,
    ctx: ProvisionCtx,
    action: Callable[[ProvisionCtx], None],
    *,
    fallback: bool = False,
) -> Tuple[Probe, Optional[str]]:
    """Run one convergence action, then verify. Returns (probe, error)."""

    try:
        action(ctx)
    except FatalPrerequisiteMissing:
        raise
    except (ProvisionError, RuntimeError, OSError, ValueError) as e:
        logger.warning("Convergence of %s failed: %s", step.resource, e)
        return _safe_probe(step, ctx, verify=True, fallback=fallback), str(e)

    if ctx.dry_run:
        return Probe.matching("dry-run"), None

    probe = _safe_probe(step, ctx, verify=True, fallback=fallback)
    if not probe.converged:
        err = VerificationFailed(f"verification failed ({probe.status.value}): {probe.detail}".rstrip(": "))
        logger.warning("%s %s", step.resource, err)
        return probe, str(err)
    return probe, None


def _reconcile_one(step: ConvergenceStep, ctx: ProvisionCtx, state: Dict[str, Any]) -> ResourceReport:
    report = ResourceReport(resource=step.resource)
    report.tolerated = step.tolerate_degraded or step.optional

    report.phase = Phase.PROBING
    initial = _safe_probe(step, ctx, verify=False)
    report.initial = initial.status
    record_observed(state, step.resource, initial.status.value, initial.detail)

    if initial.converged:
        logger.info("%s already converged (%s)", step.resource, initial.detail or "no change")
        report.phase = Phase.CONVERGED
        report.final = initial.status
        return report

    logger.info("%s is %s; converging", step.resource, initial.status.value)
    report.phase = Phase.CONVERGING
    report.applied = True
    probe, error = _attempt(step, ctx, step.apply)

    if error is not None and step.has_fallback:
        logger.warning("%s: trying fallback", step.resource)
        report.fallback_used = True
        probe, error = _attempt(step, ctx, step.fallback, fallback=True)

    report.phase = Phase.VERIFYING
    report.final = probe.status
    record_observed(state, step.resource, probe.status.value, probe.detail)

    if error is None:
        report.phase = Phase.DEGRADED if report.fallback_used else Phase.CONVERGED
        return report

    report.error = error
    if step.optional:
        logger.warning("%s (optional) left degraded: %s", step.resource, error)
        record_warning(state, step.resource, error)
        report.phase = Phase.DEGRADED
    else:
        logger.error("%s failed: %s", step.resource, error)
        report.phase = Phase.FAILED
    return report


def run_reconciler(
    *,
    state: Dict[str, Any],
    steps: Sequence[ConvergenceStep],
    ctx: ProvisionCtx,
) -> ReconcileResult:
    """Run steps strictly in order.

    - A failed fatal resource (or FatalPrerequisiteMissing from any step)
      aborts the run; nothing after it is touched.
    - A failed non-fatal resource only blocks the resources that depend on it.
    """

    reports: List[ResourceReport] = []
    phases: Dict[str, Phase] = {}
    # Dependencies outside this run are assumed to be handled elsewhere.
    in_run = {s.resource for s in steps}

    for step in steps:
        state.setdefault("execution", {})["current_resource"] = step.resource

        blocked = [d for d in step.depends_on if d in in_run and phases.get(d) not in TERMINAL_OK]
        if blocked:
            logger.warning("Skipping %s (dependencies not converged: %s)", step.resource, ",".join(blocked))
            report = ResourceReport(resource=step.resource, phase=Phase.SKIPPED, error=f"blocked by {','.join(blocked)}")
        else:
            try:
                report = _reconcile_one(step, ctx, state)
            except FatalPrerequisiteMissing as e:
                logger.critical("%s: %s. Cannot continue.", step.resource, e)
                record_outcome(state, step.resource, Phase.FAILED.value, error=str(e), fatal=True)
                raise

        reports.append(report)
        phases[step.resource] = report.phase
        record_outcome(
            state,
            step.resource,
            report.phase.value,
            fallback_used=report.fallback_used,
            applied=report.applied,
            error=report.error,
        )

        if report.phase is Phase.FAILED and step.fatal:
            logger.critical("%s: fatal resource failed. Cannot continue.", step.resource)
            raise FatalPrerequisiteMissing(f"{step.resource}: {report.error}")

    state.setdefault("execution", {})["current_resource"] = None
    return ReconcileResult(state=state, reports=reports)
