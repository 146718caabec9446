"""Design x condition run tracking and results."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from ..data.generator import SurvivalData
from ..data.types import RunStatus
from ..models.results import CoxFit, KaplanMeierFit, LogRankResult, PHTestResult


@dataclass(frozen=True, eq=False)
class ConditionResult:
    """Everything fitted for one design under one censoring condition.

    Attributes:
        design: Covariate design label.
        condition: Censoring condition label.
        data: Observed dataset the models were fitted to.
        censoring: Realized censoring summary.
        km_fits: Kaplan-Meier fit per treatment arm.
        cox: Cox PH fit.
        logrank: Log-rank test between arms.
        ph_test: Schoenfeld residual test.
        comparison: Estimate vs true value, one row per covariate.
    """

    design: str
    condition: str
    data: SurvivalData
    censoring: Dict[str, object]
    km_fits: Dict[str, KaplanMeierFit]
    cox: CoxFit
    logrank: LogRankResult
    ph_test: PHTestResult
    comparison: List[Dict[str, object]]


@dataclass
class ConditionRun:
    """Status record of one design x condition run within a study.

    Attributes:
        run_id: Unique identifier within the study.
        study_id: Parent study identifier.
        design: Covariate design label.
        condition: Censoring condition label.
        status: Current run status.
        failure_reason: Reason if FAILED or SKIPPED.
        error_type: Exception class name if FAILED.
        started_at: Start timestamp.
        completed_at: Completion timestamp.
        n_events: Events in the observed dataset, once censored.
        censored_fraction: Realized censored fraction, once censored.
        iterations: Newton-Raphson iterations of the Cox fit.
        extra: Diagnostic context of a failure, such as the iteration
            count and gradient norm of a failed fit.
    """

    # Identity
    run_id: str
    study_id: str
    design: str
    condition: str

    # Status
    status: RunStatus = RunStatus.PENDING
    failure_reason: Optional[str] = None
    error_type: Optional[str] = None

    # Timing
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    # Outcome
    n_events: Optional[int] = None
    censored_fraction: Optional[float] = None
    iterations: Optional[int] = None
    extra: Dict[str, object] = field(default_factory=dict)

    @classmethod
    def create(cls, study_id: str, design: str, condition: str) -> "ConditionRun":
        run_id = f"{design}__{condition}"
        return cls(run_id=run_id, study_id=study_id, design=design, condition=condition)

    def start(self) -> None:
        """Mark run as started."""
        self.status = RunStatus.RUNNING
        self.started_at = datetime.now()

    def complete(self, result: ConditionResult) -> None:
        """Mark run as completed.

        Args:
            result: Fitted results of the run.
        """
        self.status = RunStatus.COMPLETED
        self.completed_at = datetime.now()
        self.n_events = result.data.n_events
        self.censored_fraction = result.data.censored_fraction
        self.iterations = result.cox.iterations

    def fail(self, error: Exception) -> None:
        """Mark run as failed.

        Args:
            error: The exception that aborted the run.
        """
        self.status = RunStatus.FAILED
        self.completed_at = datetime.now()
        self.failure_reason = str(error)
        self.error_type = type(error).__name__
        for attr in ("iterations", "gradient_norm"):
            if hasattr(error, attr):
                self.extra[attr] = getattr(error, attr)

    def skip(self, reason: str) -> None:
        """Mark run as skipped."""
        self.status = RunStatus.SKIPPED
        self.completed_at = datetime.now()
        self.failure_reason = reason

    @property
    def is_complete(self) -> bool:
        """Check if run is complete (success or failure)."""
        return self.status in (
            RunStatus.COMPLETED,
            RunStatus.FAILED,
            RunStatus.SKIPPED,
        )

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at is None:
            return None
        end = self.completed_at or datetime.now()
        return (end - self.started_at).total_seconds()

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "run_id": self.run_id,
            "study_id": self.study_id,
            "design": self.design,
            "condition": self.condition,
            "status": self.status.name,
            "failure_reason": self.failure_reason,
            "error_type": self.error_type,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "n_events": self.n_events,
            "censored_fraction": self.censored_fraction,
            "iterations": self.iterations,
            "extra": self.extra,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ConditionRun":
        started_at = data.get("started_at")
        if started_at and isinstance(started_at, str):
            started_at = datetime.fromisoformat(started_at)

        completed_at = data.get("completed_at")
        if completed_at and isinstance(completed_at, str):
            completed_at = datetime.fromisoformat(completed_at)

        return cls(
            run_id=data["run_id"],
            study_id=data["study_id"],
            design=data["design"],
            condition=data["condition"],
            status=RunStatus[data["status"]],
            failure_reason=data.get("failure_reason"),
            error_type=data.get("error_type"),
            started_at=started_at,
            completed_at=completed_at,
            n_events=data.get("n_events"),
            censored_fraction=data.get("censored_fraction"),
            iterations=data.get("iterations"),
            extra=data.get("extra", {}),
        )
