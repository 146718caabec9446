"""Study configuration and management."""

import copy
import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from ..data.scenarios import (
    DEFAULT_CONDITIONS,
    CensoringCondition,
    StudyScenario,
)
from ..data.types import StudyStatus
from ..diagnostics.schoenfeld import TIME_TRANSFORMS
from ..errors import InvalidParameterError
from ..models.cox import TIES_METHODS
from ..models.kaplan_meier import CONF_TYPES


def _conditions_from_means(
    means: List[Optional[float]],
    sd: float,
    labels: Optional[List[str]] = None,
) -> List[CensoringCondition]:
    """Build conditions from a flat list of censoring means sharing one sd."""
    if labels is None:
        default_labels = [c.label for c in DEFAULT_CONDITIONS]
        if len(means) == len(default_labels):
            labels = default_labels
        else:
            labels = [f"condition_{i}" for i in range(len(means))]
    if len(labels) != len(means):
        raise InvalidParameterError(
            f"Got {len(labels)} condition labels for {len(means)} censoring means"
        )
    return [
        CensoringCondition(label=label, mean=mean, sd=sd)
        for label, mean in zip(labels, means)
    ]


@dataclass
class StudyConfig:
    """Complete study configuration.

    Attributes:
        name: Human-readable study name.
        seed: Root seed; every random stream of the study derives from it.
        scenario: Generating model.
        conditions: Censoring conditions, applied to every design.
        ties: Tie handling for the Cox fits.
        conf_level: Confidence level for Cox and Kaplan-Meier intervals.
        zph_transform: Time transform of the Schoenfeld test.
        km_conf_type: Kaplan-Meier confidence interval transform.
        risk_table_times: Times at which risk tables are tabulated.
        make_plots: Whether the runner renders PNG figures.
        study_id: Unique identifier (auto-generated if not provided).
        description: Optional description.
        created_at: Creation timestamp.
        started_at: Start timestamp.
        completed_at: Completion timestamp.
        status: Current study status.
    """

    # Identity
    name: str
    seed: int

    # Generating model
    scenario: StudyScenario

    # Censoring
    conditions: List[CensoringCondition] = field(
        default_factory=lambda: list(DEFAULT_CONDITIONS)
    )

    # Analysis
    ties: str = "efron"
    conf_level: float = 0.95
    zph_transform: str = "km"
    km_conf_type: str = "log"
    risk_table_times: List[float] = field(
        default_factory=lambda: [0.0, 30.0, 60.0, 90.0, 120.0]
    )
    make_plots: bool = False

    # Identity (auto-generated)
    study_id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    description: str = ""

    # Timestamps
    created_at: datetime = field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    # Status
    status: StudyStatus = StudyStatus.PENDING

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Validate the study configuration.

        Raises:
            InvalidParameterError: If configuration is invalid.
        """
        self.scenario.validate()

        if not isinstance(self.seed, int) or self.seed < 0:
            raise InvalidParameterError(f"seed must be a non-negative integer, got {self.seed!r}")

        if not self.conditions:
            raise InvalidParameterError("conditions cannot be empty")

        labels = [c.label for c in self.conditions]
        if len(set(labels)) != len(labels):
            raise InvalidParameterError(f"Condition labels must be unique, got {labels}")

        if self.ties not in TIES_METHODS:
            raise InvalidParameterError(f"ties must be one of {TIES_METHODS}, got {self.ties!r}")

        if not 0.0 < self.conf_level < 1.0:
            raise InvalidParameterError(f"conf_level must be in (0, 1), got {self.conf_level}")

        if self.zph_transform not in TIME_TRANSFORMS:
            raise InvalidParameterError(
                f"zph_transform must be one of {list(TIME_TRANSFORMS)}, "
                f"got {self.zph_transform!r}"
            )

        if self.km_conf_type not in CONF_TYPES:
            raise InvalidParameterError(
                f"km_conf_type must be one of {CONF_TYPES}, got {self.km_conf_type!r}"
            )

        if any(t < 0 for t in self.risk_table_times):
            raise InvalidParameterError("risk_table_times must be >= 0")

    @property
    def n_runs(self) -> int:
        """Number of design x condition runs."""
        return len(self.scenario.designs) * len(self.conditions)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization.

        Scenario fields are written flat, next to the censoring means, so the
        file reads as one flat parameter set.
        """
        scenario = self.scenario.to_dict()
        scenario.pop("name")
        scenario.pop("description")
        return {
            "study_id": self.study_id,
            "name": self.name,
            "description": self.description,
            "seed": self.seed,
            **scenario,
            "conditions": [c.to_dict() for c in self.conditions],
            "analysis": {
                "ties": self.ties,
                "conf_level": self.conf_level,
                "zph_transform": self.zph_transform,
                "km_conf_type": self.km_conf_type,
                "risk_table_times": self.risk_table_times,
                "make_plots": self.make_plots,
            },
            "status": self.status.name,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StudyConfig":
        """Create from dictionary.

        Conditions are read from ``conditions`` (a list of
        ``{label, mean, sd}`` records) or, failing that, from
        ``censoring_mean_per_condition`` with a shared ``censoring_sd`` and
        optional ``condition_labels``. A null mean means horizon-only
        censoring.

        Args:
            data: Dictionary with study configuration.

        Returns:
            StudyConfig instance.
        """
        if "seed" not in data:
            raise InvalidParameterError("Study configuration must define a seed")

        scenario_data = data.get("scenario", data)
        if isinstance(scenario_data, str):
            from ..data.scenarios import get_scenario
            scenario = get_scenario(scenario_data)
        else:
            scenario = StudyScenario.from_dict(
                {"name": data.get("name", "custom"), **scenario_data}
            )

        if "conditions" in data:
            conditions = [CensoringCondition.from_dict(c) for c in data["conditions"]]
        elif "censoring_mean_per_condition" in data:
            conditions = _conditions_from_means(
                data["censoring_mean_per_condition"],
                sd=data.get("censoring_sd", 20.0),
                labels=data.get("condition_labels"),
            )
        else:
            conditions = list(DEFAULT_CONDITIONS)

        analysis = data.get("analysis", {})

        status_str = data.get("status", "PENDING")
        status = StudyStatus[status_str.upper()]

        created_at = data.get("created_at")
        if created_at and isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        else:
            created_at = datetime.now()

        started_at = data.get("started_at")
        if started_at and isinstance(started_at, str):
            started_at = datetime.fromisoformat(started_at)

        completed_at = data.get("completed_at")
        if completed_at and isinstance(completed_at, str):
            completed_at = datetime.fromisoformat(completed_at)

        return cls(
            study_id=data.get("study_id", str(uuid.uuid4())[:8]),
            name=data.get("name", "Unnamed Study"),
            description=data.get("description", ""),
            seed=data["seed"],
            scenario=scenario,
            conditions=conditions,
            ties=analysis.get("ties", "efron"),
            conf_level=analysis.get("conf_level", 0.95),
            zph_transform=analysis.get("zph_transform", "km"),
            km_conf_type=analysis.get("km_conf_type", "log"),
            risk_table_times=analysis.get(
                "risk_table_times", [0.0, 30.0, 60.0, 90.0, 120.0]
            ),
            make_plots=analysis.get("make_plots", False),
            status=status,
            created_at=created_at,
            started_at=started_at,
            completed_at=completed_at,
        )

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "StudyConfig":
        """Load a study from a JSON file."""
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)

    def to_json(self, path: Union[str, Path]) -> None:
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    def with_seed(self, seed: int) -> "StudyConfig":
        """Copy of this configuration with another seed and a fresh status."""
        data = self.to_dict()
        data.update(
            seed=seed,
            study_id=f"{self.study_id}_seed{seed}",
            status="PENDING",
            started_at=None,
            completed_at=None,
        )
        return StudyConfig.from_dict(data)

    def start(self) -> None:
        """Mark study as started."""
        self.status = StudyStatus.RUNNING
        self.started_at = datetime.now()

    def finish(self, n_failed: int, n_total: int) -> None:
        """Mark study as finished, given how many runs failed."""
        if n_failed == 0:
            self.status = StudyStatus.COMPLETED
        elif n_failed < n_total:
            self.status = StudyStatus.PARTIAL
        else:
            self.status = StudyStatus.FAILED
        self.completed_at = datetime.now()

    def fail(self) -> None:
        """Mark study as failed."""
        self.status = StudyStatus.FAILED
        self.completed_at = datetime.now()


PREDEFINED_STUDIES = {
    "censoring_study": StudyConfig(
        name="censoring_study",
        description=(
            "Cox PH estimates under 4 censoring levels, "
            "one- and two-covariate designs"
        ),
        seed=42,
        study_id="censoring_study",
        scenario=StudyScenario(
            name="censoring_study",
            description="Treatment plus cigarettes/day, n=500, shape 0.8",
            beta_covariate=-0.03,
        ),
    ),
    "treatment_only": StudyConfig(
        name="treatment_only",
        description="Cox PH estimates under 4 censoring levels, treatment only",
        seed=42,
        study_id="treatment_only",
        scenario=StudyScenario(
            name="treatment_only",
            description="Treatment effect only, n=500, shape 0.8",
        ),
    ),
}


def get_study(name: str) -> StudyConfig:
    """Get a fresh copy of a predefined study by name.

    Raises:
        InvalidParameterError: If study name is not found.
    """
    if name not in PREDEFINED_STUDIES:
        raise InvalidParameterError(
            f"Unknown study: {name}. "
            f"Available: {list(PREDEFINED_STUDIES.keys())}"
        )
    return copy.deepcopy(PREDEFINED_STUDIES[name])
