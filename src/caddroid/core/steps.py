"""Step numbering and multi-step install plans."""

import time
import tomllib
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, field_validator

if TYPE_CHECKING:
    from caddroid.core.supervisor import CommandSupervisor

DEFAULT_TOTAL_STEPS = 15
DEFAULT_STEP_ESTIMATE = 30


class StepCounter(BaseModel):
    """Display-only ``[current/total]`` counter for one run.

    ``current`` only ever goes up; nothing stops it from passing ``total``.
    """

    current: int = 0
    total: int = DEFAULT_TOTAL_STEPS

    def reset(self, total: int = DEFAULT_TOTAL_STEPS) -> None:
        self.current = 0
        self.total = total

    def increment(self) -> None:
        self.current += 1

    def progress(self) -> str:
        if self.total > 0:
            return f"[{self.current}/{self.total}]"
        return f"[{self.current}]"


class StepStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class InstallStep(BaseModel):
    name: str
    command: str | list[str]
    estimate: int = DEFAULT_STEP_ESTIMATE
    optional: bool = False
    status: StepStatus = StepStatus.PENDING
    duration: float = 0.0

    @field_validator("estimate", mode="before")
    @classmethod
    def _sane_estimate(cls, value: Any) -> int:
        try:
            estimate = int(value)
        except (TypeError, ValueError):
            return DEFAULT_STEP_ESTIMATE
        return estimate if estimate >= 1 else DEFAULT_STEP_ESTIMATE


class PlanReport(BaseModel):
    steps: list[InstallStep] = Field(default_factory=list)
    aborted: bool = False

    @property
    def success_count(self) -> int:
        return sum(1 for s in self.steps if s.status == StepStatus.SUCCESS)

    @property
    def warning_count(self) -> int:
        return sum(1 for s in self.steps if s.status == StepStatus.WARNING)

    @property
    def error_count(self) -> int:
        return sum(1 for s in self.steps if s.status == StepStatus.ERROR)

    @property
    def total_duration(self) -> float:
        return sum(s.duration for s in self.steps)


class StepPlan:
    """Ordered list of named steps executed through a supervisor."""

    def __init__(self, steps: list[InstallStep] | None = None):
        self.steps: list[InstallStep] = list(steps or [])

    def register(
        self,
        name: str,
        command: str | list[str],
        estimate: Any = DEFAULT_STEP_ESTIMATE,
        optional: bool = False,
    ) -> InstallStep:
        step = InstallStep(
            name=name, command=command, estimate=estimate, optional=optional
        )
        self.steps.append(step)
        return step

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def total_estimate(self) -> int:
        return sum(step.estimate for step in self.steps)

    def find(self, identifier: str | int) -> int | None:
        """Return the index for a 1-based step number or an exact step name."""
        text = str(identifier)
        if text.isdigit():
            index = int(text) - 1
            if 0 <= index < len(self.steps):
                return index

        for index, step in enumerate(self.steps):
            if step.name == text:
                return index
        return None

    def run_all(
        self,
        supervisor: "CommandSupervisor",
        confirm: Callable[[InstallStep], bool] | None = None,
    ) -> PlanReport:
        """Run every step in order.

        Optional steps that fail are recorded as warnings. When a required
        step fails, ``confirm(step)`` decides whether to keep going; without
        a callback the plan always continues.
        """
        supervisor.steps.reset(self.total_steps)
        report = PlanReport()

        for step in self.steps:
            started = time.monotonic()
            result = supervisor.run_with_progress(
                step.name, step.estimate, step.command
            )
            step.duration = time.monotonic() - started
            report.steps.append(step)

            if result.ok:
                step.status = StepStatus.SUCCESS
                continue
            if step.optional:
                step.status = StepStatus.WARNING
                continue

            step.status = StepStatus.ERROR
            if confirm is not None and not confirm(step):
                report.aborted = True
                break

        return report


def load_plan(path: Path | str) -> StepPlan:
    """Load a plan from a TOML file of ``[[steps]]`` tables.

    Raises:
        ValueError: If the file has no steps or a step is malformed.
    """
    with open(Path(path).expanduser(), "rb") as f:
        data = tomllib.load(f)

    raw_steps = data.get("steps", [])
    if not raw_steps:
        raise ValueError(f"No [[steps]] defined in {path}")

    plan = StepPlan()
    for entry in raw_steps:
        if not isinstance(entry, dict):
            raise ValueError(f"Each step must be a [[steps]] table: {entry!r}")
        if "name" not in entry or "command" not in entry:
            raise ValueError(f"Each step needs a name and a command: {entry}")
        plan.register(
            entry["name"],
            entry["command"],
            entry.get("estimate", DEFAULT_STEP_ESTIMATE),
            optional=bool(entry.get("optional", False)),
        )
    return plan
