# model.py
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Set


class Action(str, Enum):
    INIT = "init"
    PLAN = "plan"
    APPLY = "apply"
    DESTROY = "destroy"


class StepState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class RunState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_STEP_TRANSITIONS: Dict[StepState, Set[StepState]] = {
    StepState.PENDING: {StepState.RUNNING, StepState.SKIPPED},
    StepState.RUNNING: {StepState.SUCCEEDED, StepState.FAILED},
    StepState.SUCCEEDED: set(),
    StepState.FAILED: set(),
    StepState.SKIPPED: set(),
}

_RUN_TRANSITIONS: Dict[RunState, Set[RunState]] = {
    RunState.PENDING: {RunState.RUNNING},
    RunState.RUNNING: {RunState.SUCCEEDED, RunState.FAILED},
    RunState.SUCCEEDED: set(),
    RunState.FAILED: set(),
}


class InvalidTransition(Exception):
    """Raised when a run or step is moved to a state it cannot reach."""

    def __init__(self, what: str, current: Enum, target: Enum):
        self.what = what
        self.current = current
        self.target = target
        super().__init__(f"{what}: cannot go from {current.value} to {target.value}")


@dataclass(frozen=True)
class Environment:
    """A deployable environment: one directory under the environments root."""
    name: str
    path: Path

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class PlannedStep:
    environment: Environment
    action: Action

    @property
    def label(self) -> str:
        return f"{self.action.value}({self.environment.name})"


@dataclass(frozen=True)
class PipelinePlan:
    """
    Ordered steps for one pipeline run.

    `target` is the environment the branch maps to, or None when the branch
    is a feature branch and every environment is only validated.
    """
    branch: str
    target: Optional[Environment]
    steps: List[PlannedStep]

    @property
    def mode(self) -> str:
        return "environment" if self.target is not None else "validation"

    @property
    def applies(self) -> bool:
        return any(s.action is Action.APPLY for s in self.steps)

    @property
    def environments(self) -> List[Environment]:
        seen: List[Environment] = []
        for s in self.steps:
            if s.environment not in seen:
                seen.append(s.environment)
        return seen


@dataclass
class StepResult:
    """Outcome of one planned step. Output is kept exactly as the provisioner produced it."""
    environment: Environment
    action: Action
    state: StepState = StepState.PENDING
    outcome: str | None = None      # "success" | "changes" | "error"
    exit_code: int | None = None
    stdout: str = ""
    stderr: str = ""
    duration: float | None = None

    @property
    def label(self) -> str:
        return f"{self.action.value}({self.environment.name})"

    @property
    def output(self) -> str:
        if self.stdout and self.stderr:
            return f"{self.stdout.rstrip()}\n{self.stderr}"
        return self.stdout or self.stderr

    def transition(self, target: StepState) -> None:
        if target not in _STEP_TRANSITIONS[self.state]:
            raise InvalidTransition(f"step {self.label}", self.state, target)
        self.state = target


@dataclass
class PipelineRun:
    """
    One execution of a pipeline plan.

    pending -> running -> succeeded | failed. Terminal states never change.
    """
    plan: PipelinePlan
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: RunState = RunState.PENDING
    steps: List[StepResult] = field(default_factory=list)
    started_at: float | None = None
    finished_at: float | None = None
    report_errors: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.steps:
            self.steps = [StepResult(environment=s.environment, action=s.action) for s in self.plan.steps]

    @property
    def branch(self) -> str:
        return self.plan.branch

    @property
    def succeeded(self) -> bool:
        return self.state is RunState.SUCCEEDED

    @property
    def finished(self) -> bool:
        return self.state in (RunState.SUCCEEDED, RunState.FAILED)

    @property
    def attempted(self) -> List[StepResult]:
        return [s for s in self.steps if s.state not in (StepState.PENDING, StepState.SKIPPED)]

    @property
    def failed_step(self) -> Optional[StepResult]:
        for s in self.steps:
            if s.state is StepState.FAILED:
                return s
        return None

    @property
    def duration(self) -> float | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return self.finished_at - self.started_at

    def transition(self, target: RunState) -> None:
        if target not in _RUN_TRANSITIONS[self.state]:
            raise InvalidTransition(f"run {self.run_id}", self.state, target)
        self.state = target
        if target is RunState.RUNNING:
            self.started_at = time.time()
        elif self.finished:
            self.finished_at = time.time()

    def start(self) -> None:
        self.transition(RunState.RUNNING)

    def finish(self) -> None:
        """Close the run: succeeded iff every attempted step succeeded."""
        ok = all(s.state is StepState.SUCCEEDED for s in self.attempted)
        self.transition(RunState.SUCCEEDED if ok else RunState.FAILED)
