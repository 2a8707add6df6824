# runner.py
# Promotion pipeline engine.
#
# push to "dev"/"prod" ---> init + plan + apply on that environment only
# push to anything else ---> init + plan on every environment, never apply

from __future__ import annotations

import time
from typing import Dict, Optional, Sequence

from .environments import find_environment
from .model import (
    Action,
    Environment,
    PipelinePlan,
    PipelineRun,
    PlannedStep,
    StepResult,
    StepState,
)
from .provisioner import ERROR, ProvisionResult, Provisioner
from .status import StatusReporter
from .ui.console import Console, get_console


ENVIRONMENT_ACTIONS = (Action.INIT, Action.PLAN, Action.APPLY)
VALIDATION_ACTIONS = (Action.INIT, Action.PLAN)


# ----------------------------------------------------------------------
# Errors
# ----------------------------------------------------------------------

class ConfigurationError(Exception):
    """The run was refused before any provisioning call was made."""


# ----------------------------------------------------------------------
# Planning
# ----------------------------------------------------------------------

def _validate(branch: str, environments: Sequence[Environment]) -> None:
    if not branch or not branch.strip():
        raise ConfigurationError("branch name is empty")
    if not environments:
        raise ConfigurationError("no environments defined")

    names = [e.name for e in environments]
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise ConfigurationError(f"duplicate environment names: {dupes}")


def resolve_plan(branch: str, environments: Sequence[Environment]) -> PipelinePlan:
    """
    Turn a branch name into an ordered list of (environment, action) steps.

    A branch named exactly like an environment deploys that environment:
    init -> plan -> apply. Any other branch validates every environment,
    in the order given: init -> plan for each, no apply anywhere.

    Raises:
        ConfigurationError: empty branch, empty or duplicate environments.
    """
    environments = list(environments)
    _validate(branch, environments)

    target = find_environment(branch, environments)
    if target is not None:
        steps = [PlannedStep(target, a) for a in ENVIRONMENT_ACTIONS]
    else:
        steps = [PlannedStep(env, a) for env in environments for a in VALIDATION_ACTIONS]

    return PipelinePlan(branch=branch, target=target, steps=steps)


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

def _invoke(provisioner: Provisioner, step: PlannedStep) -> ProvisionResult:
    env = step.environment
    if step.action is Action.INIT:
        return provisioner.init(env)
    if step.action is Action.PLAN:
        return provisioner.plan(env)
    if step.action is Action.APPLY:
        return provisioner.apply(env, auto_approve=True)
    raise ValueError(f"action {step.action.value!r} is never scheduled by the pipeline")


def _run_step(provisioner: Provisioner, step: PlannedStep, result: StepResult) -> None:
    result.transition(StepState.RUNNING)
    start = time.time()
    try:
        outcome = _invoke(provisioner, step)
    except Exception as e:
        # collaborator faults look exactly like a failed step
        outcome = ProvisionResult(action=step.action, outcome=ERROR, stderr=f"{type(e).__name__}: {e}")
    result.duration = time.time() - start

    result.outcome = outcome.outcome
    result.exit_code = outcome.exit_code
    result.stdout = outcome.stdout
    result.stderr = outcome.stderr
    result.transition(StepState.SUCCEEDED if outcome.ok else StepState.FAILED)


def _report(reporter: Optional[StatusReporter], run: PipelineRun) -> None:
    if reporter is None:
        return
    try:
        reporter.report(run)
    except Exception as e:
        # the run outcome stands; the caller decides what a lost status means
        run.report_errors.append(f"{type(e).__name__}: {e}")


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def run_pipeline(
    branch: str,
    environments: Sequence[Environment],
    provisioner: Provisioner,
    *,
    reporter: Optional[StatusReporter] = None,
    fail_fast: bool = True,
    console: Optional[Console] = None,
) -> PipelineRun:
    """
    Plan and execute one pipeline run, strictly in order.

    fail_fast=True: the first failed step skips everything after it.
    fail_fast=False: a failed step skips the rest of its own environment
    only; other environments still run so every plan diff is visible.

    The provisioner is never retried. Exceptions it raises are recorded as
    failed steps. Reporter failures are collected on run.report_errors and
    never stop the run from reaching a terminal state. Returns the finished
    run; the caller decides the exit code.
    """
    console = console or get_console()
    plan = resolve_plan(branch, environments)
    run = PipelineRun(plan=plan)

    console.print_plan(plan)
    run.start()
    _report(reporter, run)

    blocked: Dict[str, bool] = {}
    aborted = False

    try:
        for step, result in zip(plan.steps, run.steps):
            env_name = step.environment.name
            if aborted or blocked.get(env_name):
                result.transition(StepState.SKIPPED)
                console.print_step_skipped(result)
                continue

            console.print_step(result)
            _run_step(provisioner, step, result)
            console.print_step_result(result)

            if result.state is StepState.FAILED:
                blocked[env_name] = True
                if fail_fast:
                    aborted = True
    finally:
        run.finish()

    _report(reporter, run)
    return run


def run_exit_code(run: PipelineRun) -> int:
    return 0 if run.succeeded and not run.report_errors else 1

