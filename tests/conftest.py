"""Shared fixtures: scripted provisioner and reporter fakes."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Tuple

import pytest

from promoteci.model import Action, Environment, PipelineRun, RunState
from promoteci.provisioner import CHANGES, ERROR, SUCCESS, ProvisionResult
from promoteci.ui.console import Console, set_console


class FakeProvisioner:
    """
    Returns scripted outcomes and records every call as "action(env)".

    script maps "plan(dev)" style labels to an outcome string or an
    exception instance to raise. Unscripted calls succeed.
    """

    def __init__(self, script: Dict[str, object] | None = None):
        self.script = dict(script or {})
        self.calls: List[str] = []
        self.auto_approve: List[bool] = []

    def _result(self, action: Action, env: Environment) -> ProvisionResult:
        label = f"{action.value}({env.name})"
        self.calls.append(label)
        scripted = self.script.get(label, SUCCESS)
        if isinstance(scripted, Exception):
            raise scripted
        exit_code = {SUCCESS: 0, CHANGES: 2, ERROR: 1}[scripted]
        return ProvisionResult(
            action=action,
            outcome=scripted,
            exit_code=exit_code,
            stdout=f"{label} stdout",
            stderr=f"{label} stderr" if scripted == ERROR else "",
        )

    def init(self, env):
        return self._result(Action.INIT, env)

    def plan(self, env):
        return self._result(Action.PLAN, env)

    def apply(self, env, auto_approve=True):
        self.auto_approve.append(auto_approve)
        return self._result(Action.APPLY, env)

    def destroy(self, env, auto_approve=True):
        return self._result(Action.DESTROY, env)


class RecordingReporter:
    def __init__(self):
        self.reports: List[Tuple[RunState, List[str]]] = []

    def report(self, run: PipelineRun) -> None:
        self.reports.append((run.state, [s.state.value for s in run.steps]))


@pytest.fixture(autouse=True)
def quiet_console():
    console = Console(debug=False)
    set_console(console)
    return console


@pytest.fixture
def envs(tmp_path: Path) -> List[Environment]:
    out = []
    for name in ("dev", "prod"):
        path = tmp_path / "environments" / name
        path.mkdir(parents=True)
        out.append(Environment(name=name, path=path))
    return out


@pytest.fixture
def provisioner() -> FakeProvisioner:
    return FakeProvisioner()


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture
def scripted():
    """Factory: scripted({"plan(dev)": "error"}) -> FakeProvisioner."""
    return FakeProvisioner
