# provisioner.py
# Thin wrapper around the terraform CLI.
# The pipeline engine only talks to the Provisioner protocol, so tests can
# swap in a scripted fake and never need terraform installed.

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol

from .model import Action, Environment

SUCCESS = "success"
CHANGES = "changes"
ERROR = "error"

DEFAULT_TIMEOUT = 30 * 60

TOOL_HINTS = {
    "terraform": "Install Terraform (https://developer.hashicorp.com/terraform/install) or fix PATH.",
}

# terraform plan -detailed-exitcode: 0 = no changes, 1 = error, 2 = changes present
_PLAN_EXIT_OUTCOMES = {0: SUCCESS, 2: CHANGES}


@dataclass(frozen=True)
class ProvisionResult:
    """What one provisioning call produced."""
    action: Action
    outcome: str
    exit_code: int | None = None
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome != ERROR

    @property
    def output(self) -> str:
        if self.stdout and self.stderr:
            return f"{self.stdout.rstrip()}\n{self.stderr}"
        return self.stdout or self.stderr


class Provisioner(Protocol):
    def init(self, env: Environment) -> ProvisionResult: ...

    def plan(self, env: Environment) -> ProvisionResult: ...

    def apply(self, env: Environment, auto_approve: bool = True) -> ProvisionResult: ...

    def destroy(self, env: Environment, auto_approve: bool = True) -> ProvisionResult: ...


class TerraformProvisioner:
    """
    Runs terraform in an environment directory.

    Pipeline commands are non-interactive (-input=false). The remote state
    backend is whatever the environment's own configuration declares.
    """

    def __init__(
        self,
        binary: str = "terraform",
        *,
        timeout: int | None = DEFAULT_TIMEOUT,
        env: Optional[Dict[str, str]] = None,
        color: bool = False,
    ):
        self.binary = binary
        self.timeout = timeout
        self.env = dict(env or {})
        self.color = color

    def _base_args(self, command: str, interactive: bool = False) -> List[str]:
        args = [self.binary, command]
        if not interactive:
            args.append("-input=false")
        if not self.color:
            args.append("-no-color")
        return args

    def _run(self, action: Action, env: Environment, args: List[str]) -> subprocess.CompletedProcess[str] | ProvisionResult:
        cwd = env.path
        if not cwd.is_dir():
            return ProvisionResult(
                action=action,
                outcome=ERROR,
                stderr=f"[{env.name}] environment directory not found: {cwd}",
            )

        child_env = os.environ.copy()
        child_env["TF_IN_AUTOMATION"] = "1"
        child_env.update(self.env)

        try:
            return subprocess.run(
                args,
                cwd=str(cwd),
                env=child_env,
                text=True,
                capture_output=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            hint = TOOL_HINTS.get(os.path.basename(self.binary), f"Install {self.binary} or fix PATH.")
            return ProvisionResult(
                action=action,
                outcome=ERROR,
                stderr=f"{self.binary} not found. {hint}",
            )
        except subprocess.TimeoutExpired as e:
            return ProvisionResult(
                action=action,
                outcome=ERROR,
                stdout=_text(e.stdout),
                stderr=_text(e.stderr) + f"\n{self.binary} {action.value} timed out after {self.timeout}s",
            )
        except OSError as e:
            return ProvisionResult(action=action, outcome=ERROR, stderr=f"could not run {self.binary}: {e}")

    def _call(self, action: Action, env: Environment, args: List[str], outcomes: Dict[int, str]) -> ProvisionResult:
        proc = self._run(action, env, args)
        if isinstance(proc, ProvisionResult):
            return proc
        return ProvisionResult(
            action=action,
            outcome=outcomes.get(proc.returncode, ERROR),
            exit_code=proc.returncode,
            stdout=proc.stdout,
            stderr=proc.stderr,
        )

    def init(self, env: Environment) -> ProvisionResult:
        return self._call(Action.INIT, env, self._base_args("init"), {0: SUCCESS})

    def plan(self, env: Environment) -> ProvisionResult:
        args = self._base_args("plan") + ["-detailed-exitcode"]
        return self._call(Action.PLAN, env, args, _PLAN_EXIT_OUTCOMES)

    def apply(self, env: Environment, auto_approve: bool = True) -> ProvisionResult:
        args = self._base_args("apply")
        if auto_approve:
            args.append("-auto-approve")
        return self._call(Action.APPLY, env, args, {0: SUCCESS})

    def destroy(self, env: Environment, auto_approve: bool = True) -> ProvisionResult:
        # terraform can only ask for approval when input is enabled
        args = self._base_args("destroy", interactive=not auto_approve)
        if auto_approve:
            args.append("-auto-approve")
        return self._call(Action.DESTROY, env, args, {0: SUCCESS})


def _text(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data
