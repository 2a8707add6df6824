"""Console output formatting utilities for promoteci."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Iterable, Optional

from ..model import StepState

if TYPE_CHECKING:
    from ..model import Environment, PipelinePlan, PipelineRun, StepResult


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug

    def print_header(self, title: str) -> None:
        """Print a section header."""
        print(f"\n{title}")
        print("-" * len(title))

    def print_run_started(
        self,
        repository: str,
        branch: str,
        environment_count: int,
    ) -> None:
        """Print run start information."""
        print("\nRUN STARTED")
        print(f"Repository: {repository}")
        print(f"Branch: {branch}")
        print(f"Environments: {environment_count}")
        print()

    def print_plan(self, plan: PipelinePlan) -> None:
        if plan.mode == "environment":
            print(f"Branch '{plan.branch}' deploys environment '{plan.target.name}'")
        else:
            print(f"Branch '{plan.branch}' does not represent an environment; planning all environments")
        for step in plan.steps:
            print(f"  {step.label}")
        if plan.applies:
            print("apply runs with -auto-approve")

    def print_environments(self, environments: Iterable[Environment]) -> None:
        for env in environments:
            print(f"  {env.name}  {env.path}")

    def print_step(self, result: StepResult) -> None:
        """Print step start message."""
        print(f"\nSTEP: {result.label}")

    def print_step_result(self, result: StepResult) -> None:
        if result.state is StepState.SUCCEEDED:
            detail = " (changes pending)" if result.outcome == "changes" else ""
            print(f"STATUS: success{detail}")
            if self.debug and result.output:
                print(result.output)
        else:
            self.print_failure(result.label, result.output, exit_code=result.exit_code)

    def print_step_skipped(self, result: StepResult) -> None:
        print(f"\nSTEP: {result.label}")
        print("STATUS: skipped")

    def print_failure(
        self,
        name: str,
        output: str,
        exit_code: Optional[int] = None,
    ) -> None:
        """
        Print failure message.

        The provisioner's output is printed in full: it is the only place
        the cause of a failed run is visible.
        """
        print(f"STEP FAILED: {name}")
        if exit_code is not None:
            print(f"Exit code: {exit_code}")
        if output:
            print(output.rstrip())

    def print_results(self, run: PipelineRun) -> None:
        """Print final results summary."""
        print("\n" + "=" * 40)
        print("RESULTS")
        print("=" * 40)
        for step in run.steps:
            status_display = "SUCCESS" if step.state is StepState.SUCCEEDED else step.state.value.upper()
            print(f"  {step.label}: {status_display}")
        print(f"RUN: {run.state.value.upper()}")
        if run.duration is not None:
            print(f"Duration: {run.duration:.1f}s")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (initialized by the CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
