# cli.py
from __future__ import annotations

import subprocess
import sys
from dataclasses import replace
from typing import List, Optional

import click

from promoteci.environments import discover_environments, find_environment
from promoteci.git_facts.git import current_branch, head_sha, repo_name
from promoteci.model import Environment
from promoteci.provisioner import Provisioner, TerraformProvisioner
from promoteci.runner import ConfigurationError, resolve_plan, run_exit_code, run_pipeline
from promoteci.settings import BRANCH_VARS, Settings
from promoteci.status import GitHubStatusReporter, StatusReporter
from promoteci.ui.console import Console, get_console, set_console

EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def build_provisioner(settings: Settings) -> Provisioner:
    return TerraformProvisioner(settings.terraform_bin, timeout=settings.step_timeout)


def resolve_branch(branch_arg: Optional[str], settings: Settings) -> str:
    """
    Branch to run for: --branch, then CI variables, then the local checkout.

    Raises:
        ConfigurationError: if no source yields a branch name
    """
    console = get_console()

    if branch_arg is not None:
        return branch_arg
    if settings.branch:
        console.print_debug(f"Using branch from environment: {settings.branch}")
        return settings.branch
    try:
        branch = current_branch()
    except (subprocess.CalledProcessError, FileNotFoundError):
        branch = None
    if not branch:
        raise ConfigurationError(
            "could not determine the branch name "
            f"(pass --branch or set one of {', '.join(BRANCH_VARS)})"
        )
    console.print_debug(f"Using checked-out branch: {branch}")
    return branch


def build_reporter(settings: Settings, sha: Optional[str]) -> StatusReporter:
    if not settings.can_report:
        raise ConfigurationError("status reporting needs GITHUB_TOKEN and GITHUB_REPOSITORY")

    sha = sha or settings.github_sha
    if not sha:
        try:
            sha = head_sha()
        except (subprocess.CalledProcessError, FileNotFoundError):
            raise ConfigurationError("could not determine the commit sha (pass --sha or set GITHUB_SHA)")

    return GitHubStatusReporter(
        settings.github_repository,
        sha,
        settings.github_token,
        context=settings.status_context,
        api_url=settings.github_api_url,
        target_url=settings.target_url,
    )


def load_environments(environments_dir: str) -> List[Environment]:
    environments = discover_environments(environments_dir)
    if not environments:
        raise ConfigurationError(f"no environments found under {environments_dir}")
    return environments


def _config_error(e: ConfigurationError) -> None:
    get_console().print_error(
        "Configuration error",
        str(e),
        suggestion="Nothing was run. Fix the configuration and re-trigger the pipeline.",
    )
    sys.exit(EXIT_CONFIG_ERROR)


environments_dir_option = click.option(
    "--environments-dir",
    default=None,
    help="Directory holding one subdirectory per environment (default: environments)",
)
branch_option = click.option(
    "--branch",
    default=None,
    help="Branch that triggered the run (defaults to CI variables, then the checked-out branch)",
)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and full terraform output)",
)
@click.pass_context
def cli(ctx, debug):
    """promoteci: branch-per-environment Terraform promotion pipeline."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@branch_option
@environments_dir_option
@click.option("--terraform", "terraform_bin", default=None, help="terraform executable (default: terraform)")
@click.option("--timeout", default=None, type=int, help="Per-step timeout in seconds")
@click.option(
    "--fail-fast/--no-fail-fast",
    default=True,
    show_default=True,
    help="Stop at the first failure, or keep planning the remaining environments",
)
@click.option("--report/--no-report", default=False, show_default=True, help="Post a GitHub commit status")
@click.option("--sha", default=None, help="Commit to attach the status to (default: GITHUB_SHA or HEAD)")
@click.pass_context
def run(ctx, branch, environments_dir, terraform_bin, timeout, fail_fast, report, sha):
    """Run the promotion pipeline for a branch."""
    console = get_console()

    try:
        settings = Settings.from_env()
        overrides: dict = {}
        if terraform_bin:
            overrides["terraform_bin"] = terraform_bin
        if timeout is not None:
            overrides["step_timeout"] = timeout
        if overrides:
            settings = replace(settings, **overrides)

        branch = resolve_branch(branch, settings)
        environments = load_environments(environments_dir or settings.environments_dir)
        reporter = build_reporter(settings, sha) if report else None

        console.print_run_started(
            repository=repo_name(),
            branch=branch,
            environment_count=len(environments),
        )

        pipeline_run = run_pipeline(
            branch,
            environments,
            build_provisioner(settings),
            reporter=reporter,
            fail_fast=fail_fast,
            console=console,
        )
        console.print_results(pipeline_run)
        if pipeline_run.report_errors:
            console.print_error(
                "Status report failed",
                "The commit status was not updated; branch protection will not see this run.",
                details=pipeline_run.report_errors,
            )
        sys.exit(run_exit_code(pipeline_run))

    except ConfigurationError as e:
        _config_error(e)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)


@cli.command()
@branch_option
@environments_dir_option
def plan(branch, environments_dir):
    """Show which steps a branch would run, without running them."""
    try:
        settings = Settings.from_env()
        branch = resolve_branch(branch, settings)
        environments = load_environments(environments_dir or settings.environments_dir)
        get_console().print_plan(resolve_plan(branch, environments))
    except ConfigurationError as e:
        _config_error(e)


@cli.command()
@environments_dir_option
def environments(environments_dir):
    """List the environments the pipeline knows about."""
    console = get_console()
    try:
        settings = Settings.from_env()
        root = environments_dir or settings.environments_dir
        found = load_environments(root)
    except ConfigurationError as e:
        _config_error(e)
        return
    console.print_header(f"Environments ({root})")
    console.print_environments(found)


@cli.command()
@click.argument("environment")
@environments_dir_option
@click.option("--terraform", "terraform_bin", default=None, help="terraform executable (default: terraform)")
@click.option("--yes", is_flag=True, default=False, help="Do not ask for confirmation")
def destroy(environment, environments_dir, terraform_bin, yes):
    """
    Destroy everything in one environment.

    Operator-only: the pipeline never runs this on its own.
    """
    console = get_console()
    try:
        settings = Settings.from_env()
        found = load_environments(environments_dir or settings.environments_dir)
        env = find_environment(environment, found)
        if env is None:
            raise ConfigurationError(
                f"unknown environment {environment!r} (known: {', '.join(e.name for e in found)})"
            )
    except ConfigurationError as e:
        _config_error(e)
        return

    if not yes:
        click.confirm(f"Destroy all resources in '{env.name}' ({env.path})?", abort=True)

    if terraform_bin:
        settings = replace(settings, terraform_bin=terraform_bin)
    provisioner = build_provisioner(settings)

    console.print_info(f"Destroying {env.name}...")
    result = provisioner.init(env)
    if result.ok:
        result = provisioner.destroy(env, auto_approve=True)

    if not result.ok:
        console.print_failure(f"{result.action.value}({env.name})", result.output, exit_code=result.exit_code)
        sys.exit(1)
    if console.debug and result.stdout:
        console.print_info(result.stdout)
    console.print_info(f"Destroyed {env.name}.")


if __name__ == "__main__":
    cli()
