# settings.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .environments import DEFAULT_ENVIRONMENTS_DIR
from .provisioner import DEFAULT_TIMEOUT
from .runner import ConfigurationError
from .status import DEFAULT_API_URL, DEFAULT_CONTEXT

# Checked in order. BRANCH_NAME is what Cloud Build sets; GITHUB_HEAD_REF is
# the source branch of a pull request and is empty on plain pushes.
BRANCH_VARS = ("PROMOTECI_BRANCH", "BRANCH_NAME", "GITHUB_HEAD_REF", "GITHUB_REF_NAME")


def _first(environ: Mapping[str, str], *names: str) -> Optional[str]:
    for name in names:
        value = environ.get(name, "").strip()
        if value:
            return value
    return None


@dataclass(frozen=True)
class Settings:
    environments_dir: str = DEFAULT_ENVIRONMENTS_DIR
    terraform_bin: str = "terraform"
    step_timeout: int = DEFAULT_TIMEOUT
    branch: Optional[str] = None

    # commit status reporting
    github_token: Optional[str] = None
    github_repository: Optional[str] = None
    github_sha: Optional[str] = None
    github_api_url: str = DEFAULT_API_URL
    status_context: str = DEFAULT_CONTEXT
    target_url: Optional[str] = None

    @property
    def can_report(self) -> bool:
        return bool(self.github_token and self.github_repository)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> Settings:
        env = os.environ if environ is None else environ

        timeout_raw = env.get("PROMOTECI_STEP_TIMEOUT", "").strip()
        try:
            timeout = int(timeout_raw) if timeout_raw else DEFAULT_TIMEOUT
        except ValueError:
            raise ConfigurationError(f"PROMOTECI_STEP_TIMEOUT must be an integer, got {timeout_raw!r}")

        target_url = env.get("PROMOTECI_TARGET_URL") or None
        if target_url is None and env.get("GITHUB_RUN_ID") and env.get("GITHUB_REPOSITORY"):
            server = env.get("GITHUB_SERVER_URL", "https://github.com").rstrip("/")
            target_url = f"{server}/{env['GITHUB_REPOSITORY']}/actions/runs/{env['GITHUB_RUN_ID']}"

        return cls(
            environments_dir=env.get("PROMOTECI_ENVIRONMENTS_DIR") or DEFAULT_ENVIRONMENTS_DIR,
            terraform_bin=env.get("PROMOTECI_TERRAFORM_BIN") or "terraform",
            step_timeout=timeout,
            branch=_first(env, *BRANCH_VARS),
            github_token=env.get("GITHUB_TOKEN") or None,
            github_repository=env.get("GITHUB_REPOSITORY") or None,
            github_sha=env.get("GITHUB_SHA") or None,
            github_api_url=env.get("GITHUB_API_URL") or DEFAULT_API_URL,
            status_context=env.get("PROMOTECI_STATUS_CONTEXT") or DEFAULT_CONTEXT,
            target_url=target_url,
        )
