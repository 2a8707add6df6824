# status.py
from __future__ import annotations

import json
import urllib.error
import urllib.request
from typing import TYPE_CHECKING, Optional, Protocol
from urllib.parse import urljoin

if TYPE_CHECKING:
    from .model import PipelineRun


DEFAULT_CONTEXT = "promoteci"
DEFAULT_API_URL = "https://api.github.com"
MAX_DESCRIPTION = 140
DEFAULT_TIMEOUT = 30


class StatusReportError(Exception):
    """Raised when the commit status could not be delivered."""
    pass


class StatusReporter(Protocol):
    def report(self, run: PipelineRun) -> None: ...


def commit_state(run: PipelineRun) -> str:
    """Map a run to the binary signal branch protection understands."""
    if not run.finished:
        return "pending"
    return "success" if run.succeeded else "failure"


def describe(run: PipelineRun) -> str:
    plan = run.plan
    if plan.mode == "environment":
        what = f"deploy {plan.target.name}"
    else:
        what = f"plan {len(plan.environments)} environment(s)"

    if not run.finished:
        text = f"{what}: running"
    elif run.succeeded:
        text = f"{what}: passed"
    else:
        failed = run.failed_step
        text = f"{what}: {failed.label} failed" if failed else f"{what}: failed"
    return text[:MAX_DESCRIPTION]


class GitHubStatusReporter:
    """Posts the run result as a GitHub commit status."""

    def __init__(
        self,
        repository: str,
        sha: str,
        token: str,
        *,
        context: str = DEFAULT_CONTEXT,
        api_url: str = DEFAULT_API_URL,
        target_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Args:
            repository: "owner/name"
            sha: commit the status is attached to
            token: token allowed to write commit statuses
            context: check name; branch protection requires it by this name
            api_url: API base URL (differs on GitHub Enterprise)
            target_url: optional link shown next to the status (CI log URL)
            timeout: seconds to wait for the API before giving up
        """
        if "/" not in repository:
            raise ValueError(f"repository must look like 'owner/name', got {repository!r}")
        self.repository = repository
        self.sha = sha
        self.token = token
        self.context = context
        self.base_url = api_url.rstrip("/")
        self.target_url = target_url
        self.timeout = timeout

    def _request(self, method: str, path: str, data: Optional[dict] = None) -> dict:
        url = urljoin(self.base_url + "/", path.lstrip("/"))

        req_headers = {
            "Content-Type": "application/json",
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.token}",
        }
        req_data = None
        if data is not None:
            req_data = json.dumps(data).encode("utf-8")

        req = urllib.request.Request(url, data=req_data, headers=req_headers, method=method)

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                response_data = response.read().decode("utf-8")
                if response_data:
                    return json.loads(response_data)
                return {}
        except urllib.error.HTTPError as e:
            error_body = e.read().decode("utf-8") if e.fp else ""
            raise StatusReportError(f"status request failed: {e.code} {e.reason}. {error_body}")
        except urllib.error.URLError as e:
            raise StatusReportError(f"Network error: {e.reason}")
        except TimeoutError:
            raise StatusReportError(f"Network error: no response within {self.timeout}s")
        except json.JSONDecodeError as e:
            raise StatusReportError(f"Invalid JSON response: {e}")

    def payload(self, run: PipelineRun) -> dict:
        body = {
            "state": commit_state(run),
            "description": describe(run),
            "context": self.context,
        }
        if self.target_url:
            body["target_url"] = self.target_url
        return body

    def report(self, run: PipelineRun) -> None:
        self._request(
            "POST",
            f"/repos/{self.repository}/statuses/{self.sha}",
            data=self.payload(run),
        )
