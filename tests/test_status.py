from __future__ import annotations

import io
import json
import urllib.error
from pathlib import Path

import pytest

from promoteci import status as status_mod
from promoteci.model import Environment
from promoteci.runner import run_pipeline
from promoteci.status import GitHubStatusReporter, StatusReportError, commit_state, describe


class FakeResponse:
    def __init__(self, body=b"{}"):
        self.body = body

    def read(self):
        return self.body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


@pytest.fixture
def sent(monkeypatch):
    requests = []

    def fake_urlopen(req, timeout=None):
        requests.append((req, timeout))
        return FakeResponse(b'{"id": 1}')

    monkeypatch.setattr(status_mod.urllib.request, "urlopen", fake_urlopen)
    return requests


def _envs():
    return [Environment("dev", Path("dev")), Environment("prod", Path("prod"))]


def test_commit_state_and_description_follow_the_run(provisioner, scripted):
    ok = run_pipeline("prod", _envs(), provisioner)
    assert commit_state(ok) == "success"
    assert describe(ok) == "deploy prod: passed"

    bad = run_pipeline("feature", _envs(), scripted({"plan(dev)": "error"}))
    assert commit_state(bad) == "failure"
    assert describe(bad) == "plan 2 environment(s): plan(dev) failed"


def test_reporter_posts_pending_then_success(sent, provisioner):
    reporter = GitHubStatusReporter(
        "acme/infra",
        "abc123",
        "t0ken",
        target_url="https://ci.example/runs/7",
    )

    run_pipeline("dev", _envs(), provisioner, reporter=reporter)

    assert len(sent) == 2
    (first, timeout), (last, _) = sent
    assert timeout == status_mod.DEFAULT_TIMEOUT
    assert first.full_url == "https://api.github.com/repos/acme/infra/statuses/abc123"
    assert first.get_method() == "POST"
    assert first.get_header("Authorization") == "Bearer t0ken"
    assert json.loads(first.data)["state"] == "pending"

    body = json.loads(last.data)
    assert body == {
        "state": "success",
        "description": "deploy dev: passed",
        "context": "promoteci",
        "target_url": "https://ci.example/runs/7",
    }


def test_custom_api_url_and_context(sent, provisioner):
    reporter = GitHubStatusReporter(
        "acme/infra",
        "abc123",
        "t0ken",
        context="terraform/promote",
        api_url="https://ghe.example/api/v3/",
    )

    run_pipeline("feature", _envs(), provisioner, reporter=reporter)

    assert sent[0][0].full_url == "https://ghe.example/api/v3/repos/acme/infra/statuses/abc123"
    assert json.loads(sent[-1][0].data)["context"] == "terraform/promote"


def test_http_error_raises_status_report_error(monkeypatch):
    def fail(req, timeout=None):
        raise urllib.error.HTTPError(req.full_url, 404, "Not Found", {}, io.BytesIO(b'{"message":"Not Found"}'))

    monkeypatch.setattr(status_mod.urllib.request, "urlopen", fail)
    reporter = GitHubStatusReporter("acme/infra", "abc123", "t0ken")

    with pytest.raises(StatusReportError, match="404"):
        reporter._request("POST", "/repos/acme/infra/statuses/abc123", data={})


def test_network_error_raises_status_report_error(monkeypatch):
    def fail(req, timeout=None):
        raise urllib.error.URLError("connection refused")

    monkeypatch.setattr(status_mod.urllib.request, "urlopen", fail)
    reporter = GitHubStatusReporter("acme/infra", "abc123", "t0ken")

    with pytest.raises(StatusReportError, match="Network error"):
        reporter._request("GET", "/rate_limit")


def test_repository_must_include_owner():
    with pytest.raises(ValueError):
        GitHubStatusReporter("infra", "abc123", "t0ken")


def test_description_is_truncated(provisioner):
    long_name = "x" * 200
    run = run_pipeline(long_name, [Environment(long_name, Path("x"))], provisioner)
    assert len(describe(run)) == status_mod.MAX_DESCRIPTION


def test_custom_timeout_is_passed_to_urlopen(sent, provisioner):
    reporter = GitHubStatusReporter("acme/infra", "abc123", "t0ken", timeout=5)

    run_pipeline("dev", _envs(), provisioner, reporter=reporter)

    assert [timeout for _, timeout in sent] == [5, 5]


def test_stalled_api_raises_status_report_error(monkeypatch):
    def stall(req, timeout=None):
        raise TimeoutError("timed out")

    monkeypatch.setattr(status_mod.urllib.request, "urlopen", stall)
    reporter = GitHubStatusReporter("acme/infra", "abc123", "t0ken", timeout=2)

    with pytest.raises(StatusReportError, match="no response within 2s"):
        reporter._request("POST", "/repos/acme/infra/statuses/abc123", data={})
