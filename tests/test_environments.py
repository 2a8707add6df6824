from __future__ import annotations

import pytest

from promoteci.environments import discover_environments, find_environment
from promoteci.runner import ConfigurationError


def test_discovers_subdirectories_sorted_by_name(tmp_path):
    for name in ("prod", "dev", "staging"):
        (tmp_path / name).mkdir()

    envs = discover_environments(tmp_path)

    assert [e.name for e in envs] == ["dev", "prod", "staging"]
    assert envs[0].path == (tmp_path / "dev").resolve()


def test_ignores_files_and_hidden_directories(tmp_path):
    (tmp_path / "dev").mkdir()
    (tmp_path / ".terraform").mkdir()
    (tmp_path / "README.md").write_text("docs")

    envs = discover_environments(tmp_path)

    assert [e.name for e in envs] == ["dev"]


def test_empty_root_gives_no_environments(tmp_path):
    assert discover_environments(tmp_path) == []


def test_missing_root_is_a_configuration_error(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        discover_environments(tmp_path / "nope")


def test_find_environment_is_exact_and_case_sensitive(tmp_path):
    (tmp_path / "dev").mkdir()
    (tmp_path / "prod").mkdir()
    envs = discover_environments(tmp_path)

    assert find_environment("prod", envs).name == "prod"
    assert find_environment("Prod", envs) is None
    assert find_environment("pro", envs) is None
