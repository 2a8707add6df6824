# environments.py
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional

from .model import Environment


DEFAULT_ENVIRONMENTS_DIR = "environments"


def discover_environments(root: str | Path = DEFAULT_ENVIRONMENTS_DIR) -> List[Environment]:
    """
    List the environments defined under `root`.

    Every immediate, non-hidden subdirectory is one environment, named after
    the directory. Result is sorted by name so runs are deterministic.

    Raises:
        ConfigurationError: if `root` does not exist or is not a directory.
    """
    # Import here to avoid circular import
    from .runner import ConfigurationError

    root_p = Path(root).expanduser()
    if not root_p.is_dir():
        raise ConfigurationError(f"environments directory not found: {root_p}")

    envs = [
        Environment(name=p.name, path=p.resolve())
        for p in root_p.iterdir()
        if p.is_dir() and not p.name.startswith(".")
    ]
    return sorted(envs, key=lambda e: e.name)


def find_environment(name: str, environments: Iterable[Environment]) -> Optional[Environment]:
    # exact, case-sensitive
    for env in environments:
        if env.name == name:
            return env
    return None
