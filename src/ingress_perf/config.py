"""Loading of test case definitions from YAML."""

from pathlib import Path
from typing import List

import yaml
from pydantic import ValidationError

from ingress_perf.exceptions import ConfigError
from ingress_perf.models import TestCaseConfig


def load_config(path: Path) -> List[TestCaseConfig]:
    """Read the ordered list of test cases under the top-level ``config`` key.

    Example::

        config:
          - termination: edge
            connections: 200
            serverReplicas: 9
            concurrency: 6
            duration: 2m

    Raises:
        ConfigError: the file is unreadable, empty or contains an invalid entry.
    """
    try:
        with open(path) as f:
            document = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    entries = document.get("config") if isinstance(document, dict) else None
    if not entries or not isinstance(entries, list):
        raise ConfigError(f"No test cases found under 'config' in {path}")

    test_cases = []
    for i, entry in enumerate(entries, start=1):
        if not isinstance(entry, dict):
            raise ConfigError(f"Test case {i} in {path} is not a mapping")
        try:
            test_cases.append(TestCaseConfig(**entry))
        except ValidationError as e:
            raise ConfigError(f"Invalid test case {i} in {path}: {e}") from e
    return test_cases
