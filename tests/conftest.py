"""Shared test fixtures."""

import sys
from pathlib import Path

import pytest

# Add project root and this folder (fakes, tablebuf) to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))
sys.path.insert(0, str(Path(__file__).parent))

from connmon.collectors.resolver import ProcessNameResolver
from fakes import FakeTimerFactory


@pytest.fixture
def processes():
    """pid -> name table served to the resolver."""
    return {100: "alpha", 200: "beta", 300: "svc.host"}


@pytest.fixture
def resolver(processes):
    return ProcessNameResolver(lambda: list(processes.items()))


@pytest.fixture
def timers():
    return FakeTimerFactory()
