"""Shared fixtures."""

import io

import pytest
from rich.console import Console

from caddroid.core.config import Settings
from caddroid.core.steps import StepCounter
from caddroid.core.supervisor import CommandSupervisor
from caddroid.utils.progress import Indicator


@pytest.fixture
def console():
    return Console(
        file=io.StringIO(), force_terminal=False, color_system=None, width=200
    )


@pytest.fixture
def status_lines(console):
    """Return the non-empty lines written to the test console so far."""

    def read() -> list[str]:
        return [line for line in console.file.getvalue().splitlines() if line.strip()]

    return read


@pytest.fixture
def settings(tmp_path):
    return Settings(temp_root=tmp_path, spinner_delay=0.01, retry_delay=0)


@pytest.fixture
def indicator(console):
    ind = Indicator(console=console, delay=0.01)
    yield ind
    ind._halt()


@pytest.fixture
def supervisor(settings, indicator):
    return CommandSupervisor(settings, steps=StepCounter(total=0), indicator=indicator)
