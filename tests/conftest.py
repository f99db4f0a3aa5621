# tests/conftest.py
import pytest
from typer.testing import CliRunner

from entrypoints.cli.pipeline import app  # ensures imports resolve; run tests from repo root


@pytest.fixture(scope="session")
def cli():
    runner = CliRunner()

    def invoke(*args):
        return runner.invoke(app, list(args))

    return invoke
