"""Fixtures for CLI tests."""
import json
from unittest.mock import MagicMock

import pytest
from typer.testing import CliRunner

from strepsil_cli import api as cli_api
from strepsil_cli import cli as cli_module


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def temp_config(tmp_path, monkeypatch):
    """Point the CLI config at a temp directory."""
    config_dir = tmp_path / ".strepsil"
    config_file = config_dir / "config.yaml"
    for module in (cli_api, cli_module):
        monkeypatch.setattr(module, "CONFIG_FILE", config_file)
    monkeypatch.setattr(cli_api, "CONFIG_DIR", config_dir)
    monkeypatch.delenv("STREPSIL_URL", raising=False)
    return config_file


@pytest.fixture
def env_url(monkeypatch, temp_config):
    monkeypatch.setenv("STREPSIL_URL", "http://strepsil.test")
    return "http://strepsil.test"


def _response(payload=None, content=None, headers=None):
    response = MagicMock()
    response.read.return_value = content if content is not None else json.dumps(payload).encode()
    response.headers = headers or {}
    response.__enter__.return_value = response
    return response


@pytest.fixture
def make_response():
    """Factory for urlopen() results usable as a context manager."""
    return _response


@pytest.fixture
def mock_health_response():
    return _response({
        "status": "healthy",
        "service": "strepsil-api",
        "version": "1.0.0",
        "database": "connected",
        "checks": {"encryption": {"status": "ok", "message": "Encryption key valid"}},
    })
