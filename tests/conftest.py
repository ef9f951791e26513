"""Shared fixtures for reqrun tests."""

import json
import os

import pytest
from click.testing import CliRunner

from reqrun import core
from reqrun.executor import RequestResult
from reqrun.store import VariableStore


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def tmp_project(tmp_path):
    """Create a temporary project directory and cd into it."""
    original = os.getcwd()
    os.chdir(tmp_path)
    yield tmp_path
    os.chdir(original)


@pytest.fixture
def global_reqrun_dir(tmp_path, monkeypatch):
    """Override the global ~/.reqrun directory to a temp location."""
    fake_global = tmp_path / "fake_home" / ".reqrun"
    fake_global.mkdir(parents=True)
    monkeypatch.setattr(core, "GLOBAL_DIR", fake_global)
    monkeypatch.setattr(core, "GLOBAL_CONFIG", fake_global / "config.yaml")
    return fake_global


@pytest.fixture
def fake_home(tmp_path):
    home = tmp_path / "home"
    home.mkdir()
    return home


@pytest.fixture
def store(fake_home):
    return VariableStore(home=fake_home)


def make_request_result(
    status_code=200,
    body=None,
    headers=None,
    elapsed_ms=42.0,
    error=None,
    raw_text="",
):
    """Factory for mock RequestResult objects."""
    r = RequestResult()
    r.status_code = status_code
    r.headers = headers or {}
    r.body = body
    r.elapsed_ms = elapsed_ms
    r.error = error
    r.raw_text = raw_text or (
        json.dumps(body) if isinstance(body, dict | list) else str(body or "")
    )
    return r


def write_descriptor(path, requests=None, **top):
    """Write a descriptor JSON file and return its path."""
    data = {"base_url": "http://localhost:3000"}
    data.update(top)
    data["requests"] = requests if requests is not None else []
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data))
    return path
