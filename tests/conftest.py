"""Shared fixtures for reqq tests."""

import json
import os

import pytest
from click.testing import CliRunner

from reqq import core
from reqq.executor import RequestResult


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
def global_reqq_dir(tmp_path, monkeypatch):
    """Override the global ~/.config/reqq directory to a temp location."""
    fake_global = tmp_path / "fake_home" / ".config" / "reqq"
    fake_global.mkdir(parents=True)
    monkeypatch.setattr(core, "GLOBAL_DIR", fake_global)
    monkeypatch.setattr(core, "GLOBAL_CONFIG", fake_global / "config.yaml")
    return fake_global


def write_request(request_dir, name, text):
    """Write <request_dir>/<name>.reqq and return its path."""
    path = request_dir / f"{name}.reqq"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


def write_env(request_dir, name, data):
    """Write <request_dir>/envs/<name>.json and return its path."""
    path = request_dir / "envs" / f"{name}.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(data if isinstance(data, str) else json.dumps(data))
    return path


def make_request_result(
    status_code=200,
    body=None,
    headers=None,
    elapsed_ms=42.0,
    raw_text="",
):
    """Factory for mock RequestResult objects."""
    r = RequestResult()
    r.status_code = status_code
    r.headers = headers or {}
    r.body = body
    r.elapsed_ms = elapsed_ms
    r.raw_text = raw_text or (
        json.dumps(body) if isinstance(body, dict | list) else str(body or "")
    )
    return r
