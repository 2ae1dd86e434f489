"""Shared fixtures for credd tests."""
import json
import textwrap
from pathlib import Path

import httpx
import pytest


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path_factory, monkeypatch):
    """Keep the user's ~/.config/credd and CREDD_* variables out of tests."""
    fake_home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(fake_home))
    monkeypatch.setattr(Path, "home", lambda: fake_home)
    for name in ("CREDD_CONFIG", "CREDD_BUILD_DIR", "CREDD_MARKER"):
        monkeypatch.delenv(name, raising=False)
    return fake_home


def service_block(service_name="github", token="test-token", project_path="owner/repo", **extra):
    """Python source for a ``service = {...}`` section."""
    service = {
        "serviceName": service_name,
        "token": token,
        "projectPath": project_path,
        "projectName": "Test Project",
        "projectCredsUrl": f"https://github.com/{project_path}",
        "projectCredsOwner": "@owner",
    }
    service.update(extra)
    return f"service = {service!r}\n"


def write_project(directory: Path, body: str, marker: bool = False) -> Path:
    """Write ``config.py`` (and optionally the ``index.py`` marker) into ``directory``."""
    directory.mkdir(parents=True, exist_ok=True)
    # ``service_block() + """..."""`` puts an unindented line before an indented
    # block, so the remainder is dedented on its own.
    first, newline, rest = body.partition("\n")
    (directory / "config.py").write_text((first + newline + textwrap.dedent(rest)).lstrip())
    if marker:
        (directory / "index.py").write_text("# project marker\n")
    return directory


@pytest.fixture
def project_dir(tmp_path):
    directory = tmp_path / "project"
    directory.mkdir()
    return directory


class RecordingApi:
    """In-memory stand-in for a provider REST API, served through httpx.MockTransport."""

    def __init__(self, routes=None, default_status=404):
        self.routes = dict(routes or {})
        self.default_status = default_status
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        status, body = self.routes.get(key, (self.default_status, {"message": "Not Found"}))
        if callable(status):
            status, body = status(request)
        return httpx.Response(status, json=body)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))

    def calls(self, method=None):
        return [
            (r.method, r.url.path)
            for r in self.requests
            if method is None or r.method == method
        ]

    def body(self, method, path):
        for request in self.requests:
            if request.method == method and request.url.path == path:
                return json.loads(request.content)
        raise AssertionError(f"no {method} {path} request")
