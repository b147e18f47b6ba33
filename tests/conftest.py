"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import io
import json
import tarfile
from pathlib import Path
from typing import Any

import pytest

from toolsync.adapters.mock import MockBackend, MockExecutor
from toolsync.adapters.net.http import HttpClient
from toolsync.adapters.registry import BackendRegistry
from toolsync.core.config.loader import Settings
from toolsync.core.context import AppContext, build_context
from toolsync.core.errors import FetchError


class FakeHttp(HttpClient):
    """Serves canned bodies by URL; unknown URLs fail like a 404."""

    def __init__(self, routes: dict[str, Any] | None = None):
        super().__init__(timeout=1)
        self.routes: dict[str, Any] = dict(routes or {})
        self.requested: list[str] = []

    def _body(self, url: str) -> bytes:
        self.requested.append(url)
        if url not in self.routes:
            raise FetchError(f"Failed to fetch {url}: HTTP Error 404: Not Found")
        body = self.routes[url]
        if isinstance(body, bytes):
            return body
        if isinstance(body, str):
            return body.encode("utf-8")
        return json.dumps(body).encode("utf-8")

    def download(self, url: str, dest: Path) -> Path:
        body = self._body(url)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(body)
        return dest

    def get_bytes(self, url: str, accept: str | None = None) -> bytes:
        return self._body(url)


def make_tarball(files: dict[str, str], executable: bool = True) -> bytes:
    """In-memory .tar.gz with the given path -> content members."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for name, content in files.items():
            data = content.encode("utf-8")
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o755 if executable else 0o644
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def make_settings(home: Path, **overrides: Any) -> Settings:
    values: dict[str, Any] = {"home": home, "config_dir": home, "cache_dir": home}
    values.update(overrides)
    return Settings(**values)


def write_registry(settings: Settings, entries: list[dict[str, Any]]) -> None:
    settings.registry_path.parent.mkdir(parents=True, exist_ok=True)
    settings.registry_path.write_text(json.dumps(entries), encoding="utf-8")


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """Isolated toolsync home directory."""
    root = tmp_path / "home"
    root.mkdir()
    return root


@pytest.fixture
def settings(home: Path) -> Settings:
    return make_settings(home)


@pytest.fixture
def executor() -> MockExecutor:
    return MockExecutor(commands=["git"])


@pytest.fixture
def fake_http() -> FakeHttp:
    return FakeHttp()


@pytest.fixture
def mock_backend(settings: Settings) -> MockBackend:
    return MockBackend(settings.packages_dir, provider="npm", latest={"prettier": "3.3.3", "eslint": "9.0.0"})


@pytest.fixture
def app(settings: Settings, mock_backend: MockBackend, executor: MockExecutor, fake_http: FakeHttp) -> AppContext:
    """Application context wired to a mock npm backend."""
    backends = BackendRegistry()
    backends.register(mock_backend)
    # An existing, empty registry keeps installs from trying to download one
    write_registry(settings, [])
    return build_context(settings, executor=executor, http=fake_http, backends=backends, target="linux_x64")


@pytest.fixture
def tarball():
    """Factory for in-memory .tar.gz payloads."""
    return make_tarball


@pytest.fixture
def registry_writer(settings: Settings):
    """Writes registry entries into the cache file of ``settings``."""

    def write(entries: list[dict[str, Any]]) -> None:
        write_registry(settings, entries)

    return write
