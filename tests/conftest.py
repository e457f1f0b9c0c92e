"""
Pytest fixtures for the HTML to PDF export service.

Renderer behavior is simulated with small /bin/sh scripts standing in for
wkhtmltopdf. They receive the same fixed argument list, so "$6" is the
input path and "$7" the output path.
"""

import stat
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from html_pdf_service.conversion import ConversionService
from html_pdf_service.conversion.adapters import LocalArtifactStore, WkhtmltopdfRenderer
from html_pdf_service.webapi import create_app

FAKE_RENDERERS = {
    "ok": "{ printf '%%PDF-1.4\\n'; cat \"$6\"; } > \"$7\"\n",
    "warn_exit0": "echo 'Warning: blocked access to file' >&2\ncp \"$6\" \"$7\"\n",
    "blank_stderr": "cp \"$6\" \"$7\"\nprintf '\\n' >&2\n",
    "nonzero": "exit 3\n",
    "no_output": "exit 0\n",
    "empty_output": ": > \"$7\"\n",
    "slow": "echo $$ > \"$7.pid\"\nexec sleep 30\n",
    "large": "{ printf '%%PDF-1.4\\n'; head -c 5000000 /dev/zero; } > \"$7\"\n",
    "args": "printf '%s\\n' \"$@\" > \"$7.args\"\ncp \"$6\" \"$7\"\n",
}


@pytest.fixture
def bin_dir(tmp_path: Path) -> Path:
    d = tmp_path / "bin"
    d.mkdir()
    return d


@pytest.fixture
def fake_renderer(bin_dir: Path):
    """Factory returning the absolute path of a named fake renderer script."""

    def _make(kind: str) -> str:
        script = bin_dir / f"wkhtmltopdf-{kind}"
        script.write_text("#!/bin/sh\n" + FAKE_RENDERERS[kind], encoding="utf-8")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(script)

    return _make


@pytest.fixture
def artifact_dir(tmp_path: Path) -> Path:
    d = tmp_path / "artifacts"
    d.mkdir()
    return d


@pytest.fixture
def store(artifact_dir: Path) -> LocalArtifactStore:
    return LocalArtifactStore(str(artifact_dir))


@pytest.fixture
def make_service(store: LocalArtifactStore, fake_renderer):
    def _make(kind: str = "ok", *, timeout_ms: int = 10_000, binary: str | None = None) -> ConversionService:
        renderer = WkhtmltopdfRenderer(store, binary=binary or fake_renderer(kind), timeout_ms=timeout_ms)
        return ConversionService(store=store, renderer=renderer, timeout_ms=timeout_ms)

    return _make


@pytest.fixture
def make_client(make_service):
    """FastAPI test client factory bound to a fake renderer."""

    def _make(kind: str = "ok", **kwargs) -> TestClient:
        return TestClient(create_app(make_service(kind, **kwargs)))

    return _make


@pytest.fixture
def leftover_artifacts(artifact_dir: Path):
    """Names of request artifacts still present in the temporary directory."""

    def _list() -> list[str]:
        return sorted(p.name for p in artifact_dir.iterdir() if p.suffix in {".html", ".pdf"})

    return _list
