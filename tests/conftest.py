"""
Shared fixtures for node-spark tests.
"""

import io
import json
import os
import tarfile
import tempfile
import zipfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# The logger writes under NODE_SPARK_HOME as soon as nodespark is imported.
os.environ.setdefault("NODE_SPARK_HOME", tempfile.mkdtemp(prefix="node-spark-test-"))


SAMPLE_INDEX = [
    {
        "version": "v21.6.1",
        "date": "2024-01-22",
        "files": ["linux-x64", "osx-arm64-tar", "win-x64-zip"],
        "npm": "10.2.4",
        "v8": "11.8.172.17",
        "lts": False,
        "modules": "120",
    },
    {
        "version": "v20.11.0",
        "date": "2024-01-09",
        "files": ["linux-x64", "osx-arm64-tar", "win-x64-zip"],
        "npm": "10.2.4",
        "v8": "11.3.244.8",
        "lts": "Iron",
        "modules": "115",
    },
    {
        "version": "v18.19.0",
        "date": "2023-11-29",
        "files": ["linux-x64", "win-x64-zip"],
        "npm": "10.2.3",
        "v8": "10.2.154.26",
        "lts": "Hydrogen",
        "modules": "108",
    },
]


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point the app dir at a per-test directory."""
    home = tmp_path / "home"
    monkeypatch.setenv("NODE_SPARK_HOME", str(home))
    monkeypatch.delenv("NODE_SPARK_MIRROR", raising=False)
    return home


@pytest.fixture
def sample_index():
    return json.loads(json.dumps(SAMPLE_INDEX))


def make_response(status_code=200, content=b"", headers=None, chunks=None):
    """Build a MagicMock standing in for a requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.content = content
    response.headers = headers or {}
    response.iter_content.return_value = iter(chunks if chunks is not None else [content])
    return response


def build_tarball(path, top_level="node-v20.11.0-linux-x64", files=None, symlinks=None, extra_members=None):
    """
    Write a .tar.gz archive with a single top-level directory.

    files maps relative names to (bytes, mode) or bytes, symlinks maps
    relative names to link targets; extra_members are raw (name, bytes)
    pairs written without the top-level prefix.
    """
    files = files if files is not None else {"bin/node": (b"#!/bin/sh\necho v20.11.0\n", 0o755)}
    symlinks = symlinks or {}
    with tarfile.open(path, "w:gz") as tar:
        top = tarfile.TarInfo(top_level)
        top.type = tarfile.DIRTYPE
        top.mode = 0o755
        tar.addfile(top)
        for name, value in files.items():
            data, mode = value if isinstance(value, tuple) else (value, 0o644)
            info = tarfile.TarInfo(f"{top_level}/{name}")
            info.size = len(data)
            info.mode = mode
            tar.addfile(info, io.BytesIO(data))
        for name, target in symlinks.items():
            info = tarfile.TarInfo(f"{top_level}/{name}")
            info.type = tarfile.SYMTYPE
            info.linkname = target
            tar.addfile(info)
        for name, data in extra_members or []:
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return Path(path)


def build_zip(path, top_level="node-v20.11.0-win-x64", files=None, extra_members=None):
    """Write a .zip archive with a single top-level directory."""
    files = files if files is not None else {"node.exe": b"MZ-node", "npm.cmd": b"@echo npm"}
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr(f"{top_level}/", b"")
        for name, data in files.items():
            zf.writestr(f"{top_level}/{name}", data)
        for name, data in extra_members or []:
            zf.writestr(name, data)
    return Path(path)


@pytest.fixture
def tarball_factory(tmp_path):
    def factory(name="node-v20.11.0-linux-x64.tar.gz", **kwargs):
        return build_tarball(tmp_path / name, **kwargs)
    return factory


@pytest.fixture
def zip_factory(tmp_path):
    def factory(name="node-v20.11.0-win-x64.zip", **kwargs):
        return build_zip(tmp_path / name, **kwargs)
    return factory


@pytest.fixture
def response_factory():
    return make_response
