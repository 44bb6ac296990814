from __future__ import annotations

import io
import shutil
import tarfile
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest

import release_installer.console as console
import release_installer.constants as constants
from release_installer.config import get_platform_info
from release_installer.models import ToolIdentity


class MemoryToolCache:
    """Dict-backed stand-in for DiskToolCache that records every store call."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.entries: Dict[ToolIdentity, Path] = {}
        self.stored: List[Tuple[Path, ToolIdentity]] = []

    def find(self, identity: ToolIdentity) -> Optional[Path]:
        return self.entries.get(identity)

    def store(self, source: Path, identity: ToolIdentity) -> Path:
        self.stored.append((source, identity))
        entry = self.root / identity.name / identity.version / identity.architecture.value
        if source.is_dir():
            shutil.copytree(source, entry, dirs_exist_ok=True)
        else:
            entry.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, entry / source.name)
        self.entries[identity] = entry
        return entry


class FakeFetch:
    """Replacement for download.fetch_file that serves payloads by URL."""

    def __init__(self, payloads: Dict[str, bytes]) -> None:
        self.payloads = payloads
        self.calls: List[Dict[str, Any]] = []

    def __call__(
        self,
        url: str,
        target: Path,
        *,
        headers: Optional[Dict[str, str]] = None,
        sha256: Optional[str] = None,
    ) -> Path:
        self.calls.append({"url": url, "target": target, "headers": headers, "sha256": sha256})
        if url not in self.payloads:
            raise AssertionError(f"unexpected download of {url}")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(self.payloads[url])
        return target


def build_tar_gz(files: Dict[str, bytes], *, modes: Optional[Dict[str, int]] = None) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tf:
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = (modes or {}).get(name, 0o755)
            tf.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def build_zip(files: Dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    return buffer.getvalue()


@pytest.fixture(autouse=True)
def reset_console(monkeypatch):
    monkeypatch.setattr(console, "_LOG_TO_STDERR", False)
    monkeypatch.setattr(console, "_LOG_SILENCED", False)
    monkeypatch.setattr(console, "_DEBUG", False)
    monkeypatch.delenv(constants.GITHUB_ACTIONS_ENV_VAR, raising=False)
    monkeypatch.delenv(constants.GITHUB_PATH_ENV_VAR, raising=False)
    monkeypatch.delenv(constants.CONTAINER_ENV_VAR, raising=False)
    monkeypatch.delenv(constants.FIXED_ENV_VAR, raising=False)
    monkeypatch.delenv(constants.TARGET_DIR_ENV_VAR, raising=False)


@pytest.fixture
def cache_dirs(tmp_path, monkeypatch) -> Dict[str, Path]:
    root = tmp_path / "cache-root"
    temp = tmp_path / "scratch"
    monkeypatch.setenv(constants.CACHE_ENV_VAR, str(root))
    monkeypatch.setenv(constants.TEMP_ENV_VAR, str(temp))
    return {
        "root": root,
        "temp": temp,
        "scratch": temp / constants.DEFAULT_CACHE_DIR_NAME,
        "tools": root / constants.TOOLS_DIR_NAME,
    }


@pytest.fixture
def memory_cache(tmp_path) -> MemoryToolCache:
    return MemoryToolCache(tmp_path / "memory-cache")


@pytest.fixture
def fake_fetch_factory():
    return FakeFetch


@pytest.fixture
def tar_gz_bytes():
    return build_tar_gz


@pytest.fixture
def zip_bytes():
    return build_zip


@pytest.fixture
def clear_platform_cache():
    get_platform_info.cache_clear()
    yield
    get_platform_info.cache_clear()
