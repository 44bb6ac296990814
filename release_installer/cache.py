"""On-disk tool cache keyed by (name, version, architecture)."""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import List, Optional, Protocol, Tuple

from platformdirs import PlatformDirs

from .console import debug
from .constants import (
    CACHE_ENV_VAR,
    COMPLETE_MARKER_SUFFIX,
    DEFAULT_CACHE_DIR_NAME,
    TEMP_ENV_VAR,
    TMP_DIR_NAME,
    TOOLS_DIR_NAME,
)
from .errors import CLIError
from .models import ToolIdentity


def cache_root(*, create: bool = True) -> Path:
    explicit = os.environ.get(CACHE_ENV_VAR)
    if explicit:
        root = Path(explicit).expanduser()
    else:
        dirs = PlatformDirs(appname=DEFAULT_CACHE_DIR_NAME, appauthor=False, roaming=True)
        root = Path(dirs.user_cache_path)
    if create:
        root.mkdir(parents=True, exist_ok=True)
    return root


def tools_dir(*, create: bool = True) -> Path:
    path = cache_root(create=create) / TOOLS_DIR_NAME
    if create:
        path.mkdir(parents=True, exist_ok=True)
    return path


def scratch_root(*, create: bool = True) -> Path:
    # an overridden temp dir may be shared, so only our own subdirectory is used
    explicit = os.environ.get(TEMP_ENV_VAR)
    if explicit:
        path = Path(explicit).expanduser() / DEFAULT_CACHE_DIR_NAME
    else:
        path = cache_root(create=create) / TMP_DIR_NAME
    if create:
        path.mkdir(parents=True, exist_ok=True)
    return path


def version_key(value: str) -> Tuple[int, int, int, str]:
    parts = (value or "").lstrip("v").split(".")
    nums: List[int] = []
    for part in parts[:3]:
        try:
            nums.append(int(part))
        except ValueError:
            nums.append(-1)
    while len(nums) < 3:
        nums.append(-1)
    return (nums[0], nums[1], nums[2], value)


class ToolCache(Protocol):
    def find(self, identity: ToolIdentity) -> Optional[Path]:
        ...

    def store(self, source: Path, identity: ToolIdentity) -> Path:
        ...


def _check_segment(label: str, value: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned or cleaned in {".", ".."} or "/" in cleaned or "\\" in cleaned:
        raise CLIError(f"invalid tool {label} for the cache: {value!r}")
    return cleaned


class DiskToolCache:
    """
    Tool cache laid out as ``<root>/<name>/<version>/<arch>/``.

    A sibling ``<arch>.complete`` file marks an entry as usable. It is written
    only after the content has been copied, so an interrupted ``store`` never
    turns into a cache hit.
    """

    def __init__(self, root: Optional[Path] = None) -> None:
        self._root = Path(root) if root is not None else None

    @property
    def root(self) -> Path:
        if self._root is not None:
            return self._root
        return tools_dir(create=False)

    def entry_dir(self, identity: ToolIdentity) -> Path:
        return (
            self.root
            / _check_segment("name", identity.name)
            / _check_segment("version", identity.version)
            / identity.architecture.value
        )

    def marker_path(self, identity: ToolIdentity) -> Path:
        entry = self.entry_dir(identity)
        return entry.with_name(f"{entry.name}{COMPLETE_MARKER_SUFFIX}")

    def find(self, identity: ToolIdentity) -> Optional[Path]:
        try:
            entry = self.entry_dir(identity)
        except CLIError:
            return None
        if entry.is_dir() and self.marker_path(identity).is_file():
            debug(f"cache hit for {identity} at {entry}")
            return entry
        debug(f"cache miss for {identity}")
        return None

    def store(self, source: Path, identity: ToolIdentity) -> Path:
        source = Path(source)
        if not source.exists():
            raise CLIError(f"cannot cache {identity}: {source} does not exist")
        entry = self.entry_dir(identity)
        marker = self.marker_path(identity)
        debug(f"caching {source} as {identity} in {entry}")
        if marker.exists():
            marker.unlink()
        if entry.exists():
            shutil.rmtree(entry)
        entry.mkdir(parents=True)
        if source.is_dir():
            shutil.copytree(source, entry, symlinks=True, dirs_exist_ok=True)
        else:
            shutil.copy2(source, entry / source.name)
        marker.write_text("")
        return entry

    def remove(self, identity: ToolIdentity) -> bool:
        entry = self.entry_dir(identity)
        marker = self.marker_path(identity)
        existed = marker.exists() or entry.exists()
        if marker.exists():
            marker.unlink()
        if entry.exists():
            shutil.rmtree(entry)
        return existed

    def entries(self) -> List[Tuple[str, str, str, Path]]:
        root = self.root
        if not root.is_dir():
            return []
        listing: List[Tuple[str, str, str, Path]] = []
        for name_dir in sorted(root.iterdir()):
            if not name_dir.is_dir():
                continue
            for version_dir in sorted(name_dir.iterdir(), key=lambda p: version_key(p.name)):
                if not version_dir.is_dir():
                    continue
                for marker in sorted(version_dir.glob(f"*{COMPLETE_MARKER_SUFFIX}")):
                    arch = marker.name[: -len(COMPLETE_MARKER_SUFFIX)]
                    entry = version_dir / arch
                    if entry.is_dir():
                        listing.append((name_dir.name, version_dir.name, arch, entry))
        return listing
