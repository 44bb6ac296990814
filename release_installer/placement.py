"""Placement strategy: shared tool cache or a fixed install directory."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union


@dataclass(frozen=True)
class CachedInstall:
    """Install into the shared cache, keyed by tool identity."""


@dataclass(frozen=True)
class FixedDirectoryInstall:
    """Install straight into ``path``; never touches the shared cache."""

    path: Path


PlacementMode = Union[CachedInstall, FixedDirectoryInstall]


def default_fixed_dir() -> Path:
    return Path.home() / ".local" / "bin"


def decide_placement(isolated: bool, target_dir: Optional[Path] = None) -> PlacementMode:
    """
    Map the isolation signal to a placement mode.

    Inside job containers on self-hosted runners the cache is owned by a
    different user than the job, so binaries go to a plain directory instead.
    """
    if isolated:
        return FixedDirectoryInstall(Path(target_dir) if target_dir else default_fixed_dir())
    return CachedInstall()


def describe_placement(mode: PlacementMode) -> str:
    if isinstance(mode, FixedDirectoryInstall):
        return f"fixed directory {mode.path}"
    return "shared tool cache"
