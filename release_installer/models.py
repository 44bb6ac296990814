"""Value types shared by the cache, the engine and the configuration layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional


class Architecture(str, Enum):
    X64 = "x64"
    ARM64 = "arm64"
    ARM = "arm"
    IA32 = "ia32"
    PPC64 = "ppc64"
    S390X = "s390x"
    RISCV64 = "riscv64"


class ExtractionKind(str, Enum):
    TAR_GZ = "tar.gz"
    ZIP = "zip"
    SEVEN_ZIP = "7z"
    XAR = "xar"


@dataclass(frozen=True)
class ToolIdentity:
    name: str
    version: str
    architecture: Architecture

    def __str__(self) -> str:
        return f"{self.name} {self.version} ({self.architecture.value})"


@dataclass(frozen=True)
class ArchiveSpec:
    source_url: str
    subdirectory: Optional[str] = None
    # None means the URL points straight at an executable
    extraction: Optional[ExtractionKind] = None
    sha256: Optional[str] = None

    @property
    def requires_extraction(self) -> bool:
        return self.extraction is not None


@dataclass(frozen=True)
class ResolvedAsset:
    """Concrete download location returned by a private asset lookup."""

    url: str
    auth: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)

    def request_headers(self) -> Dict[str, str]:
        merged = dict(self.headers)
        if self.auth:
            merged["Authorization"] = self.auth
        return merged


@dataclass(frozen=True)
class ReleaseConfig:
    tool: ToolIdentity
    archive: ArchiveSpec
    github_token: Optional[str] = None
