"""Error types for release_installer."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover
    from .models import ToolIdentity


class CLIError(Exception):
    """Raised for user-facing CLI errors."""


class AcquisitionErrorKind(str, Enum):
    ASSET_RESOLUTION_FAILED = "asset resolution failed"
    DOWNLOAD_FAILED = "download failed"
    EXTRACTION_FAILED = "extraction failed"
    PLACEMENT_FAILED = "placement failed"
    # never raised; used to label logged cleanup problems
    CLEANUP_FAILED = "cleanup failed"


class AcquisitionError(CLIError):
    """A failed step while acquiring a tool, tagged with its kind."""

    def __init__(
        self,
        kind: AcquisitionErrorKind,
        detail: str,
        *,
        identity: Optional["ToolIdentity"] = None,
    ) -> None:
        self.kind = kind
        self.detail = detail
        self.identity = identity
        target = f" for {identity}" if identity is not None else ""
        super().__init__(f"{kind.value}{target}: {detail}")
