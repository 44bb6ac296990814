"""Shared utility helpers for release_installer."""

from __future__ import annotations

import re
import shutil
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

_SENSITIVE_KV_PATTERN = re.compile(
    r"(?i)\b("
    r"token|access_token|password|passwd|secret|api_key|apikey"
    r")\b\s*([:=])\s*([^\s&]+)"
)
_AUTH_HEADER_PATTERN = re.compile(r"(?i)\b(Authorization:?\s*)(Bearer|token)\s+([^\s'\"]+)")
_GITHUB_TOKEN_PATTERN = re.compile(r"\b(gh[pousr]_[A-Za-z0-9]{20,}|github_pat_[A-Za-z0-9_]{20,})\b")


def redact(text: str) -> str:
    """Best-effort redaction for common secret patterns in logs."""
    value = str(text)
    value = _AUTH_HEADER_PATTERN.sub(lambda m: f"{m.group(1)}{m.group(2)} ***", value)
    value = _SENSITIVE_KV_PATTERN.sub(lambda m: f"{m.group(1)}{m.group(2)}***", value)
    value = _GITHUB_TOKEN_PATTERN.sub("***", value)
    return value


def redact_headers(headers: Optional[Mapping[str, str]]) -> Dict[str, str]:
    redacted: Dict[str, str] = {}
    for key, value in (headers or {}).items():
        redacted[key] = "***" if key.lower() == "authorization" else value
    return redacted


def safe_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return str(value)


def delete_path(path: Path) -> Optional[str]:
    """Remove a file or directory tree; return the error text instead of raising."""
    try:
        if path.is_symlink() or path.is_file():
            path.unlink()
        elif path.exists():
            shutil.rmtree(path)
    except OSError as exc:
        return str(exc)
    return None
