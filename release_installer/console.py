"""Console helpers for release_installer."""

from __future__ import annotations

import os
import sys
from contextlib import contextmanager
from typing import Iterator

from .constants import DEBUG_ENV_VAR, GITHUB_ACTIONS_ENV_VAR

_LOG_TO_STDERR = False
_LOG_SILENCED = False
_DEBUG = False


def configure_console(
    *, quiet: bool = False, stderr: bool = False, verbose: bool = False
) -> None:
    global _LOG_TO_STDERR, _LOG_SILENCED, _DEBUG
    if stderr:
        _LOG_TO_STDERR = True
    if quiet:
        _LOG_SILENCED = True
    if verbose:
        _DEBUG = True


def debug_enabled() -> bool:
    if _DEBUG:
        return True
    value = (os.environ.get(DEBUG_ENV_VAR) or "").strip().lower()
    return value in {"1", "true", "yes", "on"}


def log(message: str) -> None:
    if _LOG_SILENCED:
        return
    stream = sys.stderr if _LOG_TO_STDERR else sys.stdout
    print(f"[release_installer] {message}", file=stream)


def debug(message: str) -> None:
    if not debug_enabled():
        return
    log(f"debug: {message}")


def log_error(message: str) -> None:
    print(f"[release_installer] {message}", file=sys.stderr)


@contextmanager
def group(title: str) -> Iterator[None]:
    """Bracket a block of output; folds it in GitHub Actions logs."""
    in_actions = (os.environ.get(GITHUB_ACTIONS_ENV_VAR) or "").lower() == "true"
    if _LOG_SILENCED:
        yield
        return
    stream = sys.stderr if _LOG_TO_STDERR else sys.stdout
    if in_actions:
        print(f"::group::{title}", file=stream)
    else:
        log(title)
    try:
        yield
    finally:
        if in_actions:
            print("::endgroup::", file=stream)


@contextmanager
def logs_to_stderr() -> Iterator[None]:
    global _LOG_TO_STDERR
    previous = _LOG_TO_STDERR
    _LOG_TO_STDERR = True
    try:
        yield
    finally:
        _LOG_TO_STDERR = previous

