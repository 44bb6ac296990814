"""Shared constants for release_installer."""

from __future__ import annotations

PACKAGE_NAME = "release_installer"
DEFAULT_CACHE_DIR_NAME = "release_installer"

CACHE_ENV_VAR = "RELEASE_INSTALLER_CACHE_DIR"
TEMP_ENV_VAR = "RELEASE_INSTALLER_TEMP_DIR"
CONFIG_ENV_VAR = "RELEASE_INSTALLER_CONFIG"
DEBUG_ENV_VAR = "RELEASE_INSTALLER_DEBUG"
TOKEN_ENV_VAR = "RELEASE_INSTALLER_GITHUB_TOKEN"
FALLBACK_TOKEN_ENV_VAR = "GITHUB_TOKEN"
FIXED_ENV_VAR = "RELEASE_INSTALLER_FIXED"
TARGET_DIR_ENV_VAR = "RELEASE_INSTALLER_TARGET_DIR"
# set by the Actions runner inside job containers
CONTAINER_ENV_VAR = "CONTAINER_ID"
GITHUB_PATH_ENV_VAR = "GITHUB_PATH"
GITHUB_ACTIONS_ENV_VAR = "GITHUB_ACTIONS"

TOOLS_DIR_NAME = "tools"
TMP_DIR_NAME = "tmp"
COMPLETE_MARKER_SUFFIX = ".complete"

GITHUB_API_BASE = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"

EXIT_CODE_FAILURE = 1
EXIT_CODE_USAGE = 2
EXIT_CODE_INTERRUPT = 130

HTTP_TIMEOUT_SECONDS = 30.0
EXECUTABLE_MODE = 0o755
