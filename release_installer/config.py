"""Configuration: platform detection, tool presets and release config assembly."""

from __future__ import annotations

import os
import platform
from dataclasses import dataclass, field, replace
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from platformdirs import PlatformDirs

from .archive import parse_extraction_kind
from .constants import (
    CONFIG_ENV_VAR,
    CONTAINER_ENV_VAR,
    DEFAULT_CACHE_DIR_NAME,
    FALLBACK_TOKEN_ENV_VAR,
    FIXED_ENV_VAR,
    TARGET_DIR_ENV_VAR,
    TOKEN_ENV_VAR,
)
from .errors import CLIError
from .interpolate import interpolate
from .models import Architecture, ArchiveSpec, ReleaseConfig, ToolIdentity
from .placement import PlacementMode, decide_placement

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover (py<311)
    import tomli as tomllib


@dataclass(frozen=True)
class PlatformInfo:
    os_name: str
    arch: Architecture


@lru_cache()
def get_platform_info() -> PlatformInfo:
    return PlatformInfo(normalize_os(platform.system()), normalize_arch(platform.machine()))


def normalize_os(system: str) -> str:
    system_lower = system.lower()
    if system_lower == "darwin":
        return "macos"
    if system_lower.startswith(("windows", "cygwin", "msys")):
        return "windows"
    if system_lower == "linux":
        return "linux"
    return system_lower


_ARCH_ALIASES: Dict[str, Architecture] = {
    "x86_64": Architecture.X64,
    "amd64": Architecture.X64,
    "x64": Architecture.X64,
    "arm64": Architecture.ARM64,
    "aarch64": Architecture.ARM64,
    "armv7l": Architecture.ARM,
    "armv6l": Architecture.ARM,
    "arm": Architecture.ARM,
    "i386": Architecture.IA32,
    "i686": Architecture.IA32,
    "x86": Architecture.IA32,
    "ia32": Architecture.IA32,
    "ppc64le": Architecture.PPC64,
    "ppc64": Architecture.PPC64,
    "s390x": Architecture.S390X,
    "riscv64": Architecture.RISCV64,
}


def normalize_arch(machine: str) -> Architecture:
    value = (machine or "").strip().lower()
    arch = _ARCH_ALIASES.get(value)
    if arch is None:
        raise CLIError(f"unsupported machine architecture '{machine}'")
    return arch


def default_ext(os_name: str) -> str:
    return "zip" if os_name == "windows" else "tar.gz"


@dataclass(frozen=True)
class ToolPreset:
    """Per-tool defaults loaded from the ``[tools.<name>]`` config tables."""

    url: Optional[str] = None
    subdir: Optional[str] = None
    ext: Optional[str] = None
    no_extract: Optional[bool] = None
    sha256: Optional[str] = None
    os_names: Dict[str, str] = field(default_factory=dict)
    arch_names: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ConfigFile:
    tools: Dict[str, ToolPreset] = field(default_factory=dict)


def default_config_path() -> Path:
    dirs = PlatformDirs(appname=DEFAULT_CACHE_DIR_NAME, appauthor=False, roaming=True)
    return Path(dirs.user_config_path) / "config.toml"


def resolve_config_path() -> Path:
    env_value = (os.environ.get(CONFIG_ENV_VAR) or "").strip()
    if env_value:
        return Path(env_value).expanduser()
    return default_config_path()


def _safe_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        normalized = value.strip()
        return normalized or None
    return str(value).strip() or None


def _safe_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    return None


def _safe_str_map(value: Any) -> Dict[str, str]:
    if not isinstance(value, dict):
        return {}
    result: Dict[str, str] = {}
    for key, entry in value.items():
        name = _safe_str(key)
        mapped = _safe_str(entry)
        if name and mapped:
            result[name.lower()] = mapped
    return result


def _load_tools(value: Any) -> Dict[str, ToolPreset]:
    tools: Dict[str, ToolPreset] = {}
    if not isinstance(value, dict):
        return tools
    for name_raw, entry in value.items():
        name = _safe_str(name_raw)
        if not name or not isinstance(entry, dict):
            continue
        tools[name] = ToolPreset(
            url=_safe_str(entry.get("url")),
            subdir=_safe_str(entry.get("subdir")),
            ext=_safe_str(entry.get("ext")),
            no_extract=_safe_bool(entry.get("no_extract", entry.get("noExtract"))),
            sha256=_safe_str(entry.get("sha256")),
            os_names=_safe_str_map(entry.get("os") or entry.get("os_names")),
            arch_names=_safe_str_map(entry.get("arch") or entry.get("arch_names")),
        )
    return tools


def load_config(path: Optional[Path] = None) -> ConfigFile:
    config_path = path or resolve_config_path()
    if not config_path.exists():
        if path is not None:
            raise CLIError(f"config file not found: {config_path}")
        return ConfigFile()
    try:
        data = tomllib.loads(config_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise CLIError(f"failed to read config file {config_path}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise CLIError(f"failed to parse config file {config_path}: {exc}") from exc
    return ConfigFile(tools=_load_tools(data.get("tools")))


@dataclass(frozen=True)
class InstallerInputs:
    name: str
    version: str
    url: Optional[str] = None
    subdir: Optional[str] = None
    os_name: Optional[str] = None
    arch_name: Optional[str] = None
    ext: Optional[str] = None
    no_extract: Optional[bool] = None
    github_token: Optional[str] = None
    sha256: Optional[str] = None

    def with_preset(self, preset: Optional[ToolPreset], info: PlatformInfo) -> "InstallerInputs":
        """Fill unset inputs from ``preset``; explicit inputs win."""
        if preset is None:
            return self
        return replace(
            self,
            url=self.url or preset.url,
            subdir=self.subdir or preset.subdir,
            ext=self.ext or preset.ext,
            no_extract=self.no_extract if self.no_extract is not None else preset.no_extract,
            sha256=self.sha256 or preset.sha256,
            os_name=self.os_name or preset.os_names.get(info.os_name),
            arch_name=self.arch_name or preset.arch_names.get(info.arch.value),
        )


def resolve_github_token(
    explicit: Optional[str] = None, environ: Optional[Mapping[str, str]] = None
) -> Optional[str]:
    env = os.environ if environ is None else environ
    for candidate in (explicit, env.get(TOKEN_ENV_VAR), env.get(FALLBACK_TOKEN_ENV_VAR)):
        value = (candidate or "").strip()
        if value:
            return value
    return None


def make_release_config(inputs: InstallerInputs, info: PlatformInfo) -> ReleaseConfig:
    name = (inputs.name or "").strip()
    version = (inputs.version or "").strip()
    if not name:
        raise CLIError("tool name is required")
    if not version:
        raise CLIError(f"a version is required for {name}")
    if not inputs.url:
        raise CLIError(f"no url template for {name}; pass --url or add it to [tools.{name}]")

    ext = inputs.ext or default_ext(info.os_name)
    template_vars = {
        "name": name,
        "version": version,
        "os": inputs.os_name or info.os_name,
        "arch": inputs.arch_name or info.arch.value,
        "ext": ext,
    }
    url = interpolate(inputs.url, template_vars)
    subdir = interpolate(inputs.subdir, template_vars) if inputs.subdir else None

    return ReleaseConfig(
        tool=ToolIdentity(name=name, version=version, architecture=info.arch),
        archive=ArchiveSpec(
            source_url=url,
            subdirectory=subdir,
            extraction=None if inputs.no_extract else parse_extraction_kind(ext),
            sha256=inputs.sha256,
        ),
        github_token=inputs.github_token,
    )


def _env_truthy(environ: Mapping[str, str], name: str) -> bool:
    value = (environ.get(name) or "").strip().lower()
    return value in {"1", "true", "yes", "on"}


def detect_placement(
    *,
    fixed: bool = False,
    target_dir: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> PlacementMode:
    """Read the isolation signal once and turn it into a placement mode."""
    env = os.environ if environ is None else environ
    isolated = fixed or CONTAINER_ENV_VAR in env or _env_truthy(env, FIXED_ENV_VAR)
    target = target_dir
    if target is None:
        env_target = (env.get(TARGET_DIR_ENV_VAR) or "").strip()
        target = Path(env_target).expanduser() if env_target else None
    return decide_placement(isolated, target)
