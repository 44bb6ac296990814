"""Command handlers behind the release_installer CLI."""

from __future__ import annotations

import json
import os
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

from .cache import DiskToolCache, cache_root, scratch_root, tools_dir
from .config import (
    InstallerInputs,
    detect_placement,
    get_platform_info,
    load_config,
    make_release_config,
    normalize_arch,
    resolve_github_token,
)
from .console import debug, log, log_error, logs_to_stderr
from .constants import GITHUB_PATH_ENV_VAR
from .engine import install_release
from .errors import CLIError
from .models import ToolIdentity
from .placement import describe_placement
from .utils import delete_path


def executable_dir(installed: Path) -> Path:
    return installed if installed.is_dir() else installed.parent


def add_to_path(directory: Path) -> None:
    """Prepend ``directory`` to PATH here and, under Actions, for later steps."""
    github_path = (os.environ.get(GITHUB_PATH_ENV_VAR) or "").strip()
    if github_path:
        try:
            with open(github_path, "a", encoding="utf-8") as handle:
                handle.write(f"{directory}{os.linesep}")
        except OSError as exc:
            raise CLIError(f"failed to update {GITHUB_PATH_ENV_VAR} file {github_path}: {exc}") from exc
        debug(f"added {directory} to {GITHUB_PATH_ENV_VAR}")
    os.environ["PATH"] = f"{directory}{os.pathsep}{os.environ.get('PATH', '')}"


def handle_install(args: SimpleNamespace) -> int:
    info = get_platform_info()
    config_path: Optional[Path] = getattr(args, "config", None)
    config = load_config(Path(config_path) if config_path else None)
    inputs = InstallerInputs(
        name=args.name,
        version=args.version,
        url=getattr(args, "url", None),
        subdir=getattr(args, "subdir", None),
        os_name=getattr(args, "os_name", None),
        arch_name=getattr(args, "arch_name", None),
        ext=getattr(args, "ext", None),
        no_extract=True if getattr(args, "no_extract", False) else None,
        github_token=resolve_github_token(getattr(args, "github_token", None)),
        sha256=getattr(args, "sha256", None),
    ).with_preset(config.tools.get(args.name), info)
    release = make_release_config(inputs, info)
    placement = detect_placement(
        fixed=bool(getattr(args, "fixed_dir", False)),
        target_dir=getattr(args, "target_dir", None),
    )

    with logs_to_stderr():
        debug(f"platform: {info.os_name}/{info.arch.value}")
        debug(f"placement: {describe_placement(placement)}")
        installed = install_release(release, placement)
        bin_dir = executable_dir(installed)
        add_to_path(bin_dir)
        log(f"{release.tool.name} {release.tool.version} is now set up at {installed}")
    print(bin_dir)
    return 0


def handle_cache_list(args: SimpleNamespace) -> int:
    cache = DiskToolCache()
    name_filter = getattr(args, "name", None)
    rows: List[Dict[str, str]] = [
        {"name": name, "version": version, "arch": arch, "path": str(path)}
        for name, version, arch, path in cache.entries()
        if not name_filter or name == name_filter
    ]
    if getattr(args, "json", False):
        print(json.dumps(rows, indent=2 if getattr(args, "pretty", False) else None))
        return 0
    if not rows:
        print("no cached tools")
        return 0
    for row in rows:
        print(f"{row['name']} {row['version']} ({row['arch']}) -> {row['path']}")
    return 0


def handle_cache_paths(args: SimpleNamespace) -> int:
    info = get_platform_info()
    payload = {
        "platform": {"os": info.os_name, "arch": info.arch.value},
        "cache_root": str(cache_root(create=False)),
        "tools_dir": str(tools_dir(create=False)),
        "scratch_dir": str(scratch_root(create=False)),
    }
    if getattr(args, "json", False):
        indent = 2 if getattr(args, "pretty", False) else None
        print(json.dumps(payload, indent=indent, sort_keys=True))
        return 0
    print(f"cache_root: {payload['cache_root']}")
    print(f"tools_dir: {payload['tools_dir']}")
    print(f"scratch_dir: {payload['scratch_dir']}")
    return 0


def handle_cache_remove(args: SimpleNamespace) -> int:
    arch_value = getattr(args, "arch", None)
    arch = normalize_arch(arch_value) if arch_value else get_platform_info().arch
    identity = ToolIdentity(name=args.name, version=args.version, architecture=arch)
    if DiskToolCache().remove(identity):
        log(f"removed {identity} from the tool cache")
        return 0
    log_error(f"{identity} is not cached")
    return 1


def handle_cache_clean(args: SimpleNamespace) -> int:
    force = bool(getattr(args, "force", False))
    clean_all = bool(getattr(args, "all", False))
    clean_tmp = clean_all or bool(getattr(args, "tmp", False))
    clean_tools = clean_all or bool(getattr(args, "tools", False))
    if not (clean_tmp or clean_tools):
        clean_tmp = True

    targets: List[Path] = []
    if clean_tmp:
        targets.append(scratch_root(create=False))
    if clean_tools:
        targets.append(tools_dir(create=False))

    payload: Dict[str, Any] = {
        "dry_run": not force,
        "targets": [str(path) for path in targets],
        "deleted": [],
        "errors": [],
    }

    if not force:
        if getattr(args, "json", False):
            indent = 2 if getattr(args, "pretty", False) else None
            print(json.dumps(payload, indent=indent, sort_keys=True))
            return 0
        print("cache clean (dry-run):")
        for target in targets:
            print(f"- would delete: {target}")
        print("re-run with --force to apply")
        return 0

    for target in targets:
        err = delete_path(target)
        if err:
            payload["errors"].append({"path": str(target), "error": err})
        else:
            payload["deleted"].append(str(target))

    if getattr(args, "json", False):
        indent = 2 if getattr(args, "pretty", False) else None
        print(json.dumps(payload, indent=indent, sort_keys=True))
    else:
        for deleted in payload["deleted"]:
            print(f"deleted: {deleted}")
        for record in payload["errors"]:
            log_error(f"failed to delete {record['path']}: {record['error']}")
    return 0 if not payload["errors"] else 1
