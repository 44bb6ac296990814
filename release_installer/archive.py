"""Archive extraction keyed by the declared package extension."""

from __future__ import annotations

import os
import posixpath
import re
import shutil
import tarfile
import zipfile
import zlib
from pathlib import Path
from typing import Callable, Dict, List

from .console import debug
from .errors import CLIError
from .models import ExtractionKind

Extractor = Callable[[Path, Path], Path]

_DRIVE_PATTERN = re.compile(r"^[A-Za-z]:")


def _normalize_member_path(member: str, archive: Path) -> str:
    normalized = (member or "").replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    if not normalized:
        return ""
    if normalized.startswith("/") or _DRIVE_PATTERN.match(normalized):
        raise CLIError(f"archive entry contains an absolute path: {member!r} ({archive.name})")
    parts = [part for part in normalized.split("/") if part not in {"", "."}]
    if any(part == ".." for part in parts):
        raise CLIError(f"archive entry attempts path traversal: {member!r} ({archive.name})")
    return "/".join(parts)


def _ensure_safe_parents(dest: Path, parts: List[str], archive: Path) -> Path:
    current = dest
    for part in parts:
        current = current / part
        if current.exists() or current.is_symlink():
            if current.is_symlink():
                raise CLIError(
                    f"refusing to extract into symlinked directory {current} ({archive.name})"
                )
            if not current.is_dir():
                raise CLIError(
                    f"refusing to extract into non-directory {current} ({archive.name})"
                )
            continue
        current.mkdir()
    return current


def _validate_within_dest(dest: Path, relative_posix: str, archive: Path) -> Path:
    rel_path = Path(*[p for p in relative_posix.split("/") if p])
    target = dest / rel_path
    dest_real = dest.resolve()
    try:
        target_real = target.resolve()
    except FileNotFoundError:
        target_real = dest_real / rel_path
    if dest_real != target_real and dest_real not in target_real.parents:
        raise CLIError(f"archive entry escapes destination: {relative_posix!r} ({archive.name})")
    return target


def _check_link_target(entry: str, linkname: str, archive: Path, *, relative_to_entry: bool) -> str:
    cleaned = (linkname or "").replace("\\", "/").strip()
    if cleaned.startswith("/") or _DRIVE_PATTERN.match(cleaned):
        raise CLIError(f"refusing to extract absolute link target {cleaned!r} ({archive.name})")
    base = posixpath.dirname(entry) if relative_to_entry else ""
    combined = posixpath.normpath(posixpath.join(base, cleaned))
    if combined == ".." or combined.startswith("../"):
        raise CLIError(
            f"refusing to extract link escaping destination: {entry!r} -> {cleaned!r} ({archive.name})"
        )
    return cleaned if relative_to_entry else combined


def _prepare_file_target(dest: Path, entry: str, archive: Path) -> Path:
    target = _validate_within_dest(dest, entry, archive)
    _ensure_safe_parents(dest, entry.split("/")[:-1], archive)
    if target.is_symlink():
        raise CLIError(f"refusing to overwrite symlink {target} ({archive.name})")
    return target


def _chmod(target: Path, mode: int) -> None:
    if not mode:
        return
    try:
        os.chmod(target, mode & 0o777)
    except OSError:
        pass


def extract_tar(archive: Path, dest: Path) -> Path:
    dest.mkdir(parents=True, exist_ok=True)
    try:
        with tarfile.open(archive, mode="r:*") as tf:
            for member in tf.getmembers():
                entry = _normalize_member_path(member.name, archive)
                if not entry:
                    continue
                if member.isdir():
                    _validate_within_dest(dest, entry, archive)
                    _ensure_safe_parents(dest, entry.split("/"), archive)
                    continue

                target = _prepare_file_target(dest, entry, archive)

                if member.issym():
                    linkname = _check_link_target(
                        entry, member.linkname, archive, relative_to_entry=True
                    )
                    if not linkname:
                        continue
                    if target.exists():
                        target.unlink()
                    try:
                        os.symlink(linkname, target)
                    except (NotImplementedError, OSError) as exc:
                        raise CLIError(f"failed to create symlink for {entry!r}: {exc}") from exc
                    continue

                if member.islnk():
                    linked = _check_link_target(
                        entry, member.linkname, archive, relative_to_entry=False
                    )
                    source = _validate_within_dest(dest, linked, archive)
                    if not source.exists():
                        raise CLIError(
                            f"hardlink target missing while extracting {entry!r} ({archive.name})"
                        )
                    if target.exists():
                        target.unlink()
                    try:
                        os.link(source, target)
                    except OSError as exc:
                        raise CLIError(f"failed to create hardlink for {entry!r}: {exc}") from exc
                    continue

                if not member.isreg():
                    raise CLIError(
                        f"unsupported archive entry type for {entry!r} ({archive.name})"
                    )
                file_obj = tf.extractfile(member)
                if file_obj is None:
                    continue
                with file_obj as src, target.open("wb") as out:
                    shutil.copyfileobj(src, out)
                _chmod(target, member.mode)
    except (tarfile.TarError, EOFError, zlib.error) as exc:
        raise CLIError(f"invalid tar.gz archive {archive.name}: {exc}") from exc
    return dest


def extract_zip(archive: Path, dest: Path) -> Path:
    dest.mkdir(parents=True, exist_ok=True)
    try:
        with zipfile.ZipFile(archive) as zf:
            for info in zf.infolist():
                entry = _normalize_member_path(info.filename, archive)
                if not entry:
                    continue
                if info.is_dir():
                    _validate_within_dest(dest, entry, archive)
                    _ensure_safe_parents(dest, entry.split("/"), archive)
                    continue
                target = _prepare_file_target(dest, entry, archive)
                with zf.open(info, "r") as src, target.open("wb") as out:
                    shutil.copyfileobj(src, out)
                _chmod(target, (info.external_attr >> 16) & 0o777)
    except (zipfile.BadZipFile, EOFError, zlib.error) as exc:
        raise CLIError(f"invalid zip archive {archive.name}: {exc}") from exc
    return dest


def _extract_with_libarchive(archive: Path, dest: Path, label: str) -> Path:
    # the binding loads the system libarchive at import time
    import libarchive

    dest.mkdir(parents=True, exist_ok=True)
    try:
        with libarchive.file_reader(str(archive)) as reader:
            for item in reader:
                entry = _normalize_member_path(item.pathname, archive)
                if not entry:
                    continue
                if item.isdir:
                    _validate_within_dest(dest, entry, archive)
                    _ensure_safe_parents(dest, entry.split("/"), archive)
                    continue
                target = _prepare_file_target(dest, entry, archive)
                if item.issym:
                    linkname = _check_link_target(
                        entry, item.linkpath, archive, relative_to_entry=True
                    )
                    if not linkname:
                        continue
                    if target.exists():
                        target.unlink()
                    os.symlink(linkname, target)
                    continue
                if not item.isreg:
                    raise CLIError(
                        f"unsupported archive entry type for {entry!r} ({archive.name})"
                    )
                with target.open("wb") as out:
                    for block in item.get_blocks():
                        out.write(block)
                _chmod(target, item.perm)
    except libarchive.ArchiveError as exc:
        raise CLIError(f"invalid {label} archive {archive.name}: {exc}") from exc
    return dest


def extract_7z(archive: Path, dest: Path) -> Path:
    return _extract_with_libarchive(archive, dest, "7z")


def extract_xar(archive: Path, dest: Path) -> Path:
    return _extract_with_libarchive(archive, dest, "xar")


EXTRACTORS: Dict[ExtractionKind, Extractor] = {
    ExtractionKind.TAR_GZ: extract_tar,
    ExtractionKind.ZIP: extract_zip,
    ExtractionKind.SEVEN_ZIP: extract_7z,
    ExtractionKind.XAR: extract_xar,
}


def parse_extraction_kind(value: str) -> ExtractionKind:
    raw = (value or "").strip().lower().lstrip(".")
    if raw == "tgz":
        raw = ExtractionKind.TAR_GZ.value
    try:
        return ExtractionKind(raw)
    except ValueError:
        supported = ", ".join(kind.value for kind in ExtractionKind)
        raise CLIError(
            f"unsupported package extension '{value}'; expected one of: {supported}"
        ) from None


def select_extractor(kind: ExtractionKind) -> Extractor:
    extractor = EXTRACTORS.get(ExtractionKind(kind))
    if extractor is None:
        raise CLIError(f"no extractor registered for {kind}")
    debug(f"using {extractor.__name__} for .{ExtractionKind(kind).value}")
    return extractor
