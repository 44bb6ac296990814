"""Acquisition engine: download, extract and place a release, then cache it."""

from __future__ import annotations

import shutil
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Type

from .archive import select_extractor
from .cache import DiskToolCache, ToolCache, scratch_root
from .console import debug, group, log, log_error
from .constants import EXECUTABLE_MODE
from .download import Fetcher, fetch_file
from .errors import AcquisitionError, AcquisitionErrorKind, CLIError
from .github import AssetResolver, find_release_asset
from .models import ArchiveSpec, ExtractionKind, ReleaseConfig, ResolvedAsset, ToolIdentity
from .placement import FixedDirectoryInstall, PlacementMode, describe_placement
from .utils import delete_path, redact


class DownloadSession:
    """
    Temporary paths owned by one acquisition.

    Paths are registered when they are handed out and removed when the
    ``with`` block exits, whether the acquisition returned or raised. Removal
    problems are reported and never replace the outcome of the block.
    """

    def __init__(self, identity: ToolIdentity, scratch: Optional[Path] = None) -> None:
        self.identity = identity
        self._scratch = Path(scratch) if scratch is not None else None
        self._temporaries: List[Path] = []

    @property
    def scratch(self) -> Path:
        if self._scratch is None:
            self._scratch = scratch_root()
        return self._scratch

    @property
    def temporaries(self) -> List[Path]:
        return list(self._temporaries)

    def _new_path(self) -> Path:
        root = self.scratch
        root.mkdir(parents=True, exist_ok=True)
        path = root / uuid.uuid4().hex
        self._temporaries.append(path)
        return path

    def temp_dir(self) -> Path:
        path = self._new_path()
        path.mkdir()
        return path

    def temp_file(self) -> Path:
        # the downloader creates the file
        return self._new_path()

    def cleanup(self) -> None:
        while self._temporaries:
            path = self._temporaries.pop()
            error = delete_path(path)
            if error:
                problem = AcquisitionError(
                    AcquisitionErrorKind.CLEANUP_FAILED,
                    f"could not remove {path}: {error}",
                    identity=self.identity,
                )
                log_error(f"warning: {problem}")
            else:
                debug(f"removed {path}")

    def __enter__(self) -> "DownloadSession":
        return self

    def __exit__(self, *exc: object) -> bool:
        self.cleanup()
        return False


@contextmanager
def _step(
    kind: AcquisitionErrorKind,
    identity: ToolIdentity,
    action: str,
    wrap: Tuple[Type[BaseException], ...] = (CLIError, OSError),
) -> Iterator[None]:
    try:
        yield
    except AcquisitionError as exc:
        if exc.identity is not None:
            raise
        raise AcquisitionError(exc.kind, f"{action}: {exc.detail}", identity=identity) from exc
    except wrap as exc:
        raise AcquisitionError(kind, f"{action}: {exc}", identity=identity) from exc


def _release_folder(extracted: Path, subdirectory: Optional[str]) -> Path:
    if not subdirectory:
        return extracted
    release = extracted / subdirectory
    root = extracted.resolve()
    resolved = release.resolve()
    if resolved != root and root not in resolved.parents:
        raise CLIError(f"subdirectory '{subdirectory}' points outside the archive")
    if not release.is_dir():
        found = ", ".join(sorted(p.name for p in extracted.iterdir())) or "nothing"
        raise CLIError(f"subdirectory '{subdirectory}' not found in archive (found: {found})")
    return release


def _install_binary(
    destination: Path,
    identity: ToolIdentity,
    archive: ArchiveSpec,
    source: ResolvedAsset,
    placement: PlacementMode,
    cache: ToolCache,
    fetch: Fetcher,
) -> Path:
    target = destination / identity.name
    log(f"Downloading without extraction to {target}")
    with _step(AcquisitionErrorKind.DOWNLOAD_FAILED, identity, f"fetching {redact(source.url)}"):
        fetch(source.url, target, headers=source.request_headers(), sha256=archive.sha256)
    with _step(AcquisitionErrorKind.PLACEMENT_FAILED, identity, f"marking {target} executable"):
        debug(f"setting executable flag on {target}")
        target.chmod(EXECUTABLE_MODE)
    if isinstance(placement, FixedDirectoryInstall):
        return target
    with _step(AcquisitionErrorKind.PLACEMENT_FAILED, identity, "registering in the tool cache"):
        return cache.store(destination, identity)


def _install_archive(
    session: DownloadSession,
    destination: Path,
    kind: ExtractionKind,
    identity: ToolIdentity,
    archive: ArchiveSpec,
    source: ResolvedAsset,
    placement: PlacementMode,
    cache: ToolCache,
    fetch: Fetcher,
) -> Path:
    extractor = select_extractor(kind)
    log("Downloading with archive extraction")
    with _step(AcquisitionErrorKind.DOWNLOAD_FAILED, identity, f"fetching {redact(source.url)}"):
        archive_path = session.temp_file()
        debug(f"archive path: {archive_path}")
        fetch(source.url, archive_path, headers=source.request_headers(), sha256=archive.sha256)
    # decoders and the libarchive binding raise their own exception types
    with _step(
        AcquisitionErrorKind.EXTRACTION_FAILED,
        identity,
        f"extracting .{kind.value} archive",
        wrap=(Exception,),
    ):
        extract_dir = session.temp_dir()
        debug(f"extracting into {extract_dir}")
        extracted = extractor(archive_path, extract_dir)
        release = _release_folder(extracted, archive.subdirectory)
    if isinstance(placement, FixedDirectoryInstall):
        with _step(
            AcquisitionErrorKind.PLACEMENT_FAILED,
            identity,
            f"copying release files into {destination}",
        ):
            shutil.copytree(release, destination, symlinks=True, dirs_exist_ok=True)
        return destination / identity.name
    with _step(AcquisitionErrorKind.PLACEMENT_FAILED, identity, "registering in the tool cache"):
        return cache.store(release, identity)


def acquire(
    identity: ToolIdentity,
    archive: ArchiveSpec,
    placement: PlacementMode,
    credential: Optional[str] = None,
    *,
    cache: ToolCache,
    resolve_asset: AssetResolver = find_release_asset,
    fetch: Fetcher = fetch_file,
    scratch: Optional[Path] = None,
) -> Path:
    """
    Download ``archive`` and install it as ``identity``.

    Returns the cache entry directory for cached installs and
    ``<directory>/<name>`` for fixed-directory installs. Failures raise
    :class:`AcquisitionError`; temporary files are gone either way.
    """
    debug(f"url: {redact(archive.source_url)}")
    debug(f"github token {'present' if credential else 'not present'}")
    debug(f"placement: {describe_placement(placement)}")

    source = ResolvedAsset(url=archive.source_url)
    if credential:
        with group("Handling as private GitHub URL"):
            with _step(
                AcquisitionErrorKind.ASSET_RESOLUTION_FAILED,
                identity,
                f"resolving {redact(archive.source_url)}",
            ):
                source = resolve_asset(archive.source_url, credential)

    with DownloadSession(identity, scratch) as session:
        with _step(AcquisitionErrorKind.PLACEMENT_FAILED, identity, "preparing destination"):
            if isinstance(placement, FixedDirectoryInstall):
                destination = Path(placement.path).expanduser().absolute()
                destination.mkdir(parents=True, exist_ok=True)
            else:
                destination = session.temp_dir()

        with group(f"Downloading {identity.name} from {redact(source.url)}"):
            if archive.extraction is None:
                return _install_binary(
                    destination, identity, archive, source, placement, cache, fetch
                )
            return _install_archive(
                session,
                destination,
                archive.extraction,
                identity,
                archive,
                source,
                placement,
                cache,
                fetch,
            )


def find_or_download(
    identity: ToolIdentity,
    archive: ArchiveSpec,
    placement: PlacementMode,
    credential: Optional[str] = None,
    *,
    cache: ToolCache,
    resolve_asset: AssetResolver = find_release_asset,
    fetch: Fetcher = fetch_file,
    scratch: Optional[Path] = None,
) -> Path:
    existing = cache.find(identity)
    if existing:
        debug(f"found cached {identity.name} at {existing}")
        return existing
    debug(f"{identity.name} not cached, so attempting to download")
    return acquire(
        identity,
        archive,
        placement,
        credential,
        cache=cache,
        resolve_asset=resolve_asset,
        fetch=fetch,
        scratch=scratch,
    )


def install_release(
    config: ReleaseConfig,
    placement: PlacementMode,
    *,
    cache: Optional[ToolCache] = None,
) -> Path:
    return find_or_download(
        config.tool,
        config.archive,
        placement,
        config.github_token,
        cache=cache if cache is not None else DiskToolCache(),
    )
