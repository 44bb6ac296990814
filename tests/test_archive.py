import io
import os
import tarfile
import zipfile

import pytest

import release_installer.archive as archive
from release_installer.errors import CLIError
from release_installer.models import ExtractionKind


@pytest.mark.parametrize("kind", list(ExtractionKind))
def test_every_extraction_kind_has_an_extractor(kind):
    assert callable(archive.select_extractor(kind))


def test_select_extractor_accepts_raw_values():
    assert archive.select_extractor("zip") is archive.extract_zip


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("tar.gz", ExtractionKind.TAR_GZ),
        (".tar.gz", ExtractionKind.TAR_GZ),
        ("tgz", ExtractionKind.TAR_GZ),
        ("ZIP", ExtractionKind.ZIP),
        ("7z", ExtractionKind.SEVEN_ZIP),
        ("xar", ExtractionKind.XAR),
    ],
)
def test_parse_extraction_kind(raw, expected):
    assert archive.parse_extraction_kind(raw) is expected


def test_parse_extraction_kind_rejects_unknown():
    with pytest.raises(CLIError) as excinfo:
        archive.parse_extraction_kind("rar")
    assert "tar.gz, zip, 7z, xar" in str(excinfo.value)


def test_extract_tar_preserves_layout_and_mode(tmp_path, tar_gz_bytes):
    source = tmp_path / "tool.tar.gz"
    source.write_bytes(
        tar_gz_bytes(
            {"tool-1.0/bin/tool": b"#!/bin/sh\n", "tool-1.0/README": b"hi"},
            modes={"tool-1.0/README": 0o644},
        )
    )
    dest = tmp_path / "out"

    assert archive.extract_tar(source, dest) == dest
    assert (dest / "tool-1.0" / "bin" / "tool").read_bytes() == b"#!/bin/sh\n"
    assert os.stat(dest / "tool-1.0" / "bin" / "tool").st_mode & 0o777 == 0o755
    assert os.stat(dest / "tool-1.0" / "README").st_mode & 0o777 == 0o644


def test_extract_tar_keeps_relative_symlinks(tmp_path):
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tf:
        data = b"real"
        info = tarfile.TarInfo("pkg/tool-real")
        info.size = len(data)
        tf.addfile(info, io.BytesIO(data))
        link = tarfile.TarInfo("pkg/tool")
        link.type = tarfile.SYMTYPE
        link.linkname = "tool-real"
        tf.addfile(link)
    source = tmp_path / "links.tar.gz"
    source.write_bytes(buffer.getvalue())

    archive.extract_tar(source, tmp_path / "out")

    linked = tmp_path / "out" / "pkg" / "tool"
    assert linked.is_symlink()
    assert linked.read_bytes() == b"real"


def test_extract_tar_rejects_path_traversal(tmp_path, tar_gz_bytes):
    source = tmp_path / "evil.tar.gz"
    source.write_bytes(tar_gz_bytes({"../escape": b"nope"}))

    with pytest.raises(CLIError) as excinfo:
        archive.extract_tar(source, tmp_path / "out")

    assert "path traversal" in str(excinfo.value)
    assert not (tmp_path / "escape").exists()


def test_extract_tar_rejects_escaping_symlink(tmp_path):
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tf:
        link = tarfile.TarInfo("pkg/passwd")
        link.type = tarfile.SYMTYPE
        link.linkname = "../../etc/passwd"
        tf.addfile(link)
    source = tmp_path / "links.tar.gz"
    source.write_bytes(buffer.getvalue())

    with pytest.raises(CLIError) as excinfo:
        archive.extract_tar(source, tmp_path / "out")

    assert "escaping destination" in str(excinfo.value)


def test_extract_tar_rejects_corrupt_data(tmp_path):
    source = tmp_path / "broken.tar.gz"
    source.write_bytes(b"\x1f\x8b\x08garbage")

    with pytest.raises(CLIError) as excinfo:
        archive.extract_tar(source, tmp_path / "out")

    assert "invalid tar.gz archive broken.tar.gz" in str(excinfo.value)


def test_extract_zip(tmp_path, zip_bytes):
    source = tmp_path / "tool.zip"
    source.write_bytes(zip_bytes({"tool/tool.exe": b"MZ", "tool/lib/dep.dll": b"dll"}))

    archive.extract_zip(source, tmp_path / "out")

    assert (tmp_path / "out" / "tool" / "tool.exe").read_bytes() == b"MZ"
    assert (tmp_path / "out" / "tool" / "lib" / "dep.dll").read_bytes() == b"dll"


def test_extract_zip_applies_unix_permissions(tmp_path):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        info = zipfile.ZipInfo("tool")
        info.external_attr = 0o755 << 16
        zf.writestr(info, b"bin")
    source = tmp_path / "tool.zip"
    source.write_bytes(buffer.getvalue())

    archive.extract_zip(source, tmp_path / "out")

    assert os.stat(tmp_path / "out" / "tool").st_mode & 0o777 == 0o755


def test_extract_zip_rejects_zip_slip(tmp_path, zip_bytes):
    source = tmp_path / "evil.zip"
    source.write_bytes(zip_bytes({"../../evil.txt": b"owned"}))

    with pytest.raises(CLIError):
        archive.extract_zip(source, tmp_path / "out")

    assert not (tmp_path / "evil.txt").exists()


def test_extract_zip_rejects_absolute_paths(tmp_path, zip_bytes):
    source = tmp_path / "evil.zip"
    source.write_bytes(zip_bytes({"/etc/evil": b"owned"}))

    with pytest.raises(CLIError) as excinfo:
        archive.extract_zip(source, tmp_path / "out")

    assert "absolute path" in str(excinfo.value)


def test_extract_zip_rejects_corrupt_data(tmp_path):
    source = tmp_path / "broken.zip"
    source.write_bytes(b"PK\x03\x04 not really")

    with pytest.raises(CLIError) as excinfo:
        archive.extract_zip(source, tmp_path / "out")

    assert "invalid zip archive" in str(excinfo.value)


def _libarchive():
    try:
        import libarchive
    except (ImportError, OSError, AttributeError) as exc:
        pytest.skip(f"libarchive unavailable: {exc}")
    return libarchive


def test_extract_7z_through_libarchive(tmp_path, monkeypatch):
    libarchive = _libarchive()
    staged = tmp_path / "staged"
    (staged / "tool-2.0").mkdir(parents=True)
    (staged / "tool-2.0" / "tool").write_bytes(b"seven")
    source = tmp_path / "tool.7z"
    monkeypatch.chdir(staged)
    with libarchive.file_writer(str(source), "7zip") as writer:
        writer.add_files("tool-2.0")

    archive.extract_7z(source, tmp_path / "out")

    assert (tmp_path / "out" / "tool-2.0" / "tool").read_bytes() == b"seven"


def test_extract_7z_rejects_corrupt_data(tmp_path):
    _libarchive()
    source = tmp_path / "broken.7z"
    source.write_bytes(b"7z\xbc\xaf\x27\x1c garbage")

    with pytest.raises(CLIError) as excinfo:
        archive.extract_7z(source, tmp_path / "out")

    assert "invalid 7z archive" in str(excinfo.value)


def test_extract_xar_through_libarchive(tmp_path, monkeypatch):
    libarchive = _libarchive()
    staged = tmp_path / "staged"
    (staged / "tool-3.1" / "bin").mkdir(parents=True)
    (staged / "tool-3.1" / "bin" / "tool").write_bytes(b"xar payload")
    source = tmp_path / "tool.xar"
    monkeypatch.chdir(staged)
    try:
        with libarchive.file_writer(str(source), "xar") as writer:
            writer.add_files("tool-3.1")
    except libarchive.ArchiveError as exc:
        pytest.skip(f"libarchive built without xar support: {exc}")

    extracted = archive.select_extractor(ExtractionKind.XAR)(source, tmp_path / "out")

    assert extracted == tmp_path / "out"
    assert (extracted / "tool-3.1" / "bin" / "tool").read_bytes() == b"xar payload"


def test_extract_xar_rejects_corrupt_data(tmp_path):
    _libarchive()
    source = tmp_path / "broken.xar"
    source.write_bytes(b"xar!\x00\x1c truncated header")

    with pytest.raises(CLIError) as excinfo:
        archive.extract_xar(source, tmp_path / "out")

    assert "invalid xar archive" in str(excinfo.value)
