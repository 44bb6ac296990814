from pathlib import Path

from release_installer.placement import (
    CachedInstall,
    FixedDirectoryInstall,
    decide_placement,
    default_fixed_dir,
    describe_placement,
)


def test_shared_cache_when_not_isolated(tmp_path):
    assert decide_placement(False) == CachedInstall()
    assert decide_placement(False, tmp_path) == CachedInstall()


def test_isolated_uses_local_bin_by_default():
    assert decide_placement(True) == FixedDirectoryInstall(Path.home() / ".local" / "bin")
    assert default_fixed_dir() == Path.home() / ".local" / "bin"


def test_isolated_honors_target_dir(tmp_path):
    assert decide_placement(True, tmp_path / "tools") == FixedDirectoryInstall(tmp_path / "tools")


def test_describe_placement():
    assert describe_placement(CachedInstall()) == "shared tool cache"
    assert describe_placement(FixedDirectoryInstall(Path("/opt/bin"))) == "fixed directory /opt/bin"
