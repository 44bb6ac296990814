import pytest

from release_installer.errors import CLIError
from release_installer.interpolate import interpolate


def test_interpolate_replaces_known_variables():
    assert (
        interpolate("${name}-${ version }.${ext}", {"name": "foo", "version": "1.2.0", "ext": "zip"})
        == "foo-1.2.0.zip"
    )


def test_interpolate_leaves_plain_text_alone():
    assert interpolate("https://example.com/$name/{version}", {"name": "foo"}) == (
        "https://example.com/$name/{version}"
    )


def test_interpolate_repeated_placeholders():
    assert interpolate("${name}/${name}", {"name": "foo"}) == "foo/foo"


def test_interpolate_unknown_variable_is_error():
    with pytest.raises(CLIError) as excinfo:
        interpolate("${name}-${platform}", {"name": "foo", "os": "linux"})
    message = str(excinfo.value)
    assert "${platform}" in message
    assert "known: name, os" in message
