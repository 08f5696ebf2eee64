# tests/packpatcher/core/test_paths.py
from __future__ import annotations

import pytest

from packpatcher.core.paths import isStrictlyInside, resolveSafe


def test_resolveSafe_joins_plain_names(tmp_path):
    assert resolveSafe(tmp_path, "Cool.Pack") == tmp_path / "Cool.Pack"
    assert resolveSafe(tmp_path, "...") == tmp_path / "..."


@pytest.mark.parametrize("name", ["", ".", "..", "a/b", "a\\b", "../x"])
def test_resolveSafe_rejects_names_leaving_root(tmp_path, name):
    with pytest.raises(ValueError):
        resolveSafe(tmp_path, name)


def test_resolveSafe_rejects_symlink_out_of_root(tmp_path):
    root = tmp_path / "root"
    root.mkdir()
    outside = tmp_path / "outside"
    outside.mkdir()
    try:
        (root / "link").symlink_to(outside, target_is_directory=True)
    except OSError:
        pytest.skip("symlinks not supported here")

    with pytest.raises(ValueError):
        resolveSafe(root, "link")


def test_isStrictlyInside(tmp_path):
    root = tmp_path / "staging"
    assert isStrictlyInside(root / "a", root)
    assert isStrictlyInside(root / "a" / "b", root)
    assert not isStrictlyInside(root, root)
    assert not isStrictlyInside(root / "..", root)
    assert not isStrictlyInside(root / "a" / ".." / "..", root)
    assert not isStrictlyInside(tmp_path / "staging2", root)
