# === NAVMAP v1 ===
# {
#   "module": "tests.safe_extract.test_paths",
#   "purpose": "Containment tests for safe_join",
#   "sections": [
#     {"id": "table", "name": "Accept/Reject Table", "anchor": "TBL", "kind": "tests"},
#     {"id": "properties", "name": "Hypothesis Properties", "anchor": "PRP", "kind": "tests"}
#   ]
# }
# === /NAVMAP ===

"""Tests for the lexical path guard."""

from __future__ import annotations

import os

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from SafeExtract.errors import ExtractionErrorCode, UnsafePath
from SafeExtract.io.paths import safe_join

pytestmark = pytest.mark.skipif(os.name != "posix", reason="POSIX path spelling")


@pytest.mark.parametrize(
    "root, candidate",
    [
        ("/", "more/path"),
        ("/path", "more/path"),
        ("/path/", "more/path"),
        ("/path/subdir", "more/path"),
        ("/path/subdir/", "more/path"),
        # ".." collapses back onto "/" when extracting to the filesystem root.
        ("/", ".."),
        ("/", "../pathpath"),
    ],
)
def test_safe_join_accepts(root: str, candidate: str) -> None:
    safe_join(root, candidate)


@pytest.mark.parametrize(
    "root, candidate",
    [
        ("/path", ".."),
        ("/path/", ".."),
        ("/path/subdir", ".."),
        ("/path/subdir/", ".."),
        ("/path", "../pathpath"),
        ("/path/", "../pathpath"),
        ("/path/subdir", "../pathpath"),
        ("/path/subdir/", "../pathpath"),
        ("/path", "a/../../etc/passwd"),
        ("/path", ""),
        ("/path", "."),
    ],
)
def test_safe_join_rejects(root: str, candidate: str) -> None:
    with pytest.raises(UnsafePath) as excinfo:
        safe_join(root, candidate)

    assert excinfo.value.root == root
    assert excinfo.value.candidate == candidate
    assert excinfo.value.code is ExtractionErrorCode.TRAVERSAL
    assert f"'{root}'" in str(excinfo.value)


def test_safe_join_rejects_sibling_with_shared_prefix() -> None:
    """``/path-other`` starts with ``/path`` but is not inside it."""

    with pytest.raises(UnsafePath):
        safe_join("/path", "../path-other/file")


def test_safe_join_cleans_the_result() -> None:
    assert safe_join("/path", "a/./b/../c") == "/path/a/c"
    assert safe_join("/path/", "dir/") == "/path/dir"


def test_absolute_candidate_lands_under_root() -> None:
    assert safe_join("/path", "/etc/passwd") == "/path/etc/passwd"


def test_relative_roots() -> None:
    assert safe_join("out", "a/b") == "out/a/b"
    assert safe_join("./out", "a") == "out/a"
    assert safe_join(".", "a") == "a"
    with pytest.raises(UnsafePath):
        safe_join("out", "../a")
    with pytest.raises(UnsafePath):
        safe_join(".", "../a")


_SEGMENTS = st.sampled_from(["a", "bb", "c.txt", ".", "..", ""])
_PLAIN_SEGMENTS = st.sampled_from(["a", "bb", "c.txt", "dir"])


@given(st.lists(_SEGMENTS, min_size=1, max_size=8).map("/".join))
@settings(max_examples=200)
def test_joined_path_never_leaves_root(candidate: str) -> None:
    try:
        joined = safe_join("/base/dir", candidate)
    except UnsafePath:
        return
    assert joined.startswith("/base/dir/")
    assert ".." not in joined.split("/")


@given(st.lists(_PLAIN_SEGMENTS, min_size=1, max_size=8))
@settings(max_examples=100)
def test_plain_relative_paths_are_always_accepted(segments: list) -> None:
    candidate = "/".join(segments)
    assert safe_join("/base/dir", candidate) == "/base/dir/" + candidate


@given(st.lists(_SEGMENTS, min_size=1, max_size=8).map("/".join))
@settings(max_examples=100)
def test_filesystem_root_accepts_everything(candidate: str) -> None:
    assert safe_join("/", candidate).startswith("/")
