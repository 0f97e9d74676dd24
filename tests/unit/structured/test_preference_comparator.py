from __future__ import annotations

import logging
from pathlib import Path

import pytest

from core.hasher import hash_tree
from core.structured import PreferenceChange, StructuralLocations, compare_preferences

PREFS_V1 = """<?xml version='1.0' encoding='utf-8' standalone='yes' ?>
<map>
    <string name="token">abc</string>
    <boolean name="onboarded" value="false" />
</map>
"""

PREFS_V2 = """<?xml version='1.0' encoding='utf-8' standalone='yes' ?>
<map>
    <string name="token">def</string>
    <boolean name="onboarded" value="false" />
</map>
"""


def _write_tree(root: Path, files: dict[str, str]) -> None:
    root.mkdir(parents=True, exist_ok=True)
    for relative_path, content in files.items():
        path = root / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


def _compare(baseline: Path, current: Path) -> list[PreferenceChange]:
    return compare_preferences(
        baseline,
        current,
        hash_tree(baseline),
        hash_tree(current),
        StructuralLocations(),
    )


def test_changed_preference_produces_textual_diff(tmp_path: Path) -> None:
    baseline, current = tmp_path / "baseline", tmp_path / "current"
    _write_tree(baseline, {"shared_prefs/auth.xml": PREFS_V1})
    _write_tree(current, {"shared_prefs/auth.xml": PREFS_V2})

    changes = _compare(baseline, current)

    assert len(changes) == 1
    change = changes[0]
    assert change.path == "shared_prefs/auth.xml"
    assert change.is_new is False
    assert "--- baseline/shared_prefs/auth.xml" in change.diff
    assert "+++ current/shared_prefs/auth.xml" in change.diff
    assert '-    <string name="token">abc</string>\n' in change.diff
    assert '+    <string name="token">def</string>\n' in change.diff


def test_identical_preference_produces_no_entry(tmp_path: Path) -> None:
    baseline, current = tmp_path / "baseline", tmp_path / "current"
    _write_tree(baseline, {"shared_prefs/auth.xml": PREFS_V1})
    _write_tree(current, {"shared_prefs/auth.xml": PREFS_V1})

    assert _compare(baseline, current) == []


def test_new_preference_in_paired_directory_is_marked_new(tmp_path: Path) -> None:
    baseline, current = tmp_path / "baseline", tmp_path / "current"
    _write_tree(baseline, {"shared_prefs/auth.xml": PREFS_V1})
    _write_tree(current, {"shared_prefs/auth.xml": PREFS_V1, "shared_prefs/tracking.xml": PREFS_V2})

    assert _compare(baseline, current) == [
        PreferenceChange(path="shared_prefs/tracking.xml", diff=None, is_new=True)
    ]


def test_unpaired_preference_directory_is_skipped(tmp_path: Path) -> None:
    baseline, current = tmp_path / "baseline", tmp_path / "current"
    _write_tree(baseline, {"files/readme.txt": "x"})
    _write_tree(current, {"files/readme.txt": "x", "shared_prefs/auth.xml": PREFS_V1})

    assert _compare(baseline, current) == []


def test_only_recognized_files_directly_in_prefs_directory_count(tmp_path: Path) -> None:
    baseline, current = tmp_path / "baseline", tmp_path / "current"
    _write_tree(
        baseline,
        {
            "shared_prefs/notes.txt": "a",
            "shared_prefs/nested/deep.xml": PREFS_V1,
            "app_webview/shared_prefs/web.xml": PREFS_V1,
        },
    )
    _write_tree(
        current,
        {
            "shared_prefs/notes.txt": "b",
            "shared_prefs/nested/deep.xml": PREFS_V2,
            "app_webview/shared_prefs/web.xml": PREFS_V2,
        },
    )

    changes = _compare(baseline, current)

    assert [c.path for c in changes] == ["app_webview/shared_prefs/web.xml"]


def test_unreadable_current_file_is_logged_and_skipped(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    baseline, current = tmp_path / "baseline", tmp_path / "current"
    _write_tree(baseline, {"shared_prefs/auth.xml": PREFS_V1})
    _write_tree(current, {"shared_prefs/auth.xml": PREFS_V2})
    baseline_fps, current_fps = hash_tree(baseline), hash_tree(current)
    (current / "shared_prefs" / "auth.xml").unlink()

    with caplog.at_level(logging.WARNING, logger="core.structured"):
        changes = compare_preferences(
            baseline, current, baseline_fps, current_fps, StructuralLocations()
        )

    assert changes == []
    assert any("treating as absent" in record.message for record in caplog.records)


def test_comparator_does_not_modify_either_tree(tmp_path: Path) -> None:
    baseline, current = tmp_path / "baseline", tmp_path / "current"
    _write_tree(baseline, {"shared_prefs/auth.xml": PREFS_V1})
    _write_tree(current, {"shared_prefs/auth.xml": PREFS_V2, "shared_prefs/new.xml": PREFS_V1})
    before = (hash_tree(baseline), hash_tree(current))

    _compare(baseline, current)

    assert (hash_tree(baseline), hash_tree(current)) == before


def test_custom_locations_are_honoured(tmp_path: Path) -> None:
    baseline, current = tmp_path / "baseline", tmp_path / "current"
    _write_tree(baseline, {"prefs/app.plist": "a = 1\n"})
    _write_tree(current, {"prefs/app.plist": "a = 2\n"})
    locations = StructuralLocations(preference_dirs=("prefs",), preference_extensions=(".plist",))

    changes = compare_preferences(
        baseline, current, hash_tree(baseline), hash_tree(current), locations
    )

    assert [c.path for c in changes] == ["prefs/app.plist"]
    assert "-a = 1\n" in changes[0].diff


def _write_bytes(root: Path, relative_path: str, content: bytes) -> None:
    path = root / relative_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


def test_line_ending_only_change_is_reported(tmp_path: Path) -> None:
    baseline, current = tmp_path / "baseline", tmp_path / "current"
    _write_bytes(baseline, "shared_prefs/p.xml", b"<map>\n<a/>\n</map>\n")
    _write_bytes(current, "shared_prefs/p.xml", b"<map>\r\n<a/>\r\n</map>\r\n")

    changes = _compare(baseline, current)

    assert [c.path for c in changes] == ["shared_prefs/p.xml"]
    assert changes[0].is_new is False
    assert "-<a/>\n" in changes[0].diff
    assert "+<a/>\r\n" in changes[0].diff


def test_undecodable_byte_change_is_reported(tmp_path: Path) -> None:
    baseline, current = tmp_path / "baseline", tmp_path / "current"
    _write_bytes(baseline, "shared_prefs/p.xml", b"<map>\n<s>\xff</s>\n</map>\n")
    _write_bytes(current, "shared_prefs/p.xml", b"<map>\n<s>\xfe</s>\n</map>\n")

    changes = _compare(baseline, current)

    assert len(changes) == 1
    assert "-<s>\\xff</s>\n" in changes[0].diff
    assert "+<s>\\xfe</s>\n" in changes[0].diff


def test_differing_hashes_always_produce_an_entry(tmp_path: Path) -> None:
    baseline, current = tmp_path / "baseline", tmp_path / "current"
    _write_tree(baseline, {"shared_prefs/p.xml": PREFS_V1})
    _write_tree(current, {"shared_prefs/p.xml": PREFS_V1})
    baseline_fps = hash_tree(baseline)
    current_fps = {"shared_prefs/p.xml": "0" * 64}

    changes = compare_preferences(
        baseline, current, baseline_fps, current_fps, StructuralLocations()
    )

    assert changes == [
        PreferenceChange(
            path="shared_prefs/p.xml",
            diff="Files baseline/shared_prefs/p.xml and current/shared_prefs/p.xml differ\n",
        )
    ]
