from __future__ import annotations

from pathlib import Path

import pytest

from funfic import logging_utils
from funfic.library import (
    WorkNotFoundError,
    list_work_slugs,
    list_works,
    load_work,
    read_work_markup,
)


def _write_work(root: Path, slug: str, text: str) -> Path:
    path = root / f"{slug}.txt"
    path.write_text(text, encoding="utf-8")
    return path


def test_list_work_slugs_filters_and_sorts(tmp_path: Path) -> None:
    _write_work(tmp_path, "b-story", "本文")
    _write_work(tmp_path, "A-story", "本文")
    _write_work(tmp_path, ".hidden", "本文")
    (tmp_path / "notes.md").write_text("x", encoding="utf-8")
    (tmp_path / "folder.txt").mkdir()
    assert list_work_slugs(tmp_path) == ["A-story", "b-story"]


def test_missing_works_directory_lists_nothing(tmp_path: Path) -> None:
    assert list_work_slugs(tmp_path / "missing") == []
    assert list_works(tmp_path / "missing") == []


def test_list_works_extracts_titles(tmp_path: Path) -> None:
    _write_work(tmp_path, "one", "[chapter:最初の話]\n本文")
    _write_work(tmp_path, "two", "章なし")
    listings = list_works(tmp_path)
    assert [(work.slug, work.title) for work in listings] == [
        ("one", "最初の話"),
        ("two", "Work ID: two"),
    ]
    assert all(work.modified > 0 for work in listings)


def test_load_work_reads_markup(tmp_path: Path) -> None:
    _write_work(tmp_path, "story", "[chapter:題]\r\n本文")
    work = load_work(tmp_path, "story")
    assert work is not None
    assert work.title == "題"
    assert work.raw_markup == "[chapter:題]\n本文"


def test_load_work_returns_none_for_unknown_slug(tmp_path: Path) -> None:
    assert load_work(tmp_path, "nope") is None


@pytest.mark.parametrize("slug", ["", "../secret", "a/b", ".hidden"])
def test_invalid_slugs_are_not_found(tmp_path: Path, slug: str) -> None:
    (tmp_path / "works").mkdir()
    _write_work(tmp_path, "secret", "x")
    _write_work(tmp_path / "works", ".hidden", "x")
    with pytest.raises(WorkNotFoundError):
        read_work_markup(tmp_path / "works", slug)


def test_slugs_are_case_sensitive(tmp_path: Path) -> None:
    _write_work(tmp_path, "Story", "本文")
    assert list_work_slugs(tmp_path) == ["Story"]
    assert read_work_markup(tmp_path, "Story") == "本文"


def test_invalid_utf8_is_read_leniently(tmp_path: Path) -> None:
    (tmp_path / "broken.txt").write_bytes("本文".encode("utf-8") + b"\xff")
    assert read_work_markup(tmp_path, "broken") == "本文"


def test_debug_log_reports_loading(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.setattr(logging_utils, "_DEBUG_LOG", True)
    _write_work(tmp_path, "story", "本文")
    read_work_markup(tmp_path, "story")
    out = capsys.readouterr().out
    assert "[funfic debug] Reading work 'story'" in out
    assert "content length 2" in out
