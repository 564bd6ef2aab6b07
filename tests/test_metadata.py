"""Tests for display metadata helpers."""

from __future__ import annotations

from pathlib import Path
import sys
from types import SimpleNamespace

from vista_player import metadata
from vista_player.metadata import MediaMeta, format_display_title, read_media_meta


def test_format_display_title_prefers_tag_title() -> None:
    meta = MediaMeta(title="Holiday 2019")
    assert format_display_title("file:///v/holiday.mp4", meta) == "Holiday 2019"


def test_format_display_title_fallback_filename() -> None:
    assert format_display_title("file:///v/My%20Clip.mkv") == "My Clip.mkv"
    assert format_display_title("/v/clip.mp4", MediaMeta()) == "clip.mp4"


def test_read_media_meta_with_mocked_mutagen(tmp_path: Path, monkeypatch) -> None:
    class FakeMedia:
        def __init__(self) -> None:
            self.tags = {"\xa9nam": ["Tagged Title"]}
            self.info = SimpleNamespace(length=61.5)

    monkeypatch.setitem(sys.modules, "mutagen", SimpleNamespace(File=lambda _p: FakeMedia()))
    meta = read_media_meta(tmp_path / "clip.mp4")
    assert meta.title == "Tagged Title"
    assert meta.duration_seconds == 61.5


def test_read_media_meta_handles_unsupported(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setitem(sys.modules, "mutagen", SimpleNamespace(File=lambda _p: None))
    assert read_media_meta(tmp_path / "clip.mkv") == MediaMeta()


def test_read_media_meta_handles_errors(tmp_path: Path, monkeypatch) -> None:
    def boom(_path: Path) -> None:
        raise ValueError("corrupt")

    monkeypatch.setitem(sys.modules, "mutagen", SimpleNamespace(File=boom))
    assert read_media_meta(tmp_path / "clip.mkv") == MediaMeta()


def test_extract_text_helpers() -> None:
    assert metadata._extract_text(None) is None
    assert metadata._extract_text(["  Title  "]) == "Title"
    assert metadata._extract_text(b"Bytes") == "Bytes"
    assert metadata._extract_text([]) is None
    assert metadata._extract_text(SimpleNamespace(text=["Frame"])) == "Frame"
    assert metadata._read_title(None) is None
    assert metadata._read_title({"TIT2": SimpleNamespace(text=["Id3"])}) == "Id3"


def test_get_media_meta_caches(tmp_path: Path, monkeypatch) -> None:
    calls: list[Path] = []

    def fake_read(path: Path) -> MediaMeta:
        calls.append(path)
        return MediaMeta(title="cached")

    monkeypatch.setattr(metadata, "_MEDIA_META_CACHE", {})
    monkeypatch.setattr(metadata, "read_media_meta", fake_read)
    path = tmp_path / "clip.mp4"
    assert metadata.get_media_meta(path).title == "cached"
    assert metadata.get_media_meta(path).title == "cached"
    assert calls == [path]
