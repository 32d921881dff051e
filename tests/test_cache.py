"""
Tests for output directory retention.
"""

import os

import pytest

from spotlight_test_utils import v4_ad
from spotlightdl.download.api import normalize_ad
from spotlightdl.download.cache import list_cache_entries, trim_cache
from spotlightdl.download.fetcher import get_file_path
from spotlightdl.download.interfaces import ApiVersion, Orientation

pytestmark = [pytest.mark.unit, pytest.mark.core_downloads]


@pytest.fixture
def timed_files(tmp_path, mocker):
    """
    Provide a factory creating files with controlled creation times.

    Creation time cannot be set portably, so the cache module is made to read the
    modification time instead, which the factory sets with os.utime().
    """
    mocker.patch(
        "spotlightdl.download.cache._creation_time",
        side_effect=lambda stat_result: stat_result.st_mtime,
    )

    def _create(name, created, content=b"x"):
        path = tmp_path / name
        path.write_bytes(content)
        os.utime(path, (created, created))
        return path

    return _create


class TestListCacheEntries:
    def test_newest_first(self, tmp_path, timed_files):
        timed_files("old.jpg", 1000)
        timed_files("new.jpg", 3000)
        timed_files("mid.png", 2000)

        names = [os.path.basename(e.file_path) for e in list_cache_entries(tmp_path)]

        assert names == ["new.jpg", "mid.png", "old.jpg"]

    def test_ignores_other_files_and_directories(self, tmp_path, timed_files):
        timed_files("image.JPEG", 1000)
        timed_files("image.txt", 1000)
        timed_files("notes.md", 1000)
        (tmp_path / "sub.jpg").mkdir()

        entries = list_cache_entries(tmp_path)

        assert [os.path.basename(e.file_path) for e in entries] == ["image.JPEG"]
        assert entries[0].sidecar_path == str(tmp_path / "image.txt")

    def test_ties_are_ordered_by_name(self, tmp_path, timed_files):
        timed_files("b.jpg", 1000)
        timed_files("a.jpg", 1000)
        timed_files("c.jpg", 1000)

        names = [os.path.basename(e.file_path) for e in list_cache_entries(tmp_path)]

        assert names == ["a.jpg", "b.jpg", "c.jpg"]

    def test_missing_directory(self, tmp_path):
        assert list_cache_entries(tmp_path / "missing") == []


class TestTrimCache:
    def test_keeps_most_recent(self, tmp_path, timed_files):
        for index in range(5):
            timed_files(f"img{index}.jpg", 1000 + index)

        removed = trim_cache(tmp_path, 2)

        assert sorted(os.path.basename(p) for p in removed) == [
            "img0.jpg",
            "img1.jpg",
            "img2.jpg",
        ]
        assert sorted(os.listdir(tmp_path)) == ["img3.jpg", "img4.jpg"]

    def test_is_idempotent(self, tmp_path, timed_files):
        for index in range(4):
            timed_files(f"img{index}.jpg", 1000 + index)

        trim_cache(tmp_path, 3)
        assert trim_cache(tmp_path, 3) == []
        assert len(os.listdir(tmp_path)) == 3

    def test_removes_sidecars_of_deleted_images(self, tmp_path, timed_files):
        timed_files("old.jpg", 1000)
        timed_files("old.txt", 1000)
        timed_files("new.jpg", 2000)
        timed_files("new.txt", 2000)

        trim_cache(tmp_path, 1)

        assert sorted(os.listdir(tmp_path)) == ["new.jpg", "new.txt"]

    def test_orphan_text_files_are_kept(self, tmp_path, timed_files):
        timed_files("readme.txt", 500)
        timed_files("a.jpg", 1000)
        timed_files("b.jpg", 2000)

        trim_cache(tmp_path, 1)

        assert sorted(os.listdir(tmp_path)) == ["b.jpg", "readme.txt"]

    def test_zero_retention_empties_cache(self, tmp_path, timed_files):
        timed_files("a.jpg", 1000)
        timed_files("b.png", 2000)

        assert len(trim_cache(tmp_path, 0)) == 2
        assert os.listdir(tmp_path) == []

    def test_fewer_images_than_limit(self, tmp_path, timed_files):
        timed_files("a.jpg", 1000)
        assert trim_cache(tmp_path, 10) == []
        assert os.listdir(tmp_path) == ["a.jpg"]

    def test_trims_images_named_from_api_v4_urls(self, tmp_path, timed_files):
        for index in range(3):
            descriptor = normalize_ad(
                v4_ad(uri=f"https://img-s-msn-com.akamaized.net/tenant/amp/entityid/AA{index}.img"),
                ApiVersion.V4,
                Orientation.LANDSCAPE,
            )
            name = os.path.basename(get_file_path(descriptor, tmp_path))
            timed_files(name, 1000 + index)
            timed_files(os.path.splitext(name)[0] + ".txt", 1000 + index)

        removed = trim_cache(tmp_path, 1)

        assert len(removed) == 2
        assert sorted(os.listdir(tmp_path)) == ["AA2.jpg", "AA2.txt"]

    def test_negative_retention_is_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            trim_cache(tmp_path, -1)

    def test_undeletable_file_is_skipped(self, tmp_path, timed_files, mocker):
        timed_files("a.jpg", 1000)
        timed_files("b.jpg", 2000)
        timed_files("c.jpg", 3000)
        real_remove = os.remove

        def flaky_remove(path):
            if os.path.basename(path) == "a.jpg":
                raise PermissionError("locked")
            real_remove(path)

        mocker.patch("spotlightdl.download.cache.os.remove", side_effect=flaky_remove)

        removed = trim_cache(tmp_path, 1)

        assert [os.path.basename(p) for p in removed] == ["b.jpg"]
        assert sorted(os.listdir(tmp_path)) == ["a.jpg", "c.jpg"]
