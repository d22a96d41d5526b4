from contextlib import closing

import pytest

from api.upload.services import splitter
from api.upload.services.upload_service import SinglePartUpload, SplitUpload, plan_upload


def test_part_name_keeps_extension():
    assert splitter.part_name("movie.mkv", 2) == "movie_part2.mkv"
    assert splitter.part_name("README", 1) == "README_part1"


def test_split_yields_ceiling_sized_parts(make_file, tmp_path):
    source, data = make_file("video.mp4", 250)

    parts = []
    with closing(splitter.split(source, "video.mp4", part_size=100, temp_dir=tmp_path)) as gen:
        for part in gen:
            parts.append((part, part.path.read_bytes()))
            part.path.unlink()

    assert [part.number for part, _ in parts] == [1, 2, 3]
    assert [part.size for part, _ in parts] == [100, 100, 50]
    assert [part.name for part, _ in parts] == [
        "video_part1.mp4",
        "video_part2.mp4",
        "video_part3.mp4",
    ]
    assert b"".join(body for _, body in parts) == data


def test_split_exact_multiple_has_no_empty_tail(make_file, tmp_path):
    source, _ = make_file("blob.bin", 300)

    parts = list(splitter.split(source, "blob.bin", part_size=100, temp_dir=tmp_path))

    assert [part.size for part in parts] == [100, 100, 100]
    # the probe for a fourth part must not leave a file behind
    assert sorted(p.name for p in tmp_path.glob("split_*")) == sorted(p.path.name for p in parts)


def test_split_rejects_non_positive_part_size(make_file, tmp_path):
    source, _ = make_file("blob.bin", 10)
    with pytest.raises(ValueError):
        next(splitter.split(source, "blob.bin", part_size=0, temp_dir=tmp_path))


def test_plan_upload_only_splits_above_ceiling(tmp_path):
    path = tmp_path / "x"
    assert isinstance(plan_upload(path, "x", 100, part_size=100), SinglePartUpload)

    plan = plan_upload(path, "x", 120 * 1024 * 1024, part_size=49 * 1024 * 1024)
    assert isinstance(plan, SplitUpload)
    assert plan.part_count == 3


def test_split_unreadable_source(tmp_path):
    parts = splitter.split(tmp_path / "missing.bin", "missing.bin", part_size=10, temp_dir=tmp_path)

    with pytest.raises(OSError):
        next(parts)
    assert list(tmp_path.iterdir()) == []
