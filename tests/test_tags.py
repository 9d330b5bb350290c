"""Tests for tag coalescing and tag writing."""

import os
import subprocess
import wave

import pytest
from conftest import input_file, meta, requires_ffmpeg

from audiobook_merger.errors import ExternalToolFailure
from audiobook_merger.models import TagSet
from audiobook_merger.tags import coalesce_tags, find_auto_cover, write_tags


def _coalesce(metadata, **kwargs):
    files = [input_file("{}.mp3".format(i)) for i in range(len(metadata))]
    return coalesce_tags(files, metadata, **kwargs)


def test_first_non_empty_value_wins():
    tags = _coalesce([
        meta(album="", artist="First Artist"),
        meta(album="The Book", artist="Second Artist", genre="Fiction"),
        meta(album="Other Book", date="2020", genre="Horror"),
    ])
    assert tags.as_dict() == {
        "name": "The Book",
        "artist": "First Artist",
        "year": "2020",
        "genre": "Fiction",
    }


def test_writer_from_any_file_beats_album_artist():
    tags = _coalesce([
        meta(album_artist="X"),
        meta(writer="Y", album_artist="Z"),
    ])
    assert tags["writer"] == "Y"
    assert tags["albumartist"] == "X"


def test_writer_falls_back_to_first_album_artist():
    tags = _coalesce([
        meta(album_artist="X"),
        meta(album_artist="Z"),
    ])
    assert tags["writer"] == "X"


def test_first_writer_wins_over_later_writer():
    tags = _coalesce([
        meta(album_artist="X"),
        meta(writer="Y"),
        meta(writer="W"),
    ])
    assert tags["writer"] == "Y"


def test_configured_values_are_kept():
    tags = _coalesce(
        [meta(album="From File", writer="File Writer")],
        configured={"name": "From CLI", "writer": "CLI Writer"},
    )
    assert tags["name"] == "From CLI"
    assert tags["writer"] == "CLI Writer"


def test_no_metadata_leaves_keys_unset():
    tags = _coalesce([meta(), meta(1000)])
    assert len(tags) == 0
    assert "writer" not in tags


def test_coalescing_is_idempotent():
    metadata = [meta(album_artist="X", genre="A"), meta(writer="Y", album="B")]
    assert _coalesce(metadata) == _coalesce(metadata)


def test_tag_set_is_set_once():
    tags = TagSet()
    assert tags.set_if_undefined("name", "a")
    assert not tags.set_if_undefined("name", "b")
    assert not tags.set_if_undefined("artist", "")
    assert not tags.set_if_undefined("artist", None)
    assert tags.as_dict() == {"name": "a"}
    with pytest.raises(KeyError):
        tags.set_if_undefined("bogus", "x")


def test_auto_cover(tmp_dir, touch):
    cover = touch("cover.jpg")
    assert find_auto_cover(tmp_dir) == os.path.realpath(cover)
    tags = _coalesce([meta()], input_path=tmp_dir)
    assert tags["cover"] == os.path.realpath(cover)


def test_auto_cover_only_for_directories(tmp_dir, touch):
    touch("cover.jpg")
    track = touch("a.mp3")
    assert find_auto_cover(track) is None


def test_auto_cover_other_names_ignored(tmp_dir, touch):
    touch("folder.jpg")
    touch("Cover.JPG")
    assert find_auto_cover(tmp_dir) is None


def test_configured_cover_wins(tmp_dir, touch):
    touch("cover.jpg")
    tags = _coalesce([meta()], configured={"cover": "/mine.png"}, input_path=tmp_dir)
    assert tags["cover"] == "/mine.png"


def test_write_tags_empty_is_noop(tmp_dir):
    # Path does not exist; nothing must be opened
    write_tags(os.path.join(tmp_dir, "missing.m4b"), TagSet())


def test_write_tags_unreadable_file_fails(tmp_dir, touch):
    path = touch("garbage.m4b")
    with pytest.raises(ExternalToolFailure):
        write_tags(path, TagSet({"name": "Book"}))


def _make_wav(path: str) -> str:
    with wave.open(path, "wb") as w:
        w.setnchannels(1)
        w.setsampwidth(2)
        w.setframerate(8000)
        w.writeframes(b"\x00\x00" * 800)
    return path


def test_write_wav_tags_as_id3_frames(tmp_dir):
    from mutagen.wave import WAVE

    path = _make_wav(os.path.join(tmp_dir, "book.wav"))
    write_tags(path, TagSet({"name": "Book", "writer": "Someone", "genre": "Fiction"}))

    audio = WAVE(path)
    assert audio.tags["TIT2"].text == ["Book"]
    assert audio.tags["TALB"].text == ["Book"]
    assert audio.tags["TCOM"].text == ["Someone"]
    assert audio.tags["TCON"].text == ["Fiction"]


def test_write_wav_cover(tmp_dir):
    from mutagen.wave import WAVE

    path = _make_wav(os.path.join(tmp_dir, "book.wav"))
    cover = os.path.join(tmp_dir, "cover.jpg")
    with open(cover, "wb") as f:
        f.write(b"\xff\xd8\xff\xe0not really a jpeg")

    write_tags(path, TagSet({"cover": cover}))

    frame = WAVE(path).tags["APIC:Cover"]
    assert frame.mime == "image/jpeg"
    assert frame.data == b"\xff\xd8\xff\xe0not really a jpeg"


def test_write_tags_unknown_file_type_fails(tmp_dir):
    path = os.path.join(tmp_dir, "book.bin")
    with open(path, "w") as f:
        f.write("plain text, not audio")
    with pytest.raises(ExternalToolFailure, match="Unsupported file type"):
        write_tags(path, TagSet({"name": "Book"}))


@requires_ffmpeg
def test_write_mp4_tags(tmp_dir, touch):
    from mutagen.mp4 import MP4

    path = os.path.join(tmp_dir, "book.m4b")
    subprocess.run(
        ["ffmpeg", "-y", "-f", "lavfi", "-i", "anullsrc=r=44100:cl=mono",
         "-t", "1", "-c:a", "aac", "-f", "mp4", path],
        capture_output=True, check=True,
    )
    write_tags(path, TagSet({"name": "Book", "writer": "Someone", "year": "2021"}))

    audio = MP4(path)
    assert audio.tags["\xa9nam"] == ["Book"]
    assert audio.tags["\xa9alb"] == ["Book"]
    assert audio.tags["\xa9wrt"] == ["Someone"]
    assert audio.tags["\xa9day"] == ["2021"]


@requires_ffmpeg
def test_write_mp3_tags(make_mp3):
    from mutagen.easyid3 import EasyID3

    path = make_mp3("out.mp3")
    write_tags(path, TagSet({"name": "Book", "artist": "Author", "album": "Series"}))

    audio = EasyID3(path)
    assert audio["title"] == ["Book"]
    assert audio["artist"] == ["Author"]
    assert audio["album"] == ["Series"]
