"""Shared tag derivation and tag writing for the merged file."""

from __future__ import annotations

import os

from mutagen import File as MutagenFile
from mutagen import MutagenError
from mutagen.id3 import APIC, ID3, TALB, TCOM, TCON, TDRC, TIT2, TPE1, TPE2
from mutagen.mp4 import MP4, MP4Cover

from audiobook_merger.errors import ExternalToolFailure
from audiobook_merger.models import InputFile, Metadata, TagSet

AUTO_COVER_NAME = "cover.jpg"

# TagSet key <- Metadata field, filled first-non-empty-wins
COALESCED_FIELDS = (
    ("name", "album"),
    ("artist", "artist"),
    ("albumartist", "album_artist"),
    ("year", "date"),
    ("genre", "genre"),
    ("writer", "writer"),
)

MP4_EXTENSIONS = (".m4b", ".m4a", ".mp4")

MP4_ATOMS = {
    "name": "\xa9nam",
    "artist": "\xa9ART",
    "albumartist": "aART",
    "year": "\xa9day",
    "genre": "\xa9gen",
    "writer": "\xa9wrt",
    "description": "desc",
    "comment": "\xa9cmt",
}

ID3_FRAMES = {
    "name": TIT2,
    "artist": TPE1,
    "albumartist": TPE2,
    "year": TDRC,
    "genre": TCON,
    "writer": TCOM,
}

# Vorbis-comment style keys (FLAC, Ogg)
COMMENT_KEYS = {
    "name": "title",
    "artist": "artist",
    "albumartist": "albumartist",
    "year": "date",
    "genre": "genre",
    "writer": "composer",
}


def find_auto_cover(input_path: str) -> str | None:
    """Return input_path/cover.jpg if input_path is a directory holding one."""
    if not os.path.isdir(input_path):
        return None
    candidate = os.path.join(input_path, AUTO_COVER_NAME)
    if os.path.isfile(candidate):
        return os.path.realpath(candidate)
    return None


def coalesce_tags(
    files: list[InputFile],
    metadata: list[Metadata],
    configured: dict | None = None,
    input_path: str | None = None,
) -> TagSet:
    """Derive one TagSet for the merged file.

    Caller supplied values are kept as they are. Every other key takes the
    first non-empty value found walking files in order. ``writer`` uses the
    first non-empty writer of any file; only if no file has one does it fall
    back to the first non-empty album artist.
    """
    tags = TagSet(configured)

    if input_path is not None:
        tags.set_if_undefined("cover", find_auto_cover(input_path))

    writer_fallback = None
    for _file, meta in zip(files, metadata):
        for key, field_name in COALESCED_FIELDS:
            tags.set_if_undefined(key, getattr(meta, field_name))
        if writer_fallback is None and meta.album_artist:
            writer_fallback = meta.album_artist

    tags.set_if_undefined("writer", writer_fallback)
    return tags


def _read_cover(path: str) -> MP4Cover:
    with open(path, "rb") as f:
        data = f.read()
    if path.lower().endswith(".png"):
        return MP4Cover(data, imageformat=MP4Cover.FORMAT_PNG)
    return MP4Cover(data, imageformat=MP4Cover.FORMAT_JPEG)


def _write_mp4_tags(path: str, tags: TagSet) -> None:
    audio = MP4(path)
    if audio.tags is None:
        audio.add_tags()

    for key, atom in MP4_ATOMS.items():
        if key in tags:
            audio.tags[atom] = [tags[key]]

    album = tags.get("album") or tags.get("name")
    if album:
        audio.tags["\xa9alb"] = [album]

    cover = tags.get("cover")
    if cover:
        audio.tags["covr"] = [_read_cover(cover)]

    audio.save()


def _cover_frame(path: str) -> APIC:
    with open(path, "rb") as f:
        data = f.read()
    mime = "image/png" if path.lower().endswith(".png") else "image/jpeg"
    return APIC(encoding=3, mime=mime, type=3, desc="Cover", data=data)


def _write_id3_frames(id3: ID3, tags: TagSet) -> None:
    for key, frame_cls in ID3_FRAMES.items():
        if key in tags:
            id3.add(frame_cls(encoding=3, text=[tags[key]]))

    album = tags.get("album") or tags.get("name")
    if album:
        id3.add(TALB(encoding=3, text=[album]))

    cover = tags.get("cover")
    if cover:
        id3.add(_cover_frame(cover))


def _write_comment_tags(audio, tags: TagSet) -> None:
    for key, comment_key in COMMENT_KEYS.items():
        if key in tags:
            audio[comment_key] = tags[key]

    album = tags.get("album") or tags.get("name")
    if album:
        audio["album"] = album


def _write_other_tags(path: str, tags: TagSet) -> None:
    audio = MutagenFile(path)
    if audio is None:
        raise ExternalToolFailure(
            "Unsupported file type for tagging: {}".format(path), tool="mutagen"
        )
    if audio.tags is None:
        audio.add_tags()

    # MP3, WAV and AIFF all carry ID3
    if isinstance(audio.tags, ID3):
        _write_id3_frames(audio.tags, tags)
    else:
        _write_comment_tags(audio, tags)

    audio.save()


def write_tags(path: str, tags: TagSet) -> None:
    """Write tags into the merged file in place.

    MP4 containers get native atoms, ID3 carriers (MP3, WAV, AIFF) get ID3
    frames, both with the cover. Vorbis-comment formats get text tags only.
    """
    if not len(tags):
        return
    try:
        if path.lower().endswith(MP4_EXTENSIONS):
            _write_mp4_tags(path, tags)
        else:
            _write_other_tags(path, tags)
    except (MutagenError, OSError, KeyError, TypeError, ValueError) as exc:
        raise ExternalToolFailure(
            "Tagging {} failed: {}".format(path, exc), tool="mutagen"
        ) from exc
