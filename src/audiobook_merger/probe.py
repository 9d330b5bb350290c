"""ffprobe wrapper for extracting per-file metadata."""

from __future__ import annotations

import json
import shutil
import subprocess

import click

from audiobook_merger.errors import ExternalToolFailure
from audiobook_merger.models import InputFile, Metadata, TimeUnit

# Metadata field -> ffprobe tag names, first match wins
TAG_NAMES = {
    "album": ("album",),
    "title": ("title",),
    "artist": ("artist",),
    "album_artist": ("album_artist", "albumartist"),
    "date": ("date", "year"),
    "genre": ("genre",),
    "writer": ("writer", "composer"),
}


def ensure_ffprobe() -> str:
    """Return the path to ffprobe, or raise if not found."""
    path = shutil.which("ffprobe")
    if not path:
        raise ExternalToolFailure(
            "ffprobe not found on PATH. Install ffmpeg: brew install ffmpeg",
            tool="ffprobe",
        )
    return path


def _parse_duration(value) -> TimeUnit | None:
    if value in (None, "", "N/A"):
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    if seconds < 0:
        return None
    return TimeUnit(int(round(seconds * 1000)))


def metadata_from_probe(data: dict) -> Metadata:
    """Build Metadata from parsed ``ffprobe -print_format json`` output."""
    fmt = data.get("format", {})

    # Format-level tags first, then the first audio stream's (ogg/flac keep them there)
    tags = {}
    for s in data.get("streams", []):
        if s.get("codec_type") == "audio":
            tags.update({k.lower(): v for k, v in s.get("tags", {}).items()})
            break
    tags.update({k.lower(): v for k, v in fmt.get("tags", {}).items()})

    fields = {}
    for field_name, names in TAG_NAMES.items():
        for name in names:
            value = str(tags.get(name, "")).strip()
            if value:
                fields[field_name] = value
                break

    return Metadata(duration=_parse_duration(fmt.get("duration")), **fields)


def resolve_metadata(file: InputFile) -> Metadata:
    """Probe one input file.

    A file ffprobe cannot read yields empty Metadata and a warning; the
    merge goes on without its tags and chapter.
    """
    ffprobe = ensure_ffprobe()
    cmd = [
        ffprobe,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        file.path,
    ]
    result = subprocess.run(cmd, capture_output=True, text=True)
    if result.returncode != 0:
        click.echo("could not read metadata of {}".format(file.path), err=True)
        return Metadata()

    try:
        data = json.loads(result.stdout or "{}")
    except json.JSONDecodeError:
        click.echo("could not parse ffprobe output for {}".format(file.path), err=True)
        return Metadata()
    return metadata_from_probe(data)


def resolve_all(files: list[InputFile], resolver=resolve_metadata) -> list[Metadata]:
    """Resolve metadata for every file, one after another, keeping order."""
    return [resolver(f) for f in files]
