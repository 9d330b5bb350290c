"""Chapter timeline construction and chapter marker export."""

from __future__ import annotations

import os
import shutil
import subprocess

import click

from audiobook_merger.errors import ExternalToolFailure, OverwriteConflict
from audiobook_merger.models import Chapter, InputFile, Metadata, TimeUnit

CHAPTER_FORMAT = "mp4"
CHAPTERS_SUFFIX = ".chapters.txt"


def build_chapters(files: list[InputFile], metadata: list[Metadata]) -> list[Chapter]:
    """Build a contiguous chapter list from ordered files and their metadata.

    Each file with a known duration becomes one chapter named after its title,
    or its 1-based position in ``files`` when it has none. A file without a
    duration gets no chapter and does not move the cursor, even though its
    audio is still part of the merge.
    """
    chapters = []
    cursor = TimeUnit()

    for index, (_file, meta) in enumerate(zip(files, metadata), 1):
        if meta.duration is None:
            continue
        end = cursor + meta.duration
        name = meta.title if meta.title else str(index)
        chapters.append(Chapter(start=cursor, end=end, name=name))
        cursor = end

    return chapters


def chapters_file_path(output_path: str) -> str:
    """Marker file beside output_path, as mp4chaps expects: <stem>.chapters.txt"""
    stem, _ext = os.path.splitext(output_path)
    return stem + CHAPTERS_SUFFIX


def chapters_as_lines(chapters: list[Chapter]) -> list[str]:
    return ["{} {}".format(ch.start.format(), ch.name) for ch in chapters]


def ensure_mp4chaps() -> str:
    """Return the path to mp4chaps, or raise if not found."""
    path = shutil.which("mp4chaps")
    if not path:
        raise ExternalToolFailure(
            "mp4chaps not found on PATH. Install mp4v2: brew install mp4v2",
            tool="mp4chaps",
        )
    return path


def import_chapters(output_path: str) -> None:
    """Embed <stem>.chapters.txt into output_path with mp4chaps."""
    cmd = [ensure_mp4chaps(), "-i", output_path]
    click.echo("Importing chapters for {}".format(output_path))
    result = subprocess.run(cmd, capture_output=True, text=True)
    if result.returncode != 0:
        if result.stderr:
            click.echo(result.stderr.strip(), err=True)
        raise ExternalToolFailure(
            "mp4chaps failed with exit code {}".format(result.returncode),
            tool="mp4chaps",
            returncode=result.returncode,
        )


def export_chapters(
    chapters: list[Chapter],
    output_path: str,
    container_format: str | None,
    force: bool = False,
    importer=import_chapters,
) -> str | None:
    """Write the chapter marker file and import it into output_path.

    Does nothing for an empty chapter list or a container other than mp4.
    Returns the marker file path when something was written.
    """
    if not chapters:
        return None
    if container_format != CHAPTER_FORMAT:
        return None

    chapters_file = chapters_file_path(output_path)
    if os.path.isfile(chapters_file) and not force:
        raise OverwriteConflict(
            "Chapters file {} already exists, use --force to force overwrite".format(
                chapters_file
            )
        )

    with open(chapters_file, "w", encoding="utf-8") as f:
        f.write("\n".join(chapters_as_lines(chapters)))

    importer(output_path)
    return chapters_file
