"""Merge orchestration: collect -> tags & chapters -> transcode -> chapters -> tags."""

from __future__ import annotations

from typing import Protocol

import click

from audiobook_merger.chapters import build_chapters, export_chapters, import_chapters
from audiobook_merger.collector import collect
from audiobook_merger.merge import build_merge_request, infer_container_format, transcode
from audiobook_merger.models import (
    Chapter,
    InputFile,
    MergeConfig,
    MergeOutput,
    MergeRequest,
    Metadata,
    TagSet,
)
from audiobook_merger.probe import resolve_all, resolve_metadata
from audiobook_merger.tags import coalesce_tags, write_tags


class MetadataResolver(Protocol):
    def __call__(self, file: InputFile) -> Metadata: ...


class Transcoder(Protocol):
    def __call__(self, request: MergeRequest, verbose: bool = False) -> None: ...


class ChapterImporter(Protocol):
    def __call__(self, output_path: str) -> None: ...


class TagWriter(Protocol):
    def __call__(self, path: str, tags: TagSet) -> None: ...


def merge(
    config: MergeConfig,
    resolver: MetadataResolver = resolve_metadata,
    transcoder: Transcoder = transcode,
    chapter_importer: ChapterImporter = import_chapters,
    tag_writer: TagWriter = write_tags,
) -> MergeOutput | None:
    """Run one merge described by config.

    Every step runs to completion before the next starts, and the first
    failure propagates unchanged. A partially written output is left in place.
    Returns None for a dry run.
    """
    files = collect((config.input_path,) + tuple(config.more_inputs), config.include_extensions)
    click.echo("Found {} input files".format(len(files)))

    metadata = resolve_all(files, resolver)
    tags = coalesce_tags(files, metadata, configured=config.tags, input_path=config.input_path)
    chapters = build_chapters(files, metadata)

    request = build_merge_request(
        files,
        config.output_file,
        config.encoding,
        force=config.force,
        metadata=metadata,
    )
    container_format = infer_container_format(config.output_file, config.encoding)

    if config.dry_run:
        print_plan(request, tags, chapters, container_format)
        return None

    transcoder(request, verbose=config.verbose)
    output = MergeOutput(path=config.output_file, container_format=container_format)

    export_chapters(
        chapters,
        output.path,
        output.container_format,
        force=config.force,
        importer=chapter_importer,
    )
    tag_writer(output.path, tags)
    return output


def print_plan(
    request: MergeRequest,
    tags: TagSet,
    chapters: list[Chapter],
    container_format: str | None,
) -> None:
    """Print the merge plan without executing."""
    click.echo("\n--- Dry Run ---\n")

    click.echo("Tags:")
    for key, value in tags.as_dict().items():
        click.echo("  {:<12}{}".format(key + ":", value))

    click.echo("\nEncoding:")
    for key, value in request.encoding.items():
        click.echo("  {:<12}{}".format(key + ":", value))
    click.echo("  {:<12}{}".format("container:", container_format or "(transcoder default)"))
    click.echo("  {:<12}{}".format("overwrite:", "yes" if request.overwrite else "no"))
    click.echo("  {:<12}{}".format("output:", request.output_path))

    click.echo("\nInputs ({}):\n".format(len(request.inputs)))
    for i, f in enumerate(request.inputs, 1):
        click.echo("  {:3d}. {}".format(i, f.path))

    click.echo("\nChapters ({}):\n".format(len(chapters)))
    for ch in chapters:
        click.echo("  {} {}  ({})".format(ch.start.format(), ch.name, ch.length.format()))

    click.echo("\nTotal duration: {}".format(request.expected_duration.format()))
    click.echo("")
