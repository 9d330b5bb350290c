"""Click CLI entry point for the audiobook merger."""

from __future__ import annotations

import click

from audiobook_merger.collector import parse_extensions
from audiobook_merger.models import DEFAULT_EXTENSIONS, EncodingOptions, MergeConfig
from audiobook_merger.pipeline import merge


@click.group()
@click.version_option(package_name="audiobook-merger")
def cli():
    """Merge audio files into one file with a chapter per source file."""
    pass


@cli.command(name="merge")
@click.argument("input_path")
@click.argument("more_input_files", nargs=-1)
@click.option("--output-file", required=True, help="Output file")
@click.option(
    "--include-extensions",
    default=",".join(DEFAULT_EXTENSIONS),
    show_default=True,
    help="Comma separated list of file extensions to include (others are skipped)",
)
@click.option("-f", "--force", is_flag=True, help="Overwrite existing output and chapter files")
@click.option("--audio-bitrate", default=None, help="Audio bitrate, e.g. 64k")
@click.option("--audio-samplerate", default=None, help="Audio sample rate, e.g. 44100")
@click.option("--audio-channels", default=None, help="Audio channels, e.g. 1")
@click.option("--audio-codec", default=None, help="Audio codec, e.g. aac")
@click.option("--audio-format", default=None, help="Output container format, e.g. mp4")
@click.option("--name", default=None, help="Book title")
@click.option("--album", default=None, help="Album (defaults to the title)")
@click.option("--artist", default=None, help="Artist")
@click.option("--albumartist", default=None, help="Album artist")
@click.option("--year", default=None, help="Release year")
@click.option("--genre", default=None, help="Genre")
@click.option("--writer", default=None, help="Writer")
@click.option("--description", default=None, help="Description")
@click.option("--comment", default=None, help="Comment")
@click.option("--cover", default=None, type=click.Path(exists=True, dir_okay=False), help="Cover image path")
@click.option("--dry-run", is_flag=True, help="Show plan without merging")
@click.option("--verbose", is_flag=True, help="Show ffmpeg output")
def merge_cmd(
    input_path: str,
    more_input_files: tuple[str, ...],
    output_file: str,
    include_extensions: str,
    force: bool,
    audio_bitrate: str | None,
    audio_samplerate: str | None,
    audio_channels: str | None,
    audio_codec: str | None,
    audio_format: str | None,
    dry_run: bool,
    verbose: bool,
    **tag_options,
):
    """Merge INPUT_PATH and MORE_INPUT_FILES into one file.

    Directories are searched recursively for files with an included
    extension. Tags not given on the command line are taken from the first
    input file that has them, and every input with a known duration becomes
    one chapter.
    """
    config = MergeConfig(
        input_path=input_path,
        more_inputs=more_input_files,
        output_file=output_file,
        include_extensions=parse_extensions(include_extensions),
        force=force,
        encoding=EncodingOptions(
            bitrate=audio_bitrate,
            sample_rate=audio_samplerate,
            channels=audio_channels,
            codec=audio_codec,
            format=audio_format,
        ),
        tags={k: v for k, v in tag_options.items() if v},
        dry_run=dry_run,
        verbose=verbose,
    )
    merge(config)
