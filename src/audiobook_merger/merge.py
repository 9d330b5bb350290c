"""Merge request construction and the ffmpeg transcoder that executes it."""

from __future__ import annotations

import os
import shutil
import subprocess

import click

from audiobook_merger.errors import ExternalToolFailure
from audiobook_merger.models import (
    ConcatDescription,
    EncodingOptions,
    InputFile,
    MergeRequest,
    Metadata,
    TimeUnit,
)

# Output extensions that imply the mp4 container when no format is configured
MP4_CONTAINER_EXTENSIONS = (".m4b", ".m4a", ".mp4")

# EncodingOptions field -> ffmpeg option, in command line order
FFMPEG_OPTIONS = (
    ("bitrate", "-ab"),
    ("sample_rate", "-ar"),
    ("channels", "-ac"),
    ("codec", "-acodec"),
    ("format", "-f"),
)


def ensure_ffmpeg() -> str:
    """Return the path to ffmpeg, or raise if not found."""
    path = shutil.which("ffmpeg")
    if not path:
        raise ExternalToolFailure(
            "ffmpeg not found on PATH. Install ffmpeg: brew install ffmpeg",
            tool="ffmpeg",
        )
    return path


def infer_container_format(output_path: str, encoding: EncodingOptions) -> str | None:
    """Configured format, else "mp4" for m4b/m4a/mp4 outputs, else None."""
    if encoding.format:
        return encoding.format
    if output_path.lower().endswith(MP4_CONTAINER_EXTENSIONS):
        return "mp4"
    return None


def build_merge_request(
    files: list[InputFile],
    output_path: str,
    encoding: EncodingOptions,
    force: bool = False,
    metadata: list[Metadata] | None = None,
) -> MergeRequest:
    """Describe an audio-only merge of files, in order, into output_path.

    Only explicitly configured encoder settings are carried over.
    """
    expected = TimeUnit()
    for meta in metadata or []:
        if meta.duration is not None:
            expected = expected + meta.duration

    return MergeRequest(
        inputs=tuple(files),
        concat=ConcatDescription(stream_count=len(files), audio=True, video=False),
        encoding=encoding.configured(),
        output_path=output_path,
        overwrite=bool(force),
        expected_duration=expected,
    )


def filter_graph(concat: ConcatDescription) -> str:
    """ffmpeg concat filter joining the first audio stream of every input."""
    streams = "".join("[{}:a:0] ".format(i) for i in range(concat.stream_count))
    return "{}concat=n={}:v=0:a=1 [a]".format(streams, concat.stream_count)


def ffmpeg_command(request: MergeRequest, ffmpeg: str = "ffmpeg", progress: bool = True) -> list[str]:
    """Render a MergeRequest as an ffmpeg argument list."""
    cmd = [ffmpeg, "-nostdin"]
    if progress:
        # stderr is only read after exit, keep it small
        cmd.extend(["-hide_banner", "-loglevel", "error"])
    for f in request.inputs:
        cmd.extend(["-i", f.path])

    cmd.extend([
        "-filter_complex", filter_graph(request.concat),
        "-map", "[a]",
        "-vn",
    ])

    if request.overwrite:
        cmd.append("-y")

    for name, option in FFMPEG_OPTIONS:
        value = request.encoding.get(name)
        if value:
            cmd.extend([option, str(value)])

    if progress:
        cmd.extend(["-progress", "pipe:1", "-nostats"])

    cmd.append(request.output_path)
    return cmd


def transcode(request: MergeRequest, verbose: bool = False) -> None:
    """Run ffmpeg for request, blocking until it exits."""
    if not request.inputs:
        raise ExternalToolFailure("No input files to merge", tool="ffmpeg")

    cmd = ffmpeg_command(request, ffmpeg=ensure_ffmpeg(), progress=not verbose)

    click.echo(
        "Merging {} files into {}, this can take a while...".format(
            len(request.inputs), request.output_path
        )
    )

    if verbose:
        returncode = subprocess.run(cmd).returncode
    else:
        returncode = _run_with_progress(cmd, request.expected_duration)

    if returncode != 0:
        raise ExternalToolFailure(
            "Merging {} files into {} failed, ffmpeg exited with {}".format(
                len(request.inputs), request.output_path, returncode
            ),
            tool="ffmpeg",
            returncode=returncode,
        )

    if os.path.isfile(request.output_path):
        size_mb = os.path.getsize(request.output_path) / (1024 * 1024)
        click.echo("Done! Output: {} ({:.1f} MB)".format(request.output_path, size_mb))


def parse_progress_time(line: str) -> TimeUnit | None:
    """Playback position from an ``out_time_us=`` line of ffmpeg -progress output."""
    key, _, value = line.strip().partition("=")
    if key != "out_time_us":
        return None
    try:
        return TimeUnit(max(0, int(value) // 1000))
    except ValueError:
        # ffmpeg reports N/A before the first frame
        return None


def progress_bar(done: TimeUnit, total: TimeUnit, width: int = 40) -> str:
    if total.milliseconds > 0:
        pct = min(100, done.milliseconds * 100 // total.milliseconds)
    else:
        pct = 0
    filled = width * pct // 100
    return "[{}{}] {:3d}%  {}/{}".format(
        "#" * filled, "-" * (width - filled), pct, done.format(), total.format()
    )


def _run_with_progress(cmd: list[str], total: TimeUnit) -> int:
    """Run ffmpeg with a progress bar on stderr; return its exit code."""
    proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
    shown = None
    try:
        for line in proc.stdout:
            done = parse_progress_time(line)
            if done is None:
                continue
            bar = progress_bar(done, total)
            if bar != shown:
                shown = bar
                click.echo("\r  " + bar, nl=False, err=True)
        stderr = proc.stderr.read()
        proc.wait()
    finally:
        if proc.poll() is None:
            proc.kill()
            proc.wait()

    if shown is not None:
        click.echo("", err=True)
    if proc.returncode != 0 and stderr:
        click.echo(stderr.strip(), err=True)
    return proc.returncode
