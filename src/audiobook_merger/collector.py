"""Resolve CLI path arguments into the ordered list of input files."""

from __future__ import annotations

import os

import click
from natsort import natsorted

from audiobook_merger.errors import UnreadableInput
from audiobook_merger.models import InputFile


def parse_extensions(value: str | None) -> frozenset[str]:
    """Split a comma separated extension list, dropping empty items."""
    if not value:
        return frozenset()
    return frozenset(ext.strip() for ext in value.split(",") if ext.strip())


def file_extension(path: str) -> str:
    """Text after the last dot of the basename, without the dot."""
    name = os.path.basename(path)
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[1]


def check_readable(path: str) -> None:
    """Raise UnreadableInput if path is missing or not readable."""
    if not os.path.exists(path):
        raise UnreadableInput("skipping {} (does not exist)".format(path))
    if not os.access(path, os.R_OK):
        raise UnreadableInput("skipping {} (not readable)".format(path))


def walk_directory(directory: str, include) -> list[str]:
    """Walk directory depth-first, children before their container.

    Entries of each directory are natural-sorted, and a subdirectory is fully
    drained before the next sibling. Symlinks (files and directories) and
    unreadable entries are skipped. ``include`` is called with each candidate
    file path and decides whether it is kept.
    """
    found = []
    try:
        entries = natsorted(os.listdir(directory))
    except OSError:
        return found

    for entry in entries:
        path = os.path.join(directory, entry)
        if os.path.islink(path) or not os.access(path, os.R_OK):
            continue
        if os.path.isdir(path):
            found.extend(walk_directory(path, include))
        elif os.path.isfile(path) and include(path):
            found.append(path)
    return found


def expand_path(path: str, extensions: frozenset[str]) -> list[InputFile]:
    """Expand one argument: a directory yields its filtered contents, a file itself."""
    check_readable(path)

    if os.path.isdir(path):
        paths = walk_directory(
            path, lambda candidate: file_extension(candidate) in extensions
        )
    else:
        # Files named explicitly bypass the extension filter
        paths = [path]

    return [
        InputFile(
            path=os.path.realpath(p),
            extension=file_extension(p),
            readable=os.access(p, os.R_OK),
        )
        for p in paths
    ]


def collect(paths, extensions: frozenset[str]) -> list[InputFile]:
    """Collect input files from paths, in argument order.

    Unreadable arguments are reported on stderr and skipped. Repeated
    arguments are collected repeatedly.
    """
    files = []
    for path in paths:
        try:
            files.extend(expand_path(path, extensions))
        except UnreadableInput as exc:
            click.echo(exc.format_message(), err=True)
    return files
