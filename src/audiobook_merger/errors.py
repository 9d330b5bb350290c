"""Errors raised while merging.

All of them are ClickExceptions so the CLI reports them as ``Error: ...``
and exits non-zero without a traceback.
"""

from __future__ import annotations

import click


class MergeError(click.ClickException):
    """Base class for merge failures."""


class UnreadableInput(MergeError):
    """An input path does not exist or cannot be read. Skipped, never fatal."""


class OverwriteConflict(MergeError):
    """A file we are about to write exists and --force was not given."""


class ExternalToolFailure(MergeError):
    """ffmpeg, ffprobe, mp4chaps or the tag writer reported failure."""

    def __init__(self, message: str, tool: str | None = None, returncode: int | None = None):
        super().__init__(message)
        self.tool = tool
        self.returncode = returncode
