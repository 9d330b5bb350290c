"""Shared test fixtures."""

from __future__ import annotations

import os
import shutil
import subprocess
import sys
import tempfile

import pytest

from audiobook_merger.models import InputFile, Metadata, TimeUnit

requires_ffmpeg = pytest.mark.skipif(
    shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None,
    reason="ffmpeg/ffprobe not installed",
)


@pytest.fixture
def tmp_dir():
    """Create a temporary directory that's cleaned up after the test."""
    with tempfile.TemporaryDirectory() as d:
        yield d


@pytest.fixture
def touch(tmp_dir):
    """Factory fixture that creates empty files (and parent dirs) under tmp_dir."""

    def _touch(relpath: str) -> str:
        path = os.path.join(tmp_dir, relpath)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        open(path, "w").close()
        return path

    return _touch


def input_file(name: str) -> InputFile:
    return InputFile(path="/books/" + name, extension=name.rsplit(".", 1)[-1])


def meta(duration_ms: int | None = None, **fields) -> Metadata:
    duration = TimeUnit(duration_ms) if duration_ms is not None else None
    return Metadata(duration=duration, **fields)


class Recorder:
    """Records calls to the fake collaborators, in order."""

    def __init__(self):
        self.calls = []
        self.fail_on = None

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if self.fail_on == name:
            from audiobook_merger.errors import ExternalToolFailure

            raise ExternalToolFailure("{} failed".format(name), tool=name, returncode=1)

    def transcoder(self, request, verbose=False):
        self._record("transcode", request)

    def chapter_importer(self, output_path):
        self._record("import_chapters", output_path)

    def tag_writer(self, path, tags):
        self._record("write_tags", path, tags)

    @property
    def names(self):
        return [c[0] for c in self.calls]


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def make_mp3(tmp_dir):
    """Factory fixture that creates short silent MP3 files for testing."""

    def _make(filename: str, duration_s: float = 1.0, title: str | None = None, **tags) -> str:
        path = os.path.join(tmp_dir, filename)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        cmd = [
            "ffmpeg", "-y",
            "-f", "lavfi", "-i",
            "anullsrc=r=44100:cl=mono",
            "-t", str(duration_s),
            "-q:a", "9",
            "-map_metadata", "-1",
        ]
        if title:
            cmd.extend(["-metadata", "title={}".format(title)])
        for key, value in tags.items():
            cmd.extend(["-metadata", "{}={}".format(key, value)])
        cmd.append(path)
        subprocess.run(cmd, capture_output=True, check=True)
        return path

    return _make


@pytest.fixture
def sample_mp3s(make_mp3, tmp_dir):
    """Create a set of 3 short MP3 files for integration tests."""
    make_mp3("01_intro.mp3", duration_s=1.0, title="Introduction", album="Test Book")
    make_mp3("02_chapter1.mp3", duration_s=1.5, title="The Journey Begins")
    make_mp3("03_chapter2.mp3", duration_s=2.0)
    return tmp_dir


@pytest.fixture
def fake_tool(tmp_dir, monkeypatch):
    """Factory fixture that puts an executable script named `name` first on PATH."""
    if sys.platform == "win32":
        pytest.skip("shell script tools need a POSIX shell")

    bin_dir = os.path.join(tmp_dir, "bin")
    os.makedirs(bin_dir, exist_ok=True)
    monkeypatch.setenv("PATH", bin_dir + os.pathsep + os.environ.get("PATH", ""))

    def _make(name: str, exit_code: int = 0, stdout: str = "") -> str:
        path = os.path.join(bin_dir, name)
        with open(path, "w") as f:
            f.write("#!/bin/sh\n")
            if stdout:
                f.write("printf '%s\\n' '{}'\n".format(stdout))
            f.write("echo 'fake {} failed' >&2\n".format(name))
            f.write("exit {}\n".format(exit_code))
        os.chmod(path, 0o755)
        return path

    return _make
