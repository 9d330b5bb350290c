"""Merge audio files into a single file with one chapter per source file."""

__version__ = "0.1.0"
