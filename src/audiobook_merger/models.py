from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_EXTENSIONS = ("m4b", "mp3", "aac", "mp4", "flac")

# Keys a TagSet may hold; coalescing only ever fills the first seven.
TAG_KEYS = (
    "name",
    "artist",
    "albumartist",
    "year",
    "genre",
    "writer",
    "cover",
    "album",
    "description",
    "comment",
)


@dataclass(frozen=True)
class InputFile:
    """A collected input file, resolved to an absolute path."""

    path: str
    extension: str
    readable: bool = True


@dataclass(frozen=True)
class TimeUnit:
    """Non-negative duration or instant in milliseconds."""

    milliseconds: int = 0

    def __post_init__(self):
        if self.milliseconds < 0:
            raise ValueError("TimeUnit cannot be negative: {}".format(self.milliseconds))

    def __add__(self, other: TimeUnit) -> TimeUnit:
        return TimeUnit(self.milliseconds + other.milliseconds)

    def format(self) -> str:
        """Render as HH:MM:SS.mmm."""
        total_seconds, ms = divmod(self.milliseconds, 1000)
        minutes, seconds = divmod(total_seconds, 60)
        hours, minutes = divmod(minutes, 60)
        return "{:02d}:{:02d}:{:02d}.{:03d}".format(hours, minutes, seconds, ms)


@dataclass(frozen=True)
class Metadata:
    """Descriptive properties of one input file. Every field may be absent."""

    album: str | None = None
    title: str | None = None
    artist: str | None = None
    album_artist: str | None = None
    date: str | None = None
    genre: str | None = None
    writer: str | None = None
    duration: TimeUnit | None = None


@dataclass(frozen=True)
class Chapter:
    """A chapter in the merged output."""

    start: TimeUnit
    end: TimeUnit
    name: str

    @property
    def length(self) -> TimeUnit:
        return TimeUnit(self.end.milliseconds - self.start.milliseconds)


class TagSet:
    """Tag values keyed by TAG_KEYS, each set at most once."""

    def __init__(self, initial: dict | None = None):
        self._values: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.set_if_undefined(key, value)

    def set_if_undefined(self, key: str, value) -> bool:
        """Store value under key unless the key is already set or value is empty."""
        if key not in TAG_KEYS:
            raise KeyError("Unknown tag key: {}".format(key))
        if key in self._values or not value:
            return False
        self._values[key] = str(value)
        return True

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._values.get(key, default)

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other) -> bool:
        if not isinstance(other, TagSet):
            return NotImplemented
        return self._values == other._values

    def as_dict(self) -> dict[str, str]:
        return {key: self._values[key] for key in TAG_KEYS if key in self._values}

    def __repr__(self) -> str:
        return "TagSet({!r})".format(self.as_dict())


@dataclass(frozen=True)
class EncodingOptions:
    """Encoder settings; None means "let the transcoder decide"."""

    bitrate: str | None = None
    sample_rate: str | None = None
    channels: str | None = None
    codec: str | None = None
    format: str | None = None

    def configured(self) -> dict[str, str]:
        return {
            name: value
            for name, value in (
                ("bitrate", self.bitrate),
                ("sample_rate", self.sample_rate),
                ("channels", self.channels),
                ("codec", self.codec),
                ("format", self.format),
            )
            if value
        }


@dataclass(frozen=True)
class MergeConfig:
    """Everything one merge run needs, as supplied by the caller."""

    input_path: str
    output_file: str
    more_inputs: tuple[str, ...] = ()
    include_extensions: frozenset[str] = frozenset(DEFAULT_EXTENSIONS)
    force: bool = False
    encoding: EncodingOptions = field(default_factory=EncodingOptions)
    tags: dict = field(default_factory=dict)
    dry_run: bool = False
    verbose: bool = False


@dataclass(frozen=True)
class ConcatDescription:
    """How many streams the transcoder joins, and of which kind."""

    stream_count: int
    audio: bool = True
    video: bool = False


@dataclass(frozen=True)
class MergeRequest:
    """Transcoder-independent description of one merge."""

    inputs: tuple[InputFile, ...]
    concat: ConcatDescription
    encoding: dict[str, str]
    output_path: str
    overwrite: bool = False
    expected_duration: TimeUnit = TimeUnit()


@dataclass(frozen=True)
class MergeOutput:
    """The produced file and the container format used to write it."""

    path: str
    container_format: str | None
