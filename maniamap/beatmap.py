from __future__ import annotations

import re
import math
import logging
import numpy as np
from collections.abc import Iterable, Sequence
from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    IO,
    List,
    Tuple,
    Union,
)

from .errors import (
    MalformedRecord,
    UnknownHitObjectType,
    UnsupportedMode,
)
from .flags import (
    HitObjectType,
    HitSound,
    SampleSet,
    bpm_from_beat_length,
    decode_combo_skip,
    decode_effects,
    decode_hit_object_type,
    decode_hit_sound,
    decode_new_combo,
    velocity_from_beat_length,
)
from .game_mode import GameMode
from .position import Position
from .utils import get_field, lazyval


Converter = Callable[[str, str, str], Any]
SectionHandler = Callable[["Beatmap", str], None]


def _as_int(section: str, field: str, raw: str) -> int:
    """Parse an integer field, truncating decimal text the way osu! does for
    old or hand edited beatmaps.
    """
    try:
        return int(raw)
    except ValueError:
        pass

    try:
        return int(float(raw))
    except (ValueError, OverflowError) as e:
        raise MalformedRecord(section, field, raw, "should be an int") from e


def _as_float(section: str, field: str, raw: str) -> float:
    try:
        value = float(raw)
    except ValueError as e:
        raise MalformedRecord(section, field, raw, "should be a float") from e

    if not math.isfinite(value):
        raise MalformedRecord(section, field, raw, "should be a finite float")
    return value


def _as_str(section: str, field: str, raw: str) -> str:
    return raw


def _as_tags(section: str, field: str, raw: str) -> List[str]:
    # space delimited list
    return raw.split()


def _as_mania_mode(section: str, field: str, raw: str) -> GameMode:
    if raw != str(int(GameMode.mania)):
        raise UnsupportedMode(raw)
    return GameMode.mania


def _require(
    section: str,
    fields: Sequence[str],
    ix: int,
    name: str,
) -> str:
    try:
        return get_field(fields, ix)
    except IndexError:
        raise MalformedRecord(section, name, None) from None


class TimingPoint:
    """A timing point assigns rhythm and sound properties to an offset into a
    beatmap. It applies until the next timing point, or to the end of the map
    if it is the last one.

    Parameters
    ----------
    time : int
        When this ``TimingPoint`` takes effect, in milliseconds from the
        start of the audio.
    beat_length : float
        The raw beat length. Positive values are milliseconds per beat,
        negative values are an inverse velocity percentage.
    bpm : int or None
        The tempo defined by this point, or None for a point which only
        changes the scroll velocity.
    velocity : float
        The scroll velocity multiplier. This is 1.0 for a point which defines
        a tempo.
    meter : int
        The number of beats per measure. Ignored for inherited points.
    sample_set : SampleSet
        The default sample set for hit objects.
    sample_index : int
        The custom sample index for hit objects, 0 for osu!'s default hit
        sounds.
    volume : int
        The volume percentage of hit sounds.
    uninherited : bool
        Whether this point defines its own tempo rather than inheriting the
        tempo of the last uninherited point.
    kiai_time : bool
        Whether or not kiai time effects are active.
    omit_first_bar_line : bool
        Whether the first bar line of this section is hidden.
    """

    def __init__(
        self,
        time: int,
        beat_length: float,
        bpm: int | None,
        velocity: float,
        meter: int,
        sample_set: SampleSet,
        sample_index: int,
        volume: int,
        uninherited: bool,
        kiai_time: bool,
        omit_first_bar_line: bool,
    ) -> None:
        self.time = time
        self.beat_length = beat_length
        self.bpm = bpm
        self.velocity = velocity
        self.meter = meter
        self.sample_set = sample_set
        self.sample_index = sample_index
        self.volume = volume
        self.uninherited = uninherited
        self.kiai_time = kiai_time
        self.omit_first_bar_line = omit_first_bar_line

    @property
    def timing_signature(self) -> int:
        """The number of beats per measure."""
        return self.meter

    def _key(self) -> Tuple[Any, ...]:
        return (
            self.time,
            self.beat_length,
            self.bpm,
            self.velocity,
            self.meter,
            self.sample_set,
            self.sample_index,
            self.volume,
            self.uninherited,
            self.kiai_time,
            self.omit_first_bar_line,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TimingPoint):
            return NotImplemented
        return self._key() == other._key()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        if self.bpm is not None:
            detail = f"{self.bpm} bpm"
        else:
            detail = f"{self.velocity:g}x"
        return f"<{type(self).__qualname__}: {self.time}ms, {detail}>"

    @classmethod
    def parse(cls, data: str) -> "TimingPoint":
        """Parse a TimingPoint object from a line in a ``.osu`` file.

        Parameters
        ----------
        data : str
            The line to parse, ``time,beatLength,meter,sampleSet,sampleIndex,
            volume,uninherited,effects``. Only the first two fields are
            required; missing trailing fields take the format defaults.

        Returns
        -------
        timing_point : TimingPoint
            The parsed timing point.

        Raises
        ------
        MalformedRecord
            Raised when ``data`` does not describe a ``TimingPoint`` object.
        """
        section = "TimingPoints"
        fields = data.split(",")

        time = _as_int(section, "time", _require(section, fields, 0, "time"))
        beat_length_raw = _require(section, fields, 1, "beatLength")
        beat_length = _as_float(section, "beatLength", beat_length_raw)
        # subnormal beat lengths overflow the derived bpm or velocity
        if beat_length == 0 or not (
            math.isfinite(60000 / beat_length)
            and math.isfinite(100 / beat_length)
        ):
            raise MalformedRecord(
                section,
                "beatLength",
                beat_length_raw,
                "should be nonzero and not subnormal",
            )

        meter = _as_int(section, "meter", get_field(fields, 2, "4"))

        sample_set_raw = get_field(fields, 3, "0")
        sample_set_value = _as_int(section, "sampleSet", sample_set_raw)
        try:
            sample_set = SampleSet(sample_set_value)
        except ValueError as e:
            raise MalformedRecord(
                section,
                "sampleSet",
                sample_set_raw,
                "should be in the range [0, 3]",
            ) from e

        sample_index = _as_int(section, "sampleIndex", get_field(fields, 4, "0"))
        volume = _as_int(section, "volume", get_field(fields, 5, "100"))
        uninherited = get_field(fields, 6, "1").strip() == "1"
        effects = decode_effects(
            _as_int(section, "effects", get_field(fields, 7, "0")),
        )

        return cls(
            time=time,
            beat_length=beat_length,
            bpm=bpm_from_beat_length(beat_length),
            velocity=velocity_from_beat_length(beat_length),
            meter=meter,
            sample_set=sample_set,
            sample_index=sample_index,
            volume=volume,
            uninherited=uninherited,
            kiai_time=effects.kiai_time,
            omit_first_bar_line=effects.omit_first_bar_line,
        )


class HitObject:
    """An abstract osu!mania hit element.

    Parameters
    ----------
    position : Position
        Where this element appears on the screen. The x coordinate picks the
        column.
    time : int
        When this element is to be hit, in milliseconds from the start of
        the audio.
    hit_sound : HitSound
        The hit sounds to play when this object is hit.
    new_combo : bool
        Whether this element is the start of a new combo.
    combo_skip : int
        How many combo colors to skip if this element is the start of a new
        combo.
    addition : str, optional
        The raw hit sample field.
    """

    # must be set by subclasses
    type: ClassVar[HitObjectType]

    def __init__(
        self,
        position: Position,
        time: int,
        hit_sound: HitSound,
        new_combo: bool = False,
        combo_skip: int = 0,
        addition: str = "0:0:0:0:",
    ) -> None:
        self.position = position
        self.time = time
        self.hit_sound = hit_sound
        self.new_combo = new_combo
        self.combo_skip = combo_skip
        self.addition = addition

    @property
    def x(self) -> int:
        return self.position.x

    @property
    def y(self) -> int:
        return self.position.y

    @property
    def end_time(self) -> int:
        """When this element stops being held. Notes have no duration, so
        this is ``time``.
        """
        return self.time

    @lazyval
    def duration(self) -> int:
        """How long this element is held, in milliseconds."""
        return self.end_time - self.time

    def _key(self) -> Tuple[Any, ...]:
        return (
            type(self),
            self.position,
            self.time,
            self.end_time,
            self.hit_sound,
            self.new_combo,
            self.combo_skip,
            self.addition,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HitObject):
            return NotImplemented
        return self._key() == other._key()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"<{type(self).__qualname__}: {self.position}, {self.time}ms>"

    @classmethod
    def parse(cls, data: str) -> "HitObject":
        """Parse a HitObject object from a line in a ``.osu`` file.

        Parameters
        ----------
        data : str
            The line to parse, ``x,y,time,type,hitSound,objectParams``.

        Returns
        -------
        hit_object : HitObject
            The parsed hit object. This will be a :class:`Note` or a
            :class:`HoldNote` depending on the type code.

        Raises
        ------
        UnknownHitObjectType
            Raised when the type code is neither a note nor a hold.
        MalformedRecord
            Raised when a field of ``data`` cannot be parsed.
        """
        section = "HitObjects"
        fields = data.split(",")

        # x and y are written as floats by some old editors, osu! truncates
        # them to integers
        x = _as_int(section, "x", _require(section, fields, 0, "x"))
        y = _as_int(section, "y", _require(section, fields, 1, "y"))
        time = _as_int(section, "time", _require(section, fields, 2, "time"))
        type_code = _as_int(section, "type", _require(section, fields, 3, "type"))
        hit_sound = decode_hit_sound(
            _as_int(section, "hitSound", _require(section, fields, 4, "hitSound")),
        )

        object_type = decode_hit_object_type(type_code)
        parser: Callable[..., HitObject]
        if object_type is HitObjectType.note:
            parser = Note._parse
        elif object_type is HitObjectType.hold:
            parser = HoldNote._parse
        else:
            raise UnknownHitObjectType(type_code)

        return parser(
            Position(x, y),
            time,
            hit_sound,
            decode_new_combo(type_code),
            decode_combo_skip(type_code),
            fields[5:],
        )


class Note(HitObject):
    """A single tap in one column."""

    type = HitObjectType.note

    @classmethod
    def _parse(
        cls,
        position: Position,
        time: int,
        hit_sound: HitSound,
        new_combo: bool,
        combo_skip: int,
        rest: Sequence[str],
    ) -> "Note":
        addition = rest[0] if rest else "0:0:0:0:"
        return cls(position, time, hit_sound, new_combo, combo_skip, addition)


class HoldNote(HitObject):
    """A note which is held from ``time`` until ``end_time``.

    Parameters
    ----------
    position : Position
        Where this HoldNote appears on the screen.
    time : int
        When this HoldNote is pressed.
    hit_sound : HitSound
        The hit sounds to play when this object is hit.
    end_time : int
        When this HoldNote is released.
    new_combo : bool
        Whether this HoldNote is the start of a new combo.
    combo_skip : int
        How many combo colors to skip if this HoldNote is the start of a new
        combo.
    addition : str, optional
        The raw hit sample field.
    """

    type = HitObjectType.hold

    def __init__(
        self,
        position: Position,
        time: int,
        hit_sound: HitSound,
        end_time: int,
        new_combo: bool = False,
        combo_skip: int = 0,
        addition: str = "0:0:0:0:",
    ) -> None:
        super().__init__(position, time, hit_sound, new_combo, combo_skip, addition)
        self._end_time = end_time

    @property
    def end_time(self) -> int:
        return self._end_time

    @classmethod
    def _parse(
        cls,
        position: Position,
        time: int,
        hit_sound: HitSound,
        new_combo: bool,
        combo_skip: int,
        rest: Sequence[str],
    ) -> "HoldNote":
        if not rest:
            raise MalformedRecord("HitObjects", "endTime", None)

        # the end time is joined to the hit sample with ':' rather than ','
        end_time_raw, _, addition = rest[0].partition(":")
        end_time = _as_int("HitObjects", "endTime", end_time_raw)
        return cls(
            position,
            time,
            hit_sound,
            end_time,
            new_combo,
            combo_skip,
            addition or "0:0:0:0:",
        )


def _mapping_handler(
    section: str,
    fields: Dict[str, Tuple[str, Converter]],
) -> SectionHandler:
    """Build a handler for a ``Key: Value`` section.

    Parameters
    ----------
    section : str
        The name of the section, used in error messages.
    fields : dict[str, tuple[str, callable]]
        A mapping from the key in the file to the attribute of the beatmap
        to set and the function which converts the raw value.

    Returns
    -------
    handler : callable
        A function which applies one line of the section to a beatmap. Keys
        which are not in ``fields`` are ignored.
    """

    def handle(beatmap: "Beatmap", line: str) -> None:
        key, _, value = line.partition(":")
        try:
            attribute, convert = fields[key.strip()]
        except KeyError:
            return
        setattr(beatmap, attribute, convert(section, key.strip(), value.strip()))

    return handle


def _handle_timing_point(beatmap: "Beatmap", line: str) -> None:
    beatmap.add_timing_point(line)


def _handle_hit_object(beatmap: "Beatmap", line: str) -> None:
    beatmap.add_hit_object(line)


_section_handlers: Dict[str, SectionHandler] = {
    "General": _mapping_handler(
        "General",
        {
            "AudioFilename": ("audio_filename", _as_str),
            "AudioLeadIn": ("audio_lead_in", _as_int),
            "PreviewTime": ("preview_time", _as_int),
            "Mode": ("mode", _as_mania_mode),
        },
    ),
    "Metadata": _mapping_handler(
        "Metadata",
        {
            "Title": ("title", _as_str),
            "TitleUnicode": ("title_unicode", _as_str),
            "Artist": ("artist", _as_str),
            "ArtistUnicode": ("artist_unicode", _as_str),
            "Creator": ("creator", _as_str),
            "Version": ("version", _as_str),
            "Source": ("source", _as_str),
            "Tags": ("tags", _as_tags),
            "BeatmapID": ("beatmap_id", _as_int),
            "BeatmapSetID": ("beatmap_set_id", _as_int),
        },
    ),
    "Difficulty": _mapping_handler(
        "Difficulty",
        {
            "HPDrainRate": ("hp_drain_rate", _as_float),
            # osu!mania stores the key count in the circle size field
            "CircleSize": ("key_count", _as_int),
            "OverallDifficulty": ("overall_difficulty", _as_float),
        },
    ),
    "TimingPoints": _handle_timing_point,
    "HitObjects": _handle_hit_object,
}


class Beatmap:
    """An osu!mania beatmap.

    A ``Beatmap`` starts out empty and is filled in one line at a time by
    :meth:`parse`. The aggregate attributes (``min_bpm``, ``max_bpm``,
    ``note_count``, ``hold_count`` and ``key_positions``) are updated as each
    timing point and hit object is added.

    Attributes
    ----------
    format_version : int or None
        The version from the ``osu file format vN`` header, if present.
    audio_filename : str
        The location of the audio file relative to the beatmap.
    audio_lead_in : int
        Milliseconds of silence before the audio starts.
    preview_time : int
        Where the song select preview starts, in milliseconds.
    mode : GameMode
        Always :data:`GameMode.mania`.
    title, title_unicode, artist, artist_unicode : str
        The romanised and unicode song title and artist.
    creator : str
        The username of the mapper.
    version : str
        The name of the beatmap's difficulty.
    source : str
        The origin of the song.
    tags : list[str]
        Words describing the song, in file order.
    beatmap_id, beatmap_set_id : int or None
        The ids of this beatmap and its set. Old beatmaps did not store these
        in the file.
    hp_drain_rate : float
        The ``HP`` attribute of the beatmap.
    key_count : int
        The number of columns.
    overall_difficulty : float
        The ``OD`` attribute of the beatmap.
    min_bpm, max_bpm : int
        The slowest and fastest tempo of the uninherited timing points. Both
        are 0 until a tempo has been seen. A tempo which rounds to 0 bpm can
        not be told apart from this starting value.
    note_count, hold_count : int
        The number of notes and hold notes.
    key_positions : list[int]
        The distinct x positions of the hit objects, ascending once parsing
        has finished.
    timing_points : list[TimingPoint]
        The timing points in file order.
    hit_objects : list[HitObject]
        The hit objects in file order.
    """

    _version_regex = re.compile(r"^osu file format v(\d+)$")
    _section_regex = re.compile(r"^\[([a-zA-Z0-9]+)\]$")
    _line_regex = re.compile(r"\r\n|\r|\n")

    def __init__(self) -> None:
        self.format_version: int | None = None
        self.audio_filename = ""
        self.audio_lead_in = 0
        self.preview_time = 0
        self.mode = GameMode.mania

        self.title = ""
        self.title_unicode = ""
        self.artist = ""
        self.artist_unicode = ""
        self.creator = ""
        self.version = ""
        self.source = ""
        self.tags: List[str] = []
        self.beatmap_id: int | None = None
        self.beatmap_set_id: int | None = None

        self.hp_drain_rate = 0.0
        self.key_count = 0
        self.overall_difficulty = 0.0

        self.min_bpm = 0
        self.max_bpm = 0
        self.note_count = 0
        self.hold_count = 0
        self.key_positions: List[int] = []

        self.timing_points: List[TimingPoint] = []
        self.hit_objects: List[HitObject] = []

    @property
    def display_name(self) -> str:
        """The name of the map as it appears in game."""
        return f"{self.artist} - {self.title} [{self.version}]"

    def __repr__(self) -> str:
        return f"<{type(self).__qualname__}: {self.display_name}>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Beatmap):
            return NotImplemented
        return vars(self) == vars(other)

    __hash__ = None  # type: ignore[assignment]

    def add_timing_point(self, line: str) -> TimingPoint:
        """Parse a timing point record and append it to this beatmap.

        Parameters
        ----------
        line : str
            The raw record.

        Returns
        -------
        timing_point : TimingPoint
            The parsed timing point.
        """
        timing_point = TimingPoint.parse(line)

        bpm = timing_point.bpm
        if bpm is not None:
            if self.min_bpm == 0 or bpm < self.min_bpm:
                self.min_bpm = bpm
            if self.max_bpm == 0 or bpm > self.max_bpm:
                self.max_bpm = bpm

        self.timing_points.append(timing_point)
        return timing_point

    def add_hit_object(self, line: str) -> HitObject:
        """Parse a hit object record and append it to this beatmap.

        Parameters
        ----------
        line : str
            The raw record.

        Returns
        -------
        hit_object : HitObject
            The parsed hit object.
        """
        hit_object = HitObject.parse(line)

        if hit_object.type is HitObjectType.note:
            self.note_count += 1
        else:
            self.hold_count += 1

        if hit_object.x not in self.key_positions:
            self.key_positions.append(hit_object.x)

        self.hit_objects.append(hit_object)
        return hit_object

    def finalize(self) -> None:
        """Sort ``key_positions``; called once every line has been added."""
        self.key_positions.sort()

    def timing_point_at(self, time: int) -> TimingPoint:
        """Get the :class:`maniamap.beatmap.TimingPoint` at the given time.

        Parameters
        ----------
        time : int
            The time to lookup the timing point for, in milliseconds.

        Returns
        -------
        timing_point : TimingPoint
            The last timing point starting at or before ``time``. If ``time``
            is before every timing point, the first timing point.

        Raises
        ------
        ValueError
            Raised when the beatmap has no timing points.
        """
        if not self.timing_points:
            raise ValueError(f"{self!r} has no timing points")

        for tp in reversed(self.timing_points):
            if tp.time <= time:
                return tp

        return self.timing_points[0]

    def column(self, hit_object: Union[HitObject, int]) -> int:
        """The zero-indexed column of a hit object.

        Parameters
        ----------
        hit_object : HitObject or int
            The hit object, or a raw x position.

        Returns
        -------
        column : int
            The index of the x position in ``key_positions``.

        Raises
        ------
        ValueError
            Raised when no hit object in this beatmap has that x position.
        """
        if isinstance(hit_object, HitObject):
            x = hit_object.x
        else:
            x = hit_object

        positions = np.asarray(self.key_positions)
        ix = int(np.searchsorted(positions, x))
        if ix == len(positions) or positions[ix] != x:
            raise ValueError(f"no column at x position {x!r}")
        return ix

    @classmethod
    def from_path(cls, path: str) -> "Beatmap":
        """Read in a ``Beatmap`` object from a file on disk.

        Parameters
        ----------
        path : str or pathlib.Path
            The path to the file to read from.

        Returns
        -------
        beatmap : Beatmap
            The parsed beatmap object.

        Raises
        ------
        FileNotFoundError
            Raised when ``path`` does not exist.
        ValueError
            Raised when the file cannot be parsed as a ``.osu`` file.
        """
        with open(path, encoding="utf-8-sig") as file:
            return cls.from_file(file)

    @classmethod
    def from_file(cls, file: IO[str]) -> "Beatmap":
        """Read in a ``Beatmap`` object from an open file object.

        Parameters
        ----------
        file : file-like
            The file object to read from.

        Returns
        -------
        beatmap : Beatmap
            The parsed beatmap object.

        Raises
        ------
        ValueError
            Raised when the file cannot be parsed as a ``.osu`` file.
        """
        return cls.parse(file.read())

    @classmethod
    def _content_lines(cls, data: str) -> List[str]:
        """Split the input data into the lines the scanner reads.

        Only ``\r\n``, ``\r`` and ``\n`` end a line; other unicode line
        separators may appear inside values. Surrounding whitespace is
        stripped, and blank lines and ``//`` comments are dropped.
        """
        data = data.removeprefix("\ufeff")

        lines = []
        for line in cls._line_regex.split(data):
            line = line.strip()
            if not line or line.startswith("//"):
                continue
            lines.append(line)
        return lines

    @classmethod
    def _scan(cls, beatmap: "Beatmap", lines: Iterable[str]) -> None:
        """Apply each line to ``beatmap`` with the handler of the section it
        appears in. Lines outside of a known section are ignored.
        """
        handler: SectionHandler | None = None
        for line in lines:
            match = cls._section_regex.match(line)
            if match is not None:
                section = match.group(1)
                handler = _section_handlers.get(section)
                if handler is None:
                    logging.debug("skipping unknown section %r", section)
                continue

            if handler is not None:
                handler(beatmap, line)

    @classmethod
    def parse(cls, data: str) -> "Beatmap":
        """Parse a ``Beatmap`` from text in the ``.osu`` format.

        Parameters
        ----------
        data : str
            The data to parse.

        Returns
        -------
        beatmap : Beatmap
            The parsed beatmap object.

        Raises
        ------
        UnsupportedMode
            Raised when the beatmap is not an osu!mania beatmap.
        UnknownHitObjectType
            Raised when a hit object is neither a note nor a hold.
        MalformedRecord
            Raised when a field cannot be parsed.
        """
        lines = cls._content_lines(data)
        beatmap = cls()

        match = cls._version_regex.match(lines[0]) if lines else None
        if match is not None:
            beatmap.format_version = int(match.group(1))
        else:
            logging.debug("missing osu file format specifier")

        cls._scan(beatmap, lines)
        beatmap.finalize()
        return beatmap
