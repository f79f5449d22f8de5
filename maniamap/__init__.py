from .beatmap import Beatmap, HitObject, HoldNote, Note, TimingPoint
from .errors import (
    BeatmapParseError,
    MalformedRecord,
    UnknownHitObjectType,
    UnsupportedMode,
)
from .flags import HitObjectType, HitSound, SampleSet
from .game_mode import GameMode
from .position import Position

__version__ = "0.1.0"

__all__ = [
    "Beatmap",
    "BeatmapParseError",
    "GameMode",
    "HitObject",
    "HitObjectType",
    "HitSound",
    "HoldNote",
    "MalformedRecord",
    "Note",
    "Position",
    "SampleSet",
    "TimingPoint",
    "UnknownHitObjectType",
    "UnsupportedMode",
]
