"""Decoders for the packed and derived fields of timing point and hit object
records.

Every function here takes already-converted integers or floats; turning the
raw text into numbers is the record parser's job.
"""
from __future__ import annotations

import math
from enum import Enum, IntEnum, IntFlag, unique
from typing import NamedTuple


# effects bitmask of a timing point
KIAI_BIT = 0b1
OMIT_FIRST_BAR_LINE_BIT = 0b100

# type bitmask of a hit object
NOTE_BIT = 0b1
NEW_COMBO_BIT = 0b100
COMBO_SKIP_MASK = 0b11100
HOLD_BIT = 0b10000000

# hitsound bitmask of a hit object, bits 0 through 3
HIT_SOUND_MASK = 0b1111


@unique
class SampleSet(IntEnum):
    """The hit sound sample set of a timing point."""

    default = 0
    normal = 1
    soft = 2
    drum = 3


class HitSound(IntFlag):
    """The additive hit sounds played when an object is hit."""

    normal = 0b1
    whistle = 0b10
    finish = 0b100
    clap = 0b1000


@unique
class HitObjectType(Enum):
    note = "note"
    hold = "hold"


class Effects(NamedTuple):
    kiai_time: bool
    omit_first_bar_line: bool


def decode_effects(effects: int) -> Effects:
    """Split the effects bitmask of a timing point into its flags.

    Bits other than 0 (kiai) and 2 (omit first bar line) are ignored.
    """
    return Effects(
        kiai_time=bool(effects & KIAI_BIT),
        omit_first_bar_line=bool(effects & OMIT_FIRST_BAR_LINE_BIT),
    )


def bpm_from_beat_length(beat_length: float) -> int | None:
    """The tempo defined by a beat length.

    Parameters
    ----------
    beat_length : float
        The milliseconds per beat.

    Returns
    -------
    bpm : int or None
        ``60000 / beat_length`` rounded half up, or None when ``beat_length``
        is not positive (an inherited timing point defines no tempo).
    """
    if beat_length <= 0:
        return None
    return math.floor(60000 / beat_length + 0.5)


def velocity_from_beat_length(beat_length: float) -> float:
    """The scroll velocity multiplier defined by a beat length.

    Positive beat lengths define a tempo, not a velocity, and give 1.0.
    Negative beat lengths are an inverse percentage: ``-50`` means 2x.

    Raises
    ------
    ZeroDivisionError
        Raised when ``beat_length`` is 0.
    """
    if beat_length > 0:
        return 1.0
    return abs(100 / beat_length)


def decode_hit_object_type(type_code: int) -> HitObjectType | None:
    """The variant named by a type bitmask.

    The note bit takes priority over the hold bit. Returns None when neither
    is set.
    """
    if type_code & NOTE_BIT:
        return HitObjectType.note
    if type_code & HOLD_BIT:
        return HitObjectType.hold
    return None


def decode_new_combo(type_code: int) -> bool:
    return bool(type_code & NEW_COMBO_BIT)


def decode_combo_skip(type_code: int) -> int:
    """The combo colour skip count of a type bitmask.

    This reads bits 2 through 4 and divides by 4, so the new combo bit is
    counted as the low bit of the result. The format wiki places the skip
    count in bits 4 through 6, so this differs from that layout.
    """
    return (type_code & COMBO_SKIP_MASK) >> 2


def decode_hit_sound(hit_sound: int) -> HitSound:
    """The hit sounds of a hitsound bitmask; ``HitSound.normal`` if no bit
    from 0 to 3 is set.
    """
    flags = HitSound(hit_sound & HIT_SOUND_MASK)
    if not flags:
        return HitSound.normal
    return flags
