from __future__ import annotations

from typing import Any


class BeatmapParseError(ValueError):
    """Base class for errors raised while parsing a beatmap."""


class UnsupportedMode(BeatmapParseError):
    """Raised when the ``[General]`` section names a mode other than mania.

    Parameters
    ----------
    mode : str
        The raw ``Mode`` value.
    """

    def __init__(self, mode: str) -> None:
        super().__init__(
            f"beatmap game mode is {mode!r}, only osu!mania (3) is supported",
        )
        self.mode = mode


class UnknownHitObjectType(BeatmapParseError):
    """Raised when a hit object type code is neither a note nor a hold.

    Parameters
    ----------
    type_code : int
        The type bitmask of the record.
    """

    def __init__(self, type_code: int) -> None:
        super().__init__(f"unknown hit object type code {type_code!r}")
        self.type_code = type_code


class MalformedRecord(BeatmapParseError):
    """Raised when a field of a record cannot be interpreted.

    Parameters
    ----------
    section : str
        The section the record belongs to.
    field : str
        The name of the offending field.
    value : any
        The raw value, or ``None`` if the field was missing.
    reason : str, optional
        What was expected of the field.
    """

    def __init__(
        self,
        section: str,
        field: str,
        value: Any,
        reason: str | None = None,
    ) -> None:
        if value is None:
            message = f"missing field {field!r} in section {section!r}"
        else:
            message = f"field {field!r} in section {section!r}"
            if reason is not None:
                message += f" {reason}"
            message += f", got {value!r}"
        super().__init__(message)
        self.section = section
        self.field = field
        self.value = value
