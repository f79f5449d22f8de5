from enum import IntEnum, unique


@unique
class GameMode(IntEnum):
    """The game modes a ``.osu`` file can target.

    Only :data:`GameMode.mania` beatmaps can be parsed.
    """

    standard = 0
    taiko = 1
    catch = 2
    mania = 3
