from __future__ import annotations

from typing import NamedTuple


class Position(NamedTuple):
    """A position on the osu! screen.

    Parameters
    ----------
    x : int
        The x coordinate. In osu!mania this selects the column.
    y : int
        The y coordinate. osu!mania ignores this value; editors write 192.

    Notes
    -----
    The playfield is [0, 512] by [0, 384]. Mania columns divide the x range
    evenly, so every object in a column shares the same x.
    """

    x: int
    y: int
