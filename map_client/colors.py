from __future__ import annotations

from typing import Tuple

PLAYER_COLORS: Tuple[str, ...] = (
    "#FD2943",
    "#01A2FF",
    "#02B857",
    "#A75EB8",
    "#F58225",
    "#F5CD30",
    "#E8BAC8",
    "#D7C59A",
)
FALLBACK_COLOR = "#00FFFF"


def player_color(name: str) -> str:
    """Stable marker colour for a username.

    Each character adds or subtracts its code point depending on its distance
    from the end of the name, so every client picks the same colour.
    """
    if not name:
        return FALLBACK_COLOR
    length = len(name)
    value = 0
    for index, char in enumerate(name):
        reverse_index = length - index
        if length % 2 == 1:
            reverse_index -= 1
        code = ord(char)
        value += -code if reverse_index % 4 >= 2 else code
    return PLAYER_COLORS[value % len(PLAYER_COLORS)]
