"""ESC/POS control sequences and fixed-width text helpers for 2-inch thermal printers."""

from typing import List

LINE_WIDTH = 32

ESC = "\x1b"
GS = "\x1d"

INITIALIZE = ESC + "@"
ALIGN_LEFT = ESC + "a\x00"
ALIGN_CENTER = ESC + "a\x01"
ALIGN_RIGHT = ESC + "a\x02"

# ESC ! n print-mode bits
MODE_NORMAL = ESC + "!\x00"
MODE_BOLD = ESC + "!\x08"
MODE_DOUBLE_HEIGHT = ESC + "!\x10"
MODE_BOLD_DOUBLE_HEIGHT = ESC + "!\x18"

FEED = "\n\n\n"
CUT_PAPER = GS + "V\x00"


def align_right(label: str, value: str, width: int = LINE_WIDTH) -> str:
    """
    Pad between label and value so the line is exactly `width` characters.

    When label and value together exceed the width, no padding is added and
    the line overflows; nothing is truncated.
    """
    padding = max(width - len(label) - len(value), 0)
    return label + " " * padding + value


def wrap_text(text: str, width: int = LINE_WIDTH) -> List[str]:
    """
    Greedy word-wrap.

    Each line breaks at the last space at or before `width`; a run with no
    space is hard-broken at `width`.
    """
    lines = []
    remaining = text.strip()

    while len(remaining) > width:
        break_at = remaining.rfind(" ", 0, width + 1)
        if break_at <= 0:
            lines.append(remaining[:width])
            remaining = remaining[width:].lstrip()
        else:
            lines.append(remaining[:break_at].rstrip())
            remaining = remaining[break_at + 1:].lstrip()

    if remaining:
        lines.append(remaining)

    return lines


def center_text(text: str, width: int = LINE_WIDTH) -> str:
    """Left-pad text with floor((width - len) / 2) spaces."""
    padding = max((width - len(text)) // 2, 0)
    return " " * padding + text


def divider(char: str = "-", width: int = LINE_WIDTH) -> str:
    return char * width
