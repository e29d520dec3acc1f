"""
5x7 bitmap font for widget text.

Each glyph is five column bytes; bit 0 is the top row and bit 6 the bottom
row. Lowercase letters render with the uppercase glyph. Characters outside
the table render as blank cells.
"""

from typing import Iterator

GLYPH_WIDTH = 5
GLYPH_HEIGHT = 7
CHAR_ADVANCE = GLYPH_WIDTH + 1

BLANK = (0x00, 0x00, 0x00, 0x00, 0x00)

GLYPHS: dict[str, tuple[int, int, int, int, int]] = {
    " ": BLANK,
    "!": (0x00, 0x00, 0x5F, 0x00, 0x00),
    '"': (0x00, 0x07, 0x00, 0x07, 0x00),
    "#": (0x14, 0x7F, 0x14, 0x7F, 0x14),
    "$": (0x24, 0x2A, 0x7F, 0x2A, 0x12),
    "%": (0x23, 0x13, 0x08, 0x64, 0x62),
    "&": (0x36, 0x49, 0x56, 0x20, 0x50),
    "'": (0x00, 0x08, 0x07, 0x03, 0x00),
    "(": (0x00, 0x1C, 0x22, 0x41, 0x00),
    ")": (0x00, 0x41, 0x22, 0x1C, 0x00),
    "*": (0x2A, 0x1C, 0x7F, 0x1C, 0x2A),
    "+": (0x08, 0x08, 0x3E, 0x08, 0x08),
    ",": (0x00, 0x50, 0x30, 0x00, 0x00),
    "-": (0x08, 0x08, 0x08, 0x08, 0x08),
    ".": (0x00, 0x60, 0x60, 0x00, 0x00),
    "/": (0x20, 0x10, 0x08, 0x04, 0x02),
    "0": (0x3E, 0x51, 0x49, 0x45, 0x3E),
    "1": (0x00, 0x42, 0x7F, 0x40, 0x00),
    "2": (0x72, 0x49, 0x49, 0x49, 0x46),
    "3": (0x21, 0x41, 0x49, 0x4D, 0x33),
    "4": (0x18, 0x14, 0x12, 0x7F, 0x10),
    "5": (0x27, 0x45, 0x45, 0x45, 0x39),
    "6": (0x3C, 0x4A, 0x49, 0x49, 0x31),
    "7": (0x41, 0x21, 0x11, 0x09, 0x07),
    "8": (0x36, 0x49, 0x49, 0x49, 0x36),
    "9": (0x46, 0x49, 0x49, 0x29, 0x1E),
    ":": (0x00, 0x36, 0x36, 0x00, 0x00),
    ";": (0x00, 0x56, 0x36, 0x00, 0x00),
    "<": (0x08, 0x14, 0x22, 0x41, 0x00),
    "=": (0x14, 0x14, 0x14, 0x14, 0x14),
    ">": (0x00, 0x41, 0x22, 0x14, 0x08),
    "?": (0x02, 0x01, 0x59, 0x09, 0x06),
    "@": (0x3E, 0x41, 0x5D, 0x59, 0x4E),
    "A": (0x7C, 0x12, 0x11, 0x12, 0x7C),
    "B": (0x7F, 0x49, 0x49, 0x49, 0x36),
    "C": (0x3E, 0x41, 0x41, 0x41, 0x22),
    "D": (0x7F, 0x41, 0x41, 0x41, 0x3E),
    "E": (0x7F, 0x49, 0x49, 0x49, 0x41),
    "F": (0x7F, 0x09, 0x09, 0x09, 0x01),
    "G": (0x3E, 0x41, 0x41, 0x51, 0x73),
    "H": (0x7F, 0x08, 0x08, 0x08, 0x7F),
    "I": (0x00, 0x41, 0x7F, 0x41, 0x00),
    "J": (0x20, 0x40, 0x41, 0x3F, 0x01),
    "K": (0x7F, 0x08, 0x14, 0x22, 0x41),
    "L": (0x7F, 0x40, 0x40, 0x40, 0x40),
    "M": (0x7F, 0x02, 0x1C, 0x02, 0x7F),
    "N": (0x7F, 0x04, 0x08, 0x10, 0x7F),
    "O": (0x3E, 0x41, 0x41, 0x41, 0x3E),
    "P": (0x7F, 0x09, 0x09, 0x09, 0x06),
    "Q": (0x3E, 0x41, 0x51, 0x21, 0x5E),
    "R": (0x7F, 0x09, 0x19, 0x29, 0x46),
    "S": (0x26, 0x49, 0x49, 0x49, 0x32),
    "T": (0x03, 0x01, 0x7F, 0x01, 0x03),
    "U": (0x3F, 0x40, 0x40, 0x40, 0x3F),
    "V": (0x1F, 0x20, 0x40, 0x20, 0x1F),
    "W": (0x3F, 0x40, 0x38, 0x40, 0x3F),
    "X": (0x63, 0x14, 0x08, 0x14, 0x63),
    "Y": (0x03, 0x04, 0x78, 0x04, 0x03),
    "Z": (0x61, 0x59, 0x49, 0x4D, 0x43),
    "[": (0x00, 0x7F, 0x41, 0x41, 0x00),
    "]": (0x00, 0x41, 0x41, 0x7F, 0x00),
    "_": (0x40, 0x40, 0x40, 0x40, 0x40),
    "°": (0x00, 0x06, 0x09, 0x09, 0x06),
}


def glyph_for(char: str) -> tuple[int, int, int, int, int]:
    """Look up the glyph for a character, falling back to uppercase then blank."""
    glyph = GLYPHS.get(char)
    if glyph is None:
        glyph = GLYPHS.get(char.upper(), BLANK)
    return glyph


def text_width(text: str) -> int:
    """Pixel width of a string including the trailing inter-character gap."""
    return len(text) * CHAR_ADVANCE


def iter_text_pixels(text: str) -> Iterator[tuple[int, int]]:
    """
    Yield the lit (dx, dy) offsets of a string relative to its top-left corner.

    Args:
        text: String to lay out on a single line

    Yields:
        (dx, dy) offsets of pixels to light
    """
    for index, char in enumerate(text):
        origin = index * CHAR_ADVANCE
        for col, column_bits in enumerate(glyph_for(char)):
            for row in range(GLYPH_HEIGHT):
                if column_bits & (1 << row):
                    yield (origin + col, row)
