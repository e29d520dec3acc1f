"""
Fixed-size RGB frame buffer and its device wire encoding.

The buffer is a best-effort drawing surface: writes outside the grid are
dropped without error. The wire format is row-major, six lowercase hex digits
per pixel (red, green, blue), concatenated with no separators.
"""

import re
from typing import Optional, Sequence

from pixoo_commander.utils import BLACK, RGB, clamp_channel

DEFAULT_SIZE = 64

_HEX_RE = re.compile(r"^[0-9a-fA-F]*$")


class PixelBuffer:
    """
    Square grid of RGB triples, black on creation.

    Owned by the device link and shared by reference with every widget of the
    scene that is currently rendering.
    """

    def __init__(self, size: int = DEFAULT_SIZE):
        if size <= 0:
            raise ValueError(f"Buffer size must be positive, got {size}")
        self._size = size
        self._pixels: list[list[RGB]] = [[BLACK] * size for _ in range(size)]

    @property
    def size(self) -> int:
        """Edge length in pixels."""
        return self._size

    def in_bounds(self, x: int, y: int) -> bool:
        """Check whether (x, y) lies inside the grid."""
        return 0 <= x < self._size and 0 <= y < self._size

    def set(self, x: int, y: int, color: Sequence[int]) -> None:
        """
        Overwrite a single pixel.

        Out-of-range coordinates are a silent no-op. Channel values are
        clamped into 0..255.

        Args:
            x: Column
            y: Row
            color: (r, g, b) triple
        """
        if not self.in_bounds(x, y):
            return
        r, g, b = color
        self._pixels[y][x] = (clamp_channel(r), clamp_channel(g), clamp_channel(b))

    def get(self, x: int, y: int) -> Optional[RGB]:
        """Read a pixel, or None when (x, y) is outside the grid."""
        if not self.in_bounds(x, y):
            return None
        return self._pixels[y][x]

    def fill(self, color: Sequence[int]) -> None:
        """Set every pixel to one colour."""
        r, g, b = color
        value = (clamp_channel(r), clamp_channel(g), clamp_channel(b))
        self._pixels = [[value] * self._size for _ in range(self._size)]

    def clear(self) -> None:
        """Reset every pixel to black."""
        self.fill(BLACK)

    def rows(self) -> list[list[RGB]]:
        """Return a copy of the grid, indexed [y][x]."""
        return [list(row) for row in self._pixels]

    def copy(self) -> "PixelBuffer":
        """Return an independent buffer with the same contents."""
        clone = PixelBuffer(self._size)
        clone._pixels = self.rows()
        return clone

    def is_blank(self) -> bool:
        """Check whether every pixel is black."""
        return all(pixel == BLACK for row in self._pixels for pixel in row)

    def encode(self) -> str:
        """
        Encode the frame for Draw/SendHttpGif.

        Returns:
            Hex string of exactly size * size * 6 characters
        """
        return "".join(f"{r:02x}{g:02x}{b:02x}" for row in self._pixels for (r, g, b) in row)

    @classmethod
    def decode(cls, data: str, size: Optional[int] = None) -> "PixelBuffer":
        """
        Rebuild a buffer from its wire encoding.

        Args:
            data: Hex string produced by encode()
            size: Edge length; inferred from the string length when None

        Returns:
            PixelBuffer with the decoded contents

        Raises:
            ValueError: If the length does not match a square frame or the
                string contains non-hex characters
        """
        if size is None:
            pixel_count = len(data) // 6
            size = int(round(pixel_count ** 0.5))
        if len(data) != size * size * 6 or size <= 0:
            raise ValueError(f"Encoded frame has {len(data)} characters, expected {size * size * 6}")
        if not _HEX_RE.match(data):
            raise ValueError("Encoded frame contains non-hex characters")

        buffer = cls(size)
        for index in range(size * size):
            chunk = data[index * 6:index * 6 + 6]
            y, x = divmod(index, size)
            buffer._pixels[y][x] = (int(chunk[0:2], 16), int(chunk[2:4], 16), int(chunk[4:6], 16))
        return buffer

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return self._size == other._size and self._pixels == other._pixels

    def __repr__(self) -> str:
        return f"PixelBuffer(size={self._size})"
