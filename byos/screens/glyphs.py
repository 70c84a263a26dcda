"""
Fixed 5x7 pixel glyphs for numeric labels.

Text drawn from this table is made of plain rectangles, so it comes out
pixel-identical in SVG and in the raster regardless of installed fonts.
Changing a glyph changes rendered output: bump GLYPH_TABLE_VERSION.
"""

from .scene import Rect

GLYPH_TABLE_VERSION = 1

GLYPH_WIDTH = 5
GLYPH_HEIGHT = 7
GLYPH_SPACING = 1

GLYPHS: dict[str, tuple[str, ...]] = {
    "0": (".###.", "#...#", "#..##", "#.#.#", "##..#", "#...#", ".###."),
    "1": ("..#..", ".##..", "..#..", "..#..", "..#..", "..#..", ".###."),
    "2": (".###.", "#...#", "....#", "...#.", "..#..", ".#...", "#####"),
    "3": ("#####", "...#.", "..#..", "...#.", "....#", "#...#", ".###."),
    "4": ("...#.", "..##.", ".#.#.", "#..#.", "#####", "...#.", "...#."),
    "5": ("#####", "#....", "####.", "....#", "....#", "#...#", ".###."),
    "6": ("..##.", ".#...", "#....", "####.", "#...#", "#...#", ".###."),
    "7": ("#####", "....#", "...#.", "..#..", ".#...", ".#...", ".#..."),
    "8": (".###.", "#...#", "#...#", ".###.", "#...#", "#...#", ".###."),
    "9": (".###.", "#...#", "#...#", ".####", "....#", "...#.", ".##.."),
    "/": (".....", "....#", "...#.", "..#..", ".#...", "#....", "....."),
    "%": ("##...", "##..#", "...#.", "..#..", ".#...", "#..##", "...##"),
    ".": (".....", ".....", ".....", ".....", ".....", ".##..", ".##.."),
    "-": (".....", ".....", ".....", "#####", ".....", ".....", "....."),
    " ": (".....", ".....", ".....", ".....", ".....", ".....", "....."),
}


def text_width(text: str, scale: int = 1) -> int:
    """Width in pixels of text drawn at the given scale."""
    if not text:
        return 0
    return (len(text) * (GLYPH_WIDTH + GLYPH_SPACING) - GLYPH_SPACING) * scale


def text_height(scale: int = 1) -> int:
    return GLYPH_HEIGHT * scale


def glyph_rects(text: str, x: int, y: int, scale: int = 1, fill: str = "black") -> list[Rect]:
    """
    Expand text into filled rectangles, one per horizontal run of pixels.

    Args:
        text: Characters present in GLYPHS
        x: Left edge
        y: Top edge
        scale: Size of one glyph pixel

    Raises:
        ValueError: If a character has no glyph
    """
    rects = []
    for index, char in enumerate(text):
        try:
            rows = GLYPHS[char]
        except KeyError:
            raise ValueError(f"No glyph for character {char!r}") from None

        left = x + index * (GLYPH_WIDTH + GLYPH_SPACING) * scale
        for row, pattern in enumerate(rows):
            col = 0
            while col < GLYPH_WIDTH:
                if pattern[col] != "#":
                    col += 1
                    continue
                start = col
                while col < GLYPH_WIDTH and pattern[col] == "#":
                    col += 1
                rects.append(
                    Rect(
                        x=left + start * scale,
                        y=y + row * scale,
                        width=(col - start) * scale,
                        height=scale,
                        fill=fill,
                    )
                )
    return rects
