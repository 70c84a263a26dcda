"""Rasterize scenes and fit images to the panel."""

import io
import logging
from typing import Optional, Union

from PIL import Image, ImageDraw, ImageFont, ImageOps

from byos.screens.scene import CANVAS_HEIGHT, CANVAS_WIDTH, Circle, Line, Rect, Scene, Text

from .bmp import encode_1bit_bmp

logger = logging.getLogger(__name__)

REGULAR_FONT_PATHS = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans.ttf",
    "/System/Library/Fonts/Helvetica.ttc",  # macOS
    "DejaVuSans.ttf",
]
BOLD_FONT_PATHS = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans-Bold.ttf",
    "DejaVuSans-Bold.ttf",
] + REGULAR_FONT_PATHS

# Scene text anchors mapped to Pillow's (horizontal, baseline) anchors
TEXT_ANCHORS = {"start": "ls", "middle": "ms", "end": "rs"}

Font = Union[ImageFont.FreeTypeFont, ImageFont.ImageFont]


class FontBook:
    """Loads and caches fonts by size and weight."""

    def __init__(
        self,
        regular_paths: Optional[list[str]] = None,
        bold_paths: Optional[list[str]] = None,
    ):
        self.paths = {
            False: regular_paths or REGULAR_FONT_PATHS,
            True: bold_paths or BOLD_FONT_PATHS,
        }
        self._cache: dict[tuple[int, bool], Font] = {}

    def get(self, size: int, bold: bool = False) -> Font:
        key = (size, bold)
        if key not in self._cache:
            self._cache[key] = self._load(size, bold)
        return self._cache[key]

    def _load(self, size: int, bold: bool) -> Font:
        for path in self.paths[bold]:
            try:
                font = ImageFont.truetype(path, size)
            except OSError:
                continue
            logger.debug(f"Loaded {size}px font from {path}")
            return font

        logger.warning(f"Could not load TrueType fonts, using default for {size}px")
        return ImageFont.load_default(size=size)


default_fonts = FontBook()


def _draw_text(draw: ImageDraw.ImageDraw, element: Text, font: Font):
    text = element.text.replace("\n", " ")
    if isinstance(font, ImageFont.FreeTypeFont):
        draw.text(
            (element.x, element.y),
            text,
            fill=element.fill,
            font=font,
            anchor=TEXT_ANCHORS.get(element.anchor, "ls"),
        )
        return

    # Bitmap fonts have no anchor support; place the box by hand
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    width = right - left
    offset = {"middle": width / 2, "end": width}.get(element.anchor, 0)
    draw.text((element.x - offset, element.y - bottom), text, fill=element.fill, font=font)


def rasterize(scene: Scene, fonts: Optional[FontBook] = None) -> Image.Image:
    """
    Paint a scene and return it as an 800x480 grayscale image.

    Args:
        scene: Scene to draw
        fonts: Font cache, the shared default when omitted

    Returns:
        Image in mode "L"
    """
    fonts = fonts or default_fonts
    image = Image.new("RGB", (scene.width, scene.height), scene.background)
    draw = ImageDraw.Draw(image)

    for element in scene.elements:
        if isinstance(element, Rect):
            if element.width < 1 or element.height < 1:
                continue
            draw.rectangle(
                [element.x, element.y, element.x + element.width - 1, element.y + element.height - 1],
                fill=element.fill,
                outline=element.stroke,
                width=element.stroke_width if element.stroke else 0,
            )
        elif isinstance(element, Circle):
            draw.ellipse(
                [element.cx - element.r, element.cy - element.r, element.cx + element.r, element.cy + element.r],
                fill=element.fill,
                outline=element.stroke,
                width=element.stroke_width if element.stroke else 0,
            )
        elif isinstance(element, Line):
            draw.line(
                [(element.x1, element.y1), (element.x2, element.y2)],
                fill=element.stroke,
                width=element.width,
            )
        elif isinstance(element, Text):
            _draw_text(draw, element, fonts.get(element.size, element.bold))
        else:
            raise TypeError(f"Unsupported scene element: {element!r}")

    return fit_to_panel(image)


def _flatten(image: Image.Image) -> Image.Image:
    """Composite transparent images onto white."""
    if image.mode in ("RGBA", "LA", "PA") or "transparency" in image.info:
        rgba = image.convert("RGBA")
        background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
        return Image.alpha_composite(background, rgba).convert("RGB")
    return image


def fit_to_panel(
    image: Image.Image, width: int = CANVAS_WIDTH, height: int = CANVAS_HEIGHT
) -> Image.Image:
    """
    Scale an image to fit the panel, centered on white, in grayscale.

    Images already at panel size are only converted.
    """
    gray = _flatten(image).convert("L")
    if gray.size == (width, height):
        return gray

    fitted = ImageOps.contain(gray, (width, height))
    canvas = Image.new("L", (width, height), 255)
    canvas.paste(fitted, ((width - fitted.width) // 2, (height - fitted.height) // 2))
    return canvas


def render_bmp(scene: Scene, fonts: Optional[FontBook] = None) -> bytes:
    """Rasterize a scene straight to 1-bit BMP bytes."""
    return encode_1bit_bmp(rasterize(scene, fonts))


def convert_to_bmp(image_bytes: bytes) -> bytes:
    """
    Convert an encoded image (PNG, JPEG, ...) to a panel-sized 1-bit BMP.

    Raises:
        PIL.UnidentifiedImageError: If the bytes are not a readable image
    """
    with Image.open(io.BytesIO(image_bytes)) as image:
        image.load()
        return encode_1bit_bmp(fit_to_panel(image))
