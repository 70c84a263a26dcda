"""Vector description of a screen: drawing primitives on a fixed canvas."""

from dataclasses import dataclass, field
from html import escape
from typing import Optional, Union

CANVAS_WIDTH = 800
CANVAS_HEIGHT = 480

FONT_FAMILY = "DejaVu Sans, Arial, sans-serif"


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float
    fill: Optional[str] = "black"
    stroke: Optional[str] = None
    stroke_width: int = 0


@dataclass(frozen=True)
class Circle:
    cx: float
    cy: float
    r: float
    fill: Optional[str] = "black"
    stroke: Optional[str] = None
    stroke_width: int = 0


@dataclass(frozen=True)
class Line:
    x1: float
    y1: float
    x2: float
    y2: float
    stroke: str = "black"
    width: int = 1


@dataclass(frozen=True)
class Text:
    """A single line of text; y is the baseline."""

    x: float
    y: float
    text: str
    size: int = 16
    anchor: str = "start"  # start | middle | end
    bold: bool = False
    fill: str = "black"


Element = Union[Rect, Circle, Line, Text]


def _num(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0")


def _attrs(**attrs) -> str:
    parts = []
    for name, value in attrs.items():
        if value is None:
            continue
        if isinstance(value, (int, float)):
            value = _num(value)
        parts.append(f'{name.replace("_", "-")}="{escape(str(value), quote=True)}"')
    return " ".join(parts)


@dataclass
class Scene:
    """Ordered drawing primitives, painted back to front."""

    width: int = CANVAS_WIDTH
    height: int = CANVAS_HEIGHT
    background: str = "white"
    elements: list[Element] = field(default_factory=list)

    def add(self, *elements: Element) -> "Scene":
        self.elements.extend(elements)
        return self

    def texts(self) -> list[str]:
        """Text content of the scene, in paint order."""
        return [e.text for e in self.elements if isinstance(e, Text)]

    def to_svg(self) -> str:
        """Serialize to SVG. All text and attribute values are entity-escaped."""
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            f'<svg {_attrs(width=self.width, height=self.height)} '
            f'viewBox="0 0 {self.width} {self.height}" xmlns="http://www.w3.org/2000/svg">',
            f"  <rect {_attrs(width=self.width, height=self.height, fill=self.background)}/>",
        ]
        for element in self.elements:
            lines.append("  " + _element_svg(element))
        lines.append("</svg>")
        return "\n".join(lines) + "\n"


def _element_svg(element: Element) -> str:
    if isinstance(element, Rect):
        return "<rect {}/>".format(
            _attrs(
                x=element.x,
                y=element.y,
                width=element.width,
                height=element.height,
                fill=element.fill or "none",
                stroke=element.stroke,
                stroke_width=element.stroke_width if element.stroke else None,
            )
        )
    if isinstance(element, Circle):
        return "<circle {}/>".format(
            _attrs(
                cx=element.cx,
                cy=element.cy,
                r=element.r,
                fill=element.fill or "none",
                stroke=element.stroke,
                stroke_width=element.stroke_width if element.stroke else None,
            )
        )
    if isinstance(element, Line):
        return "<line {}/>".format(
            _attrs(
                x1=element.x1,
                y1=element.y1,
                x2=element.x2,
                y2=element.y2,
                stroke=element.stroke,
                stroke_width=element.width,
            )
        )
    if isinstance(element, Text):
        attrs = _attrs(
            x=element.x,
            y=element.y,
            font_family=FONT_FAMILY,
            font_size=element.size,
            font_weight="bold" if element.bold else None,
            text_anchor=element.anchor,
            fill=element.fill,
        )
        return f"<text {attrs}>{escape(element.text, quote=True)}</text>"
    raise TypeError(f"Unsupported scene element: {element!r}")
