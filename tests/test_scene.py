import pytest

from byos.screens.glyphs import GLYPHS, glyph_rects, text_height, text_width
from byos.screens.scene import Circle, Line, Rect, Scene, Text


def test_svg_document_shape():
    svg = Scene().add(Rect(0, 0, 10, 10), Circle(50, 50, 5), Line(0, 0, 800, 480)).to_svg()
    assert svg.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert 'viewBox="0 0 800 480"' in svg
    assert '<rect width="800" height="480" fill="white"/>' in svg
    assert '<circle cx="50" cy="50" r="5" fill="black"/>' in svg
    assert 'stroke-width="1"' in svg
    assert svg.rstrip().endswith("</svg>")


def test_svg_escapes_text():
    svg = Scene().add(Text(10, 20, 'Tom & Jerry <script>"hi"</script>')).to_svg()
    assert "<script>" not in svg
    assert "Tom &amp; Jerry &lt;script&gt;&quot;hi&quot;&lt;/script&gt;" in svg


def test_svg_escapes_attributes():
    svg = Scene(background='white" onload="alert(1)').to_svg()
    assert 'onload="alert(1)"' not in svg
    assert "&quot;" in svg


def test_text_attributes():
    svg = Scene().add(Text(400, 240, "Hi", size=32, anchor="middle", bold=True)).to_svg()
    assert 'font-size="32"' in svg
    assert 'font-weight="bold"' in svg
    assert 'text-anchor="middle"' in svg


def test_texts_in_paint_order():
    scene = Scene().add(Text(0, 0, "first"), Rect(0, 0, 1, 1), Text(0, 0, "second"))
    assert scene.texts() == ["first", "second"]


def test_every_glyph_is_5x7():
    for char, rows in GLYPHS.items():
        assert len(rows) == 7, char
        assert all(len(row) == 5 for row in rows), char


def test_glyph_rects_merge_runs():
    rects = glyph_rects("1", 0, 0)
    # one run per row
    assert len(rects) == 7
    assert rects[-1] == Rect(x=1, y=6, width=3, height=1, fill="black")


def test_glyph_rects_scale_and_offset():
    rects = glyph_rects("-", 10, 20, scale=3)
    assert rects == [Rect(x=10, y=29, width=15, height=3, fill="black")]


def test_glyph_rects_advance():
    rects = glyph_rects("--", 0, 0, scale=2)
    assert [r.x for r in rects] == [0, 12]


def test_space_draws_nothing():
    assert glyph_rects(" ", 0, 0) == []


def test_unknown_character():
    with pytest.raises(ValueError):
        glyph_rects("12a", 0, 0)


def test_text_metrics():
    assert text_width("12", scale=2) == 22
    assert text_width("") == 0
    assert text_height(3) == 21
