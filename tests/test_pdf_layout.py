"""
Tests for style validation and geometry lookup.
"""

import pytest

from errors import InvalidStyleConfig
from pdf_layout import (
    FONT_FAMILIES, FontPair, StyleConfig, hex_to_rgb, resolve, resolve_style,
    style_from_mapping, validate_style,
)


@pytest.mark.parametrize(
    "layout,font_size,expected",
    [
        ("standard", "small", (50, 16, 10, 18, 2, 1)),
        ("standard", "medium", (50, 20, 12, 22, 2, 1)),
        ("standard", "large", (50, 24, 14, 26, 2, 1)),
        ("compact", "small", (40, 14, 9, 16, 1.5, 0.5)),
        ("compact", "medium", (40, 16, 10, 18, 1.5, 0.5)),
        ("compact", "large", (40, 20, 12, 22, 1.5, 0.5)),
        ("detailed", "small", (60, 18, 11, 20, 3, 1.5)),
        ("detailed", "medium", (60, 22, 13, 24, 3, 1.5)),
        ("detailed", "large", (60, 26, 15, 28, 3, 1.5)),
    ],
)
def test_resolve_every_combination(layout, font_size, expected):
    g = resolve(layout, font_size)
    assert (
        g.margin, g.line_height, g.font_size,
        g.title_font_size, g.section_spacing, g.content_spacing,
    ) == expected


def test_section_and_content_gaps():
    g = resolve("detailed", "medium")
    assert g.section_gap == 66
    assert g.content_gap == 33


def test_arial_uses_helvetica_programs():
    assert FONT_FAMILIES["arial"] == FONT_FAMILIES["helvetica"] == FontPair("Helvetica", "Helvetica-Bold")
    rs = resolve_style(StyleConfig(font_family="arial"))
    assert rs.fonts == resolve_style(StyleConfig(font_family="helvetica")).fonts


@pytest.mark.parametrize(
    "field,kwargs",
    [
        ("layout", {"layout": "wide"}),
        ("fontSize", {"font_size": "huge"}),
        ("fontFamily", {"font_family": "comic-sans"}),
        ("headerStyle", {"header_style": "justified"}),
        ("borderStyle", {"border_style": "double"}),
        ("primaryColor", {"primary_color": "blue"}),
        ("watermarkOpacity", {"watermark_opacity": 1.5}),
    ],
)
def test_invalid_style_is_rejected(field, kwargs):
    with pytest.raises(InvalidStyleConfig) as exc:
        validate_style(StyleConfig(**kwargs))
    assert exc.value.field == field


def test_border_off_resolves_to_none():
    rs = resolve_style(StyleConfig(show_border=False, border_style="dashed"))
    assert rs.border_style == "none"


def test_watermark_text_only_when_enabled():
    assert resolve_style(StyleConfig(watermark=False)).watermark_text is None
    assert resolve_style(StyleConfig(watermark=True, watermark_text="DRAFT")).watermark_text == "DRAFT"


def test_layout_dependent_lookups():
    assert resolve_style(StyleConfig(layout="compact")).logo_width == 80
    assert resolve_style(StyleConfig(layout="standard")).logo_width == 100
    assert resolve_style(StyleConfig(layout="detailed")).logo_width == 120
    assert resolve_style(StyleConfig(layout="detailed")).payment_offset == 250
    assert resolve_style(StyleConfig(layout="compact")).two_column is False


def test_hex_to_rgb():
    assert hex_to_rgb("#ff0000") == (1.0, 0.0, 0.0)
    assert hex_to_rgb("000000") == (0.0, 0.0, 0.0)
    with pytest.raises(ValueError):
        hex_to_rgb("#fff")


def test_style_from_mapping_reads_form_keys():
    style = style_from_mapping({
        "layout": "Compact",
        "fontFamily": "times",
        "headerStyle": "right-aligned",
        "showBorder": "false",
        "watermark": "on",
        "watermarkOpacity": "0.25",
    })
    assert style.layout == "compact"
    assert style.font_family == "times"
    assert style.show_border is False
    assert style.watermark is True
    assert style.watermark_opacity == 0.25


def test_style_from_mapping_defaults():
    assert style_from_mapping(None) == StyleConfig()
