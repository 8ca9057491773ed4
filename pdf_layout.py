# pdf_layout.py
"""
Style options -> concrete page geometry.

Every style dimension is a small closed table. resolve_style() looks each one up
once, up front, so the drawing code never branches on raw option strings.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

from errors import InvalidStyleConfig

# A4 in points
PAGE_W, PAGE_H = 595.28, 841.89

LAYOUTS = ("standard", "compact", "detailed")
FONT_SIZES = ("small", "medium", "large")
HEADER_STYLES = ("centered", "left-aligned", "right-aligned")
BORDER_STYLES = ("none", "solid", "dashed", "dotted")

_HEX_RE = re.compile(r"#?([0-9a-fA-F]{2})([0-9a-fA-F]{2})([0-9a-fA-F]{2})")


@dataclass(frozen=True)
class StyleConfig:
    primary_color: str = "#1f2937"
    secondary_color: str = "#111827"
    accent_color: str = "#4b5563"
    font_family: str = "helvetica"
    font_size: str = "medium"
    layout: str = "standard"
    header_style: str = "left-aligned"
    show_border: bool = True
    border_style: str = "solid"
    watermark: bool = False
    watermark_text: str = "CONFIDENTIAL"
    watermark_opacity: float = 0.1


@dataclass(frozen=True)
class ResolvedGeometry:
    margin: float
    line_height: float
    font_size: float
    title_font_size: float
    section_spacing: float
    content_spacing: float

    @property
    def section_gap(self) -> float:
        return self.line_height * self.section_spacing

    @property
    def content_gap(self) -> float:
        return self.line_height * self.content_spacing


@dataclass(frozen=True)
class FontPair:
    regular: str
    bold: str


@dataclass(frozen=True)
class ResolvedStyle:
    geometry: ResolvedGeometry
    fonts: FontPair
    primary: tuple[float, float, float]
    secondary: tuple[float, float, float]
    accent: tuple[float, float, float]
    header_style: str
    border_style: str          # "none" when the border is switched off
    logo_width: float
    payment_offset: float
    two_column: bool
    watermark_text: str | None  # None when the watermark is switched off
    watermark_opacity: float


# -----------------------------
# Lookup tables
# -----------------------------
# layout -> (margin, section spacing, content spacing)
LAYOUT_PRESETS = {
    "standard": (50, 2, 1),
    "compact": (40, 1.5, 0.5),
    "detailed": (60, 3, 1.5),
}

# (layout, font size) -> (line height, body font size, title font size)
FONT_SIZE_TABLE = {
    ("standard", "small"): (16, 10, 18),
    ("standard", "medium"): (20, 12, 22),
    ("standard", "large"): (24, 14, 26),
    ("compact", "small"): (14, 9, 16),
    ("compact", "medium"): (16, 10, 18),
    ("compact", "large"): (20, 12, 22),
    ("detailed", "small"): (18, 11, 20),
    ("detailed", "medium"): (22, 13, 24),
    ("detailed", "large"): (26, 15, 28),
}

# No Arial program ships with the standard PDF fonts; it shares Helvetica's.
FONT_FAMILIES = {
    "helvetica": FontPair("Helvetica", "Helvetica-Bold"),
    "times": FontPair("Times-Roman", "Times-Bold"),
    "courier": FontPair("Courier", "Courier-Bold"),
    "arial": FontPair("Helvetica", "Helvetica-Bold"),
}

LOGO_WIDTHS = {"standard": 100, "compact": 80, "detailed": 120}

# Distance of the payment block's left edge from the right margin
PAYMENT_OFFSETS = {"standard": 200, "compact": 200, "detailed": 250}

TWO_COLUMN_LAYOUTS = {"standard", "detailed"}


# -----------------------------
# Helpers
# -----------------------------
def hex_to_rgb(value: str) -> tuple[float, float, float]:
    """'#1f2937' -> (0.12, 0.16, 0.22). Raises ValueError for anything else."""
    m = _HEX_RE.fullmatch((value or "").strip())
    if not m:
        raise ValueError(f"Not a hex colour: {value!r}")
    return tuple(int(g, 16) / 255 for g in m.groups())


def resolve(layout: str, font_size: str) -> ResolvedGeometry:
    margin, section, content = LAYOUT_PRESETS[layout]
    line_height, body, title = FONT_SIZE_TABLE[(layout, font_size)]
    return ResolvedGeometry(
        margin=margin,
        line_height=line_height,
        font_size=body,
        title_font_size=title,
        section_spacing=section,
        content_spacing=content,
    )


def validate_style(style: StyleConfig) -> None:
    checks = [
        ("layout", style.layout, LAYOUTS),
        ("fontSize", style.font_size, FONT_SIZES),
        ("fontFamily", style.font_family, tuple(FONT_FAMILIES)),
        ("headerStyle", style.header_style, HEADER_STYLES),
        ("borderStyle", style.border_style, BORDER_STYLES),
    ]
    for name, value, allowed in checks:
        if value not in allowed:
            raise InvalidStyleConfig(
                name, value, f"Invalid {name} {value!r}; expected one of: {', '.join(allowed)}"
            )

    for name, value in (
        ("primaryColor", style.primary_color),
        ("secondaryColor", style.secondary_color),
        ("accentColor", style.accent_color),
    ):
        if not _HEX_RE.fullmatch((value or "").strip()):
            raise InvalidStyleConfig(name, value, f"Invalid {name} {value!r}; expected #rrggbb")

    try:
        opacity = float(style.watermark_opacity)
    except (TypeError, ValueError):
        raise InvalidStyleConfig("watermarkOpacity", style.watermark_opacity)
    if not 0.0 <= opacity <= 1.0:
        raise InvalidStyleConfig(
            "watermarkOpacity", style.watermark_opacity, "watermarkOpacity must be between 0 and 1"
        )


def resolve_style(style: StyleConfig) -> ResolvedStyle:
    validate_style(style)
    border = style.border_style if style.show_border else "none"
    watermark_text = style.watermark_text if style.watermark and style.watermark_text else None
    return ResolvedStyle(
        geometry=resolve(style.layout, style.font_size),
        fonts=FONT_FAMILIES[style.font_family],
        primary=hex_to_rgb(style.primary_color),
        secondary=hex_to_rgb(style.secondary_color),
        accent=hex_to_rgb(style.accent_color),
        header_style=style.header_style,
        border_style=border,
        logo_width=LOGO_WIDTHS[style.layout],
        payment_offset=PAYMENT_OFFSETS[style.layout],
        two_column=style.layout in TWO_COLUMN_LAYOUTS,
        watermark_text=watermark_text,
        watermark_opacity=float(style.watermark_opacity),
    )


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "on", "yes"}
    return bool(value)


def style_from_mapping(data: dict | None) -> StyleConfig:
    """Build a StyleConfig from the camelCase keys the form posts. Validation happens in resolve_style()."""
    data = data or {}
    d = StyleConfig()
    opacity = data.get("watermarkOpacity", d.watermark_opacity)
    try:
        opacity = float(opacity)
    except (TypeError, ValueError):
        raise InvalidStyleConfig("watermarkOpacity", opacity)
    return StyleConfig(
        primary_color=str(data.get("primaryColor") or d.primary_color),
        secondary_color=str(data.get("secondaryColor") or d.secondary_color),
        accent_color=str(data.get("accentColor") or d.accent_color),
        font_family=str(data.get("fontFamily") or d.font_family).strip().lower(),
        font_size=str(data.get("fontSize") or d.font_size).strip().lower(),
        layout=str(data.get("layout") or d.layout).strip().lower(),
        header_style=str(data.get("headerStyle") or d.header_style).strip().lower(),
        show_border=_as_bool(data.get("showBorder", d.show_border)),
        border_style=str(data.get("borderStyle") or d.border_style).strip().lower(),
        watermark=_as_bool(data.get("watermark", d.watermark)),
        watermark_text=str(data.get("watermarkText", d.watermark_text) or ""),
        watermark_opacity=opacity,
    )
