# pdf_service.py
import io
import logging
from dataclasses import dataclass, field

from reportlab.pdfgen import canvas
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.lib.utils import ImageReader

from errors import AssetDecodeError, EncodeError, FontEmbedError, RenderError
from invoice import InvoiceDocument, format_amount
from pdf_layout import PAGE_W, PAGE_H, FontPair, ResolvedStyle, StyleConfig, resolve_style

logger = logging.getLogger(__name__)

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
JPEG_MAGIC = b"\xff\xd8\xff"

BORDER_WIDTH = 1
DASH_STEP, DASH_LEN = 10, 5
DOT_STEP, DOT_RADIUS = 5, 1

WATERMARK_SIZE = 60
WATERMARK_ANGLE = -45

PREVIEW_STAMP = "PREVIEW COPY — NOT FOR OFFICIAL USE"
PREVIEW_STAMP_SIZE = 10
PREVIEW_STAMP_OFFSET = 200
PREVIEW_RED = (0.8, 0.0, 0.0)

LOGO_KEY = "logo"


# -----------------------------
# Draw instructions
# -----------------------------
@dataclass(frozen=True)
class TextOp:
    text: str
    x: float
    y: float
    font: str
    size: float
    color: tuple
    opacity: float = 1.0
    angle: float = 0.0
    centred: bool = False


@dataclass(frozen=True)
class LineOp:
    x1: float
    y1: float
    x2: float
    y2: float
    color: tuple
    width: float = BORDER_WIDTH


@dataclass(frozen=True)
class RectOp:
    x: float
    y: float
    width: float
    height: float
    color: tuple
    line_width: float = BORDER_WIDTH


@dataclass(frozen=True)
class CircleOp:
    x: float
    y: float
    radius: float
    color: tuple


@dataclass(frozen=True)
class ImageOp:
    key: str
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class LogoAsset:
    kind: str       # "png" | "jpeg"
    reader: ImageReader
    width: int
    height: int


@dataclass
class Composition:
    page: tuple
    ops: list = field(default_factory=list)
    images: dict = field(default_factory=dict)


# -----------------------------
# Fonts / measurement
# -----------------------------
def _check_fonts(fonts: FontPair) -> None:
    for name in (fonts.regular, fonts.bold):
        try:
            pdfmetrics.getFont(name)
        except KeyError as e:
            raise FontEmbedError(f"Font not available: {name}") from e


def measure(text: str, font: str, size: float) -> float:
    try:
        return stringWidth(text, font, size)
    except KeyError as e:
        raise FontEmbedError(f"Font not available: {font}") from e


def _aligned_x(header_style: str, width: float, page_w: float, margin: float) -> float:
    if header_style == "right-aligned":
        return page_w - margin - width
    if header_style == "centered":
        return (page_w - width) / 2
    return margin


# -----------------------------
# Logo
# -----------------------------
def sniff_image_format(data: bytes) -> str | None:
    if data.startswith(PNG_MAGIC):
        return "png"
    if data.startswith(JPEG_MAGIC):
        return "jpeg"
    return None


def decode_logo(data: bytes) -> LogoAsset:
    kind = sniff_image_format(data or b"")
    if kind is None:
        raise AssetDecodeError("Logo is not a PNG or JPEG image")
    try:
        reader = ImageReader(io.BytesIO(data))
        iw, ih = reader.getSize()
        # getSize() only reads the header; pull the pixels so truncated data fails here
        reader.getRGBData()
    except Exception as e:
        raise AssetDecodeError(f"Could not decode {kind} logo: {e}") from e
    if not iw or not ih:
        raise AssetDecodeError(f"Logo has no size ({iw}x{ih})")
    return LogoAsset(kind=kind, reader=reader, width=int(iw), height=int(ih))


# -----------------------------
# Sections
# Each takes the current cursor and returns the updated one.
# -----------------------------
def _draw_border(ops: list, rs: ResolvedStyle, page_w: float, page_h: float) -> None:
    m = rs.geometry.margin
    color = rs.primary

    if rs.border_style == "solid":
        ops.append(RectOp(m, m, page_w - 2 * m, page_h - 2 * m, color))

    elif rs.border_style == "dashed":
        for k in range(int(page_w // DASH_STEP)):
            x = k * DASH_STEP
            ops.append(LineOp(x, m, x + DASH_LEN, m, color))
            ops.append(LineOp(x, page_h - m, x + DASH_LEN, page_h - m, color))
        for k in range(int((page_h - 2 * m) // DASH_STEP)):
            y = m + k * DASH_STEP
            ops.append(LineOp(m, y, m, y + DASH_LEN, color))
            ops.append(LineOp(page_w - m, y, page_w - m, y + DASH_LEN, color))

    elif rs.border_style == "dotted":
        for k in range(int(page_w // DOT_STEP)):
            x = k * DOT_STEP
            ops.append(CircleOp(x, m, DOT_RADIUS, color))
            ops.append(CircleOp(x, page_h - m, DOT_RADIUS, color))
        for k in range(int((page_h - 2 * m) // DOT_STEP)):
            y = m + k * DOT_STEP
            ops.append(CircleOp(m, y, DOT_RADIUS, color))
            ops.append(CircleOp(page_w - m, y, DOT_RADIUS, color))


def _draw_watermark(ops: list, rs: ResolvedStyle, page_w: float, page_h: float) -> None:
    if not rs.watermark_text:
        return
    ops.append(TextOp(
        rs.watermark_text, page_w / 2, page_h / 2,
        rs.fonts.bold, WATERMARK_SIZE, rs.accent,
        opacity=rs.watermark_opacity, angle=WATERMARK_ANGLE, centred=True,
    ))


def _draw_logo(comp: Composition, doc: InvoiceDocument, rs: ResolvedStyle, y: float) -> float:
    if not doc.logo:
        return y
    try:
        logo = decode_logo(doc.logo)
    except AssetDecodeError as e:
        logger.warning("Skipping logo for invoice %s: %s", doc.invoice_number, e)
        return y

    page_w = comp.page[0]
    w = rs.logo_width
    h = logo.height * w / logo.width
    x = _aligned_x(rs.header_style, w, page_w, rs.geometry.margin)
    comp.images[LOGO_KEY] = logo.reader
    comp.ops.append(ImageOp(LOGO_KEY, x, y - h, w, h))
    return y - (h + rs.geometry.section_gap)


def _draw_heading(ops: list, doc: InvoiceDocument, rs: ResolvedStyle, page_w: float, y: float) -> float:
    g = rs.geometry

    title = f"INVOICE #{doc.invoice_number}"
    title_w = measure(title, rs.fonts.bold, g.title_font_size)
    ops.append(TextOp(
        title, _aligned_x(rs.header_style, title_w, page_w, g.margin), y,
        rs.fonts.bold, g.title_font_size, rs.primary,
    ))
    y -= g.section_gap

    dates = f"Issue Date: {doc.date}    Due Date: {doc.due_date}"
    dates_w = measure(dates, rs.fonts.bold, g.font_size)
    ops.append(TextOp(
        dates, _aligned_x(rs.header_style, dates_w, page_w, g.margin), y,
        rs.fonts.bold, g.font_size, rs.secondary,
    ))
    return y - g.section_gap


def _label(ops: list, rs: ResolvedStyle, text: str, x: float, y: float, size: float | None = None) -> None:
    g = rs.geometry
    ops.append(TextOp(text, x, y, rs.fonts.bold, size or g.font_size + 2, rs.primary))


def _body_lines(ops: list, rs: ResolvedStyle, lines, x: float, y: float) -> float:
    g = rs.geometry
    for line in lines:
        if line:
            ops.append(TextOp(line, x, y, rs.fonts.regular, g.font_size, rs.secondary))
        y -= g.line_height
    return y


def _party_column(ops: list, rs: ResolvedStyle, label: str, lines: list, x: float, y: float) -> float:
    _label(ops, rs, label, x, y)
    return _body_lines(ops, rs, lines, x, y - rs.geometry.line_height)


def _draw_parties(ops: list, doc: InvoiceDocument, rs: ResolvedStyle, page_w: float, y: float) -> float:
    g = rs.geometry
    if not rs.two_column:
        y = _party_column(ops, rs, "From:", doc.business.lines(), g.margin, y)
        y -= g.content_gap
        return _party_column(ops, rs, "To:", doc.client.lines(), g.margin, y)

    column_w = (page_w - 3 * g.margin) / 2
    left_y = _party_column(ops, rs, "From:", doc.business.lines(), g.margin, y)
    right_y = _party_column(ops, rs, "To:", doc.client.lines(), page_w - g.margin - column_w, y)
    # the taller column decides where the next section starts
    return min(left_y, right_y) - g.section_gap


def _draw_project(ops: list, doc: InvoiceDocument, rs: ResolvedStyle, y: float) -> float:
    g = rs.geometry
    _label(ops, rs, "Project Details:", g.margin, y)
    y -= g.line_height
    y = _body_lines(ops, rs, [f"Title: {doc.project_title}"], g.margin, y)

    if doc.description:
        _label(ops, rs, "Description:", g.margin, y, size=g.font_size)
        y -= g.line_height
        y = _body_lines(ops, rs, doc.description.splitlines(), g.margin, y)
        y -= g.content_gap
    return y


def _draw_payment(ops: list, doc: InvoiceDocument, rs: ResolvedStyle, page_w: float, y: float) -> float:
    g = rs.geometry
    x = page_w - g.margin - rs.payment_offset
    _label(ops, rs, "Payment Details:", x, y)
    y -= g.line_height
    lines = [
        f"Subtotal: {doc.currency} {format_amount(doc.subtotal)}",
        f"Tax Rate: {format_amount(doc.tax_rate)}%",
        f"Tax Amount: {doc.currency} {format_amount(doc.tax_amount)}",
        f"Total Amount: {doc.currency} {format_amount(doc.total_amount)}",
        f"Payment Method: {doc.payment_method}",
    ]
    y = _body_lines(ops, rs, lines, x, y)
    return y - g.section_gap


def _draw_terms(ops: list, doc: InvoiceDocument, rs: ResolvedStyle, y: float) -> float:
    g = rs.geometry
    _label(ops, rs, "Terms & Conditions:", g.margin, y)
    y -= g.line_height
    return _body_lines(ops, rs, (doc.terms or "").splitlines(), g.margin, y)


def _draw_preview_stamp(ops: list, rs: ResolvedStyle, page_w: float) -> None:
    m = rs.geometry.margin
    ops.append(TextOp(
        PREVIEW_STAMP, page_w - m - PREVIEW_STAMP_OFFSET, m,
        rs.fonts.bold, PREVIEW_STAMP_SIZE, PREVIEW_RED,
    ))


def compose(page: tuple, doc: InvoiceDocument, rs: ResolvedStyle, is_preview: bool = False) -> Composition:
    """
    Lay out one invoice page top-down. Returns the draw instructions in the
    order they must be painted; the watermark comes first so text covers it.
    """
    _check_fonts(rs.fonts)
    page_w, page_h = page
    comp = Composition(page=(page_w, page_h))
    ops = comp.ops

    _draw_border(ops, rs, page_w, page_h)
    _draw_watermark(ops, rs, page_w, page_h)

    y = page_h - rs.geometry.margin
    y = _draw_logo(comp, doc, rs, y)
    y = _draw_heading(ops, doc, rs, page_w, y)
    y = _draw_parties(ops, doc, rs, page_w, y)
    y -= rs.geometry.section_gap
    y = _draw_project(ops, doc, rs, y)
    y = _draw_payment(ops, doc, rs, page_w, y)
    _draw_terms(ops, doc, rs, y)

    if is_preview:
        _draw_preview_stamp(ops, rs, page_w)
    return comp


# -----------------------------
# Encoder
# -----------------------------
def _paint(pdf: canvas.Canvas, op, images: dict) -> None:
    if isinstance(op, TextOp):
        pdf.saveState()
        pdf.setFont(op.font, op.size)
        pdf.setFillColorRGB(*op.color)
        if op.opacity < 1.0:
            pdf.setFillAlpha(op.opacity)
        if op.angle or op.centred:
            pdf.translate(op.x, op.y)
            pdf.rotate(op.angle)
            if op.centred:
                pdf.drawCentredString(0, 0, op.text)
            else:
                pdf.drawString(0, 0, op.text)
        else:
            pdf.drawString(op.x, op.y, op.text)
        pdf.restoreState()

    elif isinstance(op, LineOp):
        pdf.setStrokeColorRGB(*op.color)
        pdf.setLineWidth(op.width)
        pdf.line(op.x1, op.y1, op.x2, op.y2)

    elif isinstance(op, RectOp):
        pdf.setStrokeColorRGB(*op.color)
        pdf.setLineWidth(op.line_width)
        pdf.rect(op.x, op.y, op.width, op.height, stroke=1, fill=0)

    elif isinstance(op, CircleOp):
        pdf.setFillColorRGB(*op.color)
        pdf.circle(op.x, op.y, op.radius, stroke=0, fill=1)

    elif isinstance(op, ImageOp):
        reader = images.get(op.key)
        if reader is None:
            logger.warning("Dropping image %r: no asset supplied", op.key)
            return
        try:
            pdf.drawImage(reader, op.x, op.y, width=op.width, height=op.height, mask="auto")
        except Exception as e:
            logger.warning("Dropping image %r: %s", op.key, e)

    else:
        raise EncodeError(f"Unknown draw instruction: {op!r}")


def encode(ops: list, fonts: FontPair, images: dict | None = None,
           page: tuple = (PAGE_W, PAGE_H), title: str = "") -> bytes:
    """Serialize draw instructions to a single-page PDF."""
    _check_fonts(fonts)
    buf = io.BytesIO()
    try:
        # invariant=1: no creation timestamp or random file id, so output is reproducible
        pdf = canvas.Canvas(buf, pagesize=page, invariant=1)
        if title:
            pdf.setTitle(title)
        for op in ops:
            _paint(pdf, op, images or {})
        pdf.showPage()
        pdf.save()
    except RenderError:
        raise
    except Exception as e:
        raise EncodeError(f"PDF serialization failed: {e}") from e
    return buf.getvalue()


def render(doc: InvoiceDocument, style: StyleConfig, is_preview: bool = False) -> bytes:
    """
    Validate the style, lay out the page and return PDF bytes.

    Raises InvalidStyleConfig before anything is drawn, FontEmbedError /
    EncodeError when the document cannot be produced. A bad logo is logged and
    left out.
    """
    rs = resolve_style(style)
    try:
        comp = compose((PAGE_W, PAGE_H), doc, rs, is_preview)
        return encode(comp.ops, rs.fonts, comp.images, page=comp.page,
                      title=f"Invoice - {doc.invoice_number}")
    except (FontEmbedError, EncodeError):
        logger.exception("Rendering invoice %s failed", doc.invoice_number)
        raise
