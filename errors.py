# errors.py
"""
Exceptions raised while turning an invoice into a PDF.
"""


class RenderError(Exception):
    """Base exception for the rendering pipeline."""
    pass


class InvalidStyleConfig(RenderError, ValueError):
    """A style option is outside its allowed set. Raised before anything is drawn."""

    def __init__(self, field: str, value, message: str | None = None):
        self.field = field
        self.value = value
        super().__init__(message or f"Invalid style option {field}={value!r}")


class AssetDecodeError(RenderError):
    """Logo bytes are neither PNG nor JPEG, or could not be decoded."""
    pass


class FontEmbedError(RenderError):
    """A glyph program could not be loaded. Text cannot be laid out without it."""
    pass


class EncodeError(RenderError):
    """Writing the PDF byte stream failed."""
    pass


class InvalidInvoice(ValueError):
    """Invoice input could not be coerced into an InvoiceDocument."""
    pass
