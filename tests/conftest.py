import io
import random

import pytest
from PIL import Image

from app import create_app
from invoice import InvoiceDocument, LineItem, Party, recalculate
from pdf_layout import StyleConfig


def _image_bytes(fmt: str, size=(40, 20)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, (200, 30, 30)).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def png_logo():
    return _image_bytes("PNG")


@pytest.fixture
def jpeg_logo():
    return _image_bytes("JPEG")


@pytest.fixture
def truncated_png():
    """A noisy PNG (so the pixel data cannot compress away) cut off mid-IDAT."""
    noise = random.Random(7).randbytes(64 * 64 * 3)
    buf = io.BytesIO()
    Image.frombytes("RGB", (64, 64), noise).save(buf, format="PNG")
    data = buf.getvalue()
    return data[: len(data) // 2]


@pytest.fixture
def invoice():
    doc = InvoiceDocument(
        invoice_number="INV-0042",
        date="2026-10-19",
        due_date="2026-11-18",
        business=Party(name="Acme Studio", address="1 Main St", email="hello@acme.test", phone="555-0100"),
        client=Party(name="Globex", address="9 Side Rd", email="ap@globex.test", phone="555-0199"),
        project_title="Website refresh",
        description="Design\nBuild",
        items=(LineItem(id="1", description="Design", quantity="2", rate="150.00"),),
        currency="USD",
        tax_rate="10",
        payment_method="Bank Transfer",
        terms="Payment is due within 30 days\nLate fees apply",
    )
    return recalculate(doc)


@pytest.fixture
def style():
    return StyleConfig()


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test",
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{(tmp_path / 'test.db').as_posix()}",
        "SUBSCRIBERS_PASSWORD": "s3cret",
    })
    yield app


@pytest.fixture
def client(app):
    return app.test_client()
