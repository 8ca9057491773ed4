# render_invoice.py
import argparse
import json
import logging
from pathlib import Path

from config import Config
from errors import InvalidInvoice, RenderError
from invoice import download_filename, invoice_from_mapping, with_tax_rate
from pdf_layout import style_from_mapping
from pdf_service import render

logger = logging.getLogger(__name__)


def render_file(src: Path, out_dir: Path, is_preview: bool = False, tax_rate: str | None = None) -> Path:
    """
    Renders one invoice JSON file (same keys the create form posts, plus an
    optional "style" object) and writes the PDF into out_dir.
    tax_rate, when given, replaces the file's taxRate.

    Returns: path of the written PDF.
    """
    data = json.loads(src.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise InvalidInvoice(f"{src.name}: expected a JSON object")
    doc = invoice_from_mapping(data)
    if tax_rate is not None:
        doc = with_tax_rate(doc, tax_rate)
    style = style_from_mapping(data.get("style"))
    pdf_bytes = render(doc, style, is_preview=is_preview)

    out_path = out_dir / download_filename(doc)
    out_path.write_bytes(pdf_bytes)
    return out_path


def main(argv=None):
    parser = argparse.ArgumentParser(description="Render invoice JSON files to PDF.")
    parser.add_argument("files", nargs="+", help="Invoice JSON file(s).")
    parser.add_argument("--out-dir", type=str, default=".", help="Where to write PDFs.")
    parser.add_argument("--preview", action="store_true", help="Stamp the output as a preview copy.")
    parser.add_argument("--tax-rate", type=str, default=None, help="Override every file's tax rate (percent).")
    args = parser.parse_args(argv)

    logging.basicConfig(level=Config.LOG_LEVEL)

    out_dir = Path(args.out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    total = len(args.files)
    generated = 0
    failed = 0

    for i, name in enumerate(args.files, start=1):
        src = Path(name)
        try:
            path = render_file(src, out_dir, is_preview=args.preview, tax_rate=args.tax_rate)
            generated += 1
            print(f"[{i}/{total}] DONE  {src.name} -> {path}")
        except (OSError, ValueError, RenderError) as e:
            failed += 1
            print(f"[{i}/{total}] FAIL  {src.name}  ({e})")

    print("\n✅ Rendering complete.")
    print(f"Generated: {generated}")
    print(f"Failed:    {failed}")
    print(f"Output:    {out_dir}")
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
