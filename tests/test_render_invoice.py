"""
Tests for the render_invoice command line tool.
"""

import json

from render_invoice import main, render_file


def _write(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_render_file_writes_named_pdf(tmp_path):
    src = _write(tmp_path / "inv.json", {
        "invoiceNumber": "INV-0007",
        "clientName": "Globex",
        "items": [{"quantity": "1", "rate": "99"}],
        "style": {"layout": "detailed", "borderStyle": "dashed"},
    })
    out = render_file(src, tmp_path)
    assert out.name == "Invoice_INV_0007_Globex.pdf"
    assert out.read_bytes().startswith(b"%PDF-")


def test_main_reports_failures(tmp_path, capsys):
    good = _write(tmp_path / "good.json", {"invoiceNumber": "INV-1"})
    bad = _write(tmp_path / "bad.json", {"style": {"layout": "poster"}})
    missing = tmp_path / "missing.json"

    code = main([str(good), str(bad), str(missing), "--out-dir", str(tmp_path / "out")])

    out = capsys.readouterr().out
    assert code == 1
    assert "DONE  good.json" in out
    assert "FAIL  bad.json" in out
    assert "FAIL  missing.json" in out
    assert "Generated: 1" in out
    assert (tmp_path / "out" / "Invoice_INV_1.pdf").exists()


def test_tax_rate_override(tmp_path):
    src = _write(tmp_path / "inv.json", {
        "invoiceNumber": "INV-8",
        "taxRate": "10",
        "items": [{"quantity": "2", "rate": "50"}],
    })
    for name in ("a", "b", "c"):
        (tmp_path / name).mkdir()
    plain = render_file(src, tmp_path / "a").read_bytes()
    zero = render_file(src, tmp_path / "b", tax_rate="0").read_bytes()
    assert zero != plain
    assert render_file(src, tmp_path / "c", tax_rate="10").read_bytes() == plain


def test_huge_numbers_fail_one_file_only(tmp_path, capsys):
    good = _write(tmp_path / "good.json", {"invoiceNumber": "INV-2"})
    huge = _write(tmp_path / "huge.json", {"items": [{"quantity": "1e30", "rate": "1"}]})

    code = main([str(huge), str(good), "--out-dir", str(tmp_path / "out"), "--tax-rate", "5"])

    out = capsys.readouterr().out
    assert code == 1
    assert "FAIL  huge.json" in out
    assert "must not exceed" in out
    assert "DONE  good.json" in out


def test_bad_tax_rate_override_fails(tmp_path, capsys):
    src = _write(tmp_path / "inv.json", {"invoiceNumber": "INV-3"})
    assert main([str(src), "--out-dir", str(tmp_path), "--tax-rate", "-5"]) == 1
    assert "Tax rate must be a non-negative number" in capsys.readouterr().out
