import io

import pikepdf
import pytest

from app.utils.pdf_overlay import (
    CID_FALLBACK_FONT,
    BurnInItem,
    apply_overlay,
    build_burnin_overlay,
    build_watermark_overlay,
    page_sizes,
    register_font,
    resolve_font_file,
)


def test_register_font_falls_back_to_cid(tmp_path):
    assert register_font(str(tmp_path / "nope.ttf")) == CID_FALLBACK_FONT
    assert register_font(None) == CID_FALLBACK_FONT


def test_resolve_font_file(tmp_path):
    ttf = tmp_path / "Custom.ttf"
    ttf.write_bytes(b"\x00")
    ttc = tmp_path / "Collection.ttc"
    ttc.write_bytes(b"\x00")
    assert resolve_font_file(str(ttf)) == ttf
    assert resolve_font_file(str(ttc)) is None
    assert resolve_font_file("Custom.ttf", base_dir=tmp_path) == ttf
    assert resolve_font_file(None) is None


def test_overlays_match_page_count():
    font = register_font(None)
    sizes = [(595.0, 842.0), (842.0, 595.0)]
    items = [
        BurnInItem(page=0, rect=(50, 700, 300, 718), text="山田 太郎"),
        BurnInItem(page=1, rect=(50, 500, 300, 560), text="一行目\n二行目", multiline=True),
        BurnInItem(page=1, rect=(50, 400, 62, 412), check=True),
    ]
    for data in (build_burnin_overlay(sizes, items, font), build_watermark_overlay(sizes, "見本", font)):
        with pikepdf.open(io.BytesIO(data)) as overlay:
            assert page_sizes(overlay) == sizes


def test_apply_overlay_rejects_page_mismatch():
    pdf = pikepdf.new()
    pdf.add_blank_page()
    pdf.add_blank_page()
    overlay = build_watermark_overlay([(612.0, 792.0)], "DRAFT", register_font(None))
    with pytest.raises(ValueError):
        apply_overlay(pdf, overlay)
