from __future__ import annotations
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pikepdf
from reportlab.lib.colors import Color
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.cidfonts import UnicodeCIDFont
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)

# 폰트 파일이 없을 때 사용하는 reportlab 내장 일본어 CID 폰트
CID_FALLBACK_FONT = "HeiseiKakuGo-W5"
CUSTOM_FONT_NAME = "FormFillFont"

MIN_FONT_SIZE = 5.0
MAX_FONT_SIZE = 11.0
PADDING = 2.0

_registered: Dict[str, str] = {}


@dataclass
class BurnInItem:
    """페이지에 직접 그릴 값 하나"""
    page: int
    rect: Tuple[float, float, float, float]
    text: str = ""
    check: bool = False
    multiline: bool = False


def font_candidates(font_path: str, base_dir: Optional[Path] = None) -> List[Path]:
    base = base_dir or Path.cwd()
    p = Path(font_path)
    candidates = [p] if p.is_absolute() else [base / p, base / "fonts" / p.name]
    return candidates


def resolve_font_file(font_path: Optional[str], base_dir: Optional[Path] = None) -> Optional[Path]:
    """설정된 TTF/OTF 파일 경로를 찾습니다. TTC는 지원하지 않습니다."""
    if not font_path:
        return None
    for cand in font_candidates(font_path, base_dir):
        if cand.exists():
            if cand.suffix.lower() == ".ttc":
                logger.warning(f"TTC 폰트는 지원하지 않습니다: {cand}")
                return None
            return cand
    return None


def register_font(font_path: Optional[str]) -> str:
    """reportlab 폰트 등록 후 폰트 이름을 반환. 파일이 없으면 내장 CID 폰트."""
    key = font_path or ""
    if key in _registered:
        return _registered[key]

    name = CID_FALLBACK_FONT
    font_file = resolve_font_file(font_path)
    if font_file is not None:
        try:
            pdfmetrics.registerFont(TTFont(CUSTOM_FONT_NAME, str(font_file)))
            name = CUSTOM_FONT_NAME
            logger.info(f"✅ 폰트 로드: {font_file}")
        except Exception as e:
            # CFF 기반 OTF 등 reportlab이 읽지 못하는 폰트
            logger.warning(f"폰트 등록 실패, 내장 CID 폰트 사용: {font_file} ({e})")

    if name == CID_FALLBACK_FONT:
        pdfmetrics.registerFont(UnicodeCIDFont(CID_FALLBACK_FONT))

    _registered[key] = name
    return name


def page_sizes(pdf: pikepdf.Pdf) -> List[Tuple[float, float]]:
    sizes = []
    for page in pdf.pages:
        x1, y1, x2, y2 = (float(v) for v in page.mediabox)
        sizes.append((abs(x2 - x1), abs(y2 - y1)))
    return sizes


def _fit_font_size(text: str, font_name: str, width: float, height: float) -> float:
    size = min(MAX_FONT_SIZE, max(MIN_FONT_SIZE, height - 2 * PADDING))
    while size > MIN_FONT_SIZE and pdfmetrics.stringWidth(text, font_name, size) > width - 2 * PADDING:
        size -= 0.5
    return size


def _draw_check(c: canvas.Canvas, rect: Tuple[float, float, float, float]) -> None:
    x1, y1, x2, y2 = rect
    w, h = x2 - x1, y2 - y1
    c.saveState()
    c.setLineWidth(max(0.8, min(w, h) / 10))
    path = c.beginPath()
    path.moveTo(x1 + w * 0.2, y1 + h * 0.5)
    path.lineTo(x1 + w * 0.42, y1 + h * 0.25)
    path.lineTo(x1 + w * 0.8, y1 + h * 0.78)
    c.drawPath(path, stroke=1, fill=0)
    c.restoreState()


def _draw_text(c: canvas.Canvas, item: BurnInItem, font_name: str) -> None:
    x1, y1, x2, y2 = item.rect
    width, height = x2 - x1, y2 - y1
    lines = item.text.splitlines() if item.multiline else [item.text.replace("\n", " ")]
    lines = lines or [""]

    if len(lines) == 1:
        size = _fit_font_size(lines[0], font_name, width, height)
        c.setFont(font_name, size)
        # 세로 가운데 정렬
        c.drawString(x1 + PADDING, y1 + (height - size) / 2 + size * 0.15, lines[0])
        return

    size = min(MAX_FONT_SIZE, max(MIN_FONT_SIZE, (height - 2 * PADDING) / len(lines)))
    c.setFont(font_name, size)
    y = y2 - PADDING - size
    for line in lines:
        if y < y1:
            break
        c.drawString(x1 + PADDING, y, line)
        y -= size * 1.15


def build_burnin_overlay(sizes: Sequence[Tuple[float, float]], items: Sequence[BurnInItem], font_name: str) -> bytes:
    """필드 위치에 값을 그린 오버레이 PDF (원본과 같은 페이지 수)"""
    by_page: Dict[int, List[BurnInItem]] = {}
    for item in items:
        by_page.setdefault(item.page, []).append(item)

    buf = io.BytesIO()
    c = canvas.Canvas(buf)
    for page_no, (w, h) in enumerate(sizes):
        c.setPageSize((w, h))
        for item in by_page.get(page_no, []):
            if item.check:
                _draw_check(c, item.rect)
            elif item.text:
                _draw_text(c, item, font_name)
        c.showPage()
    c.save()
    return buf.getvalue()


def build_watermark_overlay(sizes: Sequence[Tuple[float, float]], text: str, font_name: str) -> bytes:
    """모든 페이지에 대각선 워터마크 + 우측 상단 라벨"""
    buf = io.BytesIO()
    c = canvas.Canvas(buf)
    for w, h in sizes:
        c.setPageSize((w, h))

        c.saveState()
        c.setFillColor(Color(0.5, 0.5, 0.5, alpha=0.3))
        c.setFont(font_name, 42)
        c.translate(w / 2, h / 2)
        c.rotate(25)
        c.drawCentredString(0, 0, text)
        c.restoreState()

        c.saveState()
        c.setFillColor(Color(0.4, 0.4, 0.4, alpha=0.6))
        c.setFont(font_name, 12)
        c.drawRightString(w - 24, h - 24, text)
        c.restoreState()

        c.showPage()
    c.save()
    return buf.getvalue()


def apply_overlay(pdf: pikepdf.Pdf, overlay_bytes: bytes) -> pikepdf.Pdf:
    """오버레이 PDF의 각 페이지를 같은 번호의 페이지 위에 합칩니다.

    복사된 스트림이 원본을 참조하므로 반환된 오버레이 Pdf는
    대상 PDF를 저장할 때까지 열어 두어야 합니다.
    """
    overlay = pikepdf.open(io.BytesIO(overlay_bytes))
    if len(overlay.pages) != len(pdf.pages):
        overlay.close()
        raise ValueError("오버레이와 원본 PDF의 페이지 수가 다릅니다.")
    for i, page in enumerate(pdf.pages):
        page.add_overlay(overlay.pages[i])
    return overlay
