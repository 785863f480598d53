from __future__ import annotations
import contextlib
import logging
import shutil
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import pikepdf

from app.core.config import settings
from app.core.exceptions import FillError
from app.models.schemas import FillRequest
from app.services.drive_service import DriveService, get_drive_service
from app.services.field_resolver import FieldAssignment, Resolution, load_aliases, resolve
from app.utils.pdf_overlay import (
    BurnInItem,
    apply_overlay,
    build_burnin_overlay,
    build_watermark_overlay,
    page_sizes,
    register_font,
)
from app.utils.utils import (
    FF_MULTILINE,
    PdfField,
    collect_fields,
    has_xfa,
    remove_acroform,
    remove_widgets,
    set_checkbox_value,
    set_choice_value,
    set_need_appearances,
    set_radio_value,
    set_text_value,
    strip_xfa,
    sync_datasets,
)

logger = logging.getLogger(__name__)

FILL_MODES = ("fill", "flatten", "burnin")
XFA_MODES = ("strip", "sync")


@dataclass
class FillResult:
    filled_count: int = 0
    assignments: List[FieldAssignment] = field(default_factory=list)
    skipped: Dict[str, str] = field(default_factory=dict)
    unmatched_keys: List[str] = field(default_factory=list)
    size: int = 0


def _apply_assignment(f: PdfField, a: FieldAssignment) -> None:
    if f.kind == "text":
        set_text_value(f, a.value)
    elif f.kind == "checkbox":
        if isinstance(a.value, bool):
            set_checkbox_value(f, a.value)
        else:
            set_radio_value(f, a.value)
    elif f.kind == "radio":
        set_radio_value(f, a.value)
    elif f.kind in ("combo", "listbox"):
        set_choice_value(f, a.value)
    else:
        raise ValueError(f"unsupported field type: {f.kind}")


def apply_resolution(fields: List[PdfField], resolution: Resolution) -> FillResult:
    """결정된 값을 필드에 씁니다. 필드 단위 실패는 skipped 로 기록하고 계속 진행."""
    by_name = {f.name: f for f in fields}
    result = FillResult(
        skipped=dict(resolution.skipped),
        unmatched_keys=list(resolution.unmatched_keys),
    )
    for a in resolution.assignments:
        f = by_name[a.field_name]
        try:
            _apply_assignment(f, a)
        except Exception as e:
            logger.warning(f"⚠️ 필드 값 설정 실패: {a.field_name} ({e})")
            result.skipped[a.field_name] = str(e)
            continue
        result.assignments.append(a)
        result.filled_count += 1
    return result


def _display_text(f: PdfField) -> str:
    """burn-in 할 표시 문자열 (선택 필드는 export 값 대신 표시값)"""
    value = f.value
    if value is None:
        return ""
    if f.kind in ("combo", "listbox"):
        labels = dict(f.options)
        values = value if isinstance(value, list) else [value]
        return "、".join(labels.get(v, v) for v in values if v)
    if isinstance(value, list):
        return "、".join(str(v) for v in value if v)
    return str(value)


def _burnin_items(fields: List[PdfField], include_buttons: bool) -> List[BurnInItem]:
    items: List[BurnInItem] = []
    for f in fields:
        if f.kind in ("text", "combo", "listbox"):
            text = _display_text(f)
            if not text:
                continue
            for w in f.widgets:
                if w.page is None or w.rect is None:
                    logger.debug(f"위치 정보 없는 위젯 건너뜀: {f.name}")
                    continue
                items.append(BurnInItem(
                    page=w.page,
                    rect=w.rect,
                    text=text,
                    multiline=bool(f.flags & FF_MULTILINE),
                ))
        elif include_buttons and f.kind == "checkbox" and f.value not in (None, "Off"):
            # 외형 스트림이 없는 체크박스만 직접 그림 (나머지는 flatten 이 처리)
            for w in f.widgets:
                if not w.states and w.page is not None and w.rect is not None:
                    items.append(BurnInItem(page=w.page, rect=w.rect, check=True))
    return items


def _text_widgets(fields: List[PdfField]):
    return [w for f in fields if f.kind in ("text", "combo", "listbox") for w in f.widgets]


def _xfa_values(fields: List[PdfField], assignments: List[FieldAssignment]) -> Dict[str, str]:
    by_name = {f.name: f for f in fields}
    values: Dict[str, str] = {}
    for a in assignments:
        f = by_name[a.field_name]
        if isinstance(a.value, bool):
            values[f.terminal_name] = "1" if a.value else "0"
        elif isinstance(a.value, list):
            values[f.terminal_name] = a.value[0] if a.value else ""
        else:
            values[f.terminal_name] = str(a.value)
    return values


def fill_pdf(
    template_pdf: str | Path,
    answers: Dict[str, Any],
    out_pdf: str | Path,
    mode: Optional[str] = None,
    watermark_text: Optional[str] = None,
    aliases: Optional[Dict[str, List[str]]] = None,
    xfa_mode: Optional[str] = None,
    font_path: Optional[str] = None,
) -> FillResult:
    """PDF 폼을 입력값으로 채웁니다.

    Args:
        template_pdf: 템플릿 PDF 경로
        answers: 평탄한 key/value 입력
        out_pdf: 출력 PDF 경로
        mode: fill(대화형 유지) / flatten(값을 페이지에 새기고 폼 제거) / burnin(텍스트만 새김)
        watermark_text: 모든 페이지에 찍을 워터마크 (모든 mode 공통)
        aliases: 별칭 테이블 (None 이면 설정 파일 + 기본값)
        xfa_mode: 하이브리드 XFA 폼 처리 (strip / sync)
        font_path: burn-in/워터마크용 TTF 경로 (None 이면 설정값)
    """
    mode = (mode or settings.default_fill_mode).lower()
    if mode not in FILL_MODES:
        raise FillError(f"Unknown mode: {mode!r} (expected one of {', '.join(FILL_MODES)})")
    xfa_mode = (xfa_mode or settings.xfa_mode).lower()
    if xfa_mode not in XFA_MODES:
        raise FillError(f"Unknown XFA mode: {xfa_mode!r}", status_code=500, error="Server configuration error")
    if aliases is None:
        aliases = load_aliases(settings.field_aliases_path)

    try:
        pdf = pikepdf.open(str(template_pdf))
    except pikepdf.PdfError as e:
        raise FillError(f"Template is not a readable PDF: {e}", status_code=422) from e

    with contextlib.ExitStack() as stack:
        stack.enter_context(pdf)

        fields = collect_fields(pdf)
        if not fields:
            logger.warning("템플릿에 AcroForm 필드가 없습니다.")
        logger.info(f"📝 필드 채우기 시작: 입력 {len(answers)}개, PDF 필드 {len(fields)}개, mode={mode}")

        resolution = resolve(fields, answers, aliases)
        result = apply_resolution(fields, resolution)

        if has_xfa(pdf):
            if xfa_mode == "sync":
                updated = sync_datasets(pdf, _xfa_values(fields, result.assignments))
                logger.info(f"XFA datasets 동기화: {updated}개 노드")
            else:
                strip_xfa(pdf)
                logger.info("XFA 엔트리 제거 (AcroForm 값 사용)")

        font_name = None
        if mode in ("flatten", "burnin") or watermark_text:
            font_name = register_font(font_path or settings.font_ttf_path)

        sizes = page_sizes(pdf)
        if mode == "fill":
            set_need_appearances(pdf, True)
        else:
            items = _burnin_items(fields, include_buttons=(mode == "flatten"))
            if items:
                stack.enter_context(apply_overlay(pdf, build_burnin_overlay(sizes, items, font_name)))
            removed = remove_widgets(pdf, _text_widgets(fields))
            logger.info(f"burn-in 완료: {len(items)}개 항목, 텍스트 위젯 {removed}개 제거")

            if mode == "flatten":
                set_need_appearances(pdf, False)
                pdf.flatten_annotations("all")
                remove_acroform(pdf)
            else:
                set_need_appearances(pdf, True)

        if watermark_text:
            stack.enter_context(apply_overlay(pdf, build_watermark_overlay(sizes, watermark_text, font_name)))
            logger.info(f"워터마크 적용: {watermark_text!r}")

        pdf.save(
            str(out_pdf),
            object_stream_mode=pikepdf.ObjectStreamMode.disable,
        )

    result.size = Path(out_pdf).stat().st_size
    logger.info(f"✅ {result.filled_count}개 필드 채움, 저장: {out_pdf} ({result.size} bytes)")
    if result.unmatched_keys:
        logger.info(f"매칭되지 않은 키: {result.unmatched_keys}")
    return result


# ---------- Drive 연동 파이프라인 ----------

def _create_work_dir(template_id: str) -> Path:
    """요청별 임시 디렉토리 생성"""
    settings.tmp_dir.mkdir(parents=True, exist_ok=True)
    safe_id = "".join(c for c in template_id if c.isalnum() or c in "-_")[:64] or "template"
    return Path(tempfile.mkdtemp(prefix=f"{safe_id}_", dir=str(settings.tmp_dir)))


def _cleanup_work_dir(path: Path) -> None:
    """임시 디렉토리 삭제"""
    try:
        if path.exists():
            shutil.rmtree(path)
            logger.info(f"임시 파일 삭제 완료: {path}")
    except OSError as e:
        logger.error(f"임시 파일 삭제 실패: {path} - {e}")


def output_file_name(name: Optional[str]) -> str:
    name = (name or "").strip().replace("\n", " ").replace("\r", " ")
    if not name:
        name = f"filled_{int(time.time() * 1000)}.pdf"
    if not name.lower().endswith(".pdf"):
        name += ".pdf"
    return name


def fill_from_drive(request: FillRequest, drive: Optional[DriveService] = None) -> Dict[str, Any]:
    """템플릿 다운로드 → 채우기 → 업로드

    Returns:
        ``{ok, filledCount, driveFile, webViewLink, file, skipped, unmatchedKeys}``
    """
    drive = drive or get_drive_service()
    template_id = request.templateFileId
    folder_id = request.folderId or settings.output_folder_id
    work_dir = _create_work_dir(template_id)

    try:
        template_path = drive.download_file(template_id, work_dir / f"template_{template_id}.pdf")
        output_path = work_dir / f"output_{int(time.time() * 1000)}.pdf"

        result = fill_pdf(
            template_path,
            request.fields,
            output_path,
            mode=request.mode,
            watermark_text=request.watermarkText,
        )

        uploaded = drive.upload_pdf(output_path, output_file_name(request.outputName), folder_id)
    finally:
        _cleanup_work_dir(work_dir)

    drive_file = {
        "id": uploaded.get("id"),
        "name": uploaded.get("name"),
        "parents": uploaded.get("parents") or ([folder_id] if folder_id else []),
        "webViewLink": uploaded.get("webViewLink"),
        "webContentLink": uploaded.get("webContentLink"),
    }
    return {
        "ok": True,
        "filledCount": result.filled_count,
        "driveFile": drive_file,
        "webViewLink": drive_file["webViewLink"],
        "file": {
            "id": drive_file["id"],
            "name": drive_file["name"],
            "webViewLink": drive_file["webViewLink"],
        },
        "skipped": result.skipped,
        "unmatchedKeys": result.unmatched_keys,
    }
