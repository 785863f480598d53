from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import pikepdf

from app.core.exceptions import FillError
from app.services.drive_service import DriveService, get_drive_service
from app.services.pdf_filler_service import _cleanup_work_dir, _create_work_dir
from app.utils.utils import PdfField, collect_fields, has_xfa

logger = logging.getLogger(__name__)


def describe_field(f: PdfField) -> Dict[str, Any]:
    pages = [w.page for w in f.widgets if w.page is not None]
    return {
        "name": f.name,
        "partialName": f.partial_name,
        "type": f.kind,
        "value": f.value,
        "options": [display for _, display in f.options],
        "states": f.states,
        "readOnly": f.read_only,
        "multiSelect": f.multi_select,
        "page": pages[0] if pages else None,
    }


def list_fields(pdf_path: str | Path) -> List[Dict[str, Any]]:
    """PDF의 AcroForm 필드 목록 (이름, 종류, 현재 값, 선택지, on 상태)"""
    try:
        pdf = pikepdf.open(str(pdf_path))
    except pikepdf.PdfError as e:
        raise FillError(f"Not a readable PDF: {e}", status_code=422, error="Field listing failed") from e

    with pdf:
        if has_xfa(pdf):
            logger.info("하이브리드 XFA 폼입니다. AcroForm 필드만 나열합니다.")
        fields = [describe_field(f) for f in collect_fields(pdf)]

    logger.info(f"필드 목록 추출 완료: {len(fields)}개")
    return fields


def describe_from_drive(file_id: str, drive: Optional[DriveService] = None) -> Dict[str, Any]:
    """Drive의 템플릿을 내려받아 필드 목록을 반환합니다."""
    drive = drive or get_drive_service()
    work_dir = _create_work_dir(file_id)
    try:
        template_path = drive.download_file(file_id, work_dir / f"template_{file_id}.pdf")
        fields = list_fields(template_path)
    finally:
        _cleanup_work_dir(work_dir)

    return {"ok": True, "fileId": file_id, "count": len(fields), "fields": fields}
