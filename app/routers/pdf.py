"""PDF 처리 라우터"""
from fastapi import APIRouter, Depends, Query, Request
import logging

from app.core.middleware import limiter, rate_limit, verify_bearer_token
from app.models.schemas import FillRequest, FillResponse, FieldsResponse
from app.services.pdf_filler_service import fill_from_drive
from app.services.pdf_field_service import describe_from_drive

logger = logging.getLogger(__name__)

router = APIRouter(tags=["PDF 처리"], dependencies=[Depends(verify_bearer_token)])


@router.post(
    "/fill",
    summary="PDF 폼 채우기",
    description="""
    Google Drive의 PDF 템플릿을 내려받아 폼 필드를 채운 뒤 Drive에 업로드합니다.

    - 키 이름은 대소문자, 전각/반각, 일본어/영어 별칭을 허용
    - 체크박스는 yes/no/true/false/on/off/はい/いいえ 를 해석
    - `Q1_TreatmentNow_はい`, `Region_Asia` 형태의 그룹 체크박스와 다중 선택 지원
    - `mode`: `fill`(기본, 대화형 유지) / `flatten` / `burnin`
    - `watermarkText`: 모든 페이지에 워터마크

    **주의사항:**
    - `templateFileId`와 `fields`는 필수입니다. (없으면 400)
    - `folderId`가 없으면 `OUTPUT_FOLDER_ID`를 사용합니다.
    """,
    response_model=FillResponse,
    response_description="채운 필드 수와 업로드된 Drive 파일 정보"
)
@limiter.limit(rate_limit)
def fill_endpoint(request: Request, body: FillRequest):
    logger.info(
        f"PDF 채우기 요청: templateFileId={body.templateFileId}, "
        f"fields={len(body.fields)}개, mode={body.mode or 'default'}"
    )
    return fill_from_drive(body)


@router.get(
    "/fields",
    summary="PDF 필드 목록",
    description="Drive의 PDF 템플릿에 있는 폼 필드 이름, 종류, 선택지를 반환합니다.",
    response_model=FieldsResponse
)
@limiter.limit(rate_limit)
def fields_endpoint(request: Request, fileId: str = Query(..., min_length=1, description="Drive 파일 ID")):
    logger.info(f"필드 목록 요청: fileId={fileId}")
    return describe_from_drive(fileId)
