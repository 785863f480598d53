"""Health check 라우터"""
from fastapi import APIRouter, Request

from app.core.config import settings
from app.core.middleware import limiter, rate_limit
from app.models.schemas import HealthResponse
from app.utils.pdf_overlay import resolve_font_file

router = APIRouter(tags=["Health Check"])


@router.get(
    "/",
    summary="서버 상태 확인",
    description="PDF 채우기 서버가 정상적으로 실행 중인지 확인합니다."
)
@limiter.limit(rate_limit)
def root(request: Request):
    """서버 상태 확인"""
    return {"service": "PDF Filler", "status": "running"}


@router.get(
    "/health",
    summary="설정 상태 확인",
    description="폰트 경로, 기본 출력 폴더, Drive 자격 증명 설정 여부를 반환합니다.",
    response_model=HealthResponse
)
@limiter.limit(rate_limit)
def health(request: Request):
    return HealthResponse(
        ok=True,
        fontPath=settings.font_ttf_path,
        fontAvailable=resolve_font_file(settings.font_ttf_path) is not None,
        outputFolder=settings.output_folder_id or "not set",
        driveConfigured=settings.drive_configured,
        defaultMode=settings.default_fill_mode,
        xfaMode=settings.xfa_mode,
    )
