"""예외 정의 및 핸들러"""
import json
import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class FillError(Exception):
    """템플릿 처리 중 발생한 요청 단위 오류 (잘못된 mode, 폼이 없는 PDF 등)"""

    def __init__(self, message: str, status_code: int = 400, error: str = "Fill failed"):
        super().__init__(message)
        self.status_code = status_code
        self.error = error


class DriveError(Exception):
    """Google Drive 호출 실패"""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(Exception):
    """서버 설정 누락 (자격 증명 등)"""


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """요청 본문 검증 실패 → 400 핸들러"""
    errors = exc.errors()
    logger.error(f"Validation error: {json.dumps(errors, indent=2, ensure_ascii=False, default=str)}")
    logger.error(f"Request URL: {request.url}")
    logger.error(f"Request method: {request.method}")

    # errors를 JSON 직렬화 가능한 형태로 변환
    errors_serializable = []
    for err in errors:
        error_dict = {
            "loc": list(err.get("loc", [])),
            "msg": str(err.get("msg", "")),
            "type": str(err.get("type", "")),
        }
        if "ctx" in err:
            error_dict["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        errors_serializable.append(error_dict)

    # 템플릿 ID나 fields가 빠진 경우 원래 API와 동일한 메시지
    invalid = {err["loc"][-1] for err in errors_serializable if err["loc"]}
    if invalid & {"templateFileId", "fields"}:
        message = "Missing templateFileId or fields"
    elif "fileId" in invalid:
        message = "Missing fileId"
    else:
        message = "Invalid request"

    return JSONResponse(
        status_code=400,
        content={
            "ok": False,
            "error": message,
            "detail": errors_serializable,
        }
    )


async def fill_error_handler(request: Request, exc: FillError) -> JSONResponse:
    logger.warning(f"Fill error ({exc.status_code}): {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": exc.error, "detail": str(exc)}
    )


async def drive_error_handler(request: Request, exc: DriveError) -> JSONResponse:
    logger.error(f"Drive error ({exc.status_code}): {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": "Drive request failed", "detail": str(exc)}
    )


async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error(f"Server configuration error: {exc}")
    return JSONResponse(
        status_code=500,
        content={"ok": False, "error": "Server configuration error", "detail": str(exc)}
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """요청 단위로 잡히지 않은 오류 → 500 {error, detail}"""
    logger.exception(f"❌ Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"ok": False, "error": "Fill failed", "detail": str(exc)}
    )
