"""FastAPI 앱 생성 및 설정"""
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.middleware import limiter, setup_cors
from app.core.exceptions import (
    ConfigurationError,
    DriveError,
    FillError,
    configuration_error_handler,
    drive_error_handler,
    fill_error_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from app.routers import health, pdf


def create_app() -> FastAPI:
    """FastAPI 앱 생성 및 설정"""
    app = FastAPI(
        title="PDF Filler API",
        description="""
        Google Drive의 PDF 템플릿(AcroForm)을 JSON 입력값으로 채워 다시 Drive에 업로드하는 API 서버입니다.

        ## 주요 기능

        * **PDF 폼 채우기**: 키 이름/언어/대소문자가 제각각인 입력을 폼 필드에 매칭
        * **필드 목록**: 템플릿의 필드 이름, 종류, 선택지 확인
        * **flatten / burn-in / 워터마크**: 값을 페이지에 새기거나 워터마크 추가

        ## 사용 방법

        1. `/fields?fileId=...` 로 템플릿 필드 확인
        2. `/fill` 로 `templateFileId` 와 `fields` 를 전송
        3. 응답의 `webViewLink` 로 결과 확인
        """,
        version="2.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json"
    )

    # 미들웨어 및 예외 핸들러 설정
    setup_cors(app)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(FillError, fill_error_handler)
    app.add_exception_handler(DriveError, drive_error_handler)
    app.add_exception_handler(ConfigurationError, configuration_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request, exc):
        """HTTPException 도 {error, detail} 형식으로"""
        return JSONResponse(
            status_code=exc.status_code,
            content={"ok": False, "error": str(exc.detail), "detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    # Rate Limiter 설정 (제한은 라우트 데코레이터에서 적용)
    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request, exc):
        """Rate limit 초과 시 예외 핸들러"""
        return JSONResponse(
            status_code=429,
            content={"ok": False, "error": "Rate limit exceeded", "detail": str(exc)}
        )

    # 라우터 등록
    app.include_router(health.router)
    app.include_router(pdf.router)

    return app
