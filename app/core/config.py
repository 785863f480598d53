"""애플리케이션 설정"""
import os
from pathlib import Path
import tempfile
from typing import List, Optional

from dotenv import load_dotenv

# 로컬 개발용 .env 로드 (이미 설정된 환경 변수는 덮어쓰지 않음)
load_dotenv()


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings:
    """애플리케이션 설정"""

    # 서버 설정
    port: int = int(os.getenv("PORT", "8080"))

    # CORS 설정
    cors_allow_origins: List[str] = _env_list("CORS_ALLOW_ORIGINS", "*")
    cors_allow_credentials: bool = False
    cors_allow_methods: List[str] = ["*"]
    cors_allow_headers: List[str] = ["*"]

    # 로깅 설정
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # 요청별 임시 파일 디렉토리
    tmp_dir: Path = Path(os.getenv("TMP_DIR", str(Path(tempfile.gettempdir()) / "pdf-filler")))

    # Google Drive 설정
    output_folder_id: Optional[str] = os.getenv("OUTPUT_FOLDER_ID") or os.getenv("DEFAULT_OUTPUT_FOLDER_ID")
    google_credentials_json: Optional[str] = os.getenv("GOOGLE_CREDENTIALS_JSON")
    google_service_account_base64: Optional[str] = os.getenv("GOOGLE_SERVICE_ACCOUNT_BASE64")
    google_application_credentials: Optional[str] = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")

    # 채우기 설정
    font_ttf_path: str = os.getenv("FONT_TTF_PATH", "fonts/NotoSansCJKjp-Regular.otf")
    field_aliases_path: Optional[str] = os.getenv("FIELD_ALIASES_PATH")
    default_fill_mode: str = os.getenv("DEFAULT_FILL_MODE", "fill")
    xfa_mode: str = os.getenv("XFA_MODE", "strip")

    # 인증 (설정된 경우에만 Bearer 토큰 검사)
    api_bearer_token: Optional[str] = os.getenv("API_BEARER_TOKEN")

    # Rate limit (slowapi 형식)
    rate_limit: str = os.getenv("RATE_LIMIT", "30/minute")

    @property
    def drive_configured(self) -> bool:
        return bool(
            self.google_credentials_json
            or self.google_service_account_base64
            or self.google_application_credentials
        )


settings = Settings()
