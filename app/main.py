"""FastAPI 애플리케이션 진입점"""
import logging

import uvicorn

from app.core.app import create_app
from app.core.config import settings

# 로깅 설정
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

# FastAPI 앱 생성
app = create_app()


if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.port)
