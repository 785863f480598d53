"""미들웨어 및 인증 설정"""
import hmac
import logging
from typing import Optional

from fastapi import FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

logger = logging.getLogger(__name__)

# 라우트별 제한. 한도는 요청 시점의 settings.rate_limit 을 읽음
limiter = Limiter(key_func=get_remote_address)


def rate_limit() -> str:
    return settings.rate_limit


def setup_cors(app: FastAPI) -> None:
    """CORS 미들웨어 설정"""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )


def verify_bearer_token(authorization: Optional[str] = Header(default=None)) -> None:
    """API_BEARER_TOKEN이 설정된 경우에만 Bearer 토큰을 검사합니다."""
    expected = settings.api_bearer_token
    if not expected:
        return

    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header")

    token = authorization[len("Bearer "):]
    if not hmac.compare_digest(token, expected):
        logger.warning("Invalid bearer token")
        raise HTTPException(status_code=401, detail="Invalid bearer token")
