from __future__ import annotations
import base64
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaFileUpload, MediaIoBaseDownload

from app.core.config import settings
from app.core.exceptions import ConfigurationError, DriveError

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/drive"]
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
UPLOAD_FIELDS = "id, name, parents, webViewLink, webContentLink"


def load_service_account_info() -> Dict[str, Any]:
    """서비스 계정 JSON을 환경 설정에서 읽습니다.

    우선순위: GOOGLE_CREDENTIALS_JSON → GOOGLE_SERVICE_ACCOUNT_BASE64 → GOOGLE_APPLICATION_CREDENTIALS(파일)
    """
    if settings.google_credentials_json:
        return json.loads(settings.google_credentials_json)

    if settings.google_service_account_base64:
        decoded = base64.b64decode(settings.google_service_account_base64).decode("utf-8")
        return json.loads(decoded)

    if settings.google_application_credentials:
        key_file = Path(settings.google_application_credentials)
        if not key_file.exists():
            raise ConfigurationError(f"Credentials file not found: {key_file}")
        with open(key_file, "r", encoding="utf-8") as f:
            return json.load(f)

    raise ConfigurationError(
        "One of GOOGLE_CREDENTIALS_JSON, GOOGLE_SERVICE_ACCOUNT_BASE64 "
        "or GOOGLE_APPLICATION_CREDENTIALS must be set"
    )


def _http_status(error: HttpError) -> int:
    return int(getattr(error.resp, "status", 0) or 0)


class DriveService:
    """Google Drive v3 래퍼 (다운로드 / 폴더 확인 / 업로드)"""

    def __init__(self, service=None):
        if service is None:
            info = load_service_account_info()
            creds = service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
            service = build("drive", "v3", credentials=creds, cache_discovery=False)
        self.service = service

    def download_file(self, file_id: str, dest: Path) -> Path:
        """파일 내용을 dest로 내려받습니다."""
        logger.info(f"📥 템플릿 다운로드: {file_id}")
        request = self.service.files().get_media(fileId=file_id, supportsAllDrives=True)
        try:
            with open(dest, "wb") as fh:
                downloader = MediaIoBaseDownload(fh, request)
                done = False
                while not done:
                    status, done = downloader.next_chunk()
                    if status:
                        logger.debug(f"다운로드 진행: {int(status.progress() * 100)}%")
        except HttpError as e:
            code = _http_status(e)
            if code == 404:
                raise DriveError(f"Template not found: {file_id}", status_code=404) from e
            if code == 403:
                raise DriveError(
                    f"Access denied to template: {file_id}. Share the file with the service account.",
                    status_code=403,
                ) from e
            raise DriveError(f"Template download failed: {e}") from e

        logger.info(f"✅ 템플릿 다운로드 완료: {dest} ({dest.stat().st_size} bytes)")
        return dest

    def verify_folder(self, folder_id: str) -> Dict[str, Any]:
        """업로드 대상 폴더가 존재하고 접근 가능한지 확인합니다."""
        try:
            folder = self.service.files().get(
                fileId=folder_id,
                fields="id, name, mimeType",
                supportsAllDrives=True,
            ).execute()
        except HttpError as e:
            code = _http_status(e)
            if code == 404:
                raise DriveError(
                    f"Folder not found: {folder_id}. Check that the folder ID is correct "
                    f"and that the folder is shared with the service account.",
                    status_code=404,
                ) from e
            if code == 403:
                raise DriveError(
                    f"Access denied to folder: {folder_id}. Share the folder with the service account email.",
                    status_code=403,
                ) from e
            raise DriveError(f"Folder lookup failed: {e}") from e

        if folder.get("mimeType") != FOLDER_MIME_TYPE:
            raise DriveError(f"Not a folder: {folder_id} ({folder.get('mimeType')})", status_code=400)

        logger.info(f"✅ 폴더 확인: {folder.get('name')} ({folder_id})")
        return folder

    def upload_pdf(self, path: Path, name: str, folder_id: Optional[str] = None) -> Dict[str, Any]:
        """PDF를 업로드하고 id, name, parents, webViewLink 등을 반환합니다."""
        if folder_id:
            self.verify_folder(folder_id)

        metadata: Dict[str, Any] = {"name": name}
        if folder_id:
            metadata["parents"] = [folder_id]

        media = MediaFileUpload(str(path), mimetype="application/pdf", resumable=False)
        logger.info(f"📤 Drive 업로드: {name} (folder={folder_id or '-'})")
        try:
            uploaded = self.service.files().create(
                body=metadata,
                media_body=media,
                fields=UPLOAD_FIELDS,
                supportsAllDrives=True,
            ).execute()
        except HttpError as e:
            raise DriveError(f"Upload failed: {e}", status_code=_http_status(e) or 502) from e

        logger.info(f"✅ 업로드 완료: {uploaded.get('id')}")
        return uploaded


def get_drive_service() -> DriveService:
    """요청마다 새 클라이언트 (공유 상태 없음)"""
    return DriveService()
