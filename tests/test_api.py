import shutil

import pikepdf
import pytest
from fastapi.testclient import TestClient

from app.core.app import create_app
from app.core.config import settings
from app.core.exceptions import DriveError
from app.services import pdf_field_service, pdf_filler_service
from app.utils.utils import collect_fields


class FakeDrive:
    def __init__(self, template=None, download_error=None):
        self.template = template
        self.download_error = download_error
        self.uploads = []

    def download_file(self, file_id, dest):
        if self.download_error is not None:
            raise self.download_error
        shutil.copyfile(self.template, dest)
        return dest

    def upload_pdf(self, path, name, folder_id=None):
        with pikepdf.open(path) as pdf:
            values = {f.name: f.value for f in collect_fields(pdf)}
        self.uploads.append({"name": name, "folder": folder_id, "values": values})
        return {
            "id": "uploaded-1",
            "name": name,
            "parents": [folder_id] if folder_id else [],
            "webViewLink": "https://drive.google.com/file/d/uploaded-1/view",
        }


@pytest.fixture
def fake_drive(form_pdf, monkeypatch):
    drive = FakeDrive(template=form_pdf)
    monkeypatch.setattr(pdf_filler_service, "get_drive_service", lambda: drive)
    monkeypatch.setattr(pdf_field_service, "get_drive_service", lambda: drive)
    return drive


@pytest.fixture
def client():
    return TestClient(create_app(), raise_server_exceptions=False)


def test_root_and_health(client):
    assert client.get("/").json()["status"] == "running"

    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["ok"] is True
    assert data["fontAvailable"] is False
    assert data["defaultMode"] == "fill"
    assert data["outputFolder"] == "not set"


def test_fill(client, fake_drive):
    resp = client.post("/fill", json={
        "templateFileId": "tmpl-1",
        "fields": {"CustomerID": "C-0001", "Q1_TreatmentNow": "はい", "Q5_DestinationRegion": "Europe"},
        "outputName": "application_C-0001",
        "folderId": "folder-9",
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["ok"] is True
    assert data["filledCount"] == 6
    assert data["webViewLink"] == "https://drive.google.com/file/d/uploaded-1/view"
    assert data["driveFile"]["id"] == "uploaded-1"
    assert data["driveFile"]["name"] == "application_C-0001.pdf"

    upload = fake_drive.uploads[0]
    assert upload["folder"] == "folder-9"
    assert upload["values"]["CustomerID"] == "C-0001"
    assert upload["values"]["Q1_TreatmentNow"] == "Yes"
    assert upload["values"]["Q5_DestinationRegion_Europe"] == "Yes"
    assert upload["values"]["Q5_DestinationRegion_Asia"] == "Off"


def test_fill_accepts_template_id_format(client, fake_drive, monkeypatch):
    monkeypatch.setattr(settings, "output_folder_id", "default-folder")
    resp = client.post("/fill", json={
        "templateId": "tmpl-1",
        "output": {"name": "out.pdf"},
        "fields": {"customerid": "C-2"},
    })
    assert resp.status_code == 200
    assert resp.json()["driveFile"]["parents"] == ["default-folder"]
    assert fake_drive.uploads[0]["name"] == "out.pdf"
    assert fake_drive.uploads[0]["folder"] == "default-folder"


def test_fill_missing_fields_is_400(client, fake_drive):
    resp = client.post("/fill", json={"templateFileId": "tmpl-1"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing templateFileId or fields"

    resp = client.post("/fill", json={"fields": {"a": "b"}})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing templateFileId or fields"
    assert fake_drive.uploads == []


def test_fill_unknown_mode_is_400(client, fake_drive):
    resp = client.post("/fill", json={"templateFileId": "tmpl-1", "fields": {}, "mode": "stamp"})
    assert resp.status_code == 400
    assert "Unknown mode" in resp.json()["detail"]


def test_drive_error_status_is_kept(client, fake_drive):
    fake_drive.download_error = DriveError("Template not found: nope", status_code=404)
    resp = client.post("/fill", json={"templateFileId": "nope", "fields": {"a": "b"}})
    assert resp.status_code == 404
    assert resp.json() == {"ok": False, "error": "Drive request failed", "detail": "Template not found: nope"}


def test_unexpected_error_is_500(client, fake_drive):
    fake_drive.download_error = RuntimeError("disk full")
    resp = client.post("/fill", json={"templateFileId": "tmpl-1", "fields": {"a": "b"}})
    assert resp.status_code == 500
    assert resp.json()["error"] == "Fill failed"
    assert resp.json()["detail"] == "disk full"


def test_work_dir_is_cleaned_up(client, fake_drive):
    client.post("/fill", json={"templateFileId": "tmpl-1", "fields": {"CustomerID": "x"}})
    fake_drive.download_error = RuntimeError("boom")
    client.post("/fill", json={"templateFileId": "tmpl-1", "fields": {"CustomerID": "x"}})
    assert list(settings.tmp_dir.iterdir()) == []


def test_fields(client, fake_drive):
    resp = client.get("/fields", params={"fileId": "tmpl-1"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["fileId"] == "tmpl-1"
    names = [f["name"] for f in data["fields"]]
    assert data["count"] == len(names)
    assert "applicant.Email" in names
    assert "Q1_TreatmentNow" in names


def test_fields_requires_file_id(client, fake_drive):
    resp = client.get("/fields")
    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing fileId"


def test_bearer_token(client, fake_drive, monkeypatch):
    monkeypatch.setattr(settings, "api_bearer_token", "s3cret")

    resp = client.get("/fields", params={"fileId": "tmpl-1"})
    assert resp.status_code == 401
    assert resp.json()["ok"] is False

    resp = client.get("/fields", params={"fileId": "tmpl-1"}, headers={"Authorization": "Bearer wrong"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "Invalid bearer token"

    resp = client.get("/fields", params={"fileId": "tmpl-1"}, headers={"Authorization": "Bearer s3cret"})
    assert resp.status_code == 200

    assert client.get("/health").status_code == 200


def test_rate_limit(monkeypatch):
    monkeypatch.setattr(settings, "rate_limit", "2/minute")
    client = TestClient(create_app())
    assert client.get("/health").status_code == 200
    assert client.get("/health").status_code == 200
    resp = client.get("/health")
    assert resp.status_code == 429
    assert resp.json()["error"] == "Rate limit exceeded"


def test_rate_limit_applies_to_fill_routes(fake_drive, monkeypatch):
    monkeypatch.setattr(settings, "rate_limit", "1/minute")
    client = TestClient(create_app())
    assert client.get("/fields", params={"fileId": "tmpl-1"}).status_code == 200
    resp = client.get("/fields", params={"fileId": "tmpl-1"})
    assert resp.status_code == 429
    assert resp.json()["ok"] is False

    # 라우트마다 따로 센다
    assert client.post("/fill", json={"templateFileId": "tmpl-1", "fields": {"CustomerID": "x"}}).status_code == 200
    assert client.post("/fill", json={"templateFileId": "tmpl-1", "fields": {"CustomerID": "x"}}).status_code == 429
    assert len(fake_drive.uploads) == 1
