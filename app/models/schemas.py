"""API 요청/응답 스키마"""
from pydantic import BaseModel, Field, model_validator
from typing import Dict, Any, List, Optional


class FillRequest(BaseModel):
    """PDF 채우기 요청 모델

    두 가지 형식을 모두 받습니다.
    - ``{templateFileId, outputName, folderId, fields}``
    - ``{templateId, output: {name, folderId}, fields}``
    """
    templateFileId: str = Field(..., min_length=1)
    fields: Dict[str, Any]
    outputName: Optional[str] = None
    folderId: Optional[str] = None
    mode: Optional[str] = None
    watermarkText: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "templateFileId": "1AbCdEfGhIjKlMnOpQrStUvWxYz",
                "fields": {
                    "CustomerID": "C-0001",
                    "ApplicantLastKanji": "山田",
                    "Q1_TreatmentNow": "いいえ",
                    "Q5_DestinationRegion": "アジア、ヨーロッパ",
                    "SameAsTraveler": "on"
                },
                "outputName": "application_C-0001.pdf",
                "folderId": "0BxYzFolderId",
                "mode": "fill",
                "watermarkText": "DRAFT"
            }
        }

    @model_validator(mode="before")
    @classmethod
    def _accept_template_id_format(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if not data.get("templateFileId") and data.get("templateId"):
            data = dict(data)
            data["templateFileId"] = data["templateId"]
            output = data.get("output") or {}
            if isinstance(output, dict):
                data.setdefault("outputName", output.get("name"))
                data.setdefault("folderId", output.get("folderId"))
        return data


class FillResponse(BaseModel):
    ok: bool = True
    filledCount: int
    driveFile: Dict[str, Any]
    webViewLink: Optional[str] = None
    file: Dict[str, Any]
    skipped: Dict[str, str] = {}
    unmatchedKeys: List[str] = []


class FieldInfo(BaseModel):
    name: str
    partialName: str
    type: str
    value: Any = None
    options: List[str] = []
    states: List[str] = []
    readOnly: bool = False
    multiSelect: bool = False
    page: Optional[int] = None


class FieldsResponse(BaseModel):
    ok: bool = True
    fileId: str
    count: int
    fields: List[FieldInfo]


class HealthResponse(BaseModel):
    ok: bool = True
    fontPath: str
    fontAvailable: bool
    outputFolder: str
    driveConfigured: bool
    defaultMode: str
    xfaMode: str
