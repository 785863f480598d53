# PDF Filler Services
from app.services.pdf_filler_service import fill_pdf, fill_from_drive
from app.services.pdf_field_service import list_fields, describe_from_drive
from app.services.field_resolver import resolve, prepare_answers

__all__ = [
    "fill_pdf",
    "fill_from_drive",
    "list_fields",
    "describe_from_drive",
    "resolve",
    "prepare_answers",
]
