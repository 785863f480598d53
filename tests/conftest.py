from pathlib import Path

import pikepdf
import pytest
from pikepdf import Array, Dictionary, Name, String

from app.core.config import settings
from app.core.middleware import limiter
from app.utils.utils import FF_COMBO, FF_NO_TOGGLE_TO_OFF, FF_RADIO, FF_READ_ONLY

PAGE_SIZE = (595, 842)

XFA_DATASETS = (
    b'<xfa:datasets xmlns:xfa="http://www.xfa.org/schema/xfa-data/1.0/">'
    b"<xfa:data><form1><CustomerID/><ApplicantLastKanji/></form1></xfa:data>"
    b"</xfa:datasets>"
)


def _appearance(pdf, width, height):
    stream = pikepdf.Stream(pdf, b"0 g 1 1 m 5 5 l S")
    stream["/Type"] = Name.XObject
    stream["/Subtype"] = Name.Form
    stream["/BBox"] = Array([0, 0, width, height])
    return pdf.make_indirect(stream)


def _on_off(pdf, on_state):
    return Dictionary(N=Dictionary({
        "/" + on_state: _appearance(pdf, 12, 12),
        "/Off": _appearance(pdf, 12, 12),
    }))


class FormBuilder:
    """테스트용 AcroForm PDF 생성기"""

    def __init__(self, pages=1):
        self.pdf = pikepdf.new()
        for _ in range(pages):
            self.pdf.add_blank_page(page_size=PAGE_SIZE)
        self.fields = Array()
        self.y = 800

    def _next_rect(self, height=18):
        rect = [50, self.y - height, 300, self.y]
        self.y -= height + 6
        return rect

    def _add_annot(self, widget, page=0):
        page_obj = self.pdf.pages[page].obj
        if "/Annots" not in page_obj:
            page_obj["/Annots"] = Array()
        page_obj.Annots.append(widget)

    def _top(self, field, parent):
        if parent is None:
            self.fields.append(field)
        else:
            field["/Parent"] = parent
            parent.Kids.append(field)

    def group(self, name):
        parent = self.pdf.make_indirect(Dictionary(T=String(name), Kids=Array()))
        self.fields.append(parent)
        return parent

    def text(self, name, value=None, flags=0, parent=None, page=0):
        widget = Dictionary(
            Type=Name.Annot, Subtype=Name.Widget, FT=Name.Tx, T=String(name),
            Rect=Array(self._next_rect()), DA=String("/Helv 0 Tf 0 g"), F=4,
        )
        if flags:
            widget["/Ff"] = flags
        if value is not None:
            widget["/V"] = String(value)
        widget = self.pdf.make_indirect(widget)
        self._add_annot(widget, page)
        self._top(widget, parent)
        return widget

    def checkbox(self, name, on_state="Yes", parent=None):
        widget = self.pdf.make_indirect(Dictionary(
            Type=Name.Annot, Subtype=Name.Widget, FT=Name.Btn, T=String(name),
            Rect=Array(self._next_rect(12)), V=Name.Off, AS=Name.Off,
            AP=_on_off(self.pdf, on_state), F=4,
        ))
        self._add_annot(widget)
        self._top(widget, parent)
        return widget

    def radio(self, name, states):
        parent = self.pdf.make_indirect(Dictionary(
            FT=Name.Btn, T=String(name), V=Name.Off,
            Ff=FF_RADIO | FF_NO_TOGGLE_TO_OFF, Kids=Array(),
        ))
        for state in states:
            kid = self.pdf.make_indirect(Dictionary(
                Type=Name.Annot, Subtype=Name.Widget, Parent=parent,
                Rect=Array(self._next_rect(12)), AS=Name.Off,
                AP=_on_off(self.pdf, state), F=4,
            ))
            parent.Kids.append(kid)
            self._add_annot(kid)
        self.fields.append(parent)
        return parent

    def combo(self, name, options, flags=FF_COMBO):
        widget = self.pdf.make_indirect(Dictionary(
            Type=Name.Annot, Subtype=Name.Widget, FT=Name.Ch, T=String(name),
            Rect=Array(self._next_rect()), Ff=flags, V=String(""),
            Opt=Array([Array([String(e), String(d)]) for e, d in options]),
            DA=String("/Helv 0 Tf 0 g"), F=4,
        ))
        self._add_annot(widget)
        self.fields.append(widget)
        return widget

    def xfa(self, datasets=XFA_DATASETS):
        self._xfa = Array([String("datasets"), self.pdf.make_indirect(pikepdf.Stream(self.pdf, datasets))])
        return self

    def save(self, path):
        acro = Dictionary(Fields=self.fields, DA=String("/Helv 0 Tf 0 g"))
        if getattr(self, "_xfa", None) is not None:
            acro["/XFA"] = self._xfa
        self.pdf.Root["/AcroForm"] = self.pdf.make_indirect(acro)
        self.pdf.save(str(path))
        self.pdf.close()
        return Path(path)


def build_application_form(path, with_xfa=False):
    """신청서 형태의 샘플 폼 (영어/일본어 혼합 필드 이름)"""
    b = FormBuilder()
    b.text("CustomerID")
    b.text("CustomerID_2")
    b.text("ApplicantLastKanji")
    b.text("CoverageStart")
    b.text("Office", value="本店", flags=FF_READ_ONLY)
    applicant = b.group("applicant")
    b.text("Email", parent=applicant)
    b.checkbox("SameAsTraveler")
    b.checkbox("Q5_DestinationRegion_Asia")
    b.checkbox("Q5_DestinationRegion_Europe")
    b.checkbox("Q5_DestinationRegion_Oceania")
    b.radio("Q1_TreatmentNow", ["Yes", "No"])
    b.combo("Plan", [("A", "Plan A"), ("B", "Plan B")])
    if with_xfa:
        b.xfa()
    return b.save(path)


@pytest.fixture
def form_pdf(tmp_path):
    return build_application_form(tmp_path / "template.pdf")


@pytest.fixture
def xfa_form_pdf(tmp_path):
    return build_application_form(tmp_path / "template_xfa.pdf", with_xfa=True)


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "tmp_dir", tmp_path / "work")
    monkeypatch.setattr(settings, "api_bearer_token", None)
    monkeypatch.setattr(settings, "field_aliases_path", None)
    monkeypatch.setattr(settings, "default_fill_mode", "fill")
    monkeypatch.setattr(settings, "xfa_mode", "strip")
    monkeypatch.setattr(settings, "font_ttf_path", str(tmp_path / "missing-font.ttf"))
    monkeypatch.setattr(settings, "output_folder_id", None)
    limiter.reset()


@pytest.fixture
def form_builder():
    return FormBuilder
