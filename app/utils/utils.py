from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pikepdf
from lxml import etree

logger = logging.getLogger(__name__)

NS = {"xfa": "http://www.xfa.org/schema/xfa-data/1.0/"}

# /Ff 플래그 (PDF 32000-1 12.7.3.1, 12.7.4.2 ~ 12.7.4.4)
FF_READ_ONLY = 1 << 0
FF_MULTILINE = 1 << 12
FF_NO_TOGGLE_TO_OFF = 1 << 14
FF_RADIO = 1 << 15
FF_PUSHBUTTON = 1 << 16
FF_COMBO = 1 << 17
FF_EDIT = 1 << 18
FF_MULTI_SELECT = 1 << 21

_INDEX_SUFFIX = re.compile(r"\[\d+\]$")


@dataclass
class Widget:
	obj: pikepdf.Dictionary
	page: Optional[int]
	rect: Optional[Tuple[float, float, float, float]]
	states: List[str] = field(default_factory=list)


@dataclass
class PdfField:
	"""AcroForm 말단(terminal) 필드 하나"""
	name: str
	partial_name: str
	kind: str
	obj: pikepdf.Dictionary
	flags: int = 0
	value: Any = None
	options: List[Tuple[str, str]] = field(default_factory=list)
	widgets: List[Widget] = field(default_factory=list)

	@property
	def read_only(self) -> bool:
		return bool(self.flags & FF_READ_ONLY)

	@property
	def multi_select(self) -> bool:
		return self.kind == "listbox" and bool(self.flags & FF_MULTI_SELECT)

	@property
	def editable(self) -> bool:
		return self.kind == "combo" and bool(self.flags & FF_EDIT)

	@property
	def states(self) -> List[str]:
		"""위젯들의 on 상태 이름 (중복 제거, 문서 순서 유지)"""
		seen: List[str] = []
		for w in self.widgets:
			for s in w.states:
				if s not in seen:
					seen.append(s)
		return seen

	@property
	def terminal_name(self) -> str:
		"""인덱스를 제거한 마지막 이름 조각 (form1[0].Page1[0].Name[0] → Name)"""
		return _INDEX_SUFFIX.sub("", self.partial_name)

# ---------- PDF 객체 변환 ----------

def pdf_text(obj: Any) -> Any:
	"""pikepdf 값을 파이썬 값으로 변환합니다."""
	if obj is None:
		return None
	if isinstance(obj, pikepdf.Name):
		return str(obj)[1:]
	if isinstance(obj, pikepdf.String):
		return str(obj)
	if isinstance(obj, pikepdf.Array):
		return [pdf_text(x) for x in obj]
	return str(obj)

def get_acroform(pdf: pikepdf.Pdf) -> Optional[pikepdf.Dictionary]:
	return pdf.Root.get("/AcroForm", None)

def _field_kind(ft: Optional[str], flags: int) -> str:
	if ft == "/Tx":
		return "text"
	if ft == "/Btn":
		if flags & FF_PUSHBUTTON:
			return "button"
		if flags & FF_RADIO:
			return "radio"
		return "checkbox"
	if ft == "/Ch":
		return "combo" if flags & FF_COMBO else "listbox"
	if ft == "/Sig":
		return "signature"
	return "unknown"

def _widget_states(widget: pikepdf.Dictionary) -> List[str]:
	ap = widget.get("/AP", None)
	if ap is None:
		return []
	normal = ap.get("/N", None)
	if not isinstance(normal, pikepdf.Dictionary):
		return []
	return [str(k)[1:] for k in normal.keys() if str(k) != "/Off"]

def _widget_rect(widget: pikepdf.Dictionary) -> Optional[Tuple[float, float, float, float]]:
	rect = widget.get("/Rect", None)
	if rect is None or len(rect) != 4:
		return None
	x1, y1, x2, y2 = (float(v) for v in rect)
	return (min(x1, x2), min(y1, y2), max(x1, x2), max(y1, y2))

def _parse_options(opt: Any) -> List[Tuple[str, str]]:
	"""/Opt → [(export, display)]"""
	options: List[Tuple[str, str]] = []
	if opt is None:
		return options
	for item in opt:
		if isinstance(item, pikepdf.Array) and len(item) >= 2:
			options.append((str(item[0]), str(item[1])))
		else:
			options.append((str(item), str(item)))
	return options

def _annotation_pages(pdf: pikepdf.Pdf) -> Dict[Tuple[int, int], int]:
	index: Dict[Tuple[int, int], int] = {}
	for page_no, page in enumerate(pdf.pages):
		for annot in page.obj.get("/Annots", []):
			if annot.is_indirect:
				index[annot.objgen] = page_no
	return index

# ---------- 필드 수집 ----------

def collect_fields(pdf: pikepdf.Pdf) -> List[PdfField]:
	"""AcroForm의 말단 필드를 문서 순서대로 수집합니다. (/FT, /Ff, /Opt 상속 처리)"""
	acro = get_acroform(pdf)
	if acro is None or "/Fields" not in acro:
		return []

	pages = _annotation_pages(pdf)
	fields: List[PdfField] = []

	def walk(node: pikepdf.Dictionary, parent_name: str, inherited: Dict[str, Any]):
		partial = str(node.get("/T")) if "/T" in node else ""
		if parent_name and partial:
			name = f"{parent_name}.{partial}"
		else:
			name = partial or parent_name

		attrs = dict(inherited)
		for key in ("/FT", "/Ff", "/Opt", "/V"):
			if key in node:
				attrs[key] = node[key]

		kids = node.get("/Kids", None)
		if kids is not None and any("/T" in kid for kid in kids):
			for kid in kids:
				if "/T" in kid:
					walk(kid, name, attrs)
			return

		widget_objs = list(kids) if kids is not None else [node]
		widgets = [
			Widget(
				obj=w,
				page=pages.get(w.objgen) if w.is_indirect else None,
				rect=_widget_rect(w),
				states=_widget_states(w),
			)
			for w in widget_objs
		]

		ft = attrs.get("/FT")
		flags = int(attrs.get("/Ff", 0))
		fields.append(PdfField(
			name=name,
			partial_name=partial or name,
			kind=_field_kind(str(ft) if ft is not None else None, flags),
			obj=node,
			flags=flags,
			value=pdf_text(attrs.get("/V")),
			options=_parse_options(attrs.get("/Opt")),
			widgets=widgets,
		))

	for top in acro.Fields:
		walk(top, "", {})

	logger.debug(f"AcroForm 필드 수집 완료: {len(fields)}개")
	return fields

# ---------- 값 설정 ----------

def _drop_appearance(f: PdfField) -> None:
	"""값이 바뀐 텍스트/선택 필드의 낡은 외형 스트림 제거 (뷰어가 재생성)"""
	for w in f.widgets:
		if "/AP" in w.obj:
			del w.obj["/AP"]

def set_text_value(f: PdfField, value: str) -> None:
	f.obj["/V"] = pikepdf.String(value)
	_drop_appearance(f)
	f.value = value

def set_checkbox_value(f: PdfField, checked: bool) -> None:
	on_state = None
	for w in f.widgets:
		state = (w.states[0] if w.states else "Yes") if checked else "Off"
		w.obj["/AS"] = pikepdf.Name("/" + state)
		if checked and on_state is None:
			on_state = state
	f.obj["/V"] = pikepdf.Name("/" + (on_state or "Off"))
	f.value = on_state or "Off"

def set_radio_value(f: PdfField, state: str) -> None:
	for w in f.widgets:
		w.obj["/AS"] = pikepdf.Name("/" + state if state in w.states else "/Off")
	f.obj["/V"] = pikepdf.Name("/" + state)
	f.value = state

def set_choice_value(f: PdfField, values: List[str]) -> None:
	if f.multi_select and len(values) > 1:
		f.obj["/V"] = pikepdf.Array([pikepdf.String(v) for v in values])
	else:
		f.obj["/V"] = pikepdf.String(values[0] if values else "")

	exports = [export for export, _ in f.options]
	indices = sorted(exports.index(v) for v in values if v in exports)
	if indices:
		f.obj["/I"] = pikepdf.Array(indices)
	elif "/I" in f.obj:
		del f.obj["/I"]

	_drop_appearance(f)
	f.value = values if f.multi_select else (values[0] if values else "")

def set_need_appearances(pdf: pikepdf.Pdf, value: bool = True) -> None:
	"""뷰어가 외형을 재생성하도록 힌트"""
	acro = get_acroform(pdf)
	if acro is not None:
		acro["/NeedAppearances"] = value

def remove_widgets(pdf: pikepdf.Pdf, widgets: Iterable[Widget]) -> int:
	"""지정한 위젯 주석을 페이지 /Annots에서 제거합니다."""
	targets = {w.obj.objgen for w in widgets if w.obj.is_indirect}
	removed = 0
	for page in pdf.pages:
		annots = page.obj.get("/Annots", None)
		if annots is None:
			continue
		kept = [a for a in annots if not (a.is_indirect and a.objgen in targets)]
		removed += len(annots) - len(kept)
		if len(kept) != len(annots):
			page.obj["/Annots"] = pikepdf.Array(kept)
	return removed

def remove_acroform(pdf: pikepdf.Pdf) -> None:
	if "/AcroForm" in pdf.Root:
		del pdf.Root["/AcroForm"]

# ---------- XFA (하이브리드 폼) ----------

def has_xfa(pdf: pikepdf.Pdf) -> bool:
	acro = get_acroform(pdf)
	return acro is not None and "/XFA" in acro

def strip_xfa(pdf: pikepdf.Pdf) -> bool:
	"""/XFA 엔트리를 제거해 뷰어가 AcroForm 값을 사용하도록 합니다."""
	acro = get_acroform(pdf)
	if acro is None or "/XFA" not in acro:
		return False
	del acro["/XFA"]
	return True

def read_datasets(pdf: pikepdf.Pdf) -> Optional[bytes]:
	"""XFA datasets XML을 추출합니다. 없으면 None."""
	acro = get_acroform(pdf)
	if acro is None or "/XFA" not in acro:
		return None
	xfa = acro["/XFA"]
	if isinstance(xfa, pikepdf.Array):
		for i in range(0, len(xfa) - 1, 2):
			if str(xfa[i]).lower() == "datasets":
				return bytes(xfa[i + 1].read_bytes())
		return None
	if isinstance(xfa, pikepdf.Stream):
		return bytes(xfa.read_bytes())
	return None

def write_datasets(pdf: pikepdf.Pdf, datasets_xml: bytes) -> None:
	"""XFA datasets 패킷을 교체합니다."""
	acro = get_acroform(pdf)
	if acro is None or "/XFA" not in acro:
		raise RuntimeError("XFA 엔트리를 찾지 못했습니다.")
	xfa = acro["/XFA"]

	new_stream = pikepdf.Stream(pdf, datasets_xml)
	new_stream["/Subtype"] = pikepdf.Name("/XML")
	if isinstance(xfa, pikepdf.Array):
		for i in range(0, len(xfa) - 1, 2):
			if str(xfa[i]).lower() == "datasets":
				xfa[i + 1] = new_stream
				return
		raise RuntimeError("XFA 배열에서 'datasets' 패킷을 찾지 못했습니다.")
	acro["/XFA"] = new_stream

def strip_ns(tag: str) -> str:
	"""XML 태그에서 네임스페이스를 제거합니다."""
	return tag.split("}", 1)[1] if "}" in tag else tag

def parse_xml(xml_bytes: bytes) -> etree._Element:
	parser = etree.XMLParser(remove_blank_text=True)
	return etree.fromstring(xml_bytes, parser=parser)

def serialize_xml(root: etree._Element) -> bytes:
	return etree.tostring(root, encoding="utf-8", xml_declaration=False, pretty_print=False)

def find_data_node(root: etree._Element) -> etree._Element:
	"""datasets 루트에서 xfa:data 아래 베이스 폼 노드를 찾습니다."""
	data_hits = root.xpath(".//xfa:data", namespaces=NS)
	if data_hits and len(data_hits[0]):
		return data_hits[0][0]
	return root

def sync_datasets(pdf: pikepdf.Pdf, values: Dict[str, str]) -> int:
	"""필드 이름(인덱스 제거한 말단 이름) 기준으로 datasets의 leaf 노드 값을 맞춥니다.

	Args:
		pdf: 열린 PDF
		values: {말단 필드 이름: 값}

	Returns:
		갱신한 노드 수
	"""
	xml = read_datasets(pdf)
	if xml is None:
		return 0

	root = parse_xml(xml)
	base = find_data_node(root)
	updated = 0
	for el in base.iter():
		if not isinstance(el.tag, str):
			continue
		# leaf 노드만 (자식 element 없음)
		if any(isinstance(c.tag, str) for c in el):
			continue
		name = strip_ns(el.tag)
		if name in values:
			el.text = values[name]
			updated += 1

	if updated:
		write_datasets(pdf, serialize_xml(root))
	else:
		logger.warning("XFA datasets에서 일치하는 노드를 찾지 못했습니다.")
	return updated
