"""입력 키/값을 PDF 폼 필드에 매칭하고, 필드 종류별로 값을 결정합니다.

입력 JSON의 키는 대소문자, 언어(영어/일본어), 전각/반각, 구분자가 제각각입니다.
각 PDF 필드에 대해 아래 규칙을 우선순위대로 시도하고, 처음 맞는 규칙에서 멈춥니다.
따라서 하나의 필드에는 최대 하나의 값만 배정됩니다.

1. exact              필드 전체 이름 == 키
2. partial            말단 이름 (form1[0].Page1[0].Name[0] → Name) == 키
3. normalized         normalize_key 결과가 같음
4. alias              별칭 테이블을 거쳐 정규 키에 도달
5. group_option       필드 이름이 <그룹><구분자><선택지> 형태 (Q1_TreatmentNow_はい, Region_Asia)
6. numbered_duplicate 같은 값을 두 번 찍는 사본 필드 (Name_2, Name.1, Name#3)
"""
from __future__ import annotations
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from app.services.value_normalizer import (
    choice_matches,
    is_empty,
    load_alias_table,
    normalize_key,
    normalize_text,
    parse_bool,
    split_multi,
    to_text,
)
from app.utils.utils import PdfField

logger = logging.getLogger(__name__)

# 기본 별칭: {정규 키: [별칭...]}
DEFAULT_ALIASES: Dict[str, List[str]] = {
    "CoverageStart": ["StartDate", "Start", "保険開始日", "開始日"],
    "CoverageEnd": ["EndDate", "End", "保険終了日", "終了日"],
    "Q5_DestinationRegion": ["DestRegion", "DestinationRegion", "Region", "旅行先"],
    "ApplyDate": ["ApplicationDate", "申込日"],
    "CustomerID": ["CustomerId", "お客様ID"],
    "SameAsTraveler": ["SamePerson", "同一人物"],
}

HIDDEN_SUFFIX = "Hidden"

# <그룹><구분자><선택지>
_GROUP_SEPARATORS = "_-. "
# 사본 필드: Name_2, Name.1, Name#3, Name 2
_NUMBERED = re.compile(r"^(?P<base>.+?)[_.# ](?P<num>\d+)$")


@dataclass
class FieldAssignment:
    field_name: str
    kind: str
    value: Any
    source_key: str
    rule: str


@dataclass
class Resolution:
    assignments: List[FieldAssignment] = field(default_factory=list)
    skipped: Dict[str, str] = field(default_factory=dict)
    unmatched_keys: List[str] = field(default_factory=list)


def load_aliases(path: Optional[str]) -> Dict[str, List[str]]:
    """기본 별칭 + 설정 파일(JSON) 별칭을 합칩니다. 파일이 없으면 기본값만 사용."""
    table = {k: list(v) for k, v in DEFAULT_ALIASES.items()}
    if not path:
        return table

    alias_path = Path(path)
    if not alias_path.exists():
        logger.warning(f"별칭 파일을 찾을 수 없음: {alias_path}")
        return table

    with open(alias_path, "r", encoding="utf-8") as f:
        extra = load_alias_table(json.load(f))
    for canonical, aliases in extra.items():
        merged = table.setdefault(canonical, [])
        merged.extend(a for a in aliases if a not in merged)
    logger.info(f"별칭 파일 로드: {alias_path} ({len(extra)}개 항목)")
    return table


def hidden_base(key: str) -> Optional[str]:
    """``<Key>Hidden`` 형태면 ``<Key>`` 반환"""
    if key.endswith(HIDDEN_SUFFIX) and len(key) > len(HIDDEN_SUFFIX):
        return key[:-len(HIDDEN_SUFFIX)]
    return None


def prepare_answers(
    answers: Dict[str, Any],
    aliases: Optional[Dict[str, List[str]]] = None,
    field_names: Optional[Iterable[str]] = None
) -> Dict[str, Any]:
    """입력값 전처리.

    - ``<Key>Hidden`` 이 비어 있지 않으면 ``<Key>`` 값을 덮어씀
      (화면에서 disabled/readonly 였던 값을 hidden 으로 미러링해 보내는 경우).
      ``<Key>`` 가 입력에 있거나 폼 필드 이름(field_names)에 있을 때만 적용
    - 별칭으로 들어온 값은 정규 키에도 복사 (정규 키에 명시된 값이 있으면 유지)
    """
    prepared = dict(answers or {})
    known = {normalize_key(name) for name in field_names or []}

    for key, value in list(prepared.items()):
        base = hidden_base(key)
        if base is None or is_empty(value):
            continue
        if base in prepared or normalize_key(base) in known:
            prepared[base] = value

    for canonical, alias_list in (aliases or {}).items():
        if not is_empty(prepared.get(canonical)):
            continue
        for alias in alias_list:
            if not is_empty(prepared.get(alias)):
                prepared[canonical] = prepared[alias]
                break

    return prepared


class _AnswerIndex:
    """키 검색용 인덱스 (원본 키 / 정규화 키)"""

    def __init__(self, answers: Dict[str, Any], aliases: Dict[str, List[str]]):
        self.answers = answers
        self.normalized: Dict[str, str] = {}
        for key in answers:
            # 먼저 들어온 키 우선
            self.normalized.setdefault(normalize_key(key), key)

        self.alias_to_canonical: Dict[str, str] = {}
        for canonical, alias_list in aliases.items():
            for alias in [canonical] + alias_list:
                self.alias_to_canonical.setdefault(normalize_key(alias), canonical)

    def exact(self, name: str) -> Optional[str]:
        return name if name in self.answers else None

    def normalized_key(self, name: str) -> Optional[str]:
        return self.normalized.get(normalize_key(name))

    def alias(self, name: str) -> Optional[str]:
        """필드 이름이 어떤 정규 키(또는 그 별칭)와 같으면, 값이 있는 키를 돌려줍니다."""
        canonical = self.alias_to_canonical.get(normalize_key(name))
        if canonical is None:
            return None
        candidates = [canonical] + self._aliases_of(canonical)
        for cand in candidates:
            hit = self.exact(cand) or self.normalized_key(cand)
            if hit is not None:
                return hit
        return None

    def _aliases_of(self, canonical: str) -> List[str]:
        return [a for a, c in self.alias_to_canonical.items() if c == canonical]

    def lookup(self, name: str) -> Optional[str]:
        return self.exact(name) or self.normalized_key(name) or self.alias(name)


def _group_splits(name: str) -> Iterable[Tuple[str, str]]:
    """(그룹, 선택지) 후보를 오른쪽 구분자부터 생성.

    Region_North America → ("Region_North", "America"), ("Region", "North America")
    """
    for i in range(len(name) - 2, 0, -1):
        if name[i] in _GROUP_SEPARATORS:
            group, option = name[:i], name[i + 1:]
            if group.strip(_GROUP_SEPARATORS) and option.strip(_GROUP_SEPARATORS):
                yield group, option


def _names_number(option: str, value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return to_text(value) == option
    return any(normalize_key(item) == option for item in split_multi(value))


def _find_key(f: PdfField, index: _AnswerIndex) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """(매칭된 키, 규칙 이름, 선택지) 반환. 선택지는 group_option 규칙에서만 채워짐."""
    if index.exact(f.name):
        return f.name, "exact", None
    if f.partial_name != f.name:
        for cand in (f.partial_name, f.terminal_name):
            if index.exact(cand):
                return cand, "partial", None

    for cand in (f.name, f.terminal_name):
        key = index.normalized_key(cand)
        if key is not None:
            return key, "normalized", None

    for cand in (f.name, f.terminal_name):
        key = index.alias(cand)
        if key is not None:
            return key, "alias", None

    if f.kind in ("checkbox", "radio"):
        for group, option in _group_splits(f.terminal_name):
            key = index.lookup(group)
            if key is None:
                continue
            # 숫자 선택지는 값이 그 숫자를 가리킬 때만. 아니면 사본 필드(Name_2)로 보고 아래 규칙에 넘김
            if option.isdigit() and not _names_number(option, index.answers[key]):
                break
            return key, "group_option", option

    m = _NUMBERED.match(f.terminal_name)
    if m:
        key = index.lookup(m.group("base"))
        if key is not None:
            return key, "numbered_duplicate", None

    return None, None, None


# ---------- 필드 종류별 값 결정 ----------

def select_state(states: List[str], value: Any, options: Optional[List[Tuple[str, str]]] = None) -> Optional[str]:
    """라디오/체크박스 그룹에서 값에 해당하는 on 상태를 고릅니다."""
    if not states:
        return None
    raw = to_text(value).strip()

    if raw in states:
        return raw
    for s in states:
        if normalize_text(s) == normalize_text(raw):
            return s

    # /Opt 가 있으면 상태 이름은 인덱스("0", "1", ...)이고 표시값은 /Opt 에 있음
    if options:
        for i, (export, display) in enumerate(options):
            if choice_matches(export, raw) or choice_matches(display, raw):
                if str(i) in states:
                    return str(i)
                if export in states:
                    return export

    for s in states:
        if choice_matches(s, raw):
            return s

    # 1부터 시작하는 번호
    if raw.isdigit():
        idx = int(raw)
        if 1 <= idx <= len(states):
            return states[idx - 1]

    # 두 상태짜리 그룹(예/아니오)은 순서로 판단
    as_bool = parse_bool(value)
    if as_bool is not None and len(states) == 2:
        return states[0] if as_bool else states[1]

    return None


def select_options(options: List[Tuple[str, str]], value: Any, multi: bool) -> List[str]:
    """드롭다운/리스트박스 선택값(export 값) 목록"""
    wanted = split_multi(value) if multi else [to_text(value).strip()]
    selected: List[str] = []
    for item in wanted:
        hit = None
        for export, display in options:
            if item == export or item == display:
                hit = export
                break
        if hit is None:
            for export, display in options:
                if choice_matches(export, item) or choice_matches(display, item):
                    hit = export
                    break
        if hit is None and item.isdigit() and 1 <= int(item) <= len(options):
            hit = options[int(item) - 1][0]
        if hit is not None and hit not in selected:
            selected.append(hit)
    return selected


def _group_checked(option: str, value: Any) -> bool:
    """그룹 선택지 체크박스: 단일 값 또는 다중 선택 중 하나라도 일치하면 체크"""
    if isinstance(value, bool):
        return choice_matches(option, value)
    return any(choice_matches(option, item) for item in split_multi(value))


def _coerce(f: PdfField, value: Any, option: Optional[str]) -> Tuple[Any, Optional[str]]:
    """(결정된 값, 건너뛴 이유) 반환"""
    if f.kind == "text":
        return to_text(value), None

    if f.kind == "checkbox":
        if option is not None:
            return _group_checked(option, value), None
        if len(f.states) > 1:
            # 위젯마다 export 값이 다른 체크박스 = 사실상 라디오
            state = select_state(f.states, value)
            if state is None:
                return None, f"no state matches {to_text(value)!r} (states={f.states})"
            return state, None
        as_bool = parse_bool(value)
        if as_bool is None:
            # on 상태 이름 자체가 들어온 경우 (예: "Asia")
            as_bool = any(choice_matches(s, value) for s in f.states)
        return as_bool, None

    if f.kind == "radio":
        if option is not None:
            # 그룹 선택지 이름이 라디오 필드에 붙은 경우: 일치할 때만 그 상태 선택
            if not _group_checked(option, value):
                return None, "group option not selected"
            state = f.states[0] if f.states else None
        else:
            state = select_state(f.states, value, f.options)
        if state is None:
            return None, f"no state matches {to_text(value)!r} (states={f.states})"
        return state, None

    if f.kind in ("combo", "listbox"):
        selected = select_options(f.options, value, f.multi_select)
        if selected:
            return selected, None
        if f.editable or not f.options:
            return [to_text(value)], None
        return None, f"option not found: {to_text(value)!r}"

    return None, f"unsupported field type: {f.kind}"


def resolve(
    fields: List[PdfField],
    answers: Dict[str, Any],
    aliases: Optional[Dict[str, List[str]]] = None
) -> Resolution:
    """PDF 필드별로 채울 값을 결정합니다."""
    aliases = DEFAULT_ALIASES if aliases is None else aliases
    prepared = prepare_answers(answers, aliases, [n for f in fields for n in (f.name, f.terminal_name)])
    index = _AnswerIndex(prepared, aliases)
    result = Resolution()
    used_keys = set()

    for f in fields:
        if f.kind in ("button", "signature", "unknown"):
            continue

        key, rule, option = _find_key(f, index)
        if key is None:
            continue
        used_keys.add(key)

        value = prepared[key]
        if is_empty(value):
            continue

        if f.read_only:
            result.skipped[f.name] = "read-only field"
            continue

        coerced, reason = _coerce(f, value, option)
        if reason is not None:
            if reason != "group option not selected":
                result.skipped[f.name] = reason
                logger.warning(f"필드 값 결정 실패: {f.name} ({reason})")
            continue

        logger.debug(f"필드 매칭: {f.name} <- {key} [{rule}] = {coerced!r}")
        result.assignments.append(FieldAssignment(
            field_name=f.name,
            kind=f.kind,
            value=coerced,
            source_key=key,
            rule=rule,
        ))

    used = {normalize_key(k) for k in used_keys}
    for key, value in answers.items():
        if key in used_keys or is_empty(value):
            continue
        # 별칭/hidden 미러로 옮겨간 값이 실제로 쓰인 경우만 제외
        canonical = index.alias_to_canonical.get(normalize_key(key))
        if canonical is not None and normalize_key(canonical) in used:
            continue
        base = hidden_base(key)
        if base is not None and normalize_key(base) in used:
            continue
        result.unmatched_keys.append(key)

    return result
