from __future__ import annotations
import re
import unicodedata
from typing import Any, Dict, FrozenSet, List, Optional

# ---------- 불리언 표현 ----------

TRUTHY = frozenset({
    "true", "yes", "y", "on", "1", "x", "✓", "✔", "checked", "selected",
    "はい", "有", "あり", "有り", "該当", "同意", "〇", "○", "◯",
})

FALSY = frozenset({
    "false", "no", "n", "off", "0", "いいえ", "無", "なし", "無し",
    "非該当", "不同意", "×",
})

# ---------- 선택지 동의어 (언어 간) ----------
# 같은 그룹에 속한 값은 같은 선택지로 취급

SYNONYM_GROUPS: List[FrozenSet[str]] = [
    frozenset({"asia", "アジア", "亜細亜"}),
    frozenset({"europe", "ヨーロッパ", "欧州"}),
    frozenset({"oceania", "オセアニア", "大洋州"}),
    frozenset({"northamerica", "北米", "北アメリカ"}),
    frozenset({"latinamerica", "centralandsouthamerica", "southamerica", "中南米", "南米"}),
    frozenset({"africa", "アフリカ"}),
    frozenset({"middleeast", "中東"}),
    frozenset({"other", "others", "その他", "そのほか"}),
    frozenset({"mobile", "cell", "cellphone", "携帯", "携帯電話"}),
    frozenset({"home", "homephone", "自宅", "自宅電話"}),
    frozenset({"male", "m", "男", "男性"}),
    frozenset({"female", "f", "女", "女性"}),
]

_BRACKET_INDEX = re.compile(r"\[\d+\]")
_TRAILING_NOTE = re.compile(r"\s*[(（][^()（）]*[)）]\s*$")
_SEPARATORS = re.compile(r"[\s_\-./・:：]+")
_MULTI_SPLIT = re.compile(r"[,、，;；|\n]+")


def normalize_text(value: Any) -> str:
    """NFKC 정규화 + 소문자 + 앞뒤 공백 제거"""
    if value is None:
        return ""
    return unicodedata.normalize("NFKC", str(value)).strip().lower()


def normalize_key(text: Any) -> str:
    """필드 이름/키 비교용 정규화.

    - 전각 → 반각 (NFKC), 소문자
    - 배열 인덱스 제거: ``Name[0]`` → ``name``
    - 끝의 괄호 메모 제거: ``氏名（必須）`` → ``氏名``
    - 구분자 제거: 공백, ``_``, ``-``, ``.``, ``・``, ``/``, ``:``
    """
    s = normalize_text(text)
    s = _BRACKET_INDEX.sub("", s)
    s = _TRAILING_NOTE.sub("", s)
    return _SEPARATORS.sub("", s)


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set)):
        return all(is_empty(v) for v in value)
    return False


def parse_bool(value: Any) -> Optional[bool]:
    """yes/no/true/false/on/off/はい/いいえ 등을 bool로 변환. 판단 불가면 None."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    s = normalize_text(value)
    if s in TRUTHY:
        return True
    if s in FALSY:
        return False
    return None


def split_multi(value: Any) -> List[str]:
    """다중 선택 값을 리스트로 분해합니다. ("アジア、ヨーロッパ" → ["アジア", "ヨーロッパ"])"""
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        items = [str(v) for v in value if not is_empty(v)]
    else:
        items = _MULTI_SPLIT.split(str(value))
    return [item.strip() for item in items if item and item.strip()]


def _synonym_group(token: str) -> Optional[FrozenSet[str]]:
    for group in SYNONYM_GROUPS:
        if token in group:
            return group
    return None


def choice_matches(option: Any, value: Any) -> bool:
    """선택지(option)와 입력값(value)이 같은 선택을 의미하는지 판단합니다."""
    a = normalize_key(option)
    b = normalize_key(value)
    if not a or not b:
        return False
    if a == b:
        return True

    group = _synonym_group(a)
    if group is not None and b in group:
        return True

    bool_a = parse_bool(a)
    bool_b = parse_bool(value)
    return bool_a is not None and bool_b is not None and bool_a == bool_b


def to_text(value: Any) -> str:
    """텍스트 필드용 문자열 변환 (1.0 → "1", 리스트는 "、"로 연결)"""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "はい" if value else "いいえ"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return "、".join(to_text(v) for v in value if not is_empty(v))
    return str(value)


def load_alias_table(raw: Dict[str, Any]) -> Dict[str, List[str]]:
    """{canonical: alias | [aliases]} 형태를 {canonical: [aliases]}로 정리합니다."""
    table: Dict[str, List[str]] = {}
    for canonical, aliases in (raw or {}).items():
        if isinstance(aliases, str):
            aliases = [aliases]
        table[str(canonical)] = [str(a) for a in aliases or []]
    return table
