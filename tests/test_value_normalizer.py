import json

from app.services.value_normalizer import (
    choice_matches,
    is_empty,
    load_alias_table,
    normalize_key,
    parse_bool,
    split_multi,
    to_text,
)


def test_normalize_key_folds_width_case_and_separators():
    assert normalize_key("Customer_ID") == "customerid"
    assert normalize_key("ＣＵＳＴＯＭＥＲ－ＩＤ") == "customerid"
    assert normalize_key("Applicant Last・Kanji") == "applicantlastkanji"
    assert normalize_key("form1[0].Name[0]") == "form1name"


def test_normalize_key_drops_trailing_note():
    assert normalize_key("氏名（必須）") == "氏名"
    assert normalize_key("Email (required)") == "email"


def test_parse_bool_japanese_and_english():
    for v in ("yes", "YES", "on", "true", "1", "はい", "✓", "〇", True, 1):
        assert parse_bool(v) is True, v
    for v in ("no", "Off", "false", "0", "いいえ", "なし", False, 0):
        assert parse_bool(v) is False, v
    assert parse_bool("maybe") is None
    assert parse_bool(None) is None
    assert parse_bool(2) is None


def test_split_multi():
    assert split_multi("アジア、ヨーロッパ") == ["アジア", "ヨーロッパ"]
    assert split_multi("Asia, Europe;Oceania") == ["Asia", "Europe", "Oceania"]
    assert split_multi(["Asia", "", None, "Europe"]) == ["Asia", "Europe"]
    assert split_multi("") == []
    assert split_multi(None) == []


def test_choice_matches_across_languages():
    assert choice_matches("Asia", "アジア")
    assert choice_matches("ヨーロッパ", "europe")
    assert choice_matches("North America", "北米")
    assert choice_matches("Latin America", "中南米")
    assert choice_matches("その他", "Other")
    assert not choice_matches("Asia", "ヨーロッパ")


def test_choice_matches_yes_no_states():
    assert choice_matches("Yes", "はい")
    assert choice_matches("No", "いいえ")
    assert not choice_matches("Yes", "いいえ")
    assert not choice_matches("", "yes")


def test_is_empty():
    assert is_empty(None)
    assert is_empty("  ")
    assert is_empty([])
    assert is_empty(["", None])
    assert not is_empty(0)
    assert not is_empty(False)
    assert not is_empty("x")


def test_to_text():
    assert to_text(1.0) == "1"
    assert to_text(2.5) == "2.5"
    assert to_text(True) == "はい"
    assert to_text(["アジア", "", "ヨーロッパ"]) == "アジア、ヨーロッパ"
    assert to_text(None) == ""


def test_load_alias_table_accepts_single_string():
    raw = json.loads('{"CustomerID": "お客様番号", "ApplyDate": ["申込日", "申請日"]}')
    assert load_alias_table(raw) == {
        "CustomerID": ["お客様番号"],
        "ApplyDate": ["申込日", "申請日"],
    }
