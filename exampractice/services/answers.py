"""
Canonical answer tokens and the free-form label normalizers used by imports.

A canonical token is uppercase letters, comma separated, no whitespace,
de-duplicated and sorted: ``" c ; a "`` -> ``"A,C"``. Correctness is plain
string equality between two canonical tokens.
"""
import re
from typing import Any, Optional

DIFFICULTIES = ("easy", "medium", "hard")
QTYPES = ("single", "multi", "truefalse")

_DIFFICULTY_SYNONYMS = {
    "de": "easy", "dễ": "easy",
    "vua": "medium", "vừa": "medium", "trungbinh": "medium", "trung_binh": "medium", "tb": "medium",
    "kho": "hard", "khó": "hard",
}
_QTYPE_SYNONYMS = {
    "one": "single", "singlechoice": "single", "single_choice": "single",
    "multiple": "multi", "multichoice": "multi", "multi_choice": "multi",
    "tf": "truefalse", "true_false": "truefalse",
}
_WS = re.compile(r"\s+")


def normalize_answer(value: Any) -> str:
    s = _WS.sub("", str(value if value is not None else "")).upper().replace(";", ",")
    parts = sorted({p for p in s.split(",") if p})
    return ",".join(parts)


def answer_letters(value: Any) -> list:
    token = normalize_answer(value)
    return token.split(",") if token else []


def toggle_choice(current: Any, choice: str) -> str:
    """Add ``choice`` to a multi-answer token, or remove it if already there."""
    letters = answer_letters(current)
    choice = normalize_answer(choice)
    if choice in letters:
        letters.remove(choice)
    elif choice:
        letters.append(choice)
    return ",".join(sorted(letters))


def is_correct(selected: Any, correct: Any) -> bool:
    chosen = normalize_answer(selected)
    return bool(chosen) and chosen == normalize_answer(correct)


def normalize_difficulty(value: Any) -> str:
    s = str(value if value is not None else "").strip().lower()
    if s in DIFFICULTIES:
        return s
    return _DIFFICULTY_SYNONYMS.get(s, "medium")


def normalize_qtype(value: Any) -> str:
    s = str(value if value is not None else "").strip().lower()
    if s in QTYPES:
        return s
    return _QTYPE_SYNONYMS.get(s, "single")


def clean_text(value: Any) -> Optional[str]:
    s = str(value).strip() if value is not None else ""
    return s or None


OPTION_KEYS = ("A", "B", "C", "D", "E")


def option_list(question: dict) -> list:
    """The options a question actually offers, as ``{"key", "text"}`` pairs."""
    opts = []
    for key in OPTION_KEYS:
        text = question.get(f"option_{key.lower()}")
        if text and str(text).strip():
            opts.append({"key": key, "text": text})
    return opts
