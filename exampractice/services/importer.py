"""
Bulk question import from CSV.

Either every row of the file lands in one insert or nothing is written:
parse errors, missing columns and rows without question text or correct
answer all abort before the backend is touched.
"""
import csv
import io
import logging
from typing import Dict, List, Optional, Tuple

from exampractice.core.auth import STAFF_ROLES
from exampractice.core.backend import SqlBackend
from exampractice.core.errors import BackendError, PermissionDenied, ValidationFailed
from exampractice.services.answers import clean_text, normalize_answer, normalize_difficulty, normalize_qtype

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("question_text", "correct_answer")
OPTION_COLUMNS = ("option_a", "option_b", "option_c", "option_d", "option_e")
TEMPLATE_HEADER = ",".join(("question_text",) + OPTION_COLUMNS + ("correct_answer", "explanation", "difficulty", "qtype", "image_url"))


class CsvParseError(ValidationFailed):
    def __init__(self, row: int, message: str):
        super().__init__(f"CSV parse error (row {row}): {message}")
        self.row = row


def _sniff_delimiter(text: str) -> str:
    header = text.split("\n", 1)[0]
    try:
        return csv.Sniffer().sniff(header, delimiters=",;\t").delimiter
    except csv.Error:
        return ","


def parse_csv(text: str) -> Tuple[List[Dict[str, str]], List[str]]:
    """Header-keyed rows with trimmed names and values; blank lines are skipped."""
    reader = csv.reader(io.StringIO(text), delimiter=_sniff_delimiter(text), strict=True)
    header: Optional[List[str]] = None
    rows: List[Dict[str, str]] = []
    try:
        for record in reader:
            # only blank lines are skipped; a row of empty cells is a bad row
            if not record or (len(record) == 1 and not record[0].strip()):
                continue
            if header is None:
                header = [h.replace("\ufeff", "", 1).strip() if i == 0 else h.strip() for i, h in enumerate(record)]
                continue
            if len(record) != len(header):
                raise CsvParseError(reader.line_num, f"expected {len(header)} fields but parsed {len(record)}")
            rows.append({h: cell.strip() for h, cell in zip(header, record)})
    except csv.Error as e:
        raise CsvParseError(reader.line_num, str(e)) from e
    return rows, header or []


def build_question_row(row: Dict[str, str], subject_id: str, topic_id: Optional[str]) -> Dict[str, Optional[str]]:
    out = {
        "subject_id": subject_id,
        "topic_id": topic_id or None,
        "question_text": clean_text(row.get("question_text")) or "",
        "correct_answer": normalize_answer(row.get("correct_answer")),
        "explanation": clean_text(row.get("explanation")),
        "difficulty": normalize_difficulty(row.get("difficulty")),
        "qtype": normalize_qtype(row.get("qtype")),
        "image_url": clean_text(row.get("image_url")),
    }
    for col in OPTION_COLUMNS:
        out[col] = clean_text(row.get(col))
    return out


def import_questions(backend: SqlBackend, csv_text: str, subject_id: Optional[str], topic_id: Optional[str], role: str) -> int:
    if role not in STAFF_ROLES:
        raise PermissionDenied("Importing questions requires the teacher or admin role")
    if not subject_id:
        raise ValidationFailed("Choose a subject before importing")

    rows, header = parse_csv(csv_text)
    if not rows:
        raise ValidationFailed("CSV has no data rows")
    missing = [c for c in REQUIRED_COLUMNS if c not in header]
    if missing:
        raise ValidationFailed(f"CSV is missing required columns: {', '.join(missing)}")

    payload = [build_question_row(r, subject_id, topic_id) for r in rows]
    bad = [i for i, p in enumerate(payload) if not p["question_text"] or not p["correct_answer"]]
    if bad:
        raise ValidationFailed(
            f"{len(bad)} row(s) lack question_text or correct_answer; first at data row #{bad[0] + 2} (counting the header)"
        )

    try:
        backend.insert("questions", payload)
    except BackendError as e:
        raise BackendError(f"Import failed: {e.message}") from e
    logger.info(f"Imported {len(payload)} questions into subject {subject_id}")
    return len(payload)
