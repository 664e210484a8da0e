import logging
import random
from datetime import datetime, timezone
from typing import Dict, List, Optional

from exampractice.core.backend import SqlBackend
from exampractice.core.cache import cached_exam_questions, remember_exam_questions
from exampractice.core.errors import (
    BackendError, Conflict, InsufficientPoolError, NotFound, PermissionDenied, ValidationFailed,
)
from exampractice.services.answers import normalize_answer

logger = logging.getLogger(__name__)

QUESTION_COLUMNS = (
    "id", "question_text", "option_a", "option_b", "option_c", "option_d", "option_e",
    "correct_answer", "explanation", "difficulty", "qtype", "image_url",
)
EXAM_COLUMNS = (
    "id", "user_id", "subject_id", "topic_id", "total_questions", "duration_seconds",
    "status", "started_at", "submitted_at",
)


def create_exam(backend: SqlBackend, user_id: str, subject_id: Optional[str], topic_id: Optional[str],
                total_questions: Optional[int], duration_seconds: Optional[int],
                rng: Optional[random.Random] = None) -> str:
    if not subject_id or not total_questions or not duration_seconds:
        raise ValidationFailed("Missing fields: subject_id, total_questions and duration_seconds are required")
    if total_questions < 1 or duration_seconds < 1:
        raise ValidationFailed("total_questions and duration_seconds must be positive")

    filters = {"subject_id": subject_id}
    if topic_id:
        filters["topic_id"] = topic_id
    ids = [r["id"] for r in backend.select("questions", ["id"], filters, order=["id"])]
    if len(ids) < total_questions:
        raise InsufficientPoolError(len(ids), total_questions)

    (rng or random).shuffle(ids)
    chosen = ids[:total_questions]

    try:
        with backend.atomic():
            exam = backend.insert("exams", [{
                "user_id": user_id,
                "subject_id": subject_id,
                "topic_id": topic_id or None,
                "total_questions": total_questions,
                "duration_seconds": duration_seconds,
                "status": "in_progress",
                "started_at": datetime.now(timezone.utc),
            }])[0]
            backend.insert("exam_questions", [
                {"exam_id": exam["id"], "question_id": qid, "sort_order": i + 1} for i, qid in enumerate(chosen)
            ])
    except BackendError as e:
        raise ValidationFailed(f"Create exam failed: {e.message}") from e

    remember_exam_questions(exam["id"], chosen)
    logger.info(f"Exam {exam['id']} created for {user_id} with {len(chosen)} questions")
    return exam["id"]


def get_owned_exam(backend: SqlBackend, exam_id: str, user_id: str) -> Dict:
    exam = backend.single("exams", EXAM_COLUMNS, {"id": exam_id})
    if not exam:
        raise NotFound("Exam not found")
    if exam["user_id"] != user_id:
        raise PermissionDenied("This exam belongs to another user")
    return exam


def exam_question_ids(backend: SqlBackend, exam_id: str) -> List[str]:
    ids = cached_exam_questions(exam_id)
    if ids is None:
        rows = backend.select("exam_questions", ["question_id"], {"exam_id": exam_id}, order=["sort_order"])
        ids = [r["question_id"] for r in rows]
        if ids:
            remember_exam_questions(exam_id, ids)
    return ids


def ordered_questions(backend: SqlBackend, exam_id: str) -> List[Dict]:
    ids = exam_question_ids(backend, exam_id)
    if not ids:
        return []
    by_id = {q["id"]: q for q in backend.select("questions", QUESTION_COLUMNS, {"id": ids})}
    return [by_id[i] for i in ids if i in by_id]


def load_exam(backend: SqlBackend, exam_id: str, user_id: str) -> Dict:
    """Exam row, its fixed question list in order, and whatever answers were saved so far."""
    exam = get_owned_exam(backend, exam_id, user_id)
    questions = ordered_questions(backend, exam_id)
    answers = backend.select("answers", ["question_id", "selected_answer", "is_correct"], {"exam_id": exam_id})
    return {"exam": exam, "questions": questions, "answers": answers}


def save_answers(backend: SqlBackend, exam_id: str, user_id: str, answers: List[Dict]) -> int:
    exam = get_owned_exam(backend, exam_id, user_id)
    if exam["status"] != "in_progress":
        raise Conflict("Exam already submitted")
    known = set(exam_question_ids(backend, exam_id))
    unknown = [a["question_id"] for a in answers if a["question_id"] not in known]
    if unknown:
        raise ValidationFailed(f"Questions not part of this exam: {', '.join(unknown)}")

    # every row of one upsert carries the same columns
    with_flag = any("is_correct" in a for a in answers)
    rows = []
    for a in answers:
        row = {"exam_id": exam_id, "question_id": a["question_id"], "selected_answer": normalize_answer(a.get("selected_answer")) or None}
        if with_flag:
            row["is_correct"] = bool(a.get("is_correct"))
        rows.append(row)
    return backend.upsert("answers", rows, conflict=("exam_id", "question_id"))


def mark_submitted(backend: SqlBackend, exam_id: str, user_id: str) -> Dict:
    exam = get_owned_exam(backend, exam_id, user_id)
    if exam["status"] == "submitted":
        return exam
    submitted_at = datetime.now(timezone.utc)
    changed = backend.update("exams", {"status": "submitted", "submitted_at": submitted_at},
                             {"id": exam_id, "status": "in_progress"})
    if changed:
        logger.info(f"Exam {exam_id} submitted")
        exam.update(status="submitted", submitted_at=submitted_at)
        return exam
    return get_owned_exam(backend, exam_id, user_id)
