from typing import Dict, List

from exampractice.core.backend import SqlBackend
from exampractice.services.answers import answer_letters, is_correct, normalize_answer, option_list
from exampractice.services.exams import get_owned_exam, ordered_questions

NOT_SUBMITTED = "No corrected answers yet; the exam has not been submitted."


def build_result(backend: SqlBackend, exam_id: str, user_id: str) -> Dict:
    exam = get_owned_exam(backend, exam_id, user_id)
    answers = backend.select("answers", ["question_id", "selected_answer", "is_correct"], {"exam_id": exam_id})
    if exam["status"] != "submitted" or not answers:
        return {"exam_id": exam_id, "submitted": False, "message": NOT_SUBMITTED, "correct": 0, "total": 0, "rows": []}

    by_question = {a["question_id"]: a for a in answers}
    rows = []
    for q in ordered_questions(backend, exam_id):
        a = by_question.get(q["id"])
        if a is None:
            continue
        selected = normalize_answer(a["selected_answer"])
        gold = normalize_answer(q["correct_answer"])
        chosen, right = set(answer_letters(selected)), set(answer_letters(gold))
        rows.append({
            "question_id": q["id"],
            "question_text": q["question_text"],
            "selected_answer": selected,
            "correct_answer": gold,
            # re-derived from the canonical tokens, independent of the stored flag
            "is_correct": is_correct(selected, gold),
            "stored_correct": bool(a["is_correct"]),
            "explanation": q["explanation"],
            "options": [
                dict(o, is_answer=o["key"] in right, chosen=o["key"] in chosen) for o in option_list(q)
            ],
        })
    return {
        "exam_id": exam_id,
        "submitted": True,
        "message": None,
        "correct": sum(1 for r in rows if r["stored_correct"]),
        "total": len(rows),
        "rows": rows,
    }
