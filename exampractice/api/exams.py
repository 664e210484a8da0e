from fastapi import APIRouter, Depends
from exampractice.core.auth import TokenData, get_current_user
from exampractice.core.backend import SqlBackend, get_backend
from exampractice.models.schemas import AnswersIn, ExamBundle, ExamCreate, ExamCreated, ExamOut, ExamResult
from exampractice.services import exams
from exampractice.services.results import build_result

router = APIRouter()

@router.post("/create", response_model=ExamCreated)
def create_exam(payload: ExamCreate, user: TokenData = Depends(get_current_user), backend: SqlBackend = Depends(get_backend)):
    exam_id = exams.create_exam(backend, user.sub, payload.subject_id, payload.topic_id,
                                payload.total_questions, payload.duration_seconds)
    return ExamCreated(exam_id=exam_id)

@router.get("/{exam_id}", response_model=ExamBundle)
def load_exam(exam_id: str, user: TokenData = Depends(get_current_user), backend: SqlBackend = Depends(get_backend)):
    return exams.load_exam(backend, exam_id, user.sub)

@router.put("/{exam_id}/answers")
def save_answers(exam_id: str, payload: AnswersIn, user: TokenData = Depends(get_current_user), backend: SqlBackend = Depends(get_backend)):
    rows = [a.model_dump(exclude_unset=True) for a in payload.answers]
    return {"saved": exams.save_answers(backend, exam_id, user.sub, rows)}

@router.post("/{exam_id}/submit", response_model=ExamOut)
def submit_exam(exam_id: str, user: TokenData = Depends(get_current_user), backend: SqlBackend = Depends(get_backend)):
    return exams.mark_submitted(backend, exam_id, user.sub)

@router.get("/{exam_id}/result", response_model=ExamResult)
def exam_result(exam_id: str, user: TokenData = Depends(get_current_user), backend: SqlBackend = Depends(get_backend)):
    return build_result(backend, exam_id, user.sub)
