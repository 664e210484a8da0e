from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import PlainTextResponse
from typing import Optional
from exampractice.core.auth import TokenData, get_current_user
from exampractice.core.backend import SqlBackend, get_backend
from exampractice.core.errors import ValidationFailed
from exampractice.services.importer import TEMPLATE_HEADER, import_questions

router = APIRouter()

@router.post("/import")
def import_csv(file: UploadFile = File(...), subject_id: Optional[str] = Form(None), topic_id: Optional[str] = Form(None),
               user: TokenData = Depends(get_current_user), backend: SqlBackend = Depends(get_backend)):
    raw = file.file.read()
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        raise ValidationFailed("CSV must be UTF-8 encoded")
    inserted = import_questions(backend, text, subject_id, topic_id, user.role)
    return {"inserted": inserted, "file": file.filename}

@router.get("/import/template", response_class=PlainTextResponse)
def import_template():
    return TEMPLATE_HEADER + "\n"
