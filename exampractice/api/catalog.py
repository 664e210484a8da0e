from fastapi import APIRouter, Depends
from pydantic import BaseModel, constr
from typing import List, Optional
from exampractice.core.auth import STAFF_ROLES, require_roles, get_current_user
from exampractice.core.backend import SqlBackend, get_backend
from exampractice.core.errors import NotFound

router = APIRouter()

class SubjectIn(BaseModel):
    name: constr(strip_whitespace=True, min_length=1)

class SubjectOut(BaseModel):
    id: str; name: str

class TopicIn(BaseModel):
    subject_id: str
    name: constr(strip_whitespace=True, min_length=1)

class TopicOut(BaseModel):
    id: str; name: str; subject_id: str

@router.get("/subjects", response_model=List[SubjectOut], dependencies=[Depends(get_current_user)])
def list_subjects(backend: SqlBackend = Depends(get_backend)):
    return backend.select("subjects", ["id", "name"], order=["name"])

@router.post("/subjects", response_model=SubjectOut, status_code=201, dependencies=[Depends(require_roles(*STAFF_ROLES))])
def create_subject(payload: SubjectIn, backend: SqlBackend = Depends(get_backend)):
    return backend.insert("subjects", [{"name": payload.name}])[0]

@router.get("/topics", response_model=List[TopicOut], dependencies=[Depends(get_current_user)])
def list_topics(subject_id: Optional[str] = None, backend: SqlBackend = Depends(get_backend)):
    filters = {"subject_id": subject_id} if subject_id else None
    return backend.select("topics", ["id", "name", "subject_id"], filters, order=["name"])

@router.post("/topics", response_model=TopicOut, status_code=201, dependencies=[Depends(require_roles(*STAFF_ROLES))])
def create_topic(payload: TopicIn, backend: SqlBackend = Depends(get_backend)):
    if not backend.single("subjects", ["id"], {"id": payload.subject_id}):
        raise NotFound("Subject not found")
    return backend.insert("topics", [{"subject_id": payload.subject_id, "name": payload.name}])[0]
