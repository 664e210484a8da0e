from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from exampractice.core.auth import TokenData, get_current_user
from exampractice.core.backend import SqlBackend, get_backend
from exampractice.services import materials

router = APIRouter()

class MaterialIn(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = "lecture"
    url: Optional[str] = None
    subject_id: Optional[str] = None
    topic_id: Optional[str] = None

class MaterialOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    type: str
    url: str
    subject_id: Optional[str] = None
    topic_id: Optional[str] = None
    created_at: Optional[datetime] = None

class MaterialDetail(MaterialOut):
    kind: str

@router.get("", response_model=List[MaterialOut], dependencies=[Depends(get_current_user)])
def list_materials(subject_id: Optional[str] = None, topic_id: Optional[str] = None, q: Optional[str] = None,
                   backend: SqlBackend = Depends(get_backend)):
    return materials.list_materials(backend, subject_id, topic_id, q)

@router.get("/{material_id}", response_model=MaterialDetail, dependencies=[Depends(get_current_user)])
def material_detail(material_id: str, backend: SqlBackend = Depends(get_backend)):
    return materials.get_material(backend, material_id)

@router.post("", response_model=MaterialDetail, status_code=201)
def create_material(payload: MaterialIn, user: TokenData = Depends(get_current_user), backend: SqlBackend = Depends(get_backend)):
    return materials.create_material(backend, user.role, **payload.model_dump())
