from fastapi import APIRouter
from pydantic import BaseModel
from exampractice.core.auth import Role, create_token

router = APIRouter()

class MockLogin(BaseModel):
    user_id: str
    role: Role = "student"

@router.post("/mock-login")
def mock_login(payload: MockLogin):
    token = create_token(payload.user_id, payload.role)
    return {"access_token": token, "token_type": "bearer", "user_id": payload.user_id, "role": payload.role}
