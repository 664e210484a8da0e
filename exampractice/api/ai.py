from fastapi import APIRouter
from exampractice.models.schemas import ChatReply, ChatRequest
from exampractice.services.tutor import ask_tutor

router = APIRouter()

@router.post("", response_model=ChatReply)
def ai_chat(payload: ChatRequest):
    text = ask_tutor([m.model_dump() for m in payload.messages])
    return ChatReply(text=text)
