"""
Tutoring chat proxy: forwards a short transcript to the OpenAI Responses API
and hands the generated text back unchanged.
"""
import logging
from typing import Dict, List

import openai
from openai import OpenAI

from exampractice.core import config
from exampractice.core.errors import ConfigurationError, UpstreamError, ValidationFailed

logger = logging.getLogger(__name__)

TUTOR_INSTRUCTIONS = (
    "You are a teaching assistant for students preparing for exams. Answer concisely and clearly, "
    "using bullet points where they help. When the student asks about a multiple-choice question: "
    "(1) state the correct choice, (2) explain why it is correct, (3) explain why each other option "
    "is wrong, (4) give a short memory aid."
)


def build_transcript(messages: List[Dict], max_turns: int) -> str:
    lines = []
    for m in messages[-max_turns:]:
        speaker = "User" if m["role"] == "user" else "Assistant"
        lines.append(f"{speaker}: {m['text']}")
    return "\n".join(lines)


def ask_tutor(messages: List[Dict]) -> str:
    if not config.OPENAI_API_KEY:
        raise ConfigurationError("Missing OPENAI_API_KEY environment variable")
    last_user = next((m for m in reversed(messages) if m["role"] == "user"), None)
    if not last_user or not (last_user.get("text") or "").strip():
        raise ValidationFailed("No user message")

    client = OpenAI(api_key=config.OPENAI_API_KEY)
    try:
        response = client.responses.create(
            model=config.OPENAI_MODEL,
            instructions=TUTOR_INSTRUCTIONS,
            input=build_transcript(messages, config.AI_MAX_TURNS),
        )
    except openai.OpenAIError as e:
        logger.error(f"Tutor completion failed: {e}")
        raise UpstreamError(str(e)) from e
    return response.output_text or ""
