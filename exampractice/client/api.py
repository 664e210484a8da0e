"""
Async HTTP client for the exam practice API.
"""
from typing import Any, Dict, List, Optional

import httpx

from exampractice.client.context import SessionContext
from exampractice.core.config import API_BASE_URL
from exampractice.models.schemas import ExamBundle, ExamOut, ExamResult


class ExamApiError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class ExamApiClient:
    def __init__(self, context: SessionContext, base_url: str = API_BASE_URL,
                 transport: Optional[httpx.AsyncBaseTransport] = None, timeout: float = 30.0):
        self.context = context
        self._http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            resp = await self._http.request(method, path, headers=self.context.auth_headers(), **kwargs)
        except httpx.HTTPError as e:
            raise ExamApiError(0, str(e) or e.__class__.__name__) from e
        if resp.status_code >= 400:
            try:
                message = resp.json().get("error") or resp.text
            except ValueError:
                message = resp.text
            raise ExamApiError(resp.status_code, message or f"HTTP {resp.status_code}")
        return resp.json()

    async def login(self, user_id: str, role: str = "student") -> SessionContext:
        data = await self._request("POST", "/api/auth/mock-login", json={"user_id": user_id, "role": role})
        self.context.sign_in(data["access_token"], data["user_id"], data["role"])
        return self.context

    def logout(self) -> None:
        self.context.sign_out()

    async def create_exam(self, subject_id: str, total_questions: int, duration_seconds: int,
                          topic_id: Optional[str] = None) -> str:
        data = await self._request("POST", "/api/exams/create", json={
            "subject_id": subject_id, "topic_id": topic_id,
            "total_questions": total_questions, "duration_seconds": duration_seconds,
        })
        return data["exam_id"]

    async def load_exam(self, exam_id: str) -> ExamBundle:
        return ExamBundle.model_validate(await self._request("GET", f"/api/exams/{exam_id}"))

    async def save_answers(self, exam_id: str, answers: List[Dict[str, Any]]) -> int:
        data = await self._request("PUT", f"/api/exams/{exam_id}/answers", json={"answers": answers})
        return data["saved"]

    async def mark_submitted(self, exam_id: str) -> ExamOut:
        return ExamOut.model_validate(await self._request("POST", f"/api/exams/{exam_id}/submit"))

    async def load_result(self, exam_id: str) -> ExamResult:
        return ExamResult.model_validate(await self._request("GET", f"/api/exams/{exam_id}/result"))

    async def ask_tutor(self, messages: List[Dict[str, str]]) -> str:
        data = await self._request("POST", "/api/ai", json={"messages": messages})
        return data["text"]
