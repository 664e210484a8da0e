"""
Exam session state machine.

    loading -> active -> submitting -> submitted
       |          \
       +-> error   (a failed submission falls back to active)

Everything runs on one asyncio loop: a one-second countdown task and a
single pending autosave timer. The countdown is derived from the exam's
``started_at``, so reloading a session never gives back time. Edits are
applied in memory immediately and written through a debounced upsert keyed
by (exam, question); submission writes the full scored answer set and then
flips the exam to ``submitted``.
"""
import asyncio
import contextlib
import enum
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Set, Tuple

from exampractice.client.api import ExamApiClient, ExamApiError
from exampractice.core.config import AUTOSAVE_DELAY_SECONDS
from exampractice.models.schemas import ExamOut, QuestionOut
from exampractice.services.answers import is_correct, normalize_answer, option_list, toggle_choice

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    LOADING = "loading"
    ACTIVE = "active"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    ERROR = "error"


class ExamSessionError(Exception):
    pass


class ExamSubmitError(ExamSessionError):
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def remaining_seconds(duration_seconds: int, started_at: datetime, now: datetime) -> int:
    if started_at.tzinfo is None:
        started_at = started_at.replace(tzinfo=timezone.utc)
    elapsed = max(0, int((now - started_at).total_seconds()))
    return max(0, duration_seconds - elapsed)


def format_time(seconds: int) -> str:
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def result_path(exam_id: str) -> str:
    return f"/result/{exam_id}"


class ExamSession:
    def __init__(self, api: ExamApiClient, exam_id: str, *, on_redirect: Optional[Callable[[str], None]] = None,
                 clock: Callable[[], datetime] = utcnow, tick_seconds: float = 1.0,
                 autosave_delay: float = AUTOSAVE_DELAY_SECONDS):
        self.api = api
        self.exam_id = exam_id
        self.on_redirect = on_redirect
        self.clock = clock
        self.tick_seconds = tick_seconds
        self.autosave_delay = autosave_delay

        self.state = SessionState.LOADING
        self.error: Optional[str] = None
        self.exam: Optional[ExamOut] = None
        self.questions: List[QuestionOut] = []
        self.answers: Dict[str, str] = {}
        self.time_left = 0
        self.saving = False
        self.score: Optional[Tuple[int, int]] = None

        self._last_saved: Dict[str, str] = {}
        self._save_handle: Optional[asyncio.TimerHandle] = None
        self._inflight: Set[asyncio.Task] = set()
        self._countdown: Optional[asyncio.Task] = None
        self._submitting = False

    # ---- loading -----------------------------------------------------------

    async def load(self) -> SessionState:
        if self.state is not SessionState.LOADING:
            raise ExamSessionError(f"Session already loaded ({self.state.value})")
        try:
            bundle = await self.api.load_exam(self.exam_id)
        except ExamApiError as e:
            logger.warning(f"Could not load exam {self.exam_id}: {e}")
            self.state, self.error = SessionState.ERROR, e.message
            return self.state

        self.exam = bundle.exam
        self.questions = bundle.questions
        self.time_left = remaining_seconds(self.exam.duration_seconds, self.exam.started_at, self.clock())
        saved = {a.question_id: normalize_answer(a.selected_answer) for a in bundle.answers}
        self.answers = {q: v for q, v in saved.items() if v}
        self._last_saved = dict(self.answers)

        if self.exam.status == "submitted":
            self.state = SessionState.SUBMITTED
            self.time_left = 0
            self._redirect()
            return self.state

        self.state = SessionState.ACTIVE
        self._countdown = asyncio.create_task(self._run_countdown())
        return self.state

    # ---- countdown ---------------------------------------------------------

    async def _run_countdown(self) -> None:
        while self.state in (SessionState.ACTIVE, SessionState.SUBMITTING):
            if self.time_left <= 0 and self.state is SessionState.ACTIVE:
                await self._auto_submit()
                return
            await asyncio.sleep(self.tick_seconds)
            if self.time_left > 0 and self.state in (SessionState.ACTIVE, SessionState.SUBMITTING):
                self.time_left -= 1

    async def _auto_submit(self) -> None:
        logger.info(f"Time is up for exam {self.exam_id}, submitting")
        try:
            await self.submit()
        except ExamSubmitError as e:
            # left active with the error recorded; the student can still submit by hand
            logger.warning(f"Automatic submission of exam {self.exam_id} failed: {e}")

    def _stop_countdown(self) -> None:
        task, self._countdown = self._countdown, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    # ---- editing -----------------------------------------------------------

    def _question(self, question_id: str) -> QuestionOut:
        for q in self.questions:
            if q.id == question_id:
                return q
        raise ExamSessionError(f"Question {question_id} is not part of this exam")

    def choose(self, question_id: str, choice: str) -> str:
        """Apply a click on option ``choice``: replaces the answer, or toggles it for multi-answer questions."""
        if self.state is not SessionState.ACTIVE:
            raise ExamSessionError(f"Answers cannot change while the session is {self.state.value}")
        q = self._question(question_id)
        choice = normalize_answer(choice)
        keys = [o["key"] for o in option_list(q.model_dump())]
        if not choice or (keys and choice not in keys):
            raise ExamSessionError(f"{choice or 'empty choice'} is not an option of question {question_id}")

        if q.qtype == "multi":
            value = toggle_choice(self.answers.get(question_id, ""), choice)
        else:
            value = choice
        if value:
            self.answers[question_id] = value
        else:
            self.answers.pop(question_id, None)
        self._schedule_save()
        return value

    def selected(self, question_id: str) -> str:
        return self.answers.get(question_id, "")

    @property
    def answered_count(self) -> int:
        return sum(1 for v in self.answers.values() if normalize_answer(v))

    # ---- autosave ----------------------------------------------------------

    @property
    def dirty(self) -> bool:
        return self.answers != self._last_saved

    def _cancel_pending_save(self) -> None:
        if self._save_handle is not None:
            self._save_handle.cancel()
            self._save_handle = None

    def _schedule_save(self) -> None:
        self._cancel_pending_save()
        if not self.dirty:
            return
        loop = asyncio.get_running_loop()
        self._save_handle = loop.call_later(self.autosave_delay, self._fire_save)

    def _fire_save(self) -> None:
        self._save_handle = None
        task = asyncio.ensure_future(self._autosave())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _autosave(self) -> None:
        if self.state is not SessionState.ACTIVE:
            return
        snapshot = dict(self.answers)
        payload = [{"question_id": qid, "selected_answer": normalize_answer(v)}
                   for qid, v in snapshot.items() if normalize_answer(v)]
        if not payload:
            return
        self.saving = True
        try:
            await self.api.save_answers(self.exam_id, payload)
        except ExamApiError as e:
            # snapshot stays stale, the next edit sends everything again
            logger.warning(f"Autosave for exam {self.exam_id} failed: {e}")
        else:
            self._last_saved = snapshot
        finally:
            self.saving = False

    # ---- submission --------------------------------------------------------

    def grade(self) -> List[Dict]:
        detail = []
        for q in self.questions:
            chosen = normalize_answer(self.answers.get(q.id, ""))
            detail.append({"question_id": q.id, "selected_answer": chosen or None,
                           "is_correct": is_correct(chosen, q.correct_answer)})
        return detail

    async def submit(self) -> Optional[Tuple[int, int]]:
        """Score and persist every question, then close the exam. Calls made while one is running are no-ops."""
        if self._submitting or self.state is not SessionState.ACTIVE:
            return None
        self._submitting = True
        self.state = SessionState.SUBMITTING
        self.error = None
        self._cancel_pending_save()
        # autosaves already sent must land before the final set
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

        detail = self.grade()
        try:
            if detail:
                await self.api.save_answers(self.exam_id, detail)
            await self.api.mark_submitted(self.exam_id)
        except ExamApiError as e:
            self.state = SessionState.ACTIVE
            self.error = e.message
            raise ExamSubmitError(e.message) from e
        finally:
            self._submitting = False

        self.state = SessionState.SUBMITTED
        self.score = (sum(1 for d in detail if d["is_correct"]), len(detail))
        self.time_left = 0
        self._last_saved = dict(self.answers)
        self._stop_countdown()
        logger.info(f"Exam {self.exam_id} submitted: {self.score[0]}/{self.score[1]}")
        self._redirect()
        return self.score

    # ---- teardown ----------------------------------------------------------

    def _redirect(self) -> None:
        if self.on_redirect is not None:
            self.on_redirect(result_path(self.exam_id))

    async def close(self) -> None:
        """Leave the session: drop the countdown and any autosave not yet sent."""
        self._cancel_pending_save()
        task, self._countdown = self._countdown, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
