import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from exampractice.client.api import ExamApiError
from exampractice.client.session import (
    ExamSession, ExamSessionError, ExamSubmitError, SessionState, format_time, remaining_seconds, result_path,
)
from exampractice.models.schemas import ExamBundle

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def bundle(status="in_progress", started_at=NOW, duration=600, answers=()):
    return ExamBundle.model_validate({
        "exam": {"id": "e1", "user_id": "u1", "subject_id": "s1", "total_questions": 2,
                 "duration_seconds": duration, "status": status, "started_at": started_at},
        "questions": [
            {"id": "q1", "question_text": "Single", "option_a": "a", "option_b": "b", "option_c": "c",
             "correct_answer": "B", "qtype": "single"},
            {"id": "q2", "question_text": "Multi", "option_a": "a", "option_b": "b", "option_c": "c",
             "correct_answer": "A,C", "qtype": "multi"},
        ],
        "answers": list(answers),
    })


class FakeApi:
    def __init__(self, data):
        self.data = data
        self.saves = []
        self.submits = 0
        self.fail_saves = 0
        self.fail_submit = False
        self.submit_delay = 0
        self.save_delays = []
        self.rows = {}

    async def load_exam(self, exam_id):
        if self.data is None:
            raise ExamApiError(404, "Exam not found")
        return self.data

    async def save_answers(self, exam_id, answers):
        if self.fail_saves:
            self.fail_saves -= 1
            raise ExamApiError(0, "network down")
        if self.save_delays:
            await asyncio.sleep(self.save_delays.pop(0))
        self.saves.append(answers)
        for a in answers:
            self.rows.setdefault(a["question_id"], {}).update(a)
        return len(answers)

    async def mark_submitted(self, exam_id):
        await asyncio.sleep(self.submit_delay)
        if self.fail_submit:
            raise ExamApiError(500, "database unavailable")
        self.submits += 1
        return self.data.exam.model_copy(update={"status": "submitted"})


def session_for(api, now=NOW, **kwargs):
    redirects = []
    kwargs.setdefault("tick_seconds", 60)
    kwargs.setdefault("autosave_delay", 0.01)
    s = ExamSession(api, "e1", on_redirect=redirects.append, clock=lambda: now, **kwargs)
    return s, redirects


def test_remaining_seconds_never_negative():
    assert remaining_seconds(600, NOW, NOW + timedelta(seconds=650)) == 0
    assert remaining_seconds(600, NOW, NOW + timedelta(seconds=30)) == 570
    assert remaining_seconds(600, NOW.replace(tzinfo=None), NOW + timedelta(seconds=1)) == 599
    assert format_time(65) == "01:05"
    assert result_path("e1") == "/result/e1"


@pytest.mark.asyncio
async def test_load_restores_saved_answers():
    api = FakeApi(bundle(answers=[{"question_id": "q2", "selected_answer": "c;a"},
                                  {"question_id": "q1", "selected_answer": ""}]))
    s, _ = session_for(api, now=NOW + timedelta(seconds=30))
    assert await s.load() is SessionState.ACTIVE
    assert s.time_left == 570
    assert s.answers == {"q2": "A,C"}
    assert not s.dirty
    await s.close()


@pytest.mark.asyncio
async def test_load_failure_is_terminal():
    s, _ = session_for(FakeApi(None))
    assert await s.load() is SessionState.ERROR
    assert s.error == "Exam not found"
    with pytest.raises(ExamSessionError):
        await s.load()


@pytest.mark.asyncio
async def test_submitted_exam_redirects():
    s, redirects = session_for(FakeApi(bundle(status="submitted")))
    assert await s.load() is SessionState.SUBMITTED
    assert redirects == ["/result/e1"]
    with pytest.raises(ExamSessionError):
        s.choose("q1", "A")


@pytest.mark.asyncio
async def test_choose_replaces_or_toggles():
    s, _ = session_for(FakeApi(bundle()))
    await s.load()
    assert s.choose("q1", "a") == "A"
    assert s.choose("q1", "b") == "B"
    assert s.choose("q2", "C") == "C"
    assert s.choose("q2", "a") == "A,C"
    assert s.choose("q2", "C") == "A"
    assert s.choose("q2", "A") == ""
    assert "q2" not in s.answers
    assert s.answered_count == 1
    with pytest.raises(ExamSessionError):
        s.choose("q1", "E")
    with pytest.raises(ExamSessionError):
        s.choose("nope", "A")
    await s.close()


@pytest.mark.asyncio
async def test_rapid_edits_coalesce_into_one_save():
    api = FakeApi(bundle())
    s, _ = session_for(api)
    await s.load()
    s.choose("q1", "A")
    s.choose("q1", "B")
    s.choose("q2", "C")
    await asyncio.sleep(0.05)
    assert api.saves == [[{"question_id": "q1", "selected_answer": "B"},
                          {"question_id": "q2", "selected_answer": "C"}]]
    assert not s.dirty

    # going back to the saved state schedules nothing
    s.choose("q1", "A")
    s.choose("q1", "B")
    await asyncio.sleep(0.05)
    assert len(api.saves) == 1
    await s.close()


@pytest.mark.asyncio
async def test_failed_autosave_keeps_answers_and_retries_on_next_edit():
    api = FakeApi(bundle())
    api.fail_saves = 1
    s, _ = session_for(api)
    await s.load()
    s.choose("q1", "A")
    await asyncio.sleep(0.05)
    assert api.saves == []
    assert s.answers == {"q1": "A"}
    assert s.dirty

    s.choose("q2", "A")
    await asyncio.sleep(0.05)
    assert api.saves == [[{"question_id": "q1", "selected_answer": "A"},
                          {"question_id": "q2", "selected_answer": "A"}]]
    await s.close()


@pytest.mark.asyncio
async def test_submit_scores_and_writes_every_question():
    api = FakeApi(bundle())
    s, redirects = session_for(api)
    await s.load()
    s.choose("q1", "B")
    s.choose("q2", "C")
    s.choose("q2", "A")
    assert await s.submit() == (2, 2)
    assert s.state is SessionState.SUBMITTED
    assert s.time_left == 0
    assert api.submits == 1
    assert api.saves == [[
        {"question_id": "q1", "selected_answer": "B", "is_correct": True},
        {"question_id": "q2", "selected_answer": "A,C", "is_correct": True},
    ]]
    assert redirects == ["/result/e1"]
    await asyncio.sleep(0.05)
    assert len(api.saves) == 1


@pytest.mark.asyncio
async def test_unanswered_questions_are_submitted_as_wrong():
    api = FakeApi(bundle())
    s, _ = session_for(api)
    await s.load()
    assert await s.submit() == (0, 2)
    assert api.saves[0][0] == {"question_id": "q1", "selected_answer": None, "is_correct": False}


@pytest.mark.asyncio
async def test_double_submit_is_a_noop():
    api = FakeApi(bundle())
    api.submit_delay = 0.02
    s, redirects = session_for(api)
    await s.load()
    first, second = await asyncio.gather(s.submit(), s.submit())
    assert first == (0, 2) and second is None
    assert api.submits == 1
    assert redirects == ["/result/e1"]
    assert await s.submit() is None


@pytest.mark.asyncio
async def test_failed_submit_returns_to_active():
    api = FakeApi(bundle())
    api.fail_submit = True
    s, redirects = session_for(api)
    await s.load()
    with pytest.raises(ExamSubmitError):
        await s.submit()
    assert s.state is SessionState.ACTIVE
    assert s.error == "database unavailable"
    assert redirects == []

    api.fail_submit = False
    assert await s.submit() == (0, 2)
    assert s.state is SessionState.SUBMITTED
    await s.close()


@pytest.mark.asyncio
async def test_expired_exam_submits_itself():
    api = FakeApi(bundle())
    s, redirects = session_for(api, now=NOW + timedelta(seconds=650))
    await s.load()
    assert s.time_left == 0
    await asyncio.sleep(0.05)
    assert s.state is SessionState.SUBMITTED
    assert api.submits == 1
    assert redirects == ["/result/e1"]


@pytest.mark.asyncio
async def test_countdown_reaches_zero_and_submits():
    api = FakeApi(bundle(duration=3))
    s, redirects = session_for(api, tick_seconds=0.01)
    await s.load()
    assert s.time_left == 3
    s.choose("q1", "B")
    await asyncio.sleep(0.2)
    assert s.state is SessionState.SUBMITTED
    assert s.score == (1, 2)
    assert api.submits == 1
    assert redirects == ["/result/e1"]


@pytest.mark.asyncio
async def test_failed_auto_submit_stays_active():
    api = FakeApi(bundle())
    api.fail_submit = True
    s, _ = session_for(api, now=NOW + timedelta(seconds=700))
    await s.load()
    await asyncio.sleep(0.05)
    assert s.state is SessionState.ACTIVE
    assert s.error == "database unavailable"
    assert api.submits == 0
    await s.close()


@pytest.mark.asyncio
async def test_close_drops_pending_save():
    api = FakeApi(bundle())
    s, _ = session_for(api, autosave_delay=0.05)
    await s.load()
    s.choose("q1", "A")
    await s.close()
    await asyncio.sleep(0.1)
    assert api.saves == []


@pytest.mark.asyncio
async def test_submit_waits_for_autosave_already_sent():
    api = FakeApi(bundle())
    api.save_delays = [0.05]
    s, _ = session_for(api)
    await s.load()
    s.choose("q1", "A")
    await asyncio.sleep(0.02)
    s.choose("q1", "B")
    assert await s.submit() == (1, 2)
    assert api.rows["q1"] == {"question_id": "q1", "selected_answer": "B", "is_correct": True}
    assert api.saves[-1][0]["selected_answer"] == "B"
