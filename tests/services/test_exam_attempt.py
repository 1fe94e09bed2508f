from datetime import datetime, timedelta, timezone

import httpx
import pytest

from homecare.core.constants import (
    UNANSWERED,
    AttemptStateEnum,
    CertificateStateEnum,
    ExamAttemptStatusEnum,
)
from homecare.core.exceptions import (
    InvalidStateError,
    NetworkError,
    NotFoundError,
    SubmissionError,
    ValidationError,
)
from homecare.schemas.exam import Exam
from homecare.services.exam_attempt import ExamAttemptSession, compute_score
from homecare.utils.events import EXAM_SUBMITTED, EXAM_TIMED_OUT, EventBus
from tests.helpers.backend import (
    attempt_payload,
    certificate_payload,
    envelope,
    exam_payload,
    failure,
)

EXAM_PATH = "/v1/training/exams-v2/exam-1"
START_PATH = "/v1/training/exams-v2/exam-1/start"
SUBMIT_PATH = "/v1/training/attempts/attempt-1/submit"


class FixedClock:
    def __init__(self):
        self.now = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def events():
    bus = EventBus()
    received = []

    async def collect(data):
        received.append(data)

    bus.subscribe(EXAM_SUBMITTED, collect)
    bus.subscribe(EXAM_TIMED_OUT, collect)
    bus.received = received
    return bus


@pytest.fixture
def exam_backend(backend):
    backend.route("GET", EXAM_PATH, envelope(exam_payload(questions=4)))
    backend.route("POST", START_PATH, envelope(attempt_payload()))
    return backend


@pytest.fixture
def session(exam_service, clock, events):
    return ExamAttemptSession(exam_service, clock=clock, auto_submit_on_timeout=False, events=events)


async def started(session):
    await session.load_exam("exam-1")
    await session.start()
    return session


@pytest.mark.asyncio
async def test_load_exam_initializes_unanswered_slots(exam_backend, session):
    exam = await session.load_exam("exam-1")

    assert exam.title == "Infection Control Basics"
    assert session.answers == [UNANSWERED] * 4
    assert session.current_question_index == 0
    assert session.state == AttemptStateEnum.NOT_STARTED


@pytest.mark.asyncio
async def test_load_exam_not_found(backend, session):
    backend.route("GET", EXAM_PATH, failure(404, "Exam not found"))

    with pytest.raises(NotFoundError):
        await session.load_exam("exam-1")


@pytest.mark.asyncio
async def test_load_exam_network_failure(backend, session):
    def boom(request):
        raise httpx.ConnectError("connection refused", request=request)

    backend.route("GET", EXAM_PATH, boom)

    with pytest.raises(NetworkError) as exc_info:
        await session.load_exam("exam-1")
    assert exc_info.value.status_code == 0


@pytest.mark.asyncio
async def test_start_adopts_backend_attempt_and_deadline(exam_backend, session, clock):
    await started(session)

    assert session.state == AttemptStateEnum.IN_PROGRESS
    assert session.attempt.id == "attempt-1"
    assert session.time_remaining() == 30 * 60
    assert session.format_time() == "30:00"


@pytest.mark.asyncio
async def test_question_order_from_attempt(backend, session):
    backend.route("GET", EXAM_PATH, envelope(exam_payload(questions=3)))
    backend.route("POST", START_PATH, envelope(attempt_payload(questionOrder=["q3", "q1", "q2"])))
    await started(session)

    assert [q.id for q in session.questions] == ["q3", "q1", "q2"]

    session.select_answer(0, 2)
    backend.route("POST", SUBMIT_PATH, envelope(attempt_payload(status="SUBMITTED")))
    await session.submit()

    assert backend.last_json("POST", SUBMIT_PATH) == {"answers": [{"questionId": "q3", "answer": 2}]}


@pytest.mark.asyncio
async def test_unknown_question_order_falls_back_to_exam_order(backend, session):
    backend.route("GET", EXAM_PATH, envelope(exam_payload(questions=2)))
    backend.route("POST", START_PATH, envelope(attempt_payload(questionOrder=["zz"])))
    await started(session)

    assert [q.id for q in session.questions] == ["q1", "q2"]


@pytest.mark.asyncio
async def test_select_answer_and_navigation(exam_backend, session):
    await started(session)

    session.select_answer(1, 3)
    session.select_answer(1, 2)
    assert session.answers == [UNANSWERED, 2, UNANSWERED, UNANSWERED]
    assert session.progress == 25
    assert session.requires_confirmation

    with pytest.raises(ValidationError):
        session.select_answer(4, 0)

    assert session.navigate("previous") == 0
    assert session.navigate("next") == 1
    assert session.navigate(99) == 3
    assert session.navigate(-5) == 0
    assert session.navigate("sideways") == 0


def test_compute_score_rounds_half_up():
    exam = Exam.model_validate(exam_payload(questions=8))
    answers = [q.correct_answer for q in exam.questions]

    assert compute_score(exam.questions, answers) == 100
    assert compute_score(exam.questions, [UNANSWERED] * 8) == 0
    assert compute_score([], []) == 0

    # 1 of 8 is 12.5%
    one_right = [answers[0]] + [UNANSWERED] * 7
    assert compute_score(exam.questions, one_right) == 13


@pytest.mark.asyncio
async def test_submit_prefers_backend_score(exam_backend, session, events):
    exam_backend.route("POST", SUBMIT_PATH, envelope(
        attempt_payload(status="SUBMITTED", score=88, passed=True, submittedAt="2024-05-01T09:20:00Z")
    ))
    await started(session)
    session.select_answer(0, 0)

    attempt = await session.submit()

    assert session.state == AttemptStateEnum.SUBMITTED
    assert attempt.score == 88
    assert session.passed is True
    assert exam_backend.last_json("POST", SUBMIT_PATH) == {"answers": [{"questionId": "q1", "answer": 0}]}
    assert events.received[0]["score"] == 88


@pytest.mark.asyncio
async def test_submit_falls_back_to_local_score(backend, session):
    backend.route("GET", EXAM_PATH, envelope(exam_payload(questions=10, passing_score=70)))
    backend.route("POST", START_PATH, envelope(attempt_payload()))
    backend.route("POST", SUBMIT_PATH, envelope(attempt_payload(status="SUBMITTED")))
    await started(session)

    # seven correct answers is exactly the passing score
    for i, question in enumerate(session.questions[:7]):
        session.select_answer(i, question.correct_answer)

    await session.submit()

    assert session.score == 70
    assert session.passed is True
    assert session.attempt.status == ExamAttemptStatusEnum.SUBMITTED


@pytest.mark.asyncio
async def test_just_below_passing_score_fails(backend, session):
    backend.route("GET", EXAM_PATH, envelope(exam_payload(questions=10, passing_score=70)))
    backend.route("POST", START_PATH, envelope(attempt_payload()))
    backend.route("POST", SUBMIT_PATH, envelope(attempt_payload(status="SUBMITTED")))
    await started(session)
    for i, question in enumerate(session.questions[:6]):
        session.select_answer(i, question.correct_answer)

    await session.submit()

    assert session.score == 60
    assert session.passed is False
    assert session.certificate_state == CertificateStateEnum.NONE


@pytest.mark.asyncio
async def test_submit_failure_keeps_answers(exam_backend, session, events):
    exam_backend.route("POST", SUBMIT_PATH, failure(500, "database unavailable"))
    await started(session)
    session.select_answer(0, 1)
    session.select_answer(2, 3)

    with pytest.raises(SubmissionError) as exc_info:
        await session.submit()

    assert exc_info.value.status_code == 500
    assert session.state == AttemptStateEnum.IN_PROGRESS
    assert session.answers == [1, UNANSWERED, 3, UNANSWERED]
    assert session.is_submitting is False
    assert events.received == []

    exam_backend.route("POST", SUBMIT_PATH, envelope(attempt_payload(status="SUBMITTED", score=50, passed=False)))
    await session.submit()
    assert session.state == AttemptStateEnum.SUBMITTED


@pytest.mark.asyncio
async def test_submit_before_start_and_resubmit_are_rejected(exam_backend, session):
    await session.load_exam("exam-1")
    with pytest.raises(InvalidStateError):
        await session.submit()

    await session.start()
    exam_backend.route("POST", SUBMIT_PATH, envelope(attempt_payload(status="SUBMITTED", score=100, passed=True)))
    await session.submit()

    with pytest.raises(InvalidStateError):
        await session.submit()
    with pytest.raises(InvalidStateError):
        session.select_answer(0, 1)
    assert len(exam_backend.calls("POST", SUBMIT_PATH)) == 1


@pytest.mark.asyncio
async def test_retake_after_failure_starts_new_attempt(exam_backend, session):
    exam_backend.route("POST", SUBMIT_PATH, envelope(attempt_payload(status="SUBMITTED", score=25, passed=False)))
    await started(session)
    session.select_answer(0, 0)
    await session.submit()

    exam_backend.route("POST", START_PATH, envelope(attempt_payload(attempt_id="attempt-2")))
    await session.retake()

    assert session.attempt.id == "attempt-2"
    assert session.state == AttemptStateEnum.IN_PROGRESS
    assert session.answers == [UNANSWERED] * 4
    assert session.current_question_index == 0
    assert exam_backend.last_json("POST", START_PATH) == {}


@pytest.mark.asyncio
async def test_retake_not_allowed_after_pass(exam_backend, session):
    exam_backend.route("POST", SUBMIT_PATH, envelope(attempt_payload(status="SUBMITTED", score=100, passed=True)))
    await started(session)
    await session.submit()

    with pytest.raises(InvalidStateError):
        await session.retake()


@pytest.mark.asyncio
async def test_certificate_state_follows_backend(exam_backend, session):
    exam_backend.route("POST", SUBMIT_PATH, envelope(attempt_payload(status="SUBMITTED", score=90, passed=True)))
    await started(session)
    await session.submit()
    assert session.certificate_state == CertificateStateEnum.PENDING_GENERATION

    exam_backend.route("GET", "/v1/training/attempts/attempt-1", envelope(attempt_payload(
        status="SUBMITTED", score=90, passed=True, certificate=certificate_payload(status="APPROVED")
    )))
    await session.load_result("attempt-1")
    assert session.certificate_state == CertificateStateEnum.APPROVED
    assert session.state == AttemptStateEnum.SUBMITTED


@pytest.mark.asyncio
async def test_timeout_is_advisory_by_default(exam_backend, session, clock):
    await started(session)
    clock.advance(minutes=31)

    assert session.time_remaining() == 0
    assert await session.check_timeout() is False
    assert session.state == AttemptStateEnum.IN_PROGRESS


@pytest.mark.asyncio
async def test_timeout_auto_submits_when_enabled(exam_backend, exam_service, clock, events):
    exam_backend.route("POST", SUBMIT_PATH, envelope(attempt_payload(status="SUBMITTED", score=0, passed=False)))
    session = ExamAttemptSession(exam_service, clock=clock, auto_submit_on_timeout=True, events=events)
    await started(session)

    clock.advance(minutes=10)
    assert await session.check_timeout() is False

    clock.advance(minutes=25)
    assert await session.check_timeout() is True
    assert session.state == AttemptStateEnum.SUBMITTED
    assert session.attempt.status == ExamAttemptStatusEnum.TIMED_OUT


@pytest.mark.asyncio
async def test_expired_attempt_locks_answers_and_submits_as_timed_out(exam_backend, exam_service, clock, events):
    exam_backend.route("POST", SUBMIT_PATH, envelope(attempt_payload(status="SUBMITTED", score=25, passed=False)))
    session = ExamAttemptSession(exam_service, clock=clock, auto_submit_on_timeout=True, events=events)
    await started(session)
    session.select_answer(0, 0)

    clock.advance(hours=5)

    with pytest.raises(InvalidStateError):
        session.select_answer(1, 1)
    assert session.answers[1] == UNANSWERED

    attempt = await session.submit()

    assert attempt.status == ExamAttemptStatusEnum.TIMED_OUT
    assert exam_backend.last_json("POST", SUBMIT_PATH) == {"answers": [{"questionId": "q1", "answer": 0}]}
    assert events.received[0]["message"].endswith("not passed)")


@pytest.mark.asyncio
async def test_partial_second_left_is_not_expired(exam_backend, exam_service, clock, events):
    session = ExamAttemptSession(exam_service, clock=clock, auto_submit_on_timeout=True, events=events)
    await started(session)

    clock.advance(minutes=29, seconds=59, milliseconds=100)

    assert session.time_remaining() == 1
    assert session.format_time() == "00:01"
    assert await session.check_timeout() is False
    assert exam_backend.calls("POST", SUBMIT_PATH) == []


@pytest.mark.asyncio
async def test_fractional_backend_score_becomes_whole_percent(exam_backend, session):
    exam_backend.route("POST", SUBMIT_PATH, envelope(attempt_payload(status="SUBMITTED", score=84.5, passed=True)))
    await started(session)

    attempt = await session.submit()

    assert attempt.score == 85
    assert isinstance(session.score, int)
    assert session.view().score == 85


@pytest.mark.asyncio
async def test_session_survives_cache_round_trip(backend, exam_service, session, clock):
    backend.route("GET", EXAM_PATH, envelope(exam_payload(questions=3)))
    backend.route("POST", START_PATH, envelope(attempt_payload(questionOrder=["q2", "q3", "q1"])))
    await started(session)
    session.select_answer(1, 2)
    session.navigate("next")

    restored = ExamAttemptSession.from_cache(session.to_cache(), exam_service, clock=clock)

    assert restored.session_id == session.session_id
    assert [q.id for q in restored.questions] == ["q2", "q3", "q1"]
    assert restored.answers == session.answers
    assert restored.current_question_index == 1
    assert restored.state == AttemptStateEnum.IN_PROGRESS
    assert restored.time_remaining() == session.time_remaining()


@pytest.mark.asyncio
async def test_view_hides_correct_answers(exam_backend, session):
    await started(session)

    view = session.view().model_dump(by_alias=True)

    assert "correctAnswer" not in view["currentQuestion"]
    assert view["timeRemainingDisplay"] == "30:00"
    assert view["requiresConfirmation"] is True
