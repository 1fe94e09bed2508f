import logging
import math
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from homecare.core.config import settings
from homecare.core.constants import (
    UNANSWERED,
    AttemptStateEnum,
    CertificateStateEnum,
    CertificateStatusEnum,
    ExamAttemptStatusEnum,
)
from homecare.core.exceptions import ApiError, InvalidStateError, SubmissionError, ValidationError
from homecare.schemas.exam import (
    AttemptSessionView,
    Exam,
    ExamAttempt,
    ExamQuestion,
    QuestionView,
    SubmitAnswer,
)
from homecare.services.exam import ExamService
from homecare.utils.events import EXAM_SUBMITTED, EXAM_TIMED_OUT, EventBus, event_bus
from homecare.utils.formatting import format_time, percent

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def order_questions(questions: List[ExamQuestion], question_order: Optional[List[str]]) -> List[ExamQuestion]:
    """Present questions in the attempt's order when it names known questions, else exam order."""
    if question_order:
        by_id = {q.id: q for q in questions if q.id}
        ordered = [by_id[qid] for qid in question_order if qid in by_id]
        if ordered:
            return ordered
    return list(questions)


def compute_score(questions: List[ExamQuestion], answers: List[int]) -> int:
    if not questions:
        return 0
    correct = sum(
        1 for question, answer in zip(questions, answers)
        if question.correct_answer is not None and answer == question.correct_answer
    )
    return percent(correct, len(questions))


class ExamAttemptSession:
    """One candidate's pass through an exam: load, start, answer, submit, retake.

    Answers are kept by presentation position, ``UNANSWERED`` (-1) marking an
    empty slot. Attempt identity, scoring authority and certificates belong to
    the backend; the local score is only a fallback when the backend omits it.
    """

    def __init__(
        self,
        exam_service: ExamService,
        session_id: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
        auto_submit_on_timeout: Optional[bool] = None,
        events: Optional[EventBus] = None,
    ):
        self.exam_service = exam_service
        self.session_id = session_id or uuid.uuid4().hex
        self.clock = clock
        self.auto_submit_on_timeout = (
            settings.EXAM_AUTO_SUBMIT_ON_TIMEOUT if auto_submit_on_timeout is None else auto_submit_on_timeout
        )
        self.events = events or event_bus

        self.exam: Optional[Exam] = None
        self.attempt: Optional[ExamAttempt] = None
        self.questions: List[ExamQuestion] = []
        self.answers: List[int] = []
        self.current_question_index = 0
        self.state = AttemptStateEnum.NOT_STARTED
        self.deadline: Optional[datetime] = None
        self.score: Optional[int] = None
        self.passed: Optional[bool] = None
        self.is_submitting = False

    def _require_exam(self) -> Exam:
        if self.exam is None:
            raise InvalidStateError("No exam has been loaded.")
        return self.exam

    def _reset_answers(self):
        self.answers = [UNANSWERED] * len(self.questions)
        self.current_question_index = 0

    def _adopt_attempt(self, attempt: ExamAttempt):
        exam = self._require_exam()
        self.attempt = attempt
        self.questions = order_questions(exam.questions, attempt.question_order)
        self._reset_answers()
        self.deadline = self.clock() + timedelta(minutes=exam.duration) if exam.duration > 0 else None
        self.score = None
        self.passed = None
        self.state = AttemptStateEnum.IN_PROGRESS

    async def load_exam(self, exam_id: str, include_answers: bool = False) -> Exam:
        self.exam = await self.exam_service.get_exam(exam_id, include_answers=include_answers)
        self.attempt = None
        self.questions = list(self.exam.questions)
        self._reset_answers()
        self.state = AttemptStateEnum.NOT_STARTED
        self.deadline = None
        self.score = None
        self.passed = None
        return self.exam

    async def start(self) -> ExamAttempt:
        exam = self._require_exam()
        if self.state != AttemptStateEnum.NOT_STARTED:
            raise InvalidStateError("This exam attempt has already been started.")

        attempt = await self.exam_service.start_attempt(exam.id)
        self._adopt_attempt(attempt)
        logger.info(f"Started attempt {attempt.id} for exam {exam.id}")
        return attempt

    def select_answer(self, question_index: int, option_index: int):
        if self.state == AttemptStateEnum.SUBMITTED:
            raise InvalidStateError("Answers cannot be changed after submission.")
        if self.expired():
            raise InvalidStateError("Time is up; answers can no longer be changed.")
        if not 0 <= question_index < len(self.answers):
            raise ValidationError(
                f"Question index {question_index} is out of range.",
                errors=[f"questionIndex must be between 0 and {len(self.answers) - 1}"],
            )
        self.answers[question_index] = option_index

    def navigate(self, target: Union[str, int]) -> int:
        last = max(len(self.questions) - 1, 0)
        if target == "next":
            index = self.current_question_index + 1
        elif target == "previous":
            index = self.current_question_index - 1
        elif isinstance(target, int) and not isinstance(target, bool):
            index = target
        else:
            return self.current_question_index
        self.current_question_index = min(max(index, 0), last)
        return self.current_question_index

    def compute_local_score(self) -> int:
        return compute_score(self.questions, self.answers)

    @property
    def answered_count(self) -> int:
        return sum(1 for a in self.answers if a != UNANSWERED)

    @property
    def unanswered_count(self) -> int:
        return len(self.answers) - self.answered_count

    @property
    def progress(self) -> int:
        return percent(self.answered_count, len(self.questions))

    @property
    def requires_confirmation(self) -> bool:
        return self.state == AttemptStateEnum.IN_PROGRESS and self.unanswered_count > 0

    def time_remaining(self, now: Optional[datetime] = None) -> Optional[int]:
        if self.deadline is None:
            return None
        now = now or self.clock()
        return max(0, math.ceil((self.deadline - now).total_seconds()))

    def expired(self, now: Optional[datetime] = None) -> bool:
        """True once the deadline has passed on an attempt whose time limit is enforced."""
        if not self.auto_submit_on_timeout or self.state != AttemptStateEnum.IN_PROGRESS:
            return False
        return self.deadline is not None and self.time_remaining(now) == 0

    def format_time(self, seconds: Optional[int] = None) -> str:
        if seconds is None:
            seconds = self.time_remaining()
        return format_time(seconds)

    def _submit_answers(self) -> List[SubmitAnswer]:
        return [
            SubmitAnswer(question_id=question.id, answer=answer)
            for question, answer in zip(self.questions, self.answers)
            if answer != UNANSWERED and question.id
        ]

    async def submit(self, timed_out: bool = False) -> ExamAttempt:
        exam = self._require_exam()
        if self.state == AttemptStateEnum.SUBMITTED:
            raise InvalidStateError("This exam attempt has already been submitted.")
        if self.state != AttemptStateEnum.IN_PROGRESS or self.attempt is None:
            raise InvalidStateError("The exam attempt has not been started.")
        if self.is_submitting:
            raise InvalidStateError("A submission is already in progress.")

        timed_out = timed_out or self.expired()
        self.is_submitting = True
        try:
            result = await self.exam_service.submit_attempt(self.attempt.id, self._submit_answers())
        except ApiError as e:
            logger.warning(f"Submission of attempt {self.attempt.id} failed: {e.message}")
            raise SubmissionError(cause=e) from e
        finally:
            self.is_submitting = False

        score = result.score if result.score is not None else self.compute_local_score()
        passed = result.passed if result.passed is not None else score >= exam.passing_score

        updates: Dict[str, Any] = {"score": score, "passed": passed}
        if timed_out:
            updates["status"] = ExamAttemptStatusEnum.TIMED_OUT
        elif result.status == ExamAttemptStatusEnum.IN_PROGRESS:
            updates["status"] = ExamAttemptStatusEnum.SUBMITTED
        self.attempt = result.model_copy(update=updates)
        self.score = score
        self.passed = passed
        self.state = AttemptStateEnum.SUBMITTED

        await self.events.publish(EXAM_TIMED_OUT if timed_out else EXAM_SUBMITTED, {
            "attempt_id": self.attempt.id,
            "exam_id": exam.id,
            "user_id": self.attempt.user_id,
            "score": score,
            "passed": passed,
            "message": f"{exam.title}: scored {score}% ({'passed' if passed else 'not passed'})",
        })
        return self.attempt

    async def check_timeout(self, now: Optional[datetime] = None) -> bool:
        """Auto-submits an expired attempt when enabled; the time limit is advisory otherwise."""
        if not self.expired(now):
            return False
        await self.submit(timed_out=True)
        return True

    async def retake(self) -> ExamAttempt:
        exam = self._require_exam()
        if self.state != AttemptStateEnum.SUBMITTED or self.passed:
            raise InvalidStateError("Only a failed attempt can be retaken.")

        attempt = await self.exam_service.start_attempt(exam.id)
        self._adopt_attempt(attempt)
        logger.info(f"Retake attempt {attempt.id} started for exam {exam.id}")
        return attempt

    async def load_result(self, attempt_id: str) -> ExamAttempt:
        attempt = await self.exam_service.get_attempt(attempt_id)
        self.exam = await self.exam_service.get_exam(attempt.exam_id)
        self.attempt = attempt
        self.questions = order_questions(self.exam.questions, attempt.question_order)
        self._reset_answers()
        self.deadline = None
        self.score = attempt.score if attempt.score is not None else 0
        self.passed = bool(attempt.passed)
        self.state = AttemptStateEnum.SUBMITTED
        return attempt

    @property
    def certificate_state(self) -> CertificateStateEnum:
        if self.state != AttemptStateEnum.SUBMITTED or not self.passed:
            return CertificateStateEnum.NONE
        certificate = self.attempt.certificate if self.attempt else None
        if certificate is None:
            return CertificateStateEnum.PENDING_GENERATION
        if certificate.status == CertificateStatusEnum.APPROVED:
            return CertificateStateEnum.APPROVED
        if certificate.status == CertificateStatusEnum.REJECTED:
            return CertificateStateEnum.REJECTED
        return CertificateStateEnum.PENDING_APPROVAL

    def current_question(self) -> Optional[ExamQuestion]:
        if not self.questions:
            return None
        return self.questions[self.current_question_index]

    def view(self, now: Optional[datetime] = None) -> AttemptSessionView:
        exam = self._require_exam()
        question = self.current_question()
        remaining = self.time_remaining(now) if self.state == AttemptStateEnum.IN_PROGRESS else None
        return AttemptSessionView(
            session_id=self.session_id,
            exam_id=exam.id,
            exam_title=exam.title,
            passing_score=exam.passing_score,
            attempt_id=self.attempt.id if self.attempt else None,
            state=self.state,
            status=self.attempt.status if self.attempt else None,
            total_questions=len(self.questions),
            current_question_index=self.current_question_index,
            current_question=QuestionView.model_validate(question.model_dump()) if question else None,
            answers=list(self.answers),
            answered_count=self.answered_count,
            progress=self.progress,
            requires_confirmation=self.requires_confirmation,
            time_remaining=remaining,
            time_remaining_display=format_time(remaining) if remaining is not None else None,
            score=self.score,
            passed=self.passed,
            certificate_state=self.certificate_state,
            certificate=self.attempt.certificate if self.attempt else None,
        )

    def to_cache(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "exam": self.exam.model_dump(mode="json", by_alias=True) if self.exam else None,
            "attempt": self.attempt.model_dump(mode="json", by_alias=True) if self.attempt else None,
            "question_ids": [q.id for q in self.questions],
            "answers": list(self.answers),
            "current_question_index": self.current_question_index,
            "state": self.state.value,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "score": self.score,
            "passed": self.passed,
        }

    @classmethod
    def from_cache(cls, data: Dict[str, Any], exam_service: ExamService, **kwargs) -> "ExamAttemptSession":
        session = cls(exam_service, session_id=data["session_id"], **kwargs)
        session.exam = Exam.model_validate(data["exam"]) if data.get("exam") else None
        session.attempt = ExamAttempt.model_validate(data["attempt"]) if data.get("attempt") else None
        if session.exam:
            # cached ids preserve the presentation order chosen at start
            session.questions = order_questions(session.exam.questions, data.get("question_ids"))
        session.answers = list(data.get("answers") or [UNANSWERED] * len(session.questions))
        session.current_question_index = data.get("current_question_index", 0)
        session.state = AttemptStateEnum(data.get("state", AttemptStateEnum.NOT_STARTED))
        session.deadline = datetime.fromisoformat(data["deadline"]) if data.get("deadline") else None
        session.score = data.get("score")
        session.passed = data.get("passed")
        return session
