from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import HTMLResponse

from homecare.core.constants import CertificateStatusEnum, ExamStatusEnum
from homecare.core.exceptions import SubmissionError
from homecare.schemas.exam import (
    AnswerSelection,
    AttemptSessionView,
    Exam,
    ExamCertificate,
    ExamQueryParams,
    NavigateRequest,
    SubmitRequest,
)
from homecare.schemas.response import APIResponse, Page
from homecare.schemas.user import UserContext
from homecare.services.certificate import CertificateService
from homecare.services.exam import ExamService
from homecare.services.exam_attempt import ExamAttemptSession
from homecare.services.sessions import load_attempt_session, save_attempt_session, submit_lock
from homecare.utils import deps
from homecare.utils.events import CERTIFICATE_APPROVED, event_bus

router = APIRouter()

TIME_UP = "Time is up; the exam was submitted"


@router.get("/exams", response_model=APIResponse[Page[Exam]])
async def get_exams(
    *,
    exam_service: ExamService = Depends(deps.get_exam_service),
    context: UserContext = Depends(deps.get_current_user_with_context),
    page: Optional[int] = None,
    limit: Optional[int] = None,
    exam_status: Optional[ExamStatusEnum] = Query(None, alias="status")
):
    exams = await exam_service.get_exams(ExamQueryParams(page=page, limit=limit, status=exam_status))
    return APIResponse(message="Exams retrieved successfully", data=exams)


@router.post("/exams/{exam_id}/attempts", response_model=APIResponse[AttemptSessionView],
             status_code=status.HTTP_201_CREATED)
async def start_exam(
    *,
    exam_id: str,
    exam_service: ExamService = Depends(deps.get_exam_service),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    session = ExamAttemptSession(exam_service)
    await session.load_exam(exam_id)
    await session.start()
    await save_attempt_session(context.user_id, session)
    return APIResponse(message="Exam attempt started", data=session.view())


async def load_enforcing_timeout(user_id: str, session_id: str, exam_service: ExamService):
    """Load a session, auto-submitting it first if its enforced time limit has run out."""
    session = await load_attempt_session(user_id, session_id, exam_service)
    if not session.expired():
        return session, False

    async with submit_lock(user_id, session_id):
        session = await load_attempt_session(user_id, session_id, exam_service)
        timed_out = await session.check_timeout()
        if timed_out:
            await save_attempt_session(user_id, session)
    return session, timed_out


@router.get("/sessions/{session_id}", response_model=APIResponse[AttemptSessionView])
async def get_session(
    *,
    session_id: str,
    exam_service: ExamService = Depends(deps.get_exam_service),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    session, timed_out = await load_enforcing_timeout(context.user_id, session_id, exam_service)
    message = TIME_UP if timed_out else "Exam session retrieved"
    return APIResponse(message=message, data=session.view())


@router.put("/sessions/{session_id}/answers/{question_index}", response_model=APIResponse[AttemptSessionView])
async def select_answer(
    *,
    session_id: str,
    question_index: int,
    selection: AnswerSelection,
    exam_service: ExamService = Depends(deps.get_exam_service),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    session, timed_out = await load_enforcing_timeout(context.user_id, session_id, exam_service)
    if timed_out:
        return APIResponse(message=TIME_UP, data=session.view())
    session.select_answer(question_index, selection.option_index)
    await save_attempt_session(context.user_id, session)
    return APIResponse(message="Answer saved", data=session.view())


@router.post("/sessions/{session_id}/navigate", response_model=APIResponse[AttemptSessionView])
async def navigate(
    *,
    session_id: str,
    request: NavigateRequest,
    exam_service: ExamService = Depends(deps.get_exam_service),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    session, timed_out = await load_enforcing_timeout(context.user_id, session_id, exam_service)
    if timed_out:
        return APIResponse(message=TIME_UP, data=session.view())
    session.navigate(request.target)
    await save_attempt_session(context.user_id, session)
    return APIResponse(message="Question changed", data=session.view())


@router.post("/sessions/{session_id}/submit", response_model=APIResponse[AttemptSessionView])
async def submit_exam(
    *,
    session_id: str,
    request: SubmitRequest,
    exam_service: ExamService = Depends(deps.get_exam_service),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    session, timed_out = await load_enforcing_timeout(context.user_id, session_id, exam_service)
    if timed_out:
        return APIResponse(message=TIME_UP, data=session.view())
    if session.requires_confirmation and not request.confirm:
        return APIResponse(
            message=f"{session.unanswered_count} question(s) unanswered. Confirm to submit anyway.",
            data=session.view()
        )

    async with submit_lock(context.user_id, session_id):
        # reload under the lock so a submit that finished meanwhile is seen
        session = await load_attempt_session(context.user_id, session_id, exam_service)
        try:
            await session.submit()
        except SubmissionError:
            # answers stay in the session for a retry
            await save_attempt_session(context.user_id, session)
            raise
        await save_attempt_session(context.user_id, session)

    return APIResponse(message="Exam submitted successfully", data=session.view())


@router.post("/sessions/{session_id}/retake", response_model=APIResponse[AttemptSessionView])
async def retake_exam(
    *,
    session_id: str,
    exam_service: ExamService = Depends(deps.get_exam_service),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    session = await load_attempt_session(context.user_id, session_id, exam_service)
    await session.retake()
    await save_attempt_session(context.user_id, session)
    return APIResponse(message="New exam attempt started", data=session.view())


@router.get("/attempts/{attempt_id}/result", response_model=APIResponse[AttemptSessionView])
async def get_attempt_result(
    *,
    attempt_id: str,
    exam_service: ExamService = Depends(deps.get_exam_service),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    session = ExamAttemptSession(exam_service)
    await session.load_result(attempt_id)
    await save_attempt_session(context.user_id, session)
    return APIResponse(message="Exam result retrieved", data=session.view())


@router.get("/certificates/mine", response_model=APIResponse[List[ExamCertificate]])
async def get_my_certificates(
    *,
    exam_service: ExamService = Depends(deps.get_exam_service),
    context: UserContext = Depends(deps.get_current_user_with_context),
    certificate_status: Optional[CertificateStatusEnum] = Query(None, alias="status")
):
    certificates = await exam_service.get_my_certificates(certificate_status)
    return APIResponse(message="Certificates retrieved successfully", data=certificates)


@router.post("/certificates/{certificate_id}/approve", response_model=APIResponse[ExamCertificate])
async def approve_certificate(
    *,
    certificate_id: str,
    exam_service: ExamService = Depends(deps.get_exam_service),
    context: UserContext = Depends(deps.require_admin)
):
    certificate = await exam_service.approve_certificate(certificate_id)
    await event_bus.publish(CERTIFICATE_APPROVED, {
        "certificate_id": certificate.id,
        "user_id": certificate.user_id,
        "approved_by": context.user_id,
        "message": f"Certificate {certificate.certificate_number} approved",
    })
    return APIResponse(message="Certificate approved", data=certificate)


@router.get("/certificates/{certificate_id}/print", response_class=HTMLResponse)
async def print_certificate(
    *,
    certificate_id: str,
    exam_service: ExamService = Depends(deps.get_exam_service),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    certificate = await exam_service.get_certificate(certificate_id)
    return HTMLResponse(CertificateService.render(certificate, auto_print=True))
