from typing import List, Optional

from homecare.clients.api import ApiClient
from homecare.clients.endpoints import TrainingEndpoints, clamp_limit
from homecare.core.constants import CertificateStatusEnum
from homecare.core.exceptions import NotFoundError
from homecare.schemas.exam import (
    Exam,
    ExamAttempt,
    ExamCertificate,
    SubmitAnswer,
    SubmitAttempt,
    ExamQueryParams,
    AttemptQueryParams,
    CertificateQueryParams,
)
from homecare.schemas.response import Page


def _query(params) -> dict:
    if params is None:
        return {}
    query = params.to_wire()
    if "limit" in query:
        query["limit"] = clamp_limit(query["limit"])
    return query


class ExamService:
    """Typed wrapper over the training exam, attempt and certificate endpoints."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def get_exams(self, params: Optional[ExamQueryParams] = None) -> Page[Exam]:
        envelope = await self.api.get(TrainingEndpoints.EXAMS, params=_query(params))
        exams = envelope.data if isinstance(envelope.data, list) else []
        return Page[Exam](items=[Exam.model_validate(e) for e in exams], pagination=envelope.pagination)

    async def get_exam(self, exam_id: str, include_answers: bool = False) -> Exam:
        params = {"includeAnswers": "true"} if include_answers else None
        envelope = await self.api.get(TrainingEndpoints.exam_by_id(exam_id), params=params)
        if not envelope.data:
            raise NotFoundError("Exam not found.")
        return Exam.model_validate(envelope.data)

    async def start_attempt(self, exam_id: str) -> ExamAttempt:
        envelope = await self.api.post(TrainingEndpoints.start_exam(exam_id), json={})
        return ExamAttempt.model_validate(envelope.data)

    async def submit_attempt(self, attempt_id: str, answers: List[SubmitAnswer]) -> ExamAttempt:
        body = SubmitAttempt(answers=answers).to_wire()
        envelope = await self.api.post(TrainingEndpoints.submit_attempt(attempt_id), json=body)
        return ExamAttempt.model_validate(envelope.data)

    async def get_attempts(self, params: Optional[AttemptQueryParams] = None) -> Page[ExamAttempt]:
        envelope = await self.api.get(TrainingEndpoints.ATTEMPTS, params=_query(params))
        attempts = envelope.data if isinstance(envelope.data, list) else []
        return Page[ExamAttempt](
            items=[ExamAttempt.model_validate(a) for a in attempts], pagination=envelope.pagination
        )

    async def get_attempt(self, attempt_id: str) -> ExamAttempt:
        envelope = await self.api.get(TrainingEndpoints.attempt_by_id(attempt_id))
        if not envelope.data:
            raise NotFoundError("Exam attempt not found.")
        return ExamAttempt.model_validate(envelope.data)

    async def get_certificates(self, params: Optional[CertificateQueryParams] = None) -> Page[ExamCertificate]:
        envelope = await self.api.get(TrainingEndpoints.CERTIFICATES, params=_query(params))
        certificates = envelope.data if isinstance(envelope.data, list) else []
        return Page[ExamCertificate](
            items=[ExamCertificate.model_validate(c) for c in certificates], pagination=envelope.pagination
        )

    async def get_my_certificates(self, status: Optional[CertificateStatusEnum] = None) -> List[ExamCertificate]:
        params = {"status": status.value} if status else None
        envelope = await self.api.get(TrainingEndpoints.CERTIFICATES_MINE, params=params)
        certificates = envelope.data if isinstance(envelope.data, list) else []
        return [ExamCertificate.model_validate(c) for c in certificates]

    async def get_certificate(self, certificate_id: str) -> ExamCertificate:
        envelope = await self.api.get(TrainingEndpoints.certificate_by_id(certificate_id))
        if not envelope.data:
            raise NotFoundError("Certificate not found.")
        return ExamCertificate.model_validate(envelope.data)

    async def approve_certificate(self, certificate_id: str) -> ExamCertificate:
        envelope = await self.api.post(TrainingEndpoints.approve_certificate(certificate_id), json={})
        return ExamCertificate.model_validate(envelope.data)
