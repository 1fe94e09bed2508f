import asyncio

import httpx
import pytest

from homecare.core.cache import CACHE_KEYS, cache
from homecare.core.config import settings
from tests.helpers.asserts import api_call, auth_headers
from tests.helpers.backend import (
    attempt_payload,
    certificate_payload,
    envelope,
    exam_payload,
    failure,
)

EXAM = "/v1/training/exams-v2/exam-1"
SUBMIT = "/v1/training/attempts/attempt-1/submit"


def start_session(client, backend, questions=2):
    backend.route("GET", EXAM, envelope(exam_payload(questions=questions)))
    backend.route("POST", f"{EXAM}/start", envelope(attempt_payload()))
    response = api_call(client, "POST", "/training/exams/exam-1/attempts", token="nurse-token")
    assert response.status_code == 201
    return response.json()["data"]


def expire_session(client, session_id, user_id="u-nurse"):
    key = CACHE_KEYS["attempt_session"].format(user_id, session_id)
    cached = client.portal.call(cache.get, key)
    cached["deadline"] = "2000-01-01T00:00:00+00:00"
    client.portal.call(cache.set, key, cached)


class TestTrainingEndpoints:
    def test_start_exam_hides_correct_answers(self, client, backend):
        session = start_session(client, backend)

        assert session["state"] == "in_progress"
        assert session["attemptId"] == "attempt-1"
        assert session["answers"] == [-1, -1]
        assert 0 < session["timeRemaining"] <= 1800
        assert session["currentQuestion"]["id"] == "q1"
        assert "correctAnswer" not in session["currentQuestion"]

    def test_answer_and_navigate(self, client, backend):
        session_id = start_session(client, backend)["sessionId"]

        api_call(client, "PUT", f"/training/sessions/{session_id}/answers/1", token="nurse-token",
                 json={"optionIndex": 3})
        response = api_call(client, "POST", f"/training/sessions/{session_id}/navigate", token="nurse-token",
                            json={"target": "next"})

        data = response.json()["data"]
        assert data["answers"] == [-1, 3]
        assert data["currentQuestionIndex"] == 1
        assert data["progress"] == 50

    def test_out_of_range_question_is_rejected(self, client, backend):
        session_id = start_session(client, backend)["sessionId"]

        response = client.put(f"/training/sessions/{session_id}/answers/9", headers=auth_headers("nurse-token"),
                              json={"optionIndex": 0})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_bad_navigation_target_fails_request_validation(self, client, backend):
        session_id = start_session(client, backend)["sessionId"]

        response = client.post(f"/training/sessions/{session_id}/navigate", headers=auth_headers("nurse-token"),
                               json={"target": "sideways"})

        assert response.status_code == 422
        assert "validation_errors" in response.json()["error"]["details"]

    def test_submit_with_unanswered_questions_needs_confirmation(self, client, backend):
        session_id = start_session(client, backend)["sessionId"]
        backend.route("POST", SUBMIT, envelope(attempt_payload(status="SUBMITTED", score=50, passed=False)))
        api_call(client, "PUT", f"/training/sessions/{session_id}/answers/0", token="nurse-token",
                 json={"optionIndex": 0})

        response = api_call(client, "POST", f"/training/sessions/{session_id}/submit", token="nurse-token",
                            json={"confirm": False})

        assert "1 question(s) unanswered" in response.json()["message"]
        assert response.json()["data"]["requiresConfirmation"] is True
        assert backend.calls("POST", SUBMIT) == []

        response = api_call(client, "POST", f"/training/sessions/{session_id}/submit", token="nurse-token",
                            json={"confirm": True})

        data = response.json()["data"]
        assert backend.last_json("POST", SUBMIT) == {"answers": [{"questionId": "q1", "answer": 0}]}
        assert data["state"] == "submitted"
        assert data["score"] == 50
        assert data["passed"] is False
        assert data["certificateState"] == "none"

    def test_failed_submission_keeps_answers(self, client, backend):
        session_id = start_session(client, backend, questions=1)["sessionId"]
        backend.route("POST", SUBMIT, failure(500, "Grading service down"))
        api_call(client, "PUT", f"/training/sessions/{session_id}/answers/0", token="nurse-token",
                 json={"optionIndex": 0})

        response = client.post(f"/training/sessions/{session_id}/submit", headers=auth_headers("nurse-token"),
                               json={"confirm": True})

        assert response.status_code == 500
        assert response.json()["error"]["details"]["notification"]["title"] == "Unable to submit exam"

        data = api_call(client, "GET", f"/training/sessions/{session_id}", token="nurse-token").json()["data"]
        assert data["state"] == "in_progress"
        assert data["answers"] == [0]

    def test_unreachable_backend_maps_to_service_unavailable(self, client, backend):
        session_id = start_session(client, backend, questions=1)["sessionId"]

        def unreachable(request):
            raise httpx.ConnectError("connection refused", request=request)

        backend.route("POST", SUBMIT, unreachable)

        response = client.post(f"/training/sessions/{session_id}/submit", headers=auth_headers("nurse-token"),
                               json={"confirm": True})

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "SERVICE_UNAVAILABLE"

    def test_failed_attempt_can_be_retaken(self, client, backend):
        session_id = start_session(client, backend, questions=1)["sessionId"]
        backend.route("POST", SUBMIT, envelope(attempt_payload(status="SUBMITTED", score=0, passed=False)))
        api_call(client, "POST", f"/training/sessions/{session_id}/submit", token="nurse-token",
                 json={"confirm": True})
        backend.route("POST", f"{EXAM}/start", envelope(attempt_payload("attempt-2")))

        response = api_call(client, "POST", f"/training/sessions/{session_id}/retake", token="nurse-token")

        data = response.json()["data"]
        assert data["attemptId"] == "attempt-2"
        assert data["state"] == "in_progress"
        assert data["answers"] == [-1]
        assert data["score"] is None

    def test_sessions_are_private_to_their_user(self, client, backend):
        session_id = start_session(client, backend)["sessionId"]

        response = client.get(f"/training/sessions/{session_id}", headers=auth_headers("doctor-token"))

        assert response.status_code == 404

    def test_expired_access_token_is_refreshed(self, client, backend):
        backend.route("POST", "/v1/auth/refresh", envelope({"accessToken": "nurse-token", "refreshToken": "refresh-2"}))
        backend.route("GET", "/v1/training/certificates/mine", envelope([certificate_payload()]))

        response = client.get("/training/certificates/mine",
                              headers={"Authorization": "Bearer stale", "X-Refresh-Token": "refresh-1"})

        assert response.status_code == 200
        assert response.headers["X-Access-Token"] == "nurse-token"
        assert response.headers["X-Refresh-Token"] == "refresh-2"
        assert response.json()["data"][0]["certificateNumber"] == "TH-2024-0001"

    def test_missing_token_is_unauthorized(self, client):
        response = client.get("/training/certificates/mine")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    def test_only_admins_approve_certificates(self, client, backend):
        backend.route("POST", "/v1/training/certificates/cert-1/approve",
                      envelope(certificate_payload(status="APPROVED", approvedByName="Ada Admin")))

        denied = client.post("/training/certificates/cert-1/approve", headers=auth_headers("nurse-token"))
        assert denied.status_code == 403
        assert denied.json()["error"]["code"] == "FORBIDDEN"
        assert backend.calls("POST", "/v1/training/certificates/cert-1/approve") == []

        response = api_call(client, "POST", "/training/certificates/cert-1/approve", token="admin-token")
        assert response.json()["data"]["status"] == "APPROVED"

    def test_print_certificate_returns_printable_html(self, client, backend):
        backend.route("GET", "/v1/training/certificates/cert-1", envelope(certificate_payload(status="APPROVED")))

        response = api_call(client, "GET", "/training/certificates/cert-1/print", token="nurse-token")

        assert response.headers["content-type"].startswith("text/html")
        assert "TH-2024-0001" in response.text
        assert "window.print" in response.text

    def test_attempt_result_reports_certificate_state(self, client, backend):
        backend.route("GET", "/v1/training/attempts/attempt-1", envelope(attempt_payload(
            status="SUBMITTED", score=90, passed=True, certificate=certificate_payload(),
        )))
        backend.route("GET", EXAM, envelope(exam_payload()))

        response = api_call(client, "GET", "/training/attempts/attempt-1/result", token="nurse-token")

        data = response.json()["data"]
        assert data["state"] == "submitted"
        assert data["score"] == 90
        assert data["certificateState"] == "pending_approval"

    def test_expired_session_is_submitted_before_answering(self, client, backend, monkeypatch):
        monkeypatch.setattr(settings, "EXAM_AUTO_SUBMIT_ON_TIMEOUT", True)
        session_id = start_session(client, backend)["sessionId"]
        backend.route("POST", SUBMIT, envelope(attempt_payload(status="SUBMITTED", score=50, passed=False)))
        api_call(client, "PUT", f"/training/sessions/{session_id}/answers/0", token="nurse-token",
                 json={"optionIndex": 0})
        expire_session(client, session_id)

        response = api_call(client, "PUT", f"/training/sessions/{session_id}/answers/1", token="nurse-token",
                            json={"optionIndex": 1})

        assert response.json()["message"] == "Time is up; the exam was submitted"
        data = response.json()["data"]
        assert data["answers"] == [0, -1]
        assert data["state"] == "submitted"
        assert data["status"] == "TIMED_OUT"
        assert backend.last_json("POST", SUBMIT) == {"answers": [{"questionId": "q1", "answer": 0}]}

        again = client.post(f"/training/sessions/{session_id}/submit", headers=auth_headers("nurse-token"),
                            json={"confirm": True})
        assert again.status_code == 409
        assert len(backend.calls("POST", SUBMIT)) == 1

    def test_expired_session_submit_reports_timeout(self, client, backend, monkeypatch):
        monkeypatch.setattr(settings, "EXAM_AUTO_SUBMIT_ON_TIMEOUT", True)
        session_id = start_session(client, backend, questions=1)["sessionId"]
        backend.route("POST", SUBMIT, envelope(attempt_payload(status="SUBMITTED", score=0, passed=False)))
        expire_session(client, session_id)

        response = api_call(client, "POST", f"/training/sessions/{session_id}/submit", token="nurse-token",
                            json={"confirm": False})

        assert response.json()["message"] == "Time is up; the exam was submitted"
        assert response.json()["data"]["status"] == "TIMED_OUT"

    def test_expired_session_stays_open_when_time_limit_is_advisory(self, client, backend):
        session_id = start_session(client, backend)["sessionId"]
        expire_session(client, session_id)

        response = api_call(client, "PUT", f"/training/sessions/{session_id}/answers/1", token="nurse-token",
                            json={"optionIndex": 2})

        data = response.json()["data"]
        assert data["state"] == "in_progress"
        assert data["timeRemaining"] == 0
        assert data["answers"] == [-1, 2]
        assert backend.calls("POST", SUBMIT) == []


@pytest.mark.asyncio
async def test_overlapping_submits_reach_backend_once(async_client, backend):
    backend.route("GET", EXAM, envelope(exam_payload(questions=1)))
    backend.route("POST", f"{EXAM}/start", envelope(attempt_payload()))

    async def slow_submit(request):
        await asyncio.sleep(0.2)
        return envelope(attempt_payload(status="SUBMITTED", score=100, passed=True))

    backend.route("POST", SUBMIT, slow_submit)
    headers = auth_headers("nurse-token")
    started = await async_client.post("/training/exams/exam-1/attempts", headers=headers)
    session_id = started.json()["data"]["sessionId"]

    responses = await asyncio.gather(*[
        async_client.post(f"/training/sessions/{session_id}/submit", headers=headers, json={"confirm": True})
        for _ in range(2)
    ])

    assert sorted(r.status_code for r in responses) == [200, 409]
    assert len(backend.calls("POST", SUBMIT)) == 1
    session = await async_client.get(f"/training/sessions/{session_id}", headers=headers)
    assert session.json()["data"]["state"] == "submitted"
