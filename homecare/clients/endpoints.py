"""Backend REST paths, relative to ``settings.API_URL``."""
from homecare.core.config import settings


class AuthEndpoints:
    LOGIN = "/v1/auth/login"
    LOGOUT = "/v1/auth/logout"
    REFRESH = "/v1/auth/refresh"
    ME = "/v1/auth/me"


class PatientEndpoints:
    BASE = "/v1/patients"

    @staticmethod
    def by_id(patient_id: str) -> str:
        return f"/v1/patients/{patient_id}"


class HealthRecordEndpoints:
    BASE = "/v1/health-records"

    @staticmethod
    def by_id(record_id: str) -> str:
        return f"/v1/health-records/{record_id}"

    @staticmethod
    def by_patient(patient_id: str) -> str:
        return f"/v1/health-records/patient/{patient_id}"

    @staticmethod
    def vitals(patient_id: str) -> str:
        return f"/v1/health-records/patient/{patient_id}/vitals"

    @staticmethod
    def medications(patient_id: str) -> str:
        return f"/v1/health-records/patient/{patient_id}/medications"

    @staticmethod
    def symptoms(patient_id: str) -> str:
        return f"/v1/health-records/patient/{patient_id}/symptoms"

    @staticmethod
    def verify(record_id: str) -> str:
        return f"/v1/health-records/{record_id}/verify"


class TrainingEndpoints:
    EXAMS = "/v1/training/exams-v2"
    ATTEMPTS = "/v1/training/attempts"
    CERTIFICATES = "/v1/training/certificates"
    CERTIFICATES_MINE = "/v1/training/certificates/mine"

    @staticmethod
    def exam_by_id(exam_id: str) -> str:
        return f"/v1/training/exams-v2/{exam_id}"

    @staticmethod
    def start_exam(exam_id: str) -> str:
        return f"/v1/training/exams-v2/{exam_id}/start"

    @staticmethod
    def attempt_by_id(attempt_id: str) -> str:
        return f"/v1/training/attempts/{attempt_id}"

    @staticmethod
    def submit_attempt(attempt_id: str) -> str:
        return f"/v1/training/attempts/{attempt_id}/submit"

    @staticmethod
    def certificate_by_id(certificate_id: str) -> str:
        return f"/v1/training/certificates/{certificate_id}"

    @staticmethod
    def approve_certificate(certificate_id: str) -> str:
        return f"/v1/training/certificates/{certificate_id}/approve"


# Calls that must never trigger a refresh-and-retry on 401
UNAUTHENTICATED_PATHS = (
    AuthEndpoints.LOGIN,
    AuthEndpoints.REFRESH,
    AuthEndpoints.LOGOUT,
)


def clamp_limit(limit):
    if isinstance(limit, int):
        return min(max(limit, 1), settings.MAX_PAGE_LIMIT)
    return limit
