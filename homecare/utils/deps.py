from typing import Optional

import httpx
from fastapi import Depends, Header, Response
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from homecare.clients.api import ApiClient
from homecare.core.exceptions import AuthError
from homecare.schemas.user import UserContext
from homecare.services.auth import AuthService
from homecare.services.exam import ExamService
from homecare.services.health_record import HealthRecordService
from homecare.services.patient import PatientService
from homecare.utils.permission import PermissionHelper

http_bearer = HTTPBearer(auto_error=False)


def get_api_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Overridden in tests to stub the practice backend."""
    return None


def get_api_client(
    response: Response,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    x_refresh_token: Optional[str] = Header(None),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_api_transport),
) -> ApiClient:
    def _tokens_changed(access_token: Optional[str], refresh_token: Optional[str]):
        # hand refreshed tokens back to the caller
        if access_token:
            response.headers["X-Access-Token"] = access_token
        if refresh_token:
            response.headers["X-Refresh-Token"] = refresh_token

    return ApiClient(
        access_token=credentials.credentials if credentials else None,
        refresh_token=x_refresh_token,
        transport=transport,
        on_tokens_changed=_tokens_changed,
    )


def get_auth_service(api: ApiClient = Depends(get_api_client)) -> AuthService:
    return AuthService(api)


def get_exam_service(api: ApiClient = Depends(get_api_client)) -> ExamService:
    return ExamService(api)


def get_health_record_service(api: ApiClient = Depends(get_api_client)) -> HealthRecordService:
    return HealthRecordService(api)


def get_patient_service(api: ApiClient = Depends(get_api_client)) -> PatientService:
    return PatientService(api)


async def get_current_user_with_context(
    api: ApiClient = Depends(get_api_client),
    auth_service: AuthService = Depends(get_auth_service),
) -> UserContext:
    if not api.is_authenticated():
        raise AuthError("Please log in to continue.", 401)

    user = await auth_service.get_current_user()
    return UserContext(user=user, access_token=api.access_token, refresh_token=api.refresh_token_value)


def require_admin(context: UserContext = Depends(get_current_user_with_context)) -> UserContext:
    PermissionHelper.require_admin(context)
    return context


def require_record_editor(context: UserContext = Depends(get_current_user_with_context)) -> UserContext:
    PermissionHelper.require_record_editor(context)
    return context


def require_record_verifier(context: UserContext = Depends(get_current_user_with_context)) -> UserContext:
    PermissionHelper.require_record_verifier(context)
    return context
