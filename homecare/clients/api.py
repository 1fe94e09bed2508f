import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from homecare.core.config import settings
from homecare.core.exceptions import AuthError, NetworkError, ValidationError, error_for_status
from homecare.clients.endpoints import AuthEndpoints, UNAUTHENTICATED_PATHS
from homecare.schemas.response import BackendEnvelope
from homecare.schemas.user import LoginResult

logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = "An error occurred"


def _extract_message(body: Any) -> str:
    if not isinstance(body, dict):
        return FALLBACK_MESSAGE
    if body.get("message"):
        return body["message"]
    error = body.get("error")
    if isinstance(error, str) and error:
        return error
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    errors = body.get("errors")
    if isinstance(errors, list) and errors:
        return str(errors[0])
    return FALLBACK_MESSAGE


def _extract_errors(body: Any) -> Optional[List[str]]:
    if not isinstance(body, dict):
        return None
    if isinstance(body.get("errors"), list):
        return [str(e) for e in body["errors"]]
    error = body.get("error")
    if isinstance(error, dict) and isinstance(error.get("details"), list):
        return [str(e) for e in error["details"]]
    return None


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


class ApiClient:
    """Authenticated REST client for the practice backend.

    Every response is normalized into a ``BackendEnvelope``; failures are raised
    as the typed errors in ``homecare.core.exceptions``. A 401 on a protected
    path triggers one token refresh and a single retry.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_tokens_changed: Optional[Callable[[Optional[str], Optional[str]], None]] = None,
    ):
        self.base_url = (base_url or settings.API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.API_TIMEOUT
        self.access_token = access_token
        self.refresh_token_value = refresh_token
        self._transport = transport
        self._on_tokens_changed = on_tokens_changed

    def set_tokens(self, access_token: Optional[str], refresh_token: Optional[str] = None):
        self.access_token = access_token
        if refresh_token is not None:
            self.refresh_token_value = refresh_token
        if self._on_tokens_changed:
            self._on_tokens_changed(self.access_token, self.refresh_token_value)

    def clear_tokens(self):
        self.access_token = None
        self.refresh_token_value = None
        if self._on_tokens_changed:
            self._on_tokens_changed(None, None)

    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def _send(self, method: str, path: str, params: Optional[dict], json: Any) -> httpx.Response:
        clean_params = {k: v for k, v in (params or {}).items() if v is not None} or None
        async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport) as client:
            try:
                return await client.request(method, path, params=clean_params, json=json, headers=self._headers())
            except httpx.RequestError as e:
                logger.warning(f"{method} {path} - transport failure: {e}")
                raise NetworkError() from e

    async def request(self, method: str, path: str, params: Optional[dict] = None,
                      json: Any = None, _retry: bool = True) -> BackendEnvelope:
        response = await self._send(method, path, params, json)
        logger.debug(f"{method} {path} - {response.status_code}")

        if response.status_code == 401 and _retry and path not in UNAUTHENTICATED_PATHS:
            try:
                await self.refresh_token()
            except (AuthError, ValidationError):
                # refresh token rejected; transport and server failures keep the session
                self.clear_tokens()
                raise AuthError("Session expired. Please log in again.", 401)
            return await self.request(method, path, params=params, json=json, _retry=False)

        body = _json_or_none(response)

        if response.is_error:
            message = _extract_message(body)
            logger.warning(f"{method} {path} - {response.status_code}: {message}")
            raise error_for_status(response.status_code, message, _extract_errors(body))

        if isinstance(body, dict) and ("success" in body or "data" in body):
            envelope = BackendEnvelope.model_validate(body)
        else:
            envelope = BackendEnvelope(success=True, data=body)

        if not envelope.success:
            raise error_for_status(400, _extract_message(body), _extract_errors(body))

        return envelope

    async def get(self, path: str, params: Optional[dict] = None) -> BackendEnvelope:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None, params: Optional[dict] = None) -> BackendEnvelope:
        return await self.request("POST", path, params=params, json=json)

    async def put(self, path: str, json: Any = None) -> BackendEnvelope:
        return await self.request("PUT", path, json=json)

    async def patch(self, path: str, json: Any = None) -> BackendEnvelope:
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str) -> BackendEnvelope:
        return await self.request("DELETE", path)

    async def login(self, email: str, password: str) -> LoginResult:
        envelope = await self.post(AuthEndpoints.LOGIN, json={"email": email, "password": password})
        if not envelope.data:
            raise AuthError("Login failed. Please check your credentials.", 401)
        result = LoginResult.model_validate(envelope.data)
        self.set_tokens(result.access_token, result.refresh_token)
        return result

    async def logout(self):
        try:
            await self.post(AuthEndpoints.LOGOUT)
        finally:
            self.clear_tokens()

    async def refresh_token(self) -> BackendEnvelope:
        if not self.refresh_token_value:
            raise AuthError("Session expired. Please log in again.", 401)

        envelope = await self.request(
            "POST", AuthEndpoints.REFRESH, json={"refreshToken": self.refresh_token_value}, _retry=False
        )
        data = envelope.data or {}
        if not data.get("accessToken"):
            raise AuthError("Session expired. Please log in again.", 401)
        self.set_tokens(data["accessToken"], data.get("refreshToken"))
        logger.info("Access token refreshed")
        return envelope
