import logging

from homecare.clients.api import ApiClient
from homecare.clients.endpoints import AuthEndpoints
from homecare.core.cache import cache, CACHE_KEYS
from homecare.core.exceptions import AuthError
from homecare.schemas.user import LoginRequest, LoginResult, User

logger = logging.getLogger(__name__)


class AuthService:
    """Login/logout pass-through to the auth service, plus a cached profile lookup."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def login(self, credentials: LoginRequest) -> LoginResult:
        result = await self.api.login(credentials.email, credentials.password)
        if result.user:
            await cache.set(CACHE_KEYS["user_profile"].format(result.access_token), result.user.model_dump(mode="json"))
            logger.info(f"User {result.user.id} logged in")
        return result

    async def logout(self, user_id: str = None):
        token = self.api.access_token
        try:
            await self.api.logout()
        finally:
            if token:
                await cache.delete(CACHE_KEYS["user_profile"].format(token))
            if user_id:
                await cache.invalidate_user_sessions(user_id)

    async def get_current_user(self) -> User:
        if not self.api.access_token:
            raise AuthError("Please log in to continue.", 401)

        cache_key = CACHE_KEYS["user_profile"].format(self.api.access_token)
        cached = await cache.get(cache_key)
        if cached:
            return User.model_validate(cached)

        envelope = await self.api.get(AuthEndpoints.ME)
        if not envelope.data:
            raise AuthError("Please log in to continue.", 401)
        user = User.model_validate(envelope.data)
        await cache.set(cache_key, user.model_dump(mode="json"))
        return user
